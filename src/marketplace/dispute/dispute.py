"""Dispute aggregate (CQRS) — a buyer's complaint about a delivered order.

A dispute targets one order and, on multi-vendor orders, one product (and so
one vendor). Admins investigate, escalate, resolve or close it; buyer, vendor
and admins talk through an append-only message thread. Resolved refund
disputes carry a separate refund status driven by refund reconciliation.

State Machine:
    OPEN ⇄ INVESTIGATING ⇄ ESCALATED         (admin status updates)
    {OPEN, INVESTIGATING} → RESOLVED
    {OPEN, INVESTIGATING, ESCALATED} → CLOSED
    RESOLVED, CLOSED → (terminal)

Refund Status:
    NONE → PROCESSING → COMPLETED | FAILED
    FAILED → PROCESSING                       (a new attempt)
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    String,
    Text,
)

from marketplace.actor import ActorRole
from marketplace.dispute.events import (
    DisputeClosed,
    DisputeEscalated,
    DisputeMessagePosted,
    DisputeOpened,
    DisputePriorityChanged,
    DisputeRefundCompleted,
    DisputeRefundFailed,
    DisputeRefundPending,
    DisputeRefundStarted,
    DisputeResolved,
    DisputeStatusChanged,
)
from marketplace.domain import marketplace
from marketplace.errors import AuthorizationError, StateConflictError, ValidationError
from marketplace.money import round_money

MIN_DESCRIPTION_LENGTH = 20
MIN_MESSAGE_LENGTH = 5
MAX_MESSAGE_LENGTH = 2000


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class DisputeType(Enum):
    REFUND = "refund"
    QUALITY = "quality"
    DELIVERY = "delivery"
    FRAUD = "fraud"
    OTHER = "other"


class DisputeStatus(Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    ESCALATED = "escalated"
    CLOSED = "closed"


class DisputePriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ResolutionType(Enum):
    FULL_REFUND = "full_refund"
    PARTIAL_REFUND = "partial_refund"
    REPLACEMENT = "replacement"
    NO_ACTION = "no_action"
    OTHER = "other"


class RefundStatus(Enum):
    NONE = "none"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


PRIORITY_RANK = {
    DisputePriority.URGENT.value: 0,
    DisputePriority.HIGH.value: 1,
    DisputePriority.MEDIUM.value: 2,
    DisputePriority.LOW.value: 3,
}

REFUND_RESOLUTIONS = {ResolutionType.FULL_REFUND, ResolutionType.PARTIAL_REFUND}

_SETTLED_STATUSES = {DisputeStatus.RESOLVED, DisputeStatus.CLOSED}
_RESOLVABLE_STATUSES = {DisputeStatus.OPEN, DisputeStatus.INVESTIGATING}
_ADMIN_SETTABLE_STATUSES = {DisputeStatus.OPEN, DisputeStatus.INVESTIGATING, DisputeStatus.ESCALATED}

_REFUND_TRANSITIONS = {
    RefundStatus.NONE: {RefundStatus.PROCESSING},
    RefundStatus.PROCESSING: {RefundStatus.COMPLETED, RefundStatus.FAILED},
    RefundStatus.FAILED: {RefundStatus.PROCESSING},
    RefundStatus.COMPLETED: set(),  # terminal
}


def new_dispute_id() -> str:
    return f"dsp_{uuid4().hex[:16]}"


def _parse_enum(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError({field: [f"Invalid {field} '{value}'. Expected one of: {allowed}"]}) from exc


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Dispute")
class DisputeMessage:
    """One entry in the dispute thread. Written once, never changed."""

    sender_id = Identifier(required=True)
    sender_name = String(max_length=200)
    sender_role = String(required=True, max_length=20)
    body = Text(required=True)
    sent_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Dispute:
    """A dispute raised against a delivered order."""

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    product_id = Identifier()
    amount = Float(min_value=0.0)

    dispute_type = String(required=True, max_length=20, choices=DisputeType)
    status = String(max_length=20, choices=DisputeStatus, default=DisputeStatus.OPEN.value)
    priority = String(max_length=20, choices=DisputePriority, default=DisputePriority.MEDIUM.value)
    description = Text(required=True)
    evidence = Text()  # JSON list of URIs

    opened_by = Identifier()
    opened_by_role = String(max_length=20)

    # Resolution
    resolution_type = String(max_length=20, choices=ResolutionType)
    resolution_notes = Text()
    refund_amount = Float(min_value=0.0)
    resolved_by = Identifier()
    resolved_at = DateTime()

    # Escalation / closure
    escalated_by = Identifier()
    escalation_reason = Text()
    escalated_at = DateTime()
    closed_by = Identifier()
    closure_reason = Text()
    closed_at = DateTime()

    # Refund reconciliation
    refund_status = String(max_length=20, choices=RefundStatus, default=RefundStatus.NONE.value)
    refund_reference = String(max_length=255)
    refund_failure_reason = String(max_length=500)
    refund_requested_amount = Float(min_value=0.0)
    refunded_amount = Float(min_value=0.0)
    refund_requested_at = DateTime()
    refund_completed_at = DateTime()

    messages = HasMany(DisputeMessage)

    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open(
        cls,
        order_id: str,
        buyer_id: str,
        vendor_id: str,
        dispute_type: str,
        description: str,
        opened_by: str,
        opened_by_role: str,
        product_id: str | None = None,
        amount: float | None = None,
        evidence: list[str] | None = None,
    ):
        kind = _parse_enum(DisputeType, dispute_type, "dispute_type")
        if not description or len(description.strip()) < MIN_DESCRIPTION_LENGTH:
            raise ValidationError(
                {"description": [f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters"]}
            )
        if amount is not None and amount < 0:
            raise ValidationError({"amount": ["Disputed amount cannot be negative"]})

        priority = DisputePriority.URGENT if kind == DisputeType.FRAUD else DisputePriority.MEDIUM
        now = datetime.now(UTC)
        dispute = cls(
            id=new_dispute_id(),
            order_id=order_id,
            buyer_id=buyer_id,
            vendor_id=vendor_id,
            product_id=product_id,
            amount=round_money(amount) if amount is not None else None,
            dispute_type=kind.value,
            status=DisputeStatus.OPEN.value,
            priority=priority.value,
            description=description.strip(),
            evidence=json.dumps(evidence or []),
            opened_by=opened_by,
            opened_by_role=opened_by_role,
            refund_status=RefundStatus.NONE.value,
            created_at=now,
            updated_at=now,
        )
        dispute.raise_(
            DisputeOpened(
                dispute_id=str(dispute.id),
                order_id=str(order_id),
                buyer_id=str(buyer_id),
                vendor_id=str(vendor_id),
                product_id=str(product_id) if product_id else None,
                dispute_type=kind.value,
                priority=priority.value,
                amount=dispute.amount,
                opened_by=str(opened_by),
                opened_by_role=opened_by_role,
                opened_at=now,
            )
        )
        return dispute

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def evidence_uris(self) -> list[str]:
        return json.loads(self.evidence) if self.evidence else []

    def is_settled(self) -> bool:
        return DisputeStatus(self.status) in _SETTLED_STATUSES

    def _assert_not_settled(self, action: str) -> None:
        if self.is_settled():
            raise StateConflictError({"status": [f"Cannot {action} a dispute that is {self.status}"]})

    # -------------------------------------------------------------------
    # Admin status / priority management
    # -------------------------------------------------------------------
    def update_status(self, status: str, changed_by: str) -> None:
        """Move an active dispute among open, investigating and escalated."""
        target = _parse_enum(DisputeStatus, status, "status")
        self._assert_not_settled("update")
        if target not in _ADMIN_SETTABLE_STATUSES:
            raise ValidationError({"status": [f"Use the {target.value} action instead of a status update"]})

        previous = self.status
        if previous == target.value:
            return

        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now
        self.raise_(
            DisputeStatusChanged(
                dispute_id=str(self.id),
                order_id=str(self.order_id),
                buyer_id=str(self.buyer_id),
                vendor_id=str(self.vendor_id),
                from_status=previous,
                to_status=target.value,
                changed_by=str(changed_by),
                changed_at=now,
            )
        )

    def update_priority(self, priority: str, changed_by: str) -> None:
        target = _parse_enum(DisputePriority, priority, "priority")
        self._assert_not_settled("reprioritize")

        previous = self.priority
        if previous == target.value:
            return

        now = datetime.now(UTC)
        self.priority = target.value
        self.updated_at = now
        self.raise_(
            DisputePriorityChanged(
                dispute_id=str(self.id),
                from_priority=previous,
                to_priority=target.value,
                changed_by=str(changed_by),
                changed_at=now,
            )
        )

    def escalate(self, escalated_by: str, reason: str) -> None:
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["Escalation reason is required"]})
        if DisputeStatus(self.status) not in _RESOLVABLE_STATUSES:
            raise StateConflictError({"status": [f"Cannot escalate a dispute that is {self.status}"]})

        now = datetime.now(UTC)
        self.status = DisputeStatus.ESCALATED.value
        self.priority = DisputePriority.URGENT.value
        self.escalated_by = escalated_by
        self.escalation_reason = reason.strip()
        self.escalated_at = now
        self.updated_at = now
        self.raise_(
            DisputeEscalated(
                dispute_id=str(self.id),
                order_id=str(self.order_id),
                buyer_id=str(self.buyer_id),
                vendor_id=str(self.vendor_id),
                reason=reason.strip(),
                escalated_by=str(escalated_by),
                escalated_at=now,
            )
        )

    def close(self, closed_by: str, reason: str) -> None:
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["Closure reason is required"]})
        self._assert_not_settled("close")

        now = datetime.now(UTC)
        self.status = DisputeStatus.CLOSED.value
        self.closed_by = closed_by
        self.closure_reason = reason.strip()
        self.closed_at = now
        self.updated_at = now
        self.raise_(
            DisputeClosed(
                dispute_id=str(self.id),
                order_id=str(self.order_id),
                buyer_id=str(self.buyer_id),
                vendor_id=str(self.vendor_id),
                reason=reason.strip(),
                closed_by=str(closed_by),
                closed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------
    def resolve(
        self,
        resolution_type: str,
        notes: str,
        resolved_by: str,
        order_total: float,
        refund_amount: float | None = None,
    ) -> None:
        """Resolve an open or investigating dispute."""
        if DisputeStatus(self.status) not in _RESOLVABLE_STATUSES:
            raise StateConflictError({"status": [f"Cannot resolve a dispute that is {self.status}"]})

        resolution = _parse_enum(ResolutionType, resolution_type, "resolution_type")
        if not notes or not notes.strip():
            raise ValidationError({"resolution": ["Resolution notes are required"]})

        if resolution in REFUND_RESOLUTIONS:
            if refund_amount is None:
                raise ValidationError({"refund_amount": ["Refund amount is required for refund resolutions"]})
            if refund_amount <= 0:
                raise ValidationError({"refund_amount": ["Refund amount must be greater than zero"]})
            if refund_amount > order_total:
                raise ValidationError({"refund_amount": ["Refund amount cannot exceed the order total"]})
        else:
            refund_amount = None

        now = datetime.now(UTC)
        self.status = DisputeStatus.RESOLVED.value
        self.resolution_type = resolution.value
        self.resolution_notes = notes.strip()
        self.refund_amount = round_money(refund_amount) if refund_amount is not None else None
        self.resolved_by = resolved_by
        self.resolved_at = now
        self.updated_at = now
        self.raise_(
            DisputeResolved(
                dispute_id=str(self.id),
                order_id=str(self.order_id),
                buyer_id=str(self.buyer_id),
                vendor_id=str(self.vendor_id),
                resolution_type=resolution.value,
                resolution_notes=self.resolution_notes,
                refund_amount=self.refund_amount,
                resolved_by=str(resolved_by),
                resolved_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------
    def is_participant(self, actor_id: str, actor_role: str) -> bool:
        if actor_role == ActorRole.ADMIN.value:
            return True
        if actor_role == ActorRole.BUYER.value:
            return str(actor_id) == str(self.buyer_id)
        if actor_role == ActorRole.VENDOR.value:
            return str(actor_id) == str(self.vendor_id)
        return False

    def post_message(self, sender_id: str, sender_role: str, body: str, sender_name: str | None = None):
        """Append a message to the thread and return it."""
        if not self.is_participant(sender_id, sender_role):
            raise AuthorizationError({"sender_id": ["Only the buyer, the vendor or an admin can post on this dispute"]})
        self._assert_not_settled("post a message on")

        text = (body or "").strip()
        if len(text) < MIN_MESSAGE_LENGTH or len(text) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                {"message": [f"Message must be between {MIN_MESSAGE_LENGTH} and {MAX_MESSAGE_LENGTH} characters"]}
            )

        now = datetime.now(UTC)
        message = DisputeMessage(
            id=f"msg_{uuid4().hex[:16]}",
            sender_id=sender_id,
            sender_name=sender_name,
            sender_role=sender_role,
            body=text,
            sent_at=now,
        )
        self.add_messages(message)
        self.updated_at = now
        self.raise_(
            DisputeMessagePosted(
                dispute_id=str(self.id),
                message_id=str(message.id),
                buyer_id=str(self.buyer_id),
                vendor_id=str(self.vendor_id),
                sender_id=str(sender_id),
                sender_role=sender_role,
                posted_at=now,
            )
        )
        return message

    # -------------------------------------------------------------------
    # Refund reconciliation
    # -------------------------------------------------------------------
    def _assert_refund_transition(self, target: RefundStatus) -> None:
        current = RefundStatus(self.refund_status or RefundStatus.NONE.value)
        if target not in _REFUND_TRANSITIONS[current]:
            raise StateConflictError(
                {"refund_status": [f"Cannot move refund from {current.value} to {target.value}"]}
            )

    def assert_refundable(self) -> None:
        """Dispute-side refund preconditions, checked in a fixed order."""
        current = RefundStatus(self.refund_status or RefundStatus.NONE.value)
        if current == RefundStatus.COMPLETED:
            raise StateConflictError({"refund_status": ["Refund already processed"]})
        if current == RefundStatus.PROCESSING:
            raise StateConflictError({"refund_status": ["Refund is already being processed"]})
        if DisputeStatus(self.status) != DisputeStatus.RESOLVED:
            raise StateConflictError({"status": ["Dispute must be resolved before a refund can be issued"]})
        if self.resolution_type is None or ResolutionType(self.resolution_type) not in REFUND_RESOLUTIONS:
            raise StateConflictError({"resolution_type": ["Dispute resolution does not call for a refund"]})

    def refund_amount_for(self, requested: float | None, order_total: float) -> float:
        """Requested amount, else the resolved refund amount, else the disputed amount, else the order total."""
        if requested is not None:
            return round_money(requested)
        for candidate in (self.refund_amount, self.amount, order_total):
            if candidate:
                return round_money(candidate)
        return 0.0

    def begin_refund(self, amount: float, requested_by: str) -> None:
        self.assert_refundable()
        self._assert_refund_transition(RefundStatus.PROCESSING)

        now = datetime.now(UTC)
        self.refund_status = RefundStatus.PROCESSING.value
        self.refund_failure_reason = None
        self.refund_requested_amount = round_money(amount)
        self.refund_requested_at = now
        self.updated_at = now
        self.raise_(
            DisputeRefundStarted(
                dispute_id=str(self.id),
                order_id=str(self.order_id),
                amount=amount,
                requested_by=str(requested_by),
                started_at=now,
            )
        )

    def record_refund_pending(self, amount: float, refund_reference: str | None) -> None:
        if RefundStatus(self.refund_status) != RefundStatus.PROCESSING:
            raise StateConflictError({"refund_status": ["Refund is not being processed"]})

        now = datetime.now(UTC)
        self.refund_reference = refund_reference
        self.updated_at = now
        self.raise_(
            DisputeRefundPending(
                dispute_id=str(self.id),
                order_id=str(self.order_id),
                buyer_id=str(self.buyer_id),
                vendor_id=str(self.vendor_id),
                amount=amount,
                refund_reference=refund_reference,
                pending_at=now,
            )
        )

    def complete_refund(self, amount: float, refund_reference: str | None, commission_reversed: float) -> None:
        self._assert_refund_transition(RefundStatus.COMPLETED)

        now = datetime.now(UTC)
        self.refund_status = RefundStatus.COMPLETED.value
        self.refund_reference = refund_reference or self.refund_reference
        self.refunded_amount = round_money(amount)
        self.refund_completed_at = now
        self.updated_at = now
        self.raise_(
            DisputeRefundCompleted(
                dispute_id=str(self.id),
                order_id=str(self.order_id),
                buyer_id=str(self.buyer_id),
                vendor_id=str(self.vendor_id),
                amount=self.refunded_amount,
                refund_reference=self.refund_reference,
                commission_reversed=commission_reversed,
                completed_at=now,
            )
        )

    def fail_refund(self, reason: str, amount: float | None = None) -> None:
        self._assert_refund_transition(RefundStatus.FAILED)

        now = datetime.now(UTC)
        self.refund_status = RefundStatus.FAILED.value
        self.refund_failure_reason = (reason or "Refund failed")[:500]
        self.updated_at = now
        self.raise_(
            DisputeRefundFailed(
                dispute_id=str(self.id),
                order_id=str(self.order_id),
                amount=amount,
                reason=self.refund_failure_reason,
                failed_at=now,
            )
        )
