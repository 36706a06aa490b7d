"""Payment gateway port (abstract interface).

Defines the contract the refund reconciliation and payment verification
flows rely on. Amounts always travel in integer minor currency units.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

REFUND_PROCESSED = "processed"
REFUND_PENDING = "pending"
REFUND_FAILED = "failed"


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund initiation.

    ``status`` is ``processed`` when the money moved immediately and
    ``pending`` when the gateway will confirm later.
    """

    success: bool
    status: str | None = None
    refund_reference: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class VerificationResult:
    """Result of verifying a payment or a transfer."""

    success: bool
    reference: str
    status: str | None = None
    amount_minor_units: int | None = None
    currency: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def refund_transaction(
        self,
        reference: str,
        amount_minor_units: int,
        currency: str,
        notes: str,
        idempotency_key: str,
    ) -> RefundResult:
        """Refund (part of) a captured payment. Never retried automatically."""
        ...

    @abstractmethod
    def verify_payment(self, reference: str) -> VerificationResult:
        """Look up the final state of a payment."""
        ...

    @abstractmethod
    def verify_transfer(self, reference: str) -> VerificationResult:
        """Look up the final state of a payout transfer."""
        ...
