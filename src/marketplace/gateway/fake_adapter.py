"""Configurable fake payment gateway for development and testing.

Simulates the gateway without external calls. It can be told to fail, or to
answer refunds with a ``pending`` status, and it records every call.
"""

from uuid import uuid4

from marketplace.gateway.port import (
    REFUND_FAILED,
    REFUND_PROCESSED,
    PaymentGateway,
    RefundResult,
    VerificationResult,
)


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Refund declined"
        self.refund_status: str = REFUND_PROCESSED
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Refund declined",
        refund_status: str = REFUND_PROCESSED,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.refund_status = refund_status

    def refund_calls(self) -> list[dict]:
        return [c for c in self.calls if c["method"] == "refund_transaction"]

    def refund_transaction(
        self,
        reference: str,
        amount_minor_units: int,
        currency: str,
        notes: str,
        idempotency_key: str,
    ) -> RefundResult:
        self.calls.append(
            {
                "method": "refund_transaction",
                "reference": reference,
                "amount_minor_units": amount_minor_units,
                "currency": currency,
                "notes": notes,
                "idempotency_key": idempotency_key,
            }
        )

        if self.should_succeed:
            return RefundResult(
                success=True,
                status=self.refund_status,
                refund_reference=f"fake_rfd_{uuid4().hex[:12]}",
            )
        return RefundResult(
            success=False,
            status=REFUND_FAILED,
            failure_reason=self.failure_reason,
        )

    def verify_payment(self, reference: str) -> VerificationResult:
        self.calls.append({"method": "verify_payment", "reference": reference})
        return self._verification(reference)

    def verify_transfer(self, reference: str) -> VerificationResult:
        self.calls.append({"method": "verify_transfer", "reference": reference})
        return self._verification(reference)

    def _verification(self, reference: str) -> VerificationResult:
        if self.should_succeed:
            return VerificationResult(success=True, reference=reference, status="success")
        return VerificationResult(
            success=False,
            reference=reference,
            status="failed",
            failure_reason=self.failure_reason,
        )
