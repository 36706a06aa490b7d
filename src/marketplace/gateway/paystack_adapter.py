"""Paystack payment gateway adapter.

Talks to the Paystack REST API over ``requests``. Verification lookups are
idempotent reads and get a bounded retry on transport errors and 5xx
responses. Refund initiation is sent exactly once: a retry could move money
twice.
"""

import requests
import structlog

from marketplace.errors import ExternalGatewayError
from marketplace.gateway.port import (
    REFUND_FAILED,
    REFUND_PENDING,
    REFUND_PROCESSED,
    PaymentGateway,
    RefundResult,
    VerificationResult,
)

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.paystack.co"
REFUND_TIMEOUT = 60
VERIFY_TIMEOUT = 30
VERIFY_RETRIES = 2

_REFUND_STATUS_MAP = {
    "processed": REFUND_PROCESSED,
    "pending": REFUND_PENDING,
    "processing": REFUND_PENDING,
    "queued": REFUND_PENDING,
    "needs-attention": REFUND_PENDING,
    "failed": REFUND_FAILED,
}


class PaystackGateway(PaymentGateway):
    """Production gateway adapter for Paystack."""

    def __init__(
        self,
        secret_key: str,
        base_url: str = DEFAULT_BASE_URL,
        session: requests.Session | None = None,
        verify_retries: int = VERIFY_RETRIES,
    ) -> None:
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.verify_retries = verify_retries

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _body(response: requests.Response) -> dict:
        try:
            body = response.json()
        except ValueError as exc:
            raise ExternalGatewayError({"gateway": ["Gateway returned a non-JSON response"]}) from exc
        if not isinstance(body, dict):
            raise ExternalGatewayError({"gateway": ["Gateway returned an unexpected response shape"]})
        return body

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    def refund_transaction(
        self,
        reference: str,
        amount_minor_units: int,
        currency: str,
        notes: str,
        idempotency_key: str,
    ) -> RefundResult:
        payload = {
            "transaction": reference,
            "amount": amount_minor_units,
            "currency": currency,
            "customer_note": notes,
            "merchant_note": idempotency_key,
        }
        try:
            response = self.session.post(
                f"{self.base_url}/refund",
                json=payload,
                headers=self._headers(),
                timeout=REFUND_TIMEOUT,
            )
        except requests.RequestException as exc:
            logger.error("Paystack refund request failed", reference=reference, error=str(exc))
            return RefundResult(success=False, status=REFUND_FAILED, failure_reason=str(exc))

        body = self._body(response)
        if not response.ok or not body.get("status"):
            return RefundResult(
                success=False,
                status=REFUND_FAILED,
                failure_reason=body.get("message") or f"Gateway returned HTTP {response.status_code}",
            )

        data = body.get("data")
        if not isinstance(data, dict) or data.get("status") not in _REFUND_STATUS_MAP:
            raise ExternalGatewayError({"gateway": ["Gateway refund response is missing a known status"]})

        status = _REFUND_STATUS_MAP[data["status"]]
        if status == REFUND_FAILED:
            return RefundResult(
                success=False,
                status=REFUND_FAILED,
                failure_reason=body.get("message") or "Refund failed at the gateway",
            )

        refund_reference = data.get("id") or data.get("refund_reference")
        return RefundResult(
            success=True,
            status=status,
            refund_reference=str(refund_reference) if refund_reference is not None else None,
        )

    # -------------------------------------------------------------------
    # Verification (bounded retry)
    # -------------------------------------------------------------------
    def _get_with_retry(self, path: str) -> requests.Response:
        last_error: Exception | None = None
        for attempt in range(self.verify_retries + 1):
            try:
                response = self.session.get(
                    f"{self.base_url}{path}",
                    headers=self._headers(),
                    timeout=VERIFY_TIMEOUT,
                )
            except (requests.ConnectionError, requests.Timeout) as exc:
                last_error = exc
                logger.warning("Paystack lookup failed, retrying", path=path, attempt=attempt + 1, error=str(exc))
                continue

            if response.status_code >= 500:
                last_error = ExternalGatewayError({"gateway": [f"Gateway returned HTTP {response.status_code}"]})
                logger.warning("Paystack lookup returned a server error", path=path, attempt=attempt + 1)
                continue
            return response

        raise ExternalGatewayError({"gateway": [f"Gateway lookup failed: {last_error}"]})

    def _verify(self, path: str, reference: str) -> VerificationResult:
        response = self._get_with_retry(path)
        body = self._body(response)
        data = body.get("data")
        if not response.ok or not body.get("status") or not isinstance(data, dict):
            return VerificationResult(
                success=False,
                reference=reference,
                failure_reason=body.get("message") or f"Gateway returned HTTP {response.status_code}",
            )

        status = data.get("status")
        return VerificationResult(
            success=status == "success",
            reference=reference,
            status=status,
            amount_minor_units=data.get("amount"),
            currency=data.get("currency"),
            failure_reason=None if status == "success" else data.get("gateway_response"),
        )

    def verify_payment(self, reference: str) -> VerificationResult:
        return self._verify(f"/transaction/verify/{reference}", reference)

    def verify_transfer(self, reference: str) -> VerificationResult:
        return self._verify(f"/transfer/verify/{reference}", reference)
