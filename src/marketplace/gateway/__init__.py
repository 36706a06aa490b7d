"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing (default)
- PaystackGateway when PAYSTACK_SECRET_KEY is set
"""

import os

from marketplace.gateway.fake_adapter import FakeGateway
from marketplace.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_currency() -> str:
    return os.getenv("MARKETPLACE_CURRENCY", "GHS")


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway."""
    global _current_gateway
    if _current_gateway is None:
        secret_key = os.getenv("PAYSTACK_SECRET_KEY")
        if secret_key:
            from marketplace.gateway.paystack_adapter import DEFAULT_BASE_URL, PaystackGateway

            _current_gateway = PaystackGateway(
                secret_key=secret_key,
                base_url=os.getenv("PAYSTACK_BASE_URL", DEFAULT_BASE_URL),
            )
        else:
            _current_gateway = FakeGateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
