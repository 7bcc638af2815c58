"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing (default)
- RazorpayGateway when PAYMENT_GATEWAY=razorpay

Credentials come from the environment: PAYMENT_KEY_ID, PAYMENT_KEY_SECRET,
PAYMENT_WEBHOOK_SECRET and PAYMENT_GATEWAY_TIMEOUT (seconds).
"""

import os

from ordering.payment.gateway.fake_adapter import FakeGateway
from ordering.payment.gateway.port import PaymentGateway
from ordering.payment.gateway.razorpay_adapter import RazorpayGateway

_current_gateway: PaymentGateway | None = None


def payment_currency() -> str:
    return os.environ.get("PAYMENT_CURRENCY", "INR")


def _gateway_from_env() -> PaymentGateway:
    kind = os.environ.get("PAYMENT_GATEWAY", "fake").lower()
    if kind == "razorpay":
        return RazorpayGateway(
            key_id=os.environ["PAYMENT_KEY_ID"],
            key_secret=os.environ["PAYMENT_KEY_SECRET"],
            webhook_secret=os.environ["PAYMENT_WEBHOOK_SECRET"],
            timeout=float(os.environ.get("PAYMENT_GATEWAY_TIMEOUT", "10")),
        )

    overrides = {
        arg: os.environ[env]
        for arg, env in (
            ("key_id", "PAYMENT_KEY_ID"),
            ("key_secret", "PAYMENT_KEY_SECRET"),
            ("webhook_secret", "PAYMENT_WEBHOOK_SECRET"),
        )
        if os.environ.get(env)
    }
    return FakeGateway(**overrides)


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, building it from the environment on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _gateway_from_env()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
