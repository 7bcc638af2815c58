"""Checkout error taxonomy.

Field-level input problems and business-rule rejections use Protean's
``ValidationError``; missing records use ``ObjectNotFoundError``. The errors
below cover the cases that need their own HTTP status or handling policy.
"""


class CheckoutError(Exception):
    """Base class for checkout failures that carry an HTTP status."""

    status_code = 400

    def __init__(self, message: str, **context) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class OutOfStock(CheckoutError):
    """Available stock is lower than the requested quantity."""

    def __init__(self, message: str = "Insufficient stock", items: list[dict] | None = None, **context) -> None:
        super().__init__(message, **context)
        self.items = items or []


class Unauthorized(CheckoutError):
    status_code = 401


class Forbidden(CheckoutError):
    status_code = 403


class PaymentSignatureInvalid(CheckoutError):
    """A client proof or webhook signature did not match. Never retried."""


class CancellationWindowExpired(CheckoutError):
    """The customer self-cancellation window has closed."""


class ExternalGatewayError(CheckoutError):
    """The payment provider timed out, failed, or rejected the call."""

    def __init__(self, message: str, retryable: bool = True, **context) -> None:
        super().__init__(message, **context)
        self.retryable = retryable
        self.status_code = 503 if retryable else 502


class DuplicateRequest(CheckoutError):
    """A payment intent was already confirmed. Callers treat this as success."""

    status_code = 200

    def __init__(self, order_id: str, intent_id: str) -> None:
        super().__init__("Payment already confirmed", order_id=order_id, intent_id=intent_id)
        self.order_id = order_id
        self.intent_id = intent_id
