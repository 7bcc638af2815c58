"""Payment gateway port (abstract interface).

Defines the contract every gateway adapter implements: create a payment
intent, refund a captured payment, and verify the two kinds of signatures the
provider produces. Signature checks are plain HMAC-SHA256 and shared by all
adapters; money movement is adapter-specific.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass


def compute_signature(secret: str, message: str | bytes) -> str:
    """Hex HMAC-SHA256 of ``message`` under ``secret``."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


@dataclass(frozen=True)
class IntentResult:
    """A payment intent created at the gateway."""

    intent_id: str
    amount_minor: int
    currency: str
    receipt: str | None = None
    gateway_status: str | None = None


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    gateway_refund_id: str | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name = "gateway"

    def __init__(self, key_id: str, key_secret: str, webhook_secret: str) -> None:
        self.key_id = key_id
        self._key_secret = key_secret
        self._webhook_secret = webhook_secret

    @abstractmethod
    def create_intent(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict | None = None,
    ) -> IntentResult:
        """Create a payment intent for ``amount_minor`` (paise, cents, ...)."""
        ...

    @abstractmethod
    def create_refund(
        self,
        payment_id: str,
        amount_minor: int,
        notes: dict | None = None,
    ) -> RefundResult:
        """Refund part or all of a captured payment."""
        ...

    def verify_client_proof(self, intent_id: str, payment_id: str, signature: str) -> bool:
        """Check the signature the client received after completing payment.

        The gateway signs ``"<intent_id>|<payment_id>"`` with the key secret.
        """
        if not (intent_id and payment_id and signature):
            return False
        expected = compute_signature(self._key_secret, f"{intent_id}|{payment_id}")
        return hmac.compare_digest(expected, signature)

    def verify_webhook_signature(self, payload: str | bytes, signature: str) -> bool:
        """Check a webhook signature over the raw request body."""
        if not signature:
            return False
        expected = compute_signature(self._webhook_secret, payload)
        return hmac.compare_digest(expected, signature)
