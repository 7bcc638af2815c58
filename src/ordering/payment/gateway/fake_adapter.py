"""Configurable fake payment gateway for development and testing.

Simulates the gateway without any network calls. Signatures are real
HMACs over the configured secrets, so tests exercise the same verification
code as production; ``sign_client_proof`` and ``sign_webhook`` play the part
of the provider.
"""

from uuid import uuid4

from ordering.exceptions import ExternalGatewayError
from ordering.payment.gateway.port import IntentResult, PaymentGateway, RefundResult, compute_signature


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    name = "fake"

    def __init__(
        self,
        key_id: str = "test_key_id",
        key_secret: str = "test_key_secret",
        webhook_secret: str = "test_webhook_secret",
    ) -> None:
        super().__init__(key_id, key_secret, webhook_secret)
        self.should_succeed: bool = True
        self.unavailable: bool = False
        self.failure_reason: str = "Refund declined"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Refund declined", unavailable: bool = False) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.unavailable = unavailable

    def _check_available(self):
        if self.unavailable:
            raise ExternalGatewayError("Payment gateway timed out", retryable=True, gateway=self.name)

    def create_intent(self, amount_minor, currency, receipt, notes=None) -> IntentResult:
        self.calls.append(
            {
                "method": "create_intent",
                "amount_minor": amount_minor,
                "currency": currency,
                "receipt": receipt,
                "notes": notes or {},
            }
        )
        self._check_available()
        return IntentResult(
            intent_id=f"order_{uuid4().hex[:14]}",
            amount_minor=amount_minor,
            currency=currency,
            receipt=receipt,
            gateway_status="created",
        )

    def create_refund(self, payment_id, amount_minor, notes=None) -> RefundResult:
        self.calls.append(
            {
                "method": "create_refund",
                "payment_id": payment_id,
                "amount_minor": amount_minor,
                "notes": notes or {},
            }
        )
        self._check_available()
        if self.should_succeed:
            return RefundResult(
                success=True,
                gateway_refund_id=f"rfnd_{uuid4().hex[:14]}",
                gateway_status="processed",
            )
        return RefundResult(success=False, gateway_status="failed", failure_reason=self.failure_reason)

    def sign_client_proof(self, intent_id: str, payment_id: str) -> str:
        return compute_signature(self._key_secret, f"{intent_id}|{payment_id}")

    def sign_webhook(self, payload: str | bytes) -> str:
        return compute_signature(self._webhook_secret, payload)
