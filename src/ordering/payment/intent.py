"""PaymentIntent aggregate: one record per gateway intent.

Links a gateway intent to the cart it was priced from and, once confirmed,
to the single order it produced. This link is what makes confirmation
idempotent.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String

from ordering.domain import ordering
from ordering.payment.events import (
    PaymentIntentCaptured,
    PaymentIntentCreated,
    PaymentIntentFailed,
    PaymentIntentFulfilled,
)


class IntentStatus(Enum):
    CREATED = "created"
    CAPTURED = "captured"
    FAILED = "failed"
    FULFILLED = "fulfilled"


@ordering.aggregate
class PaymentIntent:
    intent_id = String(required=True, max_length=100, unique=True)
    owner_id = Identifier(required=True)
    cart_id = Identifier(required=True)
    amount_minor = Integer(required=True, min_value=0)
    currency = String(required=True, max_length=3, default="INR")
    receipt = String(max_length=100)
    gateway = String(max_length=50)
    status = String(choices=IntentStatus, default=IntentStatus.CREATED.value)
    payment_id = String(max_length=100)
    order_id = Identifier()
    failure_reason = String(max_length=500)
    created_at = DateTime()
    captured_at = DateTime()

    @classmethod
    def open(cls, intent_id, owner_id, cart_id, amount_minor, currency, receipt=None, gateway=None):
        intent = cls(
            intent_id=intent_id,
            owner_id=owner_id,
            cart_id=cart_id,
            amount_minor=amount_minor,
            currency=currency,
            receipt=receipt,
            gateway=gateway,
            status=IntentStatus.CREATED.value,
            created_at=datetime.now(UTC),
        )
        intent.raise_(
            PaymentIntentCreated(
                intent_id=intent_id,
                owner_id=str(owner_id),
                cart_id=str(cart_id),
                amount_minor=amount_minor,
                currency=currency,
            )
        )
        return intent

    @property
    def is_captured(self):
        return self.captured_at is not None

    def mark_captured(self, payment_id=None) -> bool:
        if self.captured_at is not None:
            return False

        self.captured_at = datetime.now(UTC)
        if payment_id:
            self.payment_id = payment_id
        if self.status == IntentStatus.CREATED.value:
            self.status = IntentStatus.CAPTURED.value
        self.raise_(PaymentIntentCaptured(intent_id=self.intent_id, payment_id=payment_id))
        return True

    def mark_failed(self, payment_id=None, reason=None) -> bool:
        if self.status in (IntentStatus.FAILED.value, IntentStatus.FULFILLED.value) or self.is_captured:
            return False

        self.status = IntentStatus.FAILED.value
        self.failure_reason = reason
        if payment_id:
            self.payment_id = payment_id
        self.raise_(PaymentIntentFailed(intent_id=self.intent_id, payment_id=payment_id, reason=reason))
        return True

    def mark_fulfilled(self, order_id, payment_id):
        self.status = IntentStatus.FULFILLED.value
        self.order_id = order_id
        self.payment_id = payment_id
        self.raise_(
            PaymentIntentFulfilled(
                intent_id=self.intent_id,
                order_id=str(order_id),
                payment_id=payment_id,
            )
        )


@ordering.repository(part_of=PaymentIntent)
class PaymentIntentRepository:
    def by_intent_id(self, intent_id) -> PaymentIntent:
        intents = self._dao.query.filter(intent_id=intent_id).all().items
        if not intents:
            raise ObjectNotFoundError({"intent_id": f"Payment intent {intent_id} not found"})
        return intents[0]

    def find_by_intent_id(self, intent_id) -> PaymentIntent | None:
        intents = self._dao.query.filter(intent_id=intent_id).all().items
        return intents[0] if intents else None
