"""Domain events for the PaymentIntent aggregate."""

from protean.fields import Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="PaymentIntent")
class PaymentIntentCreated:
    __version__ = 1

    intent_id = String(required=True)
    owner_id = Identifier(required=True)
    cart_id = Identifier(required=True)
    amount_minor = Integer(required=True)
    currency = String(required=True)


@ordering.event(part_of="PaymentIntent")
class PaymentIntentCaptured:
    """The gateway reported the payment as captured."""

    __version__ = 1

    intent_id = String(required=True)
    payment_id = String()


@ordering.event(part_of="PaymentIntent")
class PaymentIntentFailed:
    __version__ = 1

    intent_id = String(required=True)
    payment_id = String()
    reason = String()


@ordering.event(part_of="PaymentIntent")
class PaymentIntentFulfilled:
    """The verified payment produced its order."""

    __version__ = 1

    intent_id = String(required=True)
    order_id = Identifier(required=True)
    payment_id = String()
