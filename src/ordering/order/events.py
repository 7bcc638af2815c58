"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A confirmed payment turned a cart into an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    payment_intent_id = String(required=True)
    total_amount = Float(required=True)
    item_count = Integer(required=True)
    vendor_ids = Text(required=True)  # JSON list
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    actor = String(required=True)
    reason = String()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled. ``released_items`` lists stock to put back."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    actor = String(required=True)
    reason = String()
    released_items = Text(required=True)  # JSON: list of {item_id, product_id, size, color, quantity}
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderItemStatusChanged:
    """One item moved through the lifecycle.

    ``released_quantity`` is non-zero when the change returns the item's
    stock to the ledger (an unshipped item being cancelled).
    """

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    actor = String(required=True)
    reason = String()
    product_id = Identifier(required=True)
    size = String()
    color = String()
    released_quantity = Integer(default=0)


@ordering.event(part_of="Order")
class OrderItemShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    tracking_number = String(required=True)
    tracking_url = String()
    shipped_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaymentCaptured:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String()


@ordering.event(part_of="Order")
class OrderPaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String()
    reason = String()


@ordering.event(part_of="Order")
class OrderItemRefunded:
    """Money went back to the customer for one item."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    amount = Float(required=True)
    total_refunded = Float(required=True)
    reason = String()
    gateway_refund_id = String()
    product_id = Identifier(required=True)
    size = String()
    color = String()
    restock_quantity = Integer(default=0)


@ordering.event(part_of="Order")
class OrderRefunded:
    """Every item was refunded, so the order itself became refunded."""

    __version__ = 1

    order_id = Identifier(required=True)
    total_refunded = Float(required=True)


@ordering.event(part_of="Order")
class RefundSettled:
    """The gateway reported a refund as processed."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    gateway_refund_id = String(required=True)
