"""RefundProcessor: returns money for one order item.

Money moves first, through the payment gateway. Only when the gateway has
accepted the refund are the refund fields booked on the order, so a gateway
failure leaves the order exactly as it was.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.exceptions import ExternalGatewayError
from ordering.order.order import Order
from ordering.payment.gateway import get_gateway
from ordering.shared.pricing import money, to_minor_units

logger = structlog.get_logger(__name__)


class RefundProcessor:
    def __init__(self, gateway=None) -> None:
        self.gateway = gateway or get_gateway()

    def refund(self, order: Order, item_id, amount, reason, actor):
        item = order.item(item_id)
        amount = money(amount)

        if not order.has_captured_payment:
            raise ValidationError({"order_id": ["Payment for this order has not been captured"]})
        if amount <= 0:
            raise ValidationError({"amount": ["Refund amount must be positive"]})
        if amount > item.refundable_amount + 0.005:
            raise ValidationError(
                {"amount": [f"Refund amount exceeds the refundable amount of {item.refundable_amount}"]}
            )
        if not order.transaction_id:
            raise ValidationError({"order_id": ["Order has no captured payment to refund"]})

        result = self.gateway.create_refund(
            order.transaction_id,
            to_minor_units(amount),
            notes={
                "order_number": order.order_number,
                "item_id": str(item.id),
                "reason": reason or "",
            },
        )
        if not result.success:
            logger.warning(
                "Refund rejected by gateway",
                order_id=str(order.id),
                item_id=str(item.id),
                failure_reason=result.failure_reason,
            )
            raise ExternalGatewayError(
                f"Refund rejected: {result.failure_reason}",
                retryable=False,
                order_id=str(order.id),
            )

        order.record_item_refund(
            item_id,
            amount,
            reason,
            actor=actor,
            gateway_refund_id=result.gateway_refund_id,
        )
        logger.info(
            "Item refunded",
            order_id=str(order.id),
            order_number=order.order_number,
            item_id=str(item.id),
            amount=amount,
            gateway_refund_id=result.gateway_refund_id,
        )
        return result


@ordering.command(part_of="Order")
class RefundOrderItem:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    amount = Float(required=True)
    reason = String(max_length=500)
    actor = String(required=True, max_length=255)


@ordering.command_handler(part_of=Order)
class RefundOrderItemHandler:
    @handle(RefundOrderItem)
    def refund_item(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        result = RefundProcessor().refund(order, command.item_id, command.amount, command.reason, command.actor)
        repo.add(order)
        return {"order_id": str(order.id), "gateway_refund_id": result.gateway_refund_id}
