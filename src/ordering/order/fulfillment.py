"""Vendor/admin driven status changes: commands and handler."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class ChangeOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    actor = String(required=True, max_length=255)
    reason = String(max_length=500)
    note = String(max_length=1000)


@ordering.command(part_of="Order")
class ChangeItemStatus:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    actor = String(required=True, max_length=255)
    reason = String(max_length=500)


@ordering.command(part_of="Order")
class AddItemTracking:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=100)
    tracking_url = String(max_length=500)
    actor = String(required=True, max_length=255)


@ordering.command_handler(part_of=Order)
class OrderFulfillmentHandler:
    @handle(ChangeOrderStatus)
    def change_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.status
        order.transition(command.status, actor=command.actor, reason=command.reason, note=command.note)
        repo.add(order)

        logger.info(
            "Order status changed",
            order_id=str(order.id),
            order_number=order.order_number,
            previous_status=previous,
            new_status=order.status,
            actor=command.actor,
        )
        return str(order.id)

    @handle(ChangeItemStatus)
    def change_item_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.update_item_status(command.item_id, command.status, actor=command.actor, reason=command.reason)
        repo.add(order)

        logger.info(
            "Order item status changed",
            order_id=str(order.id),
            item_id=str(command.item_id),
            new_status=command.status,
            actor=command.actor,
        )
        return str(order.id)

    @handle(AddItemTracking)
    def add_tracking(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.add_tracking(
            command.item_id,
            command.tracking_number,
            actor=command.actor,
            tracking_url=command.tracking_url,
        )
        repo.add(order)

        logger.info(
            "Tracking added",
            order_id=str(order.id),
            item_id=str(command.item_id),
        )
        return str(order.id)
