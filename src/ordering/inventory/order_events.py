"""Inventory reacts to Order events to put released stock back.

The Order aggregate decides which items give their stock back (unshipped
items, at most once each) and says so in its events. This handler applies
those decisions to the ledger.
"""

import json

import structlog
from protean.utils.mixins import handle

from ordering.domain import ordering
from ordering.inventory.ledger import InventoryLedger
from ordering.inventory.stock import StockRecord
from ordering.order.events import OrderCancelled, OrderItemRefunded, OrderItemStatusChanged

logger = structlog.get_logger(__name__)


@ordering.event_handler(part_of=StockRecord, stream_category="ordering::order")
class OrderStockEventHandler:
    """Restores stock released by cancellations and refunds."""

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        released = json.loads(event.released_items) if event.released_items else []
        if not released:
            logger.info("No stock to restore for cancelled order", order_id=str(event.order_id))
            return

        ledger = InventoryLedger()
        for line in released:
            ledger.restore(
                line["product_id"],
                line["quantity"],
                size=line.get("size"),
                color=line.get("color"),
                reference=f"cancel:{event.order_number}",
            )
        logger.info(
            "Stock restored for cancelled order",
            order_id=str(event.order_id),
            order_number=event.order_number,
            lines=len(released),
        )

    @handle(OrderItemStatusChanged)
    def on_item_status_changed(self, event: OrderItemStatusChanged) -> None:
        if not event.released_quantity:
            return

        InventoryLedger().restore(
            event.product_id,
            event.released_quantity,
            size=event.size,
            color=event.color,
            reference=f"item:{event.item_id}",
        )

    @handle(OrderItemRefunded)
    def on_item_refunded(self, event: OrderItemRefunded) -> None:
        if not event.restock_quantity:
            return

        InventoryLedger().restore(
            event.product_id,
            event.restock_quantity,
            size=event.size,
            color=event.color,
            reference=f"refund:{event.item_id}",
        )
