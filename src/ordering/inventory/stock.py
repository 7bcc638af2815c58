"""StockRecord aggregate: the on-hand counter for one product or variant.

Simple products keep a single record with no size/color. Variant-bearing
products keep one record per (size, color) combination.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from ordering.domain import ordering
from ordering.exceptions import OutOfStock
from ordering.inventory.events import (
    StockDecremented,
    StockInitialized,
    StockReceived,
    StockRestored,
)


def stock_key(product_id, size=None, color=None) -> str:
    return f"{product_id}|{size or '-'}|{color or '-'}"


@ordering.aggregate
class StockRecord:
    product_id = Identifier(required=True)
    size = String(max_length=50)
    color = String(max_length=50)
    sku_key = String(required=True, max_length=255, unique=True)
    on_hand = Integer(default=0, min_value=0)
    updated_at = DateTime()

    @classmethod
    def initialize(cls, product_id, quantity, size=None, color=None):
        if quantity is None or quantity < 0:
            raise ValidationError({"quantity": ["Initial stock cannot be negative"]})

        record = cls(
            product_id=product_id,
            size=size,
            color=color,
            sku_key=stock_key(product_id, size, color),
            on_hand=quantity,
            updated_at=datetime.now(UTC),
        )
        record.raise_(
            StockInitialized(
                stock_id=str(record.id),
                product_id=str(product_id),
                size=size,
                color=color,
                quantity=quantity,
            )
        )
        return record

    def receive(self, quantity):
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Received quantity must be positive"]})

        self.on_hand += quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            StockReceived(
                stock_id=str(self.id),
                product_id=str(self.product_id),
                quantity=quantity,
                on_hand=self.on_hand,
            )
        )

    def decrement(self, quantity, reference=None):
        """Take ``quantity`` units out, refusing to go below zero."""
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if self.on_hand < quantity:
            raise OutOfStock(
                f"Only {self.on_hand} unit(s) left in stock",
                items=[{"product_id": str(self.product_id), "size": self.size, "color": self.color}],
                product_id=str(self.product_id),
            )

        self.on_hand -= quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            StockDecremented(
                stock_id=str(self.id),
                product_id=str(self.product_id),
                size=self.size,
                color=self.color,
                quantity=quantity,
                on_hand=self.on_hand,
                reference=reference,
            )
        )

    def restore(self, quantity, reference=None):
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        self.on_hand += quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            StockRestored(
                stock_id=str(self.id),
                product_id=str(self.product_id),
                size=self.size,
                color=self.color,
                quantity=quantity,
                on_hand=self.on_hand,
                reference=reference,
            )
        )


@ordering.repository(part_of=StockRecord)
class StockRecordRepository:
    def find_for(self, product_id, size=None, color=None) -> StockRecord | None:
        records = self._dao.query.filter(sku_key=stock_key(product_id, size, color)).all().items
        return records[0] if records else None

    def for_product(self, product_id) -> list[StockRecord]:
        return self._dao.query.filter(product_id=str(product_id)).all().items
