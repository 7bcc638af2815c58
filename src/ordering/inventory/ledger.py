"""InventoryLedger: the only way checkout touches stock counters.

Every decrement is a guarded compare-and-subtract on a single StockRecord.
``decrement_all`` checks every line before subtracting anything and undoes
already-applied lines if a later one fails, so a multi-item checkout either
takes all of its stock or none of it.
"""

from collections import OrderedDict
from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from ordering.exceptions import OutOfStock
from ordering.inventory.stock import StockRecord, stock_key

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockLine:
    product_id: str
    quantity: int
    size: str | None = None
    color: str | None = None
    label: str | None = None

    @property
    def key(self) -> str:
        return stock_key(self.product_id, self.size, self.color)


def _merge(lines) -> "OrderedDict[str, StockLine]":
    merged: OrderedDict[str, StockLine] = OrderedDict()
    for line in lines:
        if line.key in merged:
            previous = merged[line.key]
            merged[line.key] = StockLine(
                product_id=previous.product_id,
                quantity=previous.quantity + line.quantity,
                size=previous.size,
                color=previous.color,
                label=previous.label,
            )
        else:
            merged[line.key] = line
    return merged


class InventoryLedger:
    def __init__(self, repository=None) -> None:
        self._repository = repository or current_domain.repository_for(StockRecord)

    def available(self, product_id, size=None, color=None) -> int:
        record = self._repository.find_for(product_id, size, color)
        return record.on_hand if record else 0

    def decrement(self, product_id, quantity, size=None, color=None, reference=None) -> StockRecord:
        record = self._repository.find_for(product_id, size, color)
        if record is None:
            raise OutOfStock(
                "Product is not stocked",
                items=[{"product_id": str(product_id), "size": size, "color": color}],
                product_id=str(product_id),
            )

        record.decrement(quantity, reference=reference)
        self._repository.add(record)
        logger.info(
            "Stock decremented",
            product_id=str(product_id),
            size=size,
            color=color,
            quantity=quantity,
            on_hand=record.on_hand,
            reference=reference,
        )
        return record

    # Checkout holds stock by taking it immediately; there is no separate hold.
    reserve = decrement

    def restore(self, product_id, quantity, size=None, color=None, reference=None) -> StockRecord:
        record = self._repository.find_for(product_id, size, color)
        if record is None:
            logger.warning(
                "Restoring stock for an untracked product, creating a record",
                product_id=str(product_id),
                size=size,
                color=color,
            )
            record = StockRecord.initialize(product_id, 0, size=size, color=color)

        record.restore(quantity, reference=reference)
        self._repository.add(record)
        logger.info(
            "Stock restored",
            product_id=str(product_id),
            size=size,
            color=color,
            quantity=quantity,
            on_hand=record.on_hand,
            reference=reference,
        )
        return record

    def shortfalls(self, lines) -> list[dict]:
        """Lines whose requested quantity exceeds what is on hand."""
        missing = []
        for line in _merge(lines).values():
            available = self.available(line.product_id, line.size, line.color)
            if available < line.quantity:
                missing.append(
                    {
                        "product_id": str(line.product_id),
                        "name": line.label,
                        "size": line.size,
                        "color": line.color,
                        "requested": line.quantity,
                        "available": available,
                    }
                )
        return missing

    def decrement_all(self, lines, reference=None) -> list[StockLine]:
        """Decrement every line or none of them."""
        merged = _merge(lines)

        missing = self.shortfalls(merged.values())
        if missing:
            names = ", ".join(m["name"] or m["product_id"] for m in missing)
            raise OutOfStock(f"Insufficient stock for: {names}", items=missing, reference=reference)

        applied: list[StockLine] = []
        try:
            for line in merged.values():
                self.decrement(line.product_id, line.quantity, line.size, line.color, reference=reference)
                applied.append(line)
        except OutOfStock:
            logger.warning("Rolling back partial stock decrement", reference=reference, applied=len(applied))
            for line in applied:
                self.restore(line.product_id, line.quantity, line.size, line.color, reference=reference)
            raise

        return applied
