"""Stock administration: commands and handler."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.inventory.stock import StockRecord


@ordering.command(part_of="StockRecord")
class InitializeStock:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=0)
    size = String(max_length=50)
    color = String(max_length=50)


@ordering.command(part_of="StockRecord")
class ReceiveStock:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    size = String(max_length=50)
    color = String(max_length=50)


@ordering.command_handler(part_of=StockRecord)
class StockCommandHandler:
    @handle(InitializeStock)
    def initialize_stock(self, command):
        repo = current_domain.repository_for(StockRecord)
        if repo.find_for(command.product_id, command.size, command.color) is not None:
            raise ValidationError({"product_id": ["Stock is already tracked for this product/variant"]})

        record = StockRecord.initialize(
            command.product_id,
            command.quantity,
            size=command.size,
            color=command.color,
        )
        repo.add(record)
        return str(record.id)

    @handle(ReceiveStock)
    def receive_stock(self, command):
        repo = current_domain.repository_for(StockRecord)
        record = repo.find_for(command.product_id, command.size, command.color)
        if record is None:
            raise ValidationError({"product_id": ["Stock is not tracked for this product/variant"]})

        record.receive(command.quantity)
        repo.add(record)
        return record.on_hand
