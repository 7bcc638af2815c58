"""Domain events for the StockRecord aggregate."""

from protean.fields import Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="StockRecord")
class StockInitialized:
    """Stock tracking started for a product or one of its variants."""

    __version__ = 1

    stock_id = Identifier(required=True)
    product_id = Identifier(required=True)
    size = String()
    color = String()
    quantity = Integer(required=True)


@ordering.event(part_of="StockRecord")
class StockReceived:
    """New units arrived and were added to stock."""

    __version__ = 1

    stock_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    on_hand = Integer(required=True)


@ordering.event(part_of="StockRecord")
class StockDecremented:
    """Units were taken out of stock for an order."""

    __version__ = 1

    stock_id = Identifier(required=True)
    product_id = Identifier(required=True)
    size = String()
    color = String()
    quantity = Integer(required=True)
    on_hand = Integer(required=True)
    reference = String()


@ordering.event(part_of="StockRecord")
class StockRestored:
    """Units came back to stock after a cancellation or refund."""

    __version__ = 1

    stock_id = Identifier(required=True)
    product_id = Identifier(required=True)
    size = String()
    color = String()
    quantity = Integer(required=True)
    on_hand = Integer(required=True)
    reference = String()
