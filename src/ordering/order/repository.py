"""Repository for the Order aggregate."""

from ordering.domain import ordering
from ordering.order.order import Order


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_by_intent(self, intent_id) -> Order | None:
        """The order created for a payment intent, if any."""
        orders = self._dao.query.filter(payment_intent_id=intent_id).all().items
        return orders[0] if orders else None

    def find_by_number(self, order_number) -> Order | None:
        orders = self._dao.query.filter(order_number=order_number).all().items
        return orders[0] if orders else None

    def find_by_transaction(self, transaction_id) -> Order | None:
        orders = self._dao.query.filter(transaction_id=transaction_id).all().items
        return orders[0] if orders else None

    def for_customer(self, customer_id) -> list[Order]:
        return self._dao.query.filter(customer_id=str(customer_id)).order_by("-created_at").all().items
