"""Tests for per-item refund bookkeeping on the Order aggregate."""

import pytest
from ordering.order.events import OrderItemRefunded, OrderRefunded, RefundSettled
from protean.exceptions import ObjectNotFoundError, ValidationError


def _item(order, product_id):
    return next(i for i in order.items if i.product_id == product_id)


class TestRecordItemRefund:
    def test_partial_refund(self, make_order):
        order = make_order(payment_status="completed")
        kurta = _item(order, "prod-kurta")

        order.record_item_refund(kurta.id, 500.0, "Damaged", actor="vendor:vendor-a", gateway_refund_id="rfnd_1")

        assert kurta.refund_amount == 500.0
        assert kurta.refundable_amount == 1498.0
        assert kurta.refund_status == "initiated"
        assert kurta.status == "refunded"
        assert order.payment_status == "partially_refunded"
        assert order.total_refunded == 500.0
        assert order.status == "pending"

    def test_refund_restocks_unshipped_item(self, make_order):
        order = make_order(payment_status="completed")
        kurta = _item(order, "prod-kurta")

        order.record_item_refund(kurta.id, 1998.0, "Out of stock", actor="vendor:vendor-a")

        event = next(e for e in order._events if isinstance(e, OrderItemRefunded))
        assert event.restock_quantity == 2

    def test_refund_of_shipped_item_does_not_restock(self, make_order):
        order = make_order(payment_status="completed")
        kurta = _item(order, "prod-kurta")
        order.update_item_status(kurta.id, "shipped", actor="vendor:vendor-a")

        order.record_item_refund(kurta.id, 100.0, "Late", actor="vendor:vendor-a")

        event = next(e for e in order._events if isinstance(e, OrderItemRefunded))
        assert event.restock_quantity == 0

    def test_refunds_accumulate_up_to_line_total(self, make_order):
        order = make_order(payment_status="completed")
        kurta = _item(order, "prod-kurta")
        order.record_item_refund(kurta.id, 1000.0, "First", actor="admin:ops-1")

        with pytest.raises(ValidationError) as exc:
            order.record_item_refund(kurta.id, 999.0, "Second", actor="admin:ops-1")
        assert "amount" in exc.value.messages
        assert kurta.refund_amount == 1000.0

    def test_non_positive_amount_rejected(self, make_order):
        order = make_order(payment_status="completed")

        with pytest.raises(ValidationError):
            order.record_item_refund(order.items[0].id, 0, "Nothing", actor="admin:ops-1")

    def test_refunding_every_item_refunds_the_order(self, make_order):
        order = make_order(payment_status="completed")

        order.record_item_refund(_item(order, "prod-kurta").id, 1998.0, "Return", actor="admin:ops-1")
        order.record_item_refund(_item(order, "prod-scarf").id, 250.0, "Return", actor="admin:ops-1")

        assert order.status == "refunded"
        assert order.payment_status == "refunded"
        assert any(isinstance(e, OrderRefunded) for e in order._events)
        assert all(g.status == "refunded" for g in order.vendor_groups)

    def test_derived_refund_applies_to_delivered_order(self, make_order):
        order = make_order(payment_status="completed")
        order.transition("delivered", actor="admin:ops-1")

        order.record_item_refund(_item(order, "prod-kurta").id, 1998.0, "Return", actor="admin:ops-1")
        order.record_item_refund(_item(order, "prod-scarf").id, 250.0, "Return", actor="admin:ops-1")

        assert order.status == "refunded"


class TestSettleRefund:
    def test_settle_marks_processed_once(self, make_order):
        order = make_order(payment_status="completed")
        kurta = _item(order, "prod-kurta")
        order.record_item_refund(kurta.id, 100.0, "Damaged", actor="admin:ops-1", gateway_refund_id="rfnd_1")

        assert order.settle_refund("rfnd_1") is True
        assert kurta.refund_status == "processed"
        assert any(isinstance(e, RefundSettled) for e in order._events)
        assert order.settle_refund("rfnd_1") is False

    def test_unknown_refund_id(self, make_order):
        with pytest.raises(ObjectNotFoundError):
            make_order().settle_refund("rfnd_missing")
