"""Shared BDD fixtures and step definitions for checkout scenarios."""

import pytest
from ordering.cart.coupons import ApplyCouponToCart
from ordering.cart.items import AddToCart
from ordering.inventory.ledger import InventoryLedger
from ordering.order.order import Order
from protean import current_domain
from pytest_bdd import given, parsers, then

CUSTOMER_ID = "cust-bdd-001"


@pytest.fixture()
def context():
    """Mutable scratchpad shared by the steps of one scenario."""
    return {}


@given("the catalogue is stocked")
def catalogue_is_stocked(catalogue, context):
    context["products"] = catalogue


@given(parsers.cfparse('the customer has {quantity:d} "{product}" in the cart'))
def customer_has_in_cart(context, quantity, product):
    current_domain.process(
        AddToCart(owner_id=CUSTOMER_ID, product_id=context["products"][product], quantity=quantity),
        asynchronous=False,
    )


@given(parsers.cfparse('the coupon "{code}" is applied'))
def coupon_is_applied(code):
    current_domain.process(ApplyCouponToCart(owner_id=CUSTOMER_ID, coupon_code=code), asynchronous=False)


@then(parsers.cfparse('{quantity:d} "{product}" remain in stock'))
def remaining_stock(context, quantity, product):
    assert InventoryLedger().available(context["products"][product]) == quantity


@then(parsers.cfparse('the order is "{status}"'))
def order_status(context, status):
    order = current_domain.repository_for(Order).get(context["order_id"])
    assert order.status == status
