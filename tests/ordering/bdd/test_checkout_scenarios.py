"""BDD tests for multi-vendor checkout."""

import pytest
from ordering.cart.cart import ShoppingCart
from ordering.exceptions import DuplicateRequest, OutOfStock
from ordering.inventory.ledger import InventoryLedger
from ordering.order.cancellation import CancelOrderByCustomer
from ordering.order.order import Order
from ordering.payment.checkout import ConfirmPayment
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/checkout.feature")

CUSTOMER_ID = "cust-bdd-001"


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('another shopper buys {quantity:d} "{product}"'))
def another_shopper_buys(context, quantity, product):
    InventoryLedger().decrement(context["products"][product], quantity, reference="another-shopper")


@given("the customer has paid for the cart")
def customer_has_paid(context, checkout):
    context["order_id"], context["intent"] = checkout(CUSTOMER_ID)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the customer pays for the cart")
def customer_pays(context, checkout):
    context["order_id"], context["intent"] = checkout(CUSTOMER_ID)


@when("the customer tries to pay for the cart")
def customer_tries_to_pay(context, checkout):
    try:
        checkout(CUSTOMER_ID)
    except OutOfStock as exc:
        context["error"] = exc


@when("the customer confirms the same payment again")
def customer_confirms_again(context, gateway, address):
    intent_id = context["intent"]["intent_id"]
    try:
        current_domain.process(
            ConfirmPayment(
                owner_id=CUSTOMER_ID,
                intent_id=intent_id,
                payment_id="pay_test_0001",
                signature=gateway.sign_client_proof(intent_id, "pay_test_0001"),
                payment_method="card",
                **address,
            ),
            asynchronous=False,
        )
    except DuplicateRequest as exc:
        context["error"] = exc


@when("the customer cancels the order")
def customer_cancels(context):
    current_domain.process(
        CancelOrderByCustomer(order_id=context["order_id"], customer_id=CUSTOMER_ID),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("an order is placed with a total of {total:f}"))
def order_placed_with_total(context, total):
    order = current_domain.repository_for(Order).get(context["order_id"])
    assert order.pricing.total_amount == pytest.approx(total)


@then(parsers.cfparse("the payment intent amount is {amount:d} minor units"))
def intent_amount(context, amount):
    assert context["intent"]["amount"] == amount


@then(parsers.cfparse("the order has {count:d} vendor group"))
def vendor_group_count(context, count):
    order = current_domain.repository_for(Order).get(context["order_id"])
    assert len(order.vendor_groups) == count


@then("the cart is empty")
def cart_is_empty():
    cart = current_domain.repository_for(ShoppingCart).active_for(CUSTOMER_ID)
    assert cart.items == []
    assert cart.total_items == 0


@then("the confirmation is reported as a duplicate")
def confirmation_is_duplicate(context):
    assert isinstance(context["error"], DuplicateRequest)
    assert context["error"].order_id == context["order_id"]


@then(parsers.cfparse("the customer has {count:d} order"))
def customer_order_count(count):
    assert len(current_domain.repository_for(Order).for_customer(CUSTOMER_ID)) == count


@then("checkout fails because stock ran out")
def checkout_fails(context):
    assert isinstance(context["error"], OutOfStock)


@then("no order is placed")
def no_order_placed():
    assert current_domain.repository_for(Order).for_customer(CUSTOMER_ID) == []
