import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def gateway():
    """A fresh fake payment gateway for every test."""
    from ordering.payment.gateway import reset_gateway, set_gateway
    from ordering.payment.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    set_gateway(fake)
    yield fake
    reset_gateway()


@pytest.fixture()
def catalogue():
    """Seed two vendors with stocked products and return their ids.

    Vendor A sells a simple kurta (999.0, 10 in stock) and a sized shirt
    (500.0, 5 in size M). Vendor B sells a scarf (250.0, 3 in stock).
    """
    from protean import current_domain

    from ordering.catalogue.listing import ListProduct, RegisterShop
    from ordering.inventory.receiving import InitializeStock

    def process(command):
        return current_domain.process(command, asynchronous=False)

    process(RegisterShop(vendor_id="vendor-a", name="Loom House", owner_name="Asha", city="Jaipur"))
    process(RegisterShop(vendor_id="vendor-b", name="Silk Route", owner_name="Bilal", city="Varanasi"))

    kurta = process(
        ListProduct(name="Block Print Kurta", price=999.0, vendor_id="vendor-a", category="apparel")
    )
    shirt = process(
        ListProduct(name="Linen Shirt", price=500.0, vendor_id="vendor-a", category="apparel", has_variants=True)
    )
    scarf = process(ListProduct(name="Banarasi Scarf", price=250.0, vendor_id="vendor-b", category="accessories"))

    process(InitializeStock(product_id=kurta, quantity=10))
    process(InitializeStock(product_id=shirt, quantity=5, size="M", color="White"))
    process(InitializeStock(product_id=scarf, quantity=3))

    return {"kurta": kurta, "shirt": shirt, "scarf": scarf}


@pytest.fixture()
def address():
    return {
        "street": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "zip_code": "560001",
        "country": "India",
        "phone": "9876543210",
    }


@pytest.fixture()
def checkout(gateway, address):
    """Run create-intent and confirm for a customer's cart; returns the order id."""
    from protean import current_domain

    from ordering.payment.checkout import ConfirmPayment, CreatePaymentIntent

    def _checkout(owner_id, payment_method="card", payment_id="pay_test_0001"):
        intent = current_domain.process(CreatePaymentIntent(owner_id=owner_id), asynchronous=False)
        signature = gateway.sign_client_proof(intent["intent_id"], payment_id)
        order_id = current_domain.process(
            ConfirmPayment(
                owner_id=owner_id,
                intent_id=intent["intent_id"],
                payment_id=payment_id,
                signature=signature,
                payment_method=payment_method,
                **address,
            ),
            asynchronous=False,
        )
        return order_id, intent

    return _checkout


@pytest.fixture()
def make_order():
    """Build an unsaved two-vendor order without going through checkout."""
    from ordering.order.order import Order, OrderItem, OrderPricing, ProductSnapshot
    from ordering.shared.address import ShippingAddress
    from ordering.shared.pricing import price_breakdown

    def _make(payment_status="pending", placed_at=None, customer_id="cust-001"):
        items = [
            OrderItem(
                product_id="prod-kurta",
                vendor_id="vendor-a",
                quantity=2,
                unit_price=999.0,
                product_snapshot=ProductSnapshot(name="Block Print Kurta"),
            ),
            OrderItem(
                product_id="prod-scarf",
                vendor_id="vendor-b",
                quantity=1,
                unit_price=250.0,
                product_snapshot=ProductSnapshot(name="Banarasi Scarf"),
            ),
        ]
        breakdown = price_breakdown(2248.0)
        order = Order.place(
            order_number="ORD-20260101-AB12C",
            customer_id=customer_id,
            items=items,
            pricing=OrderPricing(
                subtotal=breakdown.subtotal,
                tax_amount=breakdown.tax,
                shipping_fee=breakdown.shipping_fee,
                discount_amount=breakdown.discount,
                total_amount=breakdown.total,
            ),
            shipping_address=ShippingAddress(
                street="12 MG Road",
                city="Bengaluru",
                state="Karnataka",
                zip_code="560001",
                phone="9876543210",
            ),
            payment_method="card",
            payment_gateway="fake",
            payment_intent_id="order_test000001",
            transaction_id="pay_test_0001",
            payment_status=payment_status,
            placed_at=placed_at,
        )
        order._events.clear()
        return order

    return _make
