"""OrderAssembler: turns a checked cart and a verified payment into an Order.

Assembly only reads. It snapshots products and vendors, prices the order
with the same rules as the cart summary and picks a unique order number. The
caller persists the result together with the stock decrement and the cart
clear, so a failure here leaves stock and cart untouched.
"""

import json
import secrets
import string
from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.catalogue.product import Product, Shop
from ordering.inventory.ledger import StockLine
from ordering.order.lifecycle import PaymentStatus
from ordering.order.order import Order, OrderItem, OrderPricing, ProductSnapshot, VendorSnapshot
from ordering.shared.pricing import price_breakdown

logger = structlog.get_logger(__name__)

ORDER_NUMBER_ATTEMPTS = 5
_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number(today=None) -> str:
    """``ORD-YYYYMMDD-XXXXX`` with a random uppercase alphanumeric suffix."""
    today = today or datetime.now(UTC)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(5))
    return f"ORD-{today:%Y%m%d}-{suffix}"


def stock_lines_for(order: Order) -> list[StockLine]:
    return [
        StockLine(
            product_id=str(item.product_id),
            quantity=item.quantity,
            size=item.size,
            color=item.color,
            label=item.display_name,
        )
        for item in order.items
    ]


class OrderAssembler:
    def __init__(self, products=None, shops=None, orders=None, number_generator=generate_order_number) -> None:
        self.products = products or current_domain.repository_for(Product)
        self.shops = shops or current_domain.repository_for(Shop)
        self.orders = orders or current_domain.repository_for(Order)
        self.number_generator = number_generator

    def next_order_number(self) -> str:
        """Draw suffixes until one is free.

        ``order_number`` is also a unique column: a number taken between this
        check and the commit fails the whole unit of work, nothing is persisted
        and the verify call can be repeated for the same intent.
        """
        for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
            candidate = self.number_generator()
            if self.orders.find_by_number(candidate) is None:
                return candidate
            logger.warning("Order number collision, retrying", order_number=candidate, attempt=attempt)
        raise ValidationError({"order_number": ["Could not allocate a unique order number"]})

    def snapshot(self, cart_item) -> OrderItem:
        product = self.products.find_product(cart_item.product_id)
        if product is None:
            raise ObjectNotFoundError({"product_id": f"Product {cart_item.product_id} is no longer available"})

        shop = self.shops.for_vendor(cart_item.vendor_id)
        return OrderItem(
            product_id=cart_item.product_id,
            vendor_id=cart_item.vendor_id,
            shop_id=cart_item.shop_id or product.shop_id or (shop.id if shop else None),
            quantity=cart_item.quantity,
            unit_price=cart_item.unit_price,
            size=cart_item.size,
            color=cart_item.color,
            product_snapshot=ProductSnapshot(
                name=product.name,
                images=json.dumps(product.image_list),
                category=product.category,
                size=cart_item.size,
                color=cart_item.color,
            ),
            vendor_snapshot=VendorSnapshot(
                name=shop.owner_name if shop else None,
                store_name=shop.name if shop else None,
                location=shop.city if shop else None,
            ),
        )

    def build(
        self,
        cart,
        shipping_address,
        payment_method,
        payment_gateway,
        payment_intent_id,
        transaction_id=None,
        payment_status=PaymentStatus.PENDING.value,
        currency="INR",
    ) -> Order:
        if not cart.items:
            raise ValidationError({"cart": ["Cannot place an order from an empty cart"]})

        items = [self.snapshot(cart_item) for cart_item in cart.items]
        breakdown = price_breakdown(cart.subtotal, cart.applied_coupons)

        pricing = OrderPricing(
            subtotal=breakdown.subtotal,
            tax_amount=breakdown.tax,
            shipping_fee=breakdown.shipping_fee,
            discount_amount=breakdown.discount,
            total_amount=breakdown.total,
            currency=currency,
        )

        order = Order.place(
            order_number=self.next_order_number(),
            customer_id=cart.owner_id,
            items=items,
            pricing=pricing,
            shipping_address=shipping_address,
            payment_method=payment_method,
            payment_gateway=payment_gateway,
            payment_intent_id=payment_intent_id,
            transaction_id=transaction_id,
            payment_status=payment_status,
            applied_coupons=[
                {
                    "code": c.code,
                    "discount_amount": c.discount_amount,
                    "discount_type": c.discount_type,
                }
                for c in cart.applied_coupons
            ],
        )
        logger.info(
            "Order assembled",
            order_id=str(order.id),
            order_number=order.order_number,
            intent_id=payment_intent_id,
            vendor_groups=len(order.vendor_groups),
            total_amount=pricing.total_amount,
        )
        return order
