"""Checkout: payment intent creation and payment confirmation.

``ConfirmPayment`` is the one place where a cart becomes an order. The whole
confirmation runs in a single unit of work: the order insert, the stock
decrement, the cart clear and the intent update commit together or not at
all. A second confirmation of the same intent finds the existing order and
raises ``DuplicateRequest`` instead of doing anything twice.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.availability import CartAvailability
from ordering.cart.cart import ShoppingCart
from ordering.domain import ordering
from ordering.exceptions import DuplicateRequest, Forbidden, OutOfStock, PaymentSignatureInvalid
from ordering.inventory.ledger import InventoryLedger
from ordering.order.assembler import OrderAssembler, stock_lines_for
from ordering.order.lifecycle import PaymentMethod, PaymentStatus
from ordering.order.order import Order
from ordering.payment.gateway import get_gateway, payment_currency
from ordering.payment.intent import PaymentIntent
from ordering.shared.address import ShippingAddress
from ordering.shared.pricing import price_breakdown, to_minor_units

logger = structlog.get_logger(__name__)


@ordering.command(part_of="PaymentIntent")
class CreatePaymentIntent:
    owner_id = Identifier(required=True)


@ordering.command(part_of="PaymentIntent")
class ConfirmPayment:
    owner_id = Identifier(required=True)
    intent_id = String(required=True, max_length=100)
    payment_id = String(required=True, max_length=100)
    signature = String(required=True, max_length=256)
    payment_method = String(required=True, choices=PaymentMethod)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    zip_code = String(required=True, max_length=20)
    country = String(max_length=100, default="India")
    phone = String(required=True, max_length=20)


def _checked_cart(owner_id) -> ShoppingCart:
    """The owner's cart, refreshed against live stock; raises when not purchasable."""
    cart = current_domain.repository_for(ShoppingCart).active_for(owner_id)
    if cart is None or not cart.items:
        raise ValidationError({"cart": ["Cart is empty"]})

    unavailable = cart.check_availability(CartAvailability())
    if unavailable:
        raise OutOfStock(
            "Some items in your cart are no longer available",
            items=[
                {"item_id": str(i.id), "product_id": str(i.product_id), "quantity": i.quantity}
                for i in unavailable
            ],
            cart_id=str(cart.id),
        )
    return cart


@ordering.command_handler(part_of=PaymentIntent)
class CheckoutHandler:
    @handle(CreatePaymentIntent)
    def create_intent(self, command):
        cart = _checked_cart(command.owner_id)
        breakdown = price_breakdown(cart.subtotal, cart.applied_coupons)
        amount_minor = to_minor_units(breakdown.total)
        currency = payment_currency()
        gateway = get_gateway()

        result = gateway.create_intent(
            amount_minor,
            currency,
            receipt=f"cart_{str(cart.id)[:20]}",
            notes={"owner_id": str(command.owner_id), "cart_id": str(cart.id)},
        )

        intent = PaymentIntent.open(
            intent_id=result.intent_id,
            owner_id=command.owner_id,
            cart_id=cart.id,
            amount_minor=result.amount_minor,
            currency=result.currency,
            receipt=result.receipt,
            gateway=gateway.name,
        )
        current_domain.repository_for(PaymentIntent).add(intent)
        current_domain.repository_for(ShoppingCart).add(cart)

        logger.info(
            "Payment intent created",
            intent_id=result.intent_id,
            cart_id=str(cart.id),
            amount_minor=result.amount_minor,
        )
        return {
            "intent_id": result.intent_id,
            "amount": result.amount_minor,
            "currency": result.currency,
            "key_id": gateway.key_id,
            "summary": cart.summary(),
        }

    @handle(ConfirmPayment)
    def confirm_payment(self, command):
        gateway = get_gateway()
        if not gateway.verify_client_proof(command.intent_id, command.payment_id, command.signature):
            logger.warning("Payment signature rejected", intent_id=command.intent_id)
            raise PaymentSignatureInvalid("Invalid payment signature", intent_id=command.intent_id)

        intents = current_domain.repository_for(PaymentIntent)
        intent = intents.by_intent_id(command.intent_id)
        if str(intent.owner_id) != str(command.owner_id):
            raise Forbidden("Payment intent belongs to another customer", intent_id=command.intent_id)

        orders = current_domain.repository_for(Order)
        existing = orders.find_by_intent(command.intent_id)
        if existing is not None:
            logger.info(
                "Payment already confirmed",
                intent_id=command.intent_id,
                order_id=str(existing.id),
            )
            raise DuplicateRequest(order_id=str(existing.id), intent_id=command.intent_id)

        cart = _checked_cart(command.owner_id)
        breakdown = price_breakdown(cart.subtotal, cart.applied_coupons)
        if to_minor_units(breakdown.total) != intent.amount_minor:
            logger.warning(
                "Cart total changed after payment intent",
                intent_id=command.intent_id,
                intent_amount=intent.amount_minor,
                cart_amount=to_minor_units(breakdown.total),
            )
            raise ValidationError({"amount": ["Cart total changed since the payment was initiated"]})

        payment_status = PaymentStatus.COMPLETED.value if intent.is_captured else PaymentStatus.PENDING.value
        order = OrderAssembler().build(
            cart,
            shipping_address=ShippingAddress(
                street=command.street,
                city=command.city,
                state=command.state,
                zip_code=command.zip_code,
                country=command.country or "India",
                phone=command.phone,
            ),
            payment_method=command.payment_method,
            payment_gateway=gateway.name,
            payment_intent_id=command.intent_id,
            transaction_id=command.payment_id,
            payment_status=payment_status,
            currency=intent.currency,
        )

        InventoryLedger().decrement_all(stock_lines_for(order), reference=order.order_number)
        orders.add(order)

        cart.clear()
        current_domain.repository_for(ShoppingCart).add(cart)

        intent.mark_fulfilled(order.id, command.payment_id)
        intents.add(intent)

        logger.info(
            "Order placed",
            intent_id=command.intent_id,
            order_id=str(order.id),
            order_number=order.order_number,
            payment_status=payment_status,
        )
        return str(order.id)
