"""FastAPI routes for checkout: cart, payments and orders."""

import json

import structlog
from fastapi import APIRouter, Depends, Header, Request
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.api.auth import (
    Actor,
    Role,
    current_actor,
    ensure_can_manage,
    ensure_can_manage_item,
    ensure_can_view,
    ensure_customer_owns,
)
from ordering.api.schemas import (
    AddCartItemRequest,
    AddressSchema,
    ApiResponse,
    ApplyCouponRequest,
    CancelOrderRequest,
    RefundRequest,
    TrackingRequest,
    UpdateCartItemRequest,
    UpdateStatusRequest,
    VerifyPaymentRequest,
)
from ordering.api.views import cart_view, order_view, payment_view
from ordering.cart.cart import ShoppingCart
from ordering.cart.coupons import ApplyCouponToCart, RemoveCouponFromCart
from ordering.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity
from ordering.cart.management import CheckCartAvailability, ClearCart, OpenCart, SaveShippingAddress
from ordering.exceptions import DuplicateRequest, PaymentSignatureInvalid
from ordering.order.cancellation import CancelOrderByCustomer
from ordering.order.fulfillment import AddItemTracking, ChangeItemStatus, ChangeOrderStatus
from ordering.order.order import Order
from ordering.order.refund import RefundOrderItem
from ordering.payment.checkout import ConfirmPayment, CreatePaymentIntent
from ordering.payment.gateway import get_gateway
from ordering.payment.webhook import ProcessGatewayWebhook, parse_webhook

logger = structlog.get_logger(__name__)


def _cart(cart_id) -> dict:
    return cart_view(current_domain.repository_for(ShoppingCart).get(cart_id))


def _order(order_id) -> Order:
    return current_domain.repository_for(Order).get(order_id)


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=ApiResponse)
async def get_cart(actor: Actor = Depends(current_actor)) -> ApiResponse:
    cart_id = current_domain.process(OpenCart(owner_id=actor.user_id), asynchronous=False)
    return ApiResponse(data=_cart(cart_id))


@cart_router.get("/summary", response_model=ApiResponse)
async def get_cart_summary(actor: Actor = Depends(current_actor)) -> ApiResponse:
    cart_id = current_domain.process(OpenCart(owner_id=actor.user_id), asynchronous=False)
    cart = current_domain.repository_for(ShoppingCart).get(cart_id)
    return ApiResponse(data=cart.summary())


@cart_router.post("/items", response_model=ApiResponse)
async def add_cart_item(body: AddCartItemRequest, actor: Actor = Depends(current_actor)) -> ApiResponse:
    command = AddToCart(
        owner_id=actor.user_id,
        product_id=body.product_id,
        quantity=body.quantity,
        size=body.size,
        color=body.color,
    )
    cart_id = current_domain.process(command, asynchronous=False)
    return ApiResponse(message="Item added to cart", data=_cart(cart_id))


@cart_router.put("/items/{item_id}", response_model=ApiResponse)
async def update_cart_item(
    item_id: str, body: UpdateCartItemRequest, actor: Actor = Depends(current_actor)
) -> ApiResponse:
    command = UpdateCartQuantity(owner_id=actor.user_id, item_id=item_id, quantity=body.quantity)
    cart_id = current_domain.process(command, asynchronous=False)
    return ApiResponse(message="Cart updated", data=_cart(cart_id))


@cart_router.delete("/items/{item_id}", response_model=ApiResponse)
async def remove_cart_item(item_id: str, actor: Actor = Depends(current_actor)) -> ApiResponse:
    cart_id = current_domain.process(RemoveFromCart(owner_id=actor.user_id, item_id=item_id), asynchronous=False)
    return ApiResponse(message="Item removed from cart", data=_cart(cart_id))


@cart_router.post("/coupons", response_model=ApiResponse)
async def apply_coupon(body: ApplyCouponRequest, actor: Actor = Depends(current_actor)) -> ApiResponse:
    command = ApplyCouponToCart(owner_id=actor.user_id, coupon_code=body.code)
    cart_id = current_domain.process(command, asynchronous=False)
    return ApiResponse(message="Coupon applied", data=_cart(cart_id))


@cart_router.delete("/coupons/{code}", response_model=ApiResponse)
async def remove_coupon(code: str, actor: Actor = Depends(current_actor)) -> ApiResponse:
    command = RemoveCouponFromCart(owner_id=actor.user_id, coupon_code=code)
    cart_id = current_domain.process(command, asynchronous=False)
    return ApiResponse(message="Coupon removed", data=_cart(cart_id))


@cart_router.post("/check-availability", response_model=ApiResponse)
async def check_availability(actor: Actor = Depends(current_actor)) -> ApiResponse:
    unavailable = current_domain.process(CheckCartAvailability(owner_id=actor.user_id), asynchronous=False)
    cart = current_domain.repository_for(ShoppingCart).active_for(actor.user_id)
    message = "Some items are no longer available" if unavailable else "All items are available"
    return ApiResponse(message=message, data=cart_view(cart))


@cart_router.post("/shipping-address", response_model=ApiResponse)
async def save_shipping_address(body: AddressSchema, actor: Actor = Depends(current_actor)) -> ApiResponse:
    command = SaveShippingAddress(owner_id=actor.user_id, **body.model_dump())
    cart_id = current_domain.process(command, asynchronous=False)
    return ApiResponse(message="Shipping address saved", data=_cart(cart_id))


@cart_router.delete("", response_model=ApiResponse)
async def clear_cart(actor: Actor = Depends(current_actor)) -> ApiResponse:
    current_domain.process(ClearCart(owner_id=actor.user_id), asynchronous=False)
    cart = current_domain.repository_for(ShoppingCart).active_for(actor.user_id)
    return ApiResponse(message="Cart cleared", data=cart_view(cart))


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/create-order", response_model=ApiResponse)
async def create_payment_order(actor: Actor = Depends(current_actor)) -> ApiResponse:
    """Create a gateway payment intent for the caller's cart."""
    result = current_domain.process(CreatePaymentIntent(owner_id=actor.user_id), asynchronous=False)
    return ApiResponse(message="Payment order created", data=result)


@payment_router.post("/verify", response_model=ApiResponse)
async def verify_payment(body: VerifyPaymentRequest, actor: Actor = Depends(current_actor)) -> ApiResponse:
    """Verify the client's payment proof and place the order (idempotent per intent)."""
    command = ConfirmPayment(
        owner_id=actor.user_id,
        intent_id=body.intent_id,
        payment_id=body.payment_id,
        signature=body.signature,
        payment_method=body.payment_method,
        **body.shipping_address.model_dump(),
    )
    try:
        order_id = current_domain.process(command, asynchronous=False)
        message = "Payment verified and order placed"
    except DuplicateRequest as exc:
        order_id = exc.order_id
        message = "Payment already confirmed"

    return ApiResponse(message=message, data=order_view(_order(order_id)))


@payment_router.post("/webhook", response_model=ApiResponse)
async def gateway_webhook(
    request: Request,
    x_gateway_signature: str = Header(default=""),
) -> ApiResponse:
    """Process a gateway webhook. Unknown events are acknowledged and ignored."""
    raw_body = await request.body()
    if not get_gateway().verify_webhook_signature(raw_body, x_gateway_signature):
        raise PaymentSignatureInvalid("Invalid webhook signature")

    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise ValidationError({"body": ["Webhook body is not valid JSON"]}) from None
    if not isinstance(payload, dict):
        raise ValidationError({"body": ["Webhook body must be a JSON object"]})

    fields = parse_webhook(payload)
    if not fields["event_type"]:
        logger.info("Ignoring webhook without an event type")
        return ApiResponse(message="ignored")

    outcome = current_domain.process(ProcessGatewayWebhook(**fields), asynchronous=False)
    return ApiResponse(message=outcome)


@payment_router.post("/refund", response_model=ApiResponse)
async def refund_item(body: RefundRequest, actor: Actor = Depends(current_actor)) -> ApiResponse:
    order = _order(body.order_id)
    ensure_can_manage_item(actor, order, order.item(body.item_id))

    result = current_domain.process(
        RefundOrderItem(
            order_id=body.order_id,
            item_id=body.item_id,
            amount=body.amount,
            reason=body.reason,
            actor=actor.label,
        ),
        asynchronous=False,
    )
    return ApiResponse(
        message="Refund processed",
        data={"refund": result, "order": order_view(_order(body.order_id))},
    )


@payment_router.get("/order/{order_id}", response_model=ApiResponse)
async def get_order_payment(order_id: str, actor: Actor = Depends(current_actor)) -> ApiResponse:
    order = _order(order_id)
    ensure_can_view(actor, order)
    return ApiResponse(data=payment_view(order))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("", response_model=ApiResponse)
async def list_orders(actor: Actor = Depends(current_actor)) -> ApiResponse:
    orders = current_domain.repository_for(Order).for_customer(actor.user_id)
    return ApiResponse(data=[order_view(o) for o in orders])


@order_router.get("/{order_id}", response_model=ApiResponse)
async def get_order(order_id: str, actor: Actor = Depends(current_actor)) -> ApiResponse:
    order = _order(order_id)
    ensure_can_view(actor, order)
    return ApiResponse(data=order_view(order))


@order_router.patch("/{order_id}/status", response_model=ApiResponse)
async def change_order_status(
    order_id: str, body: UpdateStatusRequest, actor: Actor = Depends(current_actor)
) -> ApiResponse:
    ensure_can_manage(actor, _order(order_id))
    command = ChangeOrderStatus(
        order_id=order_id,
        status=body.status,
        actor=actor.label,
        reason=body.reason,
        note=body.note,
    )
    current_domain.process(command, asynchronous=False)
    return ApiResponse(message="Order status updated", data=order_view(_order(order_id)))


@order_router.patch("/{order_id}/items/{item_id}/status", response_model=ApiResponse)
async def change_item_status(
    order_id: str, item_id: str, body: UpdateStatusRequest, actor: Actor = Depends(current_actor)
) -> ApiResponse:
    order = _order(order_id)
    ensure_can_manage_item(actor, order, order.item(item_id))
    command = ChangeItemStatus(
        order_id=order_id,
        item_id=item_id,
        status=body.status,
        actor=actor.label,
        reason=body.reason,
    )
    current_domain.process(command, asynchronous=False)
    return ApiResponse(message="Item status updated", data=order_view(_order(order_id)))


@order_router.patch("/{order_id}/items/{item_id}/tracking", response_model=ApiResponse)
async def add_item_tracking(
    order_id: str, item_id: str, body: TrackingRequest, actor: Actor = Depends(current_actor)
) -> ApiResponse:
    order = _order(order_id)
    ensure_can_manage_item(actor, order, order.item(item_id))
    command = AddItemTracking(
        order_id=order_id,
        item_id=item_id,
        tracking_number=body.tracking_number,
        tracking_url=body.tracking_url,
        actor=actor.label,
    )
    current_domain.process(command, asynchronous=False)
    return ApiResponse(message="Tracking added", data=order_view(_order(order_id)))


@order_router.patch("/{order_id}/cancel", response_model=ApiResponse)
async def cancel_order(
    order_id: str, body: CancelOrderRequest | None = None, actor: Actor = Depends(current_actor)
) -> ApiResponse:
    """Customer self-cancellation; vendors and admins use the status endpoint."""
    order = _order(order_id)
    if actor.role != Role.CUSTOMER:
        ensure_can_manage(actor, order)
        command = ChangeOrderStatus(
            order_id=order_id,
            status="cancelled",
            actor=actor.label,
            reason=body.reason if body else None,
        )
    else:
        ensure_customer_owns(actor, order)
        command = CancelOrderByCustomer(
            order_id=order_id,
            customer_id=actor.user_id,
            reason=body.reason if body else None,
        )
    current_domain.process(command, asynchronous=False)
    return ApiResponse(message="Order cancelled", data=order_view(_order(order_id)))
