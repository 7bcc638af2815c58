"""Cart lifecycle: opening, address caching, availability refresh and clearing."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.availability import CartAvailability
from ordering.cart.cart import ShoppingCart
from ordering.domain import ordering
from ordering.shared.address import ShippingAddress

logger = structlog.get_logger(__name__)


def cart_for(owner_id) -> ShoppingCart:
    """Return the owner's cart, creating it on first access."""
    repo = current_domain.repository_for(ShoppingCart)
    cart = repo.active_for(owner_id)
    if cart is None:
        cart = ShoppingCart.create(owner_id=owner_id)
        repo.add(cart)
        logger.info("Cart created", cart_id=str(cart.id), owner_id=str(owner_id))
    return cart


@ordering.command(part_of="ShoppingCart")
class OpenCart:
    owner_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class SaveShippingAddress:
    owner_id = Identifier(required=True)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    zip_code = String(required=True, max_length=20)
    country = String(max_length=100, default="India")
    phone = String(required=True, max_length=20)


@ordering.command(part_of="ShoppingCart")
class CheckCartAvailability:
    owner_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class ClearCart:
    owner_id = Identifier(required=True)


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(OpenCart)
    def open_cart(self, command):
        return str(cart_for(command.owner_id).id)

    @handle(SaveShippingAddress)
    def save_shipping_address(self, command):
        cart = cart_for(command.owner_id)
        cart.save_shipping_address(
            ShippingAddress(
                street=command.street,
                city=command.city,
                state=command.state,
                zip_code=command.zip_code,
                country=command.country or "India",
                phone=command.phone,
            )
        )
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)

    @handle(CheckCartAvailability)
    def check_availability(self, command):
        cart = cart_for(command.owner_id)
        unavailable = cart.check_availability(CartAvailability())
        current_domain.repository_for(ShoppingCart).add(cart)

        if unavailable:
            logger.info(
                "Cart has unavailable items",
                cart_id=str(cart.id),
                item_ids=[str(i.id) for i in unavailable],
            )
        return [str(i.id) for i in unavailable]

    @handle(ClearCart)
    def clear_cart(self, command):
        cart = cart_for(command.owner_id)
        cart.clear()
        current_domain.repository_for(ShoppingCart).add(cart)
