"""Cart item management: commands and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.cart.availability import variant_for
from ordering.cart.cart import ShoppingCart
from ordering.cart.management import cart_for
from ordering.catalogue.product import Product
from ordering.domain import ordering
from ordering.exceptions import OutOfStock
from ordering.inventory.ledger import InventoryLedger


@ordering.command(part_of="ShoppingCart")
class AddToCart:
    owner_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    size = String(max_length=50)
    color = String(max_length=50)


@ordering.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    owner_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True)


@ordering.command(part_of="ShoppingCart")
class RemoveFromCart:
    owner_id = Identifier(required=True)
    item_id = Identifier(required=True)


def _purchasable_product(product_id) -> Product:
    product = current_domain.repository_for(Product).find_product(product_id)
    if product is None:
        raise ObjectNotFoundError({"product_id": f"Product {product_id} not found"})
    if not product.is_purchasable:
        raise ValidationError({"product_id": ["Product is not available for purchase"]})
    return product


def _ensure_stock(product, quantity, size, color):
    available = InventoryLedger().available(product.id, size, color)
    if available < quantity:
        raise OutOfStock(
            f"Only {available} unit(s) of {product.name} available",
            items=[{"product_id": str(product.id), "requested": quantity, "available": available}],
            product_id=str(product.id),
        )


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        product = _purchasable_product(command.product_id)
        size, color = variant_for(product, command.size, command.color)

        cart = cart_for(command.owner_id)
        existing = cart.find_line(product.id, size, color)
        requested = command.quantity + (existing.quantity if existing else 0)
        _ensure_stock(product, requested, size, color)

        cart.add_item(
            product_id=product.id,
            vendor_id=product.vendor_id,
            shop_id=product.shop_id,
            quantity=command.quantity,
            unit_price=product.price,
            size=size,
            color=color,
        )
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        if command.quantity is None or command.quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        cart = cart_for(command.owner_id)
        item = cart.item(command.item_id)
        product = _purchasable_product(item.product_id)
        _ensure_stock(product, command.quantity, item.size, item.color)

        cart.update_item_quantity(command.item_id, command.quantity, unit_price=product.price)
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = cart_for(command.owner_id)
        cart.remove_item(command.item_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)
