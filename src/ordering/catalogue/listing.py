"""Catalogue maintenance commands used to seed checkout reference data."""

import json

from protean import handle
from protean.fields import Boolean, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.catalogue.product import Product, Shop
from ordering.domain import ordering


@ordering.command(part_of="Shop")
class RegisterShop:
    vendor_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    owner_name = String(max_length=255)
    city = String(max_length=100)


@ordering.command(part_of="Product")
class ListProduct:
    product_id = Identifier()
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    vendor_id = Identifier(required=True)
    shop_id = Identifier()
    category = String(max_length=100)
    images = Text()  # JSON array
    has_variants = Boolean(default=False)


@ordering.command(part_of="Product")
class ChangeProductPrice:
    product_id = Identifier(required=True)
    price = Float(required=True, min_value=0.0)


@ordering.command(part_of="Product")
class SetProductVisibility:
    product_id = Identifier(required=True)
    is_active = Boolean(required=True)
    is_approved = Boolean(default=True)


@ordering.command_handler(part_of=Shop)
class ShopCommandHandler:
    @handle(RegisterShop)
    def register_shop(self, command):
        shop = Shop(
            vendor_id=command.vendor_id,
            name=command.name,
            owner_name=command.owner_name,
            city=command.city,
        )
        current_domain.repository_for(Shop).add(shop)
        return str(shop.id)


@ordering.command_handler(part_of=Product)
class ProductCommandHandler:
    @handle(ListProduct)
    def list_product(self, command):
        kwargs = {}
        if command.product_id:
            kwargs["id"] = command.product_id
        product = Product(
            name=command.name,
            price=command.price,
            vendor_id=command.vendor_id,
            shop_id=command.shop_id,
            category=command.category,
            images=command.images or json.dumps([]),
            has_variants=command.has_variants,
            **kwargs,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(ChangeProductPrice)
    def change_price(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.price = command.price
        repo.add(product)

    @handle(SetProductVisibility)
    def set_visibility(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.is_active = command.is_active
        product.is_approved = command.is_approved
        repo.add(product)
