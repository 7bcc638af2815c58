"""Catalogue reference data consumed by checkout.

Products and shops are owned by the marketplace catalogue. Checkout only
needs their live price, visibility and the fields it snapshots onto orders.
"""

import json

from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Float, Identifier, String, Text

from ordering.domain import ordering


@ordering.aggregate
class Shop:
    vendor_id = Identifier(required=True, unique=True)
    name = String(required=True, max_length=255)
    owner_name = String(max_length=255)
    city = String(max_length=100)


@ordering.aggregate
class Product:
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    images = Text()  # JSON array of image URLs
    category = String(max_length=100)
    vendor_id = Identifier(required=True)
    shop_id = Identifier()
    is_active = Boolean(default=True)
    is_approved = Boolean(default=True)
    has_variants = Boolean(default=False)

    @property
    def image_list(self):
        return json.loads(self.images) if self.images else []

    @property
    def is_purchasable(self):
        return bool(self.is_active and self.is_approved)

    def summary(self):
        return {
            "id": str(self.id),
            "name": self.name,
            "price": self.price,
            "images": self.image_list,
            "category": self.category,
            "is_active": self.is_active,
            "is_approved": self.is_approved,
        }


@ordering.repository(part_of=Product)
class ProductRepository:
    def find_product(self, product_id) -> Product | None:
        try:
            return self.get(product_id)
        except ObjectNotFoundError:
            return None


@ordering.repository(part_of=Shop)
class ShopRepository:
    def for_vendor(self, vendor_id) -> Shop | None:
        shops = self._dao.query.filter(vendor_id=str(vendor_id)).all().items
        return shops[0] if shops else None
