"""Shopping Cart aggregate (CQRS): the customer's mutable pre-purchase container.

One cart per customer, created lazily on first access and never deleted: a
successful checkout clears it in place. Every mutation recomputes
``total_items`` and ``subtotal`` from the item list before returning, so the
persisted totals always describe the items persisted with them.
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from ordering.cart.events import (
    CartCleared,
    CartCouponApplied,
    CartCouponRemoved,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
    CartShippingAddressSaved,
)
from ordering.coupon.engine import DiscountType
from ordering.domain import ordering
from ordering.shared.address import ShippingAddress
from ordering.shared.pricing import money, price_breakdown


@ordering.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    shop_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    size = String(max_length=50)
    color = String(max_length=50)
    added_at = DateTime()
    last_stock_check_at = DateTime()
    is_available = Boolean(default=True)

    def matches(self, product_id, size=None, color=None):
        return (
            str(self.product_id) == str(product_id)
            and (self.size or None) == (size or None)
            and (self.color or None) == (color or None)
        )

    @property
    def line_total(self):
        return money(self.unit_price * self.quantity)


@ordering.entity(part_of="ShoppingCart")
class AppliedCoupon:
    code = String(required=True, max_length=50)
    discount_amount = Float(required=True, min_value=0.0)
    discount_type = String(required=True, choices=DiscountType)
    applied_at = DateTime()


@ordering.aggregate
class ShoppingCart:
    owner_id = Identifier(required=True, unique=True)
    items = HasMany(CartItem)
    applied_coupons = HasMany(AppliedCoupon)
    shipping_address = ValueObject(ShippingAddress)
    total_items = Integer(default=0)
    subtotal = Float(default=0.0)
    is_active = Boolean(default=True)
    last_activity = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def one_line_per_product_variant(self):
        keys = [(str(i.product_id), i.size or None, i.color or None) for i in self.items]
        if len(keys) != len(set(keys)):
            raise ValidationError({"items": ["A product variant can appear only once in the cart"]})

    @invariant.post
    def coupon_codes_are_unique(self):
        codes = [c.code for c in self.applied_coupons]
        if len(codes) != len(set(codes)):
            raise ValidationError({"applied_coupons": ["A coupon can be applied only once"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, owner_id):
        now = datetime.now(UTC)
        return cls(
            owner_id=owner_id,
            total_items=0,
            subtotal=0.0,
            is_active=True,
            last_activity=now,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------
    def refresh_totals(self):
        """Recompute derived totals from the current item list."""
        self.total_items = sum(item.quantity for item in self.items)
        self.subtotal = money(sum(item.unit_price * item.quantity for item in self.items))

    def _touch(self):
        now = datetime.now(UTC)
        self.refresh_totals()
        self.last_activity = now
        self.updated_at = now

    def summary(self):
        breakdown = price_breakdown(self.subtotal, self.applied_coupons, has_items=bool(self.items))
        return {
            "total_items": self.total_items,
            "subtotal": breakdown.subtotal,
            "discount": breakdown.discount,
            "tax": breakdown.tax,
            "shipping_fee": breakdown.shipping_fee,
            "total": breakdown.total,
            "applied_coupons": [
                {
                    "code": c.code,
                    "discount_amount": c.discount_amount,
                    "discount_type": c.discount_type,
                }
                for c in self.applied_coupons
            ],
            "shipping_address": self.shipping_address.to_dict() if self.shipping_address else None,
        }

    def item(self, item_id):
        found = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if found is None:
            raise ObjectNotFoundError({"item_id": f"Item {item_id} not found in cart"})
        return found

    def find_line(self, product_id, size=None, color=None):
        return next((i for i in self.items if i.matches(product_id, size, color)), None)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product_id, vendor_id, quantity, unit_price, size=None, color=None, shop_id=None):
        """Add a line, or merge into the line for the same product variant.

        ``unit_price`` is the current catalogue price and replaces whatever
        price the line carried before.
        """
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        now = datetime.now(UTC)
        existing = self.find_line(product_id, size, color)

        with atomic_change(self):
            if existing:
                existing.quantity += quantity
                existing.unit_price = unit_price
                existing.is_available = True
                item = existing
            else:
                item = CartItem(
                    product_id=product_id,
                    vendor_id=vendor_id,
                    shop_id=shop_id,
                    quantity=quantity,
                    unit_price=unit_price,
                    size=size,
                    color=color,
                    added_at=now,
                    is_available=True,
                )
                self.add_items(item)
            self._touch()

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                product_id=str(product_id),
                size=size,
                color=color,
                quantity=quantity,
                unit_price=unit_price,
            )
        )
        return item

    def update_item_quantity(self, item_id, quantity, unit_price=None):
        """Set a line's quantity. Quantities below 1 are rejected, never stored."""
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        item = self.item(item_id)
        previous_quantity = item.quantity

        with atomic_change(self):
            item.quantity = max(1, quantity)
            if unit_price is not None:
                item.unit_price = unit_price
            self._touch()

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=item.quantity,
            )
        )
        return item

    def remove_item(self, item_id):
        item = self.item(item_id)

        with atomic_change(self):
            self.remove_items(item)
            self._touch()

        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    # -------------------------------------------------------------------
    # Coupons
    # -------------------------------------------------------------------
    def apply_coupon(self, code, discount_amount, discount_type):
        """Apply a coupon; re-applying a code replaces the earlier entry."""
        now = datetime.now(UTC)
        existing = next((c for c in self.applied_coupons if c.code == code), None)

        with atomic_change(self):
            if existing:
                self.remove_applied_coupons(existing)
            self.add_applied_coupons(
                AppliedCoupon(
                    code=code,
                    discount_amount=discount_amount,
                    discount_type=discount_type,
                    applied_at=now,
                )
            )
            self._touch()

        self.raise_(
            CartCouponApplied(
                cart_id=str(self.id),
                coupon_code=code,
                discount_amount=discount_amount,
                discount_type=discount_type,
            )
        )

    def remove_coupon(self, code):
        coupon = next((c for c in self.applied_coupons if c.code == code), None)
        if coupon is None:
            raise ObjectNotFoundError({"code": f"Coupon {code} is not applied to this cart"})

        with atomic_change(self):
            self.remove_applied_coupons(coupon)
            self._touch()

        self.raise_(CartCouponRemoved(cart_id=str(self.id), coupon_code=code))

    # -------------------------------------------------------------------
    # Shipping address
    # -------------------------------------------------------------------
    def save_shipping_address(self, address: ShippingAddress):
        with atomic_change(self):
            self.shipping_address = address
            self._touch()

        self.raise_(CartShippingAddressSaved(cart_id=str(self.id), city=address.city))

    # -------------------------------------------------------------------
    # Availability
    # -------------------------------------------------------------------
    def check_availability(self, is_available):
        """Refresh ``is_available`` on every line.

        ``is_available`` is a callable taking a CartItem and returning a bool.
        Lines are flagged, never removed. Returns the unavailable lines.
        """
        now = datetime.now(UTC)
        unavailable = []

        with atomic_change(self):
            for item in self.items:
                item.is_available = bool(is_available(item))
                item.last_stock_check_at = now
                if not item.is_available:
                    unavailable.append(item)
            self._touch()

        return unavailable

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def clear(self):
        """Empty items and coupons in place, keeping the cart's identity and owner."""
        items_cleared = len(self.items)

        with atomic_change(self):
            for item in list(self.items):
                self.remove_items(item)
            for coupon in list(self.applied_coupons):
                self.remove_applied_coupons(coupon)
            self._touch()

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                owner_id=str(self.owner_id),
                items_cleared=items_cleared,
            )
        )


@ordering.repository(part_of=ShoppingCart)
class ShoppingCartRepository:
    def active_for(self, owner_id) -> ShoppingCart | None:
        carts = self._dao.query.filter(owner_id=str(owner_id), is_active=True).all().items
        return carts[0] if carts else None
