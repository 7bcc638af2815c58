"""Money rules shared by the cart summary and order assembly.

Both sides call ``price_breakdown`` so a cart total and the order created
from it can never disagree.
"""

from dataclasses import asdict, dataclass

from ordering.coupon.engine import CouponEngine

TAX_RATE = 0.18
FREE_SHIPPING_THRESHOLD = 1000.0
STANDARD_SHIPPING_FEE = 100.0
# Tax is charged on (subtotal - discount) for carts and orders alike.
TAX_ON_DISCOUNTED_SUBTOTAL = True


def money(value) -> float:
    return round(float(value or 0) + 0.0, 2)


def to_minor_units(amount) -> int:
    """Convert a rupee amount to paise."""
    return int(round(float(amount) * 100))


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: float
    discount: float
    tax: float
    shipping_fee: float
    total: float

    def to_dict(self) -> dict:
        return asdict(self)


def shipping_fee_for(taxable_amount: float, has_items: bool = True) -> float:
    if not has_items:
        return 0.0
    if taxable_amount > FREE_SHIPPING_THRESHOLD:
        return 0.0
    return STANDARD_SHIPPING_FEE


def price_breakdown(subtotal, coupons=(), has_items: bool = True, engine: CouponEngine | None = None) -> PriceBreakdown:
    """Compute discount, tax, shipping and total for a subtotal.

    ``coupons`` is an iterable of objects or dicts carrying ``discount_amount``
    and ``discount_type``.
    """
    engine = engine or CouponEngine()
    subtotal = money(subtotal)
    discount = money(engine.compute_discount(subtotal, coupons))

    base = subtotal - discount if TAX_ON_DISCOUNTED_SUBTOTAL else subtotal
    tax = money(base * TAX_RATE)
    shipping = money(shipping_fee_for(subtotal - discount, has_items=has_items))
    total = money(max(subtotal + tax + shipping - discount, 0.0))

    return PriceBreakdown(
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        shipping_fee=shipping,
        total=total,
    )
