"""Coupon validation and discount math.

Pure functions over a coupon table. Nothing here touches persistence, so the
same rules price the cart summary, the payment intent and the final order.
"""

from enum import Enum

import structlog

logger = structlog.get_logger(__name__)


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class StackingPolicy(Enum):
    ADDITIVE = "additive"  # every applied coupon contributes
    BEST_SINGLE = "best_single"  # only the largest discount counts


COUPON_STACKING = StackingPolicy.ADDITIVE

DEFAULT_COUPONS = {
    "SAVE20": {"discount_amount": 100.0, "discount_type": DiscountType.FIXED.value},
    "DISCOUNT10": {"discount_amount": 10.0, "discount_type": DiscountType.PERCENTAGE.value},
    "FREESHIP": {"discount_amount": 50.0, "discount_type": DiscountType.FIXED.value},
}


def _field(coupon, name):
    if isinstance(coupon, dict):
        return coupon.get(name)
    return getattr(coupon, name, None)


class CouponEngine:
    def __init__(self, coupons: dict | None = None, stacking: StackingPolicy = COUPON_STACKING) -> None:
        self.coupons = DEFAULT_COUPONS if coupons is None else coupons
        self.stacking = stacking

    @staticmethod
    def normalize(code: str) -> str:
        return (code or "").strip().upper()

    def validate(self, code: str) -> dict | None:
        """Return ``{code, discount_amount, discount_type}`` or None for unknown codes."""
        normalized = self.normalize(code)
        rule = self.coupons.get(normalized)
        if rule is None:
            logger.info("Coupon rejected", coupon_code=normalized)
            return None
        return {
            "code": normalized,
            "discount_amount": float(rule["discount_amount"]),
            "discount_type": rule["discount_type"],
        }

    @staticmethod
    def discount_for(subtotal: float, coupon) -> float:
        """Discount a single coupon grants on ``subtotal``, before clamping."""
        amount = float(_field(coupon, "discount_amount") or 0.0)
        if _field(coupon, "discount_type") == DiscountType.PERCENTAGE.value:
            return subtotal * amount / 100
        return amount

    def compute_discount(self, subtotal: float, coupons) -> float:
        """Total discount for the applied coupons, clamped to ``[0, subtotal]``."""
        subtotal = max(float(subtotal or 0.0), 0.0)
        discounts = [self.discount_for(subtotal, c) for c in coupons or ()]
        if not discounts:
            return 0.0

        if self.stacking == StackingPolicy.BEST_SINGLE:
            total = max(discounts)
        else:
            total = sum(discounts)

        return min(max(total, 0.0), subtotal)
