"""Cart coupon management: commands and handler."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.cart.management import cart_for
from ordering.coupon.engine import CouponEngine
from ordering.domain import ordering


@ordering.command(part_of="ShoppingCart")
class ApplyCouponToCart:
    """Apply a coupon code to the owner's cart."""

    owner_id = Identifier(required=True)
    coupon_code = String(required=True, max_length=50)


@ordering.command(part_of="ShoppingCart")
class RemoveCouponFromCart:
    owner_id = Identifier(required=True)
    coupon_code = String(required=True, max_length=50)


@ordering.command_handler(part_of=ShoppingCart)
class CartCouponHandler:
    @handle(ApplyCouponToCart)
    def apply_coupon(self, command):
        coupon = CouponEngine().validate(command.coupon_code)
        if coupon is None:
            raise ValidationError({"coupon_code": ["Invalid coupon code"]})

        cart = cart_for(command.owner_id)
        cart.apply_coupon(
            code=coupon["code"],
            discount_amount=coupon["discount_amount"],
            discount_type=coupon["discount_type"],
        )
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)

    @handle(RemoveCouponFromCart)
    def remove_coupon(self, command):
        cart = cart_for(command.owner_id)
        cart.remove_coupon(CouponEngine.normalize(command.coupon_code))
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)
