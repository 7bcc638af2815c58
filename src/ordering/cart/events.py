"""Domain events for the ShoppingCart aggregate."""

from protean.fields import Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="ShoppingCart")
class CartItemAdded:
    """A product was added to the cart, or merged into an existing line."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    size = String()
    color = String()
    quantity = Integer(required=True)
    unit_price = Float(required=True)


@ordering.event(part_of="ShoppingCart")
class CartQuantityUpdated:
    """The quantity of a cart line was changed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartItemRemoved:
    """A line was removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@ordering.event(part_of="ShoppingCart")
class CartCouponApplied:
    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)
    discount_amount = Float(required=True)
    discount_type = String(required=True)


@ordering.event(part_of="ShoppingCart")
class CartCouponRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)


@ordering.event(part_of="ShoppingCart")
class CartShippingAddressSaved:
    __version__ = 1

    cart_id = Identifier(required=True)
    city = String()


@ordering.event(part_of="ShoppingCart")
class CartCleared:
    """Items and coupons were emptied, usually after a successful checkout."""

    __version__ = 1

    cart_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    items_cleared = Integer(required=True)
