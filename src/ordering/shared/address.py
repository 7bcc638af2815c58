"""ShippingAddress value object shared by carts and orders."""

from protean.fields import String

from ordering.domain import ordering


@ordering.value_object
class ShippingAddress:
    """Where an order is delivered.

    Cached on the cart for convenience and copied onto the order at checkout,
    after which it never changes.
    """

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    zip_code = String(required=True, max_length=20)
    country = String(max_length=100, default="India")
    phone = String(required=True, max_length=20)
