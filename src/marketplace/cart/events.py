"""Domain events for the Cart aggregate."""

from protean.fields import Boolean, Identifier, Integer

from marketplace.domain import marketplace


@marketplace.event(part_of="Cart")
class CartLineAdded:
    """Units were reserved into the cart (new line or merged quantity)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    product_item_id = Identifier(required=True)
    quantity = Integer(required=True)
    line_quantity = Integer(required=True)


@marketplace.event(part_of="Cart")
class CartLineRemoved:
    """A line was removed and its units returned to inventory."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    product_item_id = Identifier(required=True)
    quantity = Integer(required=True)


@marketplace.event(part_of="Cart")
class CartCleared:
    """Every line was removed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    released_units = Integer(required=True)


@marketplace.event(part_of="Cart")
class CartCheckoutStatusChanged:
    """The cart entered or left checkout."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    checkout_in_progress = Boolean(required=True)
