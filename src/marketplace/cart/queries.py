"""Read side of the cart."""

from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart


def get_cart(user_id) -> dict:
    """The shopper's cart with totals. A shopper without a cart reads as empty."""
    cart = current_domain.repository_for(Cart).find_by_user(user_id)
    if cart is None:
        return {
            "cart_id": None,
            "user_id": str(user_id),
            "checkout_in_progress": False,
            "total": 0,
            "item_count": 0,
            "lines": [],
        }
    return cart.summary()
