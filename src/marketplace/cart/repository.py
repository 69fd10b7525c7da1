"""Repository for the Cart aggregate."""

from datetime import datetime

from marketplace.cart.cart import Cart
from marketplace.domain import marketplace
from marketplace.errors import NotFoundError
from marketplace.utils.clock import as_utc


@marketplace.repository(part_of=Cart)
class CartRepository:
    def find_by_user(self, user_id) -> Cart | None:
        return self._dao.query.filter(user_id=str(user_id)).all().first

    def get_for_user(self, user_id) -> Cart:
        cart = self.find_by_user(user_id)
        if cart is None:
            raise NotFoundError(f"No cart for user {user_id}", user_id=str(user_id))
        return cart

    def find_idle(self, cutoff: datetime) -> list[Cart]:
        """Carts not checking out whose last change is at or before ``cutoff``."""
        carts = self._dao.query.filter(checkout_in_progress=False).all().items
        return [cart for cart in carts if cart.updated_at and as_utc(cart.updated_at) <= as_utc(cutoff)]

    def find_stuck_in_checkout(self, cutoff: datetime) -> list[Cart]:
        carts = self._dao.query.filter(checkout_in_progress=True).all().items
        return [cart for cart in carts if cart.updated_at and as_utc(cart.updated_at) <= as_utc(cutoff)]

    def remove(self, cart: Cart) -> None:
        """Delete the cart and its lines. Reserved units are not touched."""
        for line in list(cart.lines or []):
            cart.remove_lines(line)
        self.add(cart)
        self._dao.delete(cart)
