"""Cart item management — reserve, release and clear.

Each handler runs in one unit of work covering the cart and every inventory
unit it touches. Inventory is adjusted through the compare-and-adjust
primitive before the cart is saved, so a rejected reservation leaves both
untouched.
"""

import structlog
from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.domain import marketplace
from marketplace.errors import NotFoundError
from marketplace.inventory.unit import InventoryStatus, InventoryUnit

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Cart")
class AddCartItem:
    user_id = Identifier(required=True)
    product_item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@marketplace.command(part_of="Cart")
class RemoveCartItem:
    user_id = Identifier(required=True)
    product_item_id = Identifier(required=True)


@marketplace.command(part_of="Cart")
class ClearCart:
    user_id = Identifier(required=True)


def release_units(product_item_id, quantity: int, **context) -> None:
    """Give reserved units back to inventory. A unit that no longer exists is skipped."""
    try:
        current_domain.repository_for(InventoryUnit).atomic_adjust_quantity(product_item_id, quantity)
    except NotFoundError:
        logger.warning(
            "Inventory unit missing while releasing reservation",
            product_item_id=str(product_item_id),
            quantity=quantity,
            **context,
        )


@marketplace.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddCartItem)
    def add_cart_item(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.find_by_user(command.user_id) or Cart.create(user_id=command.user_id)

        unit = current_domain.repository_for(InventoryUnit).atomic_adjust_quantity(
            command.product_item_id,
            -command.quantity,
            required_status=InventoryStatus.PUBLISHED,
            required_minimum=command.quantity,
        )
        cart.add_line(unit, command.quantity)
        repo.add(cart)

        logger.info(
            "Reserved units into cart",
            user_id=str(command.user_id),
            product_item_id=str(command.product_item_id),
            quantity=command.quantity,
            remaining=unit.available_quantity,
        )
        return str(cart.id)

    @handle(RemoveCartItem)
    def remove_cart_item(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get_for_user(command.user_id)

        line = cart.remove_line(command.product_item_id)
        release_units(line.product_item_id, line.quantity, cart_id=str(cart.id))
        repo.add(cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.find_by_user(command.user_id)
        if cart is None:
            return 0

        released = cart.clear()
        for product_item_id, quantity in released:
            release_units(product_item_id, quantity, cart_id=str(cart.id))
        repo.add(cart)
        return sum(quantity for _, quantity in released)
