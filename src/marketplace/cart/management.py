"""Cart management — checkout flag and deletion."""

from protean import handle
from protean.fields import Boolean, Identifier
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.domain import marketplace


@marketplace.command(part_of="Cart")
class SetCheckoutStatus:
    user_id = Identifier(required=True)
    in_progress = Boolean(required=True)


@marketplace.command(part_of="Cart")
class DeleteCart:
    """Remove a cart without releasing its units (they were sold)."""

    user_id = Identifier(required=True)


@marketplace.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(SetCheckoutStatus)
    def set_checkout_status(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get_for_user(command.user_id)
        cart.set_checkout_status(command.in_progress)
        repo.add(cart)

    @handle(DeleteCart)
    def delete_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.find_by_user(command.user_id)
        if cart is not None:
            repo.remove(cart)
