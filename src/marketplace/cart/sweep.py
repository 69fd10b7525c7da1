"""Idle-cart sweep — command and handlers for reclaiming abandoned reservations.

Designed to be triggered periodically (every few minutes) by an external
scheduler through ``manage.py sweep-carts`` or the maintenance endpoint.

- Carts untouched for ``idle_minutes`` and not checking out are deleted and
  their units returned to inventory.
- Carts stuck checking out for ``stuck_minutes`` get the flag cleared and
  their idle timer restarted. Their units stay reserved; the next idle pass
  reclaims them if the shopper does not come back.

Each cart is handled by its own command, so a failure on one cart is logged
and the sweep carries on.
"""

from datetime import timedelta

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Identifier, Integer
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.cart.items import release_units
from marketplace.config import get_settings
from marketplace.domain import marketplace
from marketplace.errors import MarketplaceError
from marketplace.utils.clock import as_utc, utc_now

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Cart")
class SweepCarts:
    """Expire idle carts and unstick abandoned checkouts."""

    idle_minutes = Integer(min_value=1)
    stuck_minutes = Integer(min_value=1)
    as_of = DateTime()  # Optional: defaults to now


@marketplace.command(part_of="Cart")
class ExpireIdleCart:
    cart_id = Identifier(required=True)
    idle_before = DateTime(required=True)


@marketplace.command(part_of="Cart")
class ReleaseStuckCheckout:
    cart_id = Identifier(required=True)
    stuck_before = DateTime(required=True)


def _load(cart_id) -> Cart | None:
    return current_domain.repository_for(Cart)._dao.query.filter(id=str(cart_id)).all().first


@marketplace.command_handler(part_of=Cart)
class SweepCartsHandler:
    @handle(SweepCarts)
    def sweep_carts(self, command):
        settings = get_settings()
        as_of = as_utc(command.as_of) or utc_now()
        idle_cutoff = as_of - timedelta(minutes=command.idle_minutes or settings.cart_idle_minutes)
        stuck_cutoff = as_of - timedelta(minutes=command.stuck_minutes or settings.stuck_checkout_minutes)

        repo = current_domain.repository_for(Cart)
        idle_carts = repo.find_idle(idle_cutoff)
        stuck_carts = repo.find_stuck_in_checkout(stuck_cutoff)

        logger.info(
            "Sweeping carts",
            idle_cutoff=idle_cutoff.isoformat(),
            stuck_cutoff=stuck_cutoff.isoformat(),
            idle=len(idle_carts),
            stuck=len(stuck_carts),
        )

        expired = self._dispatch(
            [ExpireIdleCart(cart_id=str(cart.id), idle_before=idle_cutoff) for cart in idle_carts],
            "Failed to expire idle cart",
        )
        released = self._dispatch(
            [ReleaseStuckCheckout(cart_id=str(cart.id), stuck_before=stuck_cutoff) for cart in stuck_carts],
            "Failed to release stuck checkout",
        )

        logger.info("Cart sweep complete", expired=expired, released=released)
        return {"expired": expired, "released": released}

    @staticmethod
    def _dispatch(commands, failure_message) -> int:
        processed = 0
        for command in commands:
            try:
                if current_domain.process(command, asynchronous=False):
                    processed += 1
            except (ValidationError, InvalidOperationError, MarketplaceError) as exc:
                logger.warning(failure_message, cart_id=str(command.cart_id), error=str(exc))
        return processed


@marketplace.command_handler(part_of=Cart)
class ExpireCartHandler:
    @handle(ExpireIdleCart)
    def expire_idle_cart(self, command):
        cart = _load(command.cart_id)
        # The shopper may have touched the cart or started checkout since the scan
        if cart is None or cart.checkout_in_progress or as_utc(cart.updated_at) > as_utc(command.idle_before):
            return False

        released = cart.clear()
        for product_item_id, quantity in released:
            release_units(product_item_id, quantity, cart_id=str(cart.id))
        current_domain.repository_for(Cart).remove(cart)

        logger.info(
            "Expired idle cart",
            cart_id=str(cart.id),
            user_id=str(cart.user_id),
            released_units=sum(quantity for _, quantity in released),
        )
        return True

    @handle(ReleaseStuckCheckout)
    def release_stuck_checkout(self, command):
        cart = _load(command.cart_id)
        if cart is None or not cart.checkout_in_progress or as_utc(cart.updated_at) > as_utc(command.stuck_before):
            return False

        # Units stay reserved until an idle pass reclaims the cart
        cart.set_checkout_status(False)
        current_domain.repository_for(Cart).add(cart)

        logger.warning(
            "Cleared stuck checkout flag",
            cart_id=str(cart.id),
            user_id=str(cart.user_id),
            reserved_units=cart.item_count,
        )
        return True
