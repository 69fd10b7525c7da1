"""Checkout orchestration — turning a reserved cart into a payment session.

create_session() flags the cart as checking out (which exempts it from the
idle sweep), opens a session with the payment gateway and records a PENDING
transaction for it. If anything goes wrong after the flag is set, the flag is
cleared again and CheckoutCreationFailed is raised. Reserved units stay in the
cart so the shopper can retry.
"""

import json
from uuid import uuid4

import structlog
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.cart.management import SetCheckoutStatus
from marketplace.checkout.metadata import compact_lines, snapshot_lines
from marketplace.checkout.session import OpenCheckoutTransaction
from marketplace.config import get_settings
from marketplace.errors import CheckoutCreationFailed
from marketplace.gateway import get_gateway

logger = structlog.get_logger(__name__)


def default_return_url() -> str:
    return f"{get_settings().frontend_url}/checkout/return?session_id={{CHECKOUT_SESSION_ID}}"


def create_session(user_id, return_url: str | None = None) -> dict:
    """Open a payment session for the shopper's cart.

    Returns ``client_secret``, ``session_id`` and ``transaction_id``.
    Raises NotFoundError without a cart and CheckoutCreationFailed otherwise.
    """
    settings = get_settings()
    cart = current_domain.repository_for(Cart).get_for_user(user_id)
    if cart.is_empty:
        raise CheckoutCreationFailed("Cannot check out an empty cart", user_id=str(user_id))

    current_domain.process(SetCheckoutStatus(user_id=str(user_id), in_progress=True), asynchronous=False)

    transaction_id = str(uuid4())
    try:
        total = cart.total
        if total <= 0:
            raise CheckoutCreationFailed("Cart total must be greater than zero", user_id=str(user_id))

        snapshot = snapshot_lines(cart.lines)
        metadata = {
            "customer_id": str(user_id),
            "transaction_id": transaction_id,
            "items": compact_lines(snapshot),
        }
        session = get_gateway().create_checkout_session(
            line_items=snapshot,
            metadata=metadata,
            return_url=return_url or default_return_url(),
            currency=settings.currency,
            idempotency_key=f"checkout-{transaction_id}",
        )
        current_domain.process(
            OpenCheckoutTransaction(
                transaction_id=transaction_id,
                user_id=str(user_id),
                session_id=session.session_id,
                amount=total,
                currency=settings.currency,
                line_items=json.dumps(snapshot),
            ),
            asynchronous=False,
        )
    except Exception as exc:
        # Any failure past this point leaves the cart as it was before checkout
        _abandon_checkout(user_id, exc)
        if isinstance(exc, CheckoutCreationFailed):
            raise
        raise CheckoutCreationFailed(
            "Could not create checkout session",
            user_id=str(user_id),
            cause=str(exc),
        ) from exc

    logger.info(
        "Checkout session created",
        user_id=str(user_id),
        transaction_id=transaction_id,
        session_id=session.session_id,
        amount=total,
    )
    return {
        "client_secret": session.client_secret,
        "session_id": session.session_id,
        "transaction_id": transaction_id,
    }


def _abandon_checkout(user_id, exc: Exception) -> None:
    logger.error("Checkout session creation failed", user_id=str(user_id), error=str(exc))
    current_domain.process(SetCheckoutStatus(user_id=str(user_id), in_progress=False), asynchronous=False)


def get_session_status(session_id: str) -> dict:
    """Read-only pass-through to the gateway's view of a session."""
    status = get_gateway().retrieve_session(session_id)
    return {"status": status.status, "customer_email": status.customer_email}
