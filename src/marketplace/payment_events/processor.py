"""Gateway webhook processing — one entry point keyed by event type.

receive_gateway_event() verifies the signature, parses the delivery and
rejects malformed payloads with InvalidGatewayEvent. Everything after that
is acknowledged: the gateway delivers at least once and retries on errors,
so a handler failure is logged for follow-up instead of being re-thrown.

Event types (Stripe names):
- checkout.session.completed → issue tickets, confirm the transaction, drop the cart
- checkout.session.expired   → clear the cart's checkout flag
- payment_intent.payment_failed → clear the flag, fail the transaction
- charge.succeeded           → keep charge detail, send receipts
- transfer.created           → confirm the payout
- charge.dispute.created     → mark the transaction disputed
- charge.refunded            → logged only; refunds are recorded when issued
"""

import json

import structlog
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.cart.management import SetCheckoutStatus
from marketplace.errors import InvalidGatewayEvent
from marketplace.gateway import get_gateway
from marketplace.gateway.port import GatewayEvent
from marketplace.notifications.receipts import notify_sale
from marketplace.payment_events.fulfillment import CompleteCheckoutSession
from marketplace.payment_events.outcomes import RecordChargeCaptured, RecordDispute, RecordPaymentFailure
from marketplace.payout.trigger import ConfirmPayoutTransfer
from marketplace.transaction.transaction import Transaction
from marketplace.utils.logging import add_context, clear_context

logger = structlog.get_logger(__name__)

SESSION_COMPLETED = "checkout.session.completed"
SESSION_EXPIRED = "checkout.session.expired"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHARGE_SUCCEEDED = "charge.succeeded"
CHARGE_REFUNDED = "charge.refunded"
TRANSFER_CREATED = "transfer.created"
DISPUTE_CREATED = "charge.dispute.created"

_CHARGE_FIELDS = (
    "amount",
    "amount_captured",
    "amount_refunded",
    "billing_details",
    "captured",
    "created",
    "currency",
    "paid",
    "payment_intent",
    "payment_method",
    "receipt_email",
    "receipt_url",
)


def _metadata(obj: dict) -> dict:
    return obj.get("metadata") or {}


def _reference(value) -> str | None:
    """Gateway references arrive either as ids or as expanded objects."""
    if isinstance(value, dict):
        return value.get("id")
    return value


# ---------------------------------------------------------------------------
# Pre-dispatch validation
# ---------------------------------------------------------------------------
def validate_event(event: GatewayEvent) -> GatewayEvent:
    obj = event.data
    if event.type == SESSION_COMPLETED:
        if not obj.get("id"):
            raise InvalidGatewayEvent("Completed session has no id", event_id=event.id)
        if not _reference(obj.get("payment_intent")):
            raise InvalidGatewayEvent("Completed session has no payment reference", event_id=event.id)
    elif event.type in (CHARGE_SUCCEEDED, DISPUTE_CREATED) and not _reference(obj.get("payment_intent")):
        raise InvalidGatewayEvent(f"{event.type} has no payment reference", event_id=event.id)
    elif event.type == TRANSFER_CREATED and not obj.get("id"):
        raise InvalidGatewayEvent("Transfer has no id", event_id=event.id)
    return event


def receive_gateway_event(payload: bytes, signature: str) -> dict:
    """Verify, validate and process one webhook delivery."""
    event = validate_event(get_gateway().construct_event(payload, signature))
    add_context(event_id=event.id, event_type=event.type)
    try:
        return process_gateway_event(event)
    finally:
        clear_context()


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------
def _on_session_completed(event: GatewayEvent):
    session = event.data
    details = session.get("customer_details") or {}
    return current_domain.process(
        CompleteCheckoutSession(
            session_id=session["id"],
            payment_reference=_reference(session["payment_intent"]),
            receipt_email=details.get("email"),
            event_id=event.id or None,
        ),
        asynchronous=False,
    )


def _on_session_expired(event: GatewayEvent):
    customer_id = _metadata(event.data).get("customer_id")
    if not customer_id:
        transaction = current_domain.repository_for(Transaction).find_by_session(event.data.get("id"))
        customer_id = transaction.customer_id if transaction else None

    if not customer_id or current_domain.repository_for(Cart).find_by_user(customer_id) is None:
        logger.info("Expired session has no cart to release", session_id=event.data.get("id"))
        return None

    return current_domain.process(SetCheckoutStatus(user_id=str(customer_id), in_progress=False), asynchronous=False)


def _on_payment_failed(event: GatewayEvent):
    intent = event.data
    metadata = _metadata(intent)
    error = (intent.get("last_payment_error") or {}).get("message")
    return current_domain.process(
        RecordPaymentFailure(
            payment_reference=intent.get("id"),
            transaction_id=metadata.get("transaction_id"),
            customer_id=metadata.get("customer_id"),
            error=error,
        ),
        asynchronous=False,
    )


def _on_charge_succeeded(event: GatewayEvent):
    charge = event.data
    details = {"charge_id": charge.get("id")}
    details.update({key: charge.get(key) for key in _CHARGE_FIELDS})
    payment_reference = _reference(charge["payment_intent"])
    details["payment_intent"] = payment_reference

    transaction_id = current_domain.process(
        RecordChargeCaptured(
            payment_reference=payment_reference,
            transaction_id=_metadata(charge).get("transaction_id"),
            receipt_email=charge.get("receipt_email") or (charge.get("billing_details") or {}).get("email"),
            charge_details=json.dumps(details, default=str),
        ),
        asynchronous=False,
    )
    if transaction_id:
        try:
            notify_sale(current_domain.repository_for(Transaction).find(transaction_id))
        except Exception as exc:
            logger.error("Sale notifications failed", transaction_id=transaction_id, error=str(exc))
    return transaction_id


def _on_transfer_created(event: GatewayEvent):
    transfer = event.data
    return current_domain.process(
        ConfirmPayoutTransfer(
            transfer_id=transfer["id"],
            destination_payment=_reference(transfer.get("destination_payment")),
        ),
        asynchronous=False,
    )


def _on_dispute_created(event: GatewayEvent):
    dispute = event.data
    return current_domain.process(
        RecordDispute(
            payment_reference=_reference(dispute["payment_intent"]),
            dispute_id=dispute.get("id"),
            dispute_status=dispute.get("status"),
            dispute_amount=dispute.get("amount"),
        ),
        asynchronous=False,
    )


def _on_charge_refunded(event: GatewayEvent):
    charge = event.data
    logger.info(
        "Charge refunded at gateway",
        charge_id=charge.get("id"),
        payment_reference=_reference(charge.get("payment_intent")),
        amount_refunded=charge.get("amount_refunded"),
    )
    return None


_HANDLERS = {
    SESSION_COMPLETED: _on_session_completed,
    SESSION_EXPIRED: _on_session_expired,
    PAYMENT_FAILED: _on_payment_failed,
    CHARGE_SUCCEEDED: _on_charge_succeeded,
    CHARGE_REFUNDED: _on_charge_refunded,
    TRANSFER_CREATED: _on_transfer_created,
    DISPUTE_CREATED: _on_dispute_created,
}


def process_gateway_event(event: GatewayEvent) -> dict:
    """Apply one gateway event. Always acknowledges once dispatched."""
    handler = _HANDLERS.get(event.type)
    if handler is None:
        logger.info("Ignoring unhandled gateway event", event_id=event.id, event_type=event.type)
        return {"received": True, "handled": False}

    try:
        handler(event)
    except Exception as exc:
        logger.error(
            "Gateway event handler failed",
            event_id=event.id,
            event_type=event.type,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return {"received": True, "handled": False}

    logger.info("Gateway event processed", event_id=event.id, event_type=event.type)
    return {"received": True, "handled": True}
