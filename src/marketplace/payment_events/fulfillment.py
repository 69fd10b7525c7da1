"""Checkout fulfillment — turning a completed payment session into tickets.

Keyed on the session id. The transaction's ``fulfilled_at`` stamp makes the
handler safe to replay: a second delivery of the same completion finds the
transaction fulfilled and changes nothing.

Lines whose inventory unit no longer exists are skipped and logged at error
level with the transaction id. The customer has paid for them, so they need
manual reconciliation (refund or hand-issued ticket).

A charge event can confirm the payment before the completion arrives, so the
transaction may already be refunded or disputed by then. Such a completion
is stamped fulfilled without issuing tickets and logged at error level; the
cart stays for the sweep to release its units.
"""

import structlog
from protean import handle
from protean.fields import String
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.domain import marketplace
from marketplace.errors import NotFoundError
from marketplace.inventory.unit import InventoryUnit
from marketplace.ticket.issuance import create_ticket
from marketplace.transaction.transaction import Transaction
from marketplace.vendor.vendor import Vendor

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Transaction")
class CompleteCheckoutSession:
    session_id = String(required=True, max_length=255)
    payment_reference = String(required=True, max_length=255)
    receipt_email = String(max_length=254)
    event_id = String(max_length=255)


@marketplace.command_handler(part_of=Transaction)
class CompleteCheckoutSessionHandler:
    @handle(CompleteCheckoutSession)
    def complete_checkout_session(self, command):
        repo = current_domain.repository_for(Transaction)
        transaction = repo.find_by_session(command.session_id)
        if transaction is None:
            raise NotFoundError(
                f"No transaction for session {command.session_id}",
                session_id=command.session_id,
            )

        if transaction.is_fulfilled:
            logger.info(
                "Checkout session already fulfilled",
                transaction_id=str(transaction.id),
                session_id=command.session_id,
                event_id=command.event_id,
            )
            return []

        if transaction.has_reversal:
            logger.error(
                "Checkout session completed after a refund or dispute; no tickets issued",
                transaction_id=str(transaction.id),
                session_id=command.session_id,
                status=transaction.status,
                refunded_total=transaction.refunded_total,
                event_id=command.event_id,
            )
            transaction.mark_fulfilled()
            repo.add(transaction)
            return []

        lines = self._resolvable_lines(transaction)

        # Every vendor must exist before anything is written
        vendor_repo = current_domain.repository_for(Vendor)
        for vendor_id in {line["vendor_id"] for line in lines}:
            vendor_repo.find(vendor_id)

        transaction.confirm_payment(command.payment_reference, receipt_email=command.receipt_email)

        ticket_ids = []
        for line in lines:
            for _ in range(line["quantity"]):
                ticket = create_ticket(
                    user_id=transaction.customer_id,
                    transaction_id=str(transaction.id),
                    vendor_id=line["vendor_id"],
                    product_item_id=line["product_item_id"],
                    unit_price=line["unit_price"],
                    product_name=line.get("name"),
                    product_date=line.get("product_date"),
                    start_time=line.get("start_time"),
                )
                ticket_ids.append(str(ticket.id))

        transaction.mark_fulfilled()
        repo.add(transaction)

        # The sale consumes the reservation, so the cart goes without releasing units
        cart_repo = current_domain.repository_for(Cart)
        cart = cart_repo.find_by_user(transaction.customer_id)
        if cart is not None:
            cart_repo.remove(cart)

        logger.info(
            "Checkout session fulfilled",
            transaction_id=str(transaction.id),
            session_id=command.session_id,
            tickets=len(ticket_ids),
        )
        return ticket_ids

    @staticmethod
    def _resolvable_lines(transaction) -> list[dict]:
        unit_repo = current_domain.repository_for(InventoryUnit)
        lines = []
        for line in transaction.line_snapshot:
            try:
                unit_repo.find_by_id_with_status(line["product_item_id"])
            except NotFoundError:
                logger.error(
                    "Inventory unit missing during fulfillment; no ticket issued",
                    transaction_id=str(transaction.id),
                    product_item_id=line["product_item_id"],
                    quantity=line["quantity"],
                )
                continue
            lines.append(line)
        return lines
