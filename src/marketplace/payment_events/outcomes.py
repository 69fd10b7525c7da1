"""Payment outcomes reported by the gateway after the session closes.

Each command is keyed on an identifier the gateway repeats on every delivery
(payment reference, transaction id carried in metadata, dispute id), so
replays land on the same record and leave it as it was.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from marketplace.cart.cart import Cart
from marketplace.domain import marketplace
from marketplace.errors import NotFoundError
from marketplace.transaction.transaction import Transaction, TransactionStatus

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Transaction")
class RecordPaymentFailure:
    payment_reference = String(max_length=255)
    transaction_id = Identifier()
    customer_id = Identifier()
    error = String(max_length=1000)


@marketplace.command(part_of="Transaction")
class RecordChargeCaptured:
    payment_reference = String(required=True, max_length=255)
    transaction_id = Identifier()
    receipt_email = String(max_length=254)
    charge_details = Text(required=True)  # JSON


@marketplace.command(part_of="Transaction")
class RecordDispute:
    payment_reference = String(required=True, max_length=255)
    dispute_id = String(required=True, max_length=255)
    dispute_status = String(max_length=50)
    dispute_amount = Integer()


def _locate(payment_reference=None, transaction_id=None) -> Transaction | None:
    repo = current_domain.repository_for(Transaction)
    transaction = repo.find_by_payment_reference(payment_reference)
    if transaction is None and transaction_id:
        try:
            transaction = repo.find(transaction_id)
        except NotFoundError:
            return None
    return transaction


def _clear_checkout_flag(customer_id) -> None:
    if not customer_id:
        return
    repo = current_domain.repository_for(Cart)
    cart = repo.find_by_user(customer_id)
    if cart is not None and cart.checkout_in_progress:
        cart.set_checkout_status(False)
        repo.add(cart)


@marketplace.command_handler(part_of=Transaction)
class PaymentOutcomeHandler:
    @handle(RecordPaymentFailure)
    def record_payment_failure(self, command):
        transaction = _locate(command.payment_reference, command.transaction_id)
        _clear_checkout_flag(command.customer_id or (transaction.customer_id if transaction else None))

        if transaction is None:
            logger.warning(
                "Payment failure for unknown transaction",
                payment_reference=command.payment_reference,
                transaction_id=command.transaction_id,
            )
            return None

        if TransactionStatus(transaction.status) not in (TransactionStatus.PENDING, TransactionStatus.PROCESSING):
            # A duplicate, or a stale failure from an attempt that was later retried successfully
            logger.info(
                "Ignoring payment failure",
                transaction_id=str(transaction.id),
                status=transaction.status,
            )
            return None

        transaction.mark_failed(command.error)
        current_domain.repository_for(Transaction).add(transaction)
        logger.warning("Payment failed", transaction_id=str(transaction.id), error=transaction.error)
        return str(transaction.id)

    @handle(RecordChargeCaptured)
    def record_charge_captured(self, command):
        transaction = _locate(command.payment_reference, command.transaction_id)
        if transaction is None:
            logger.warning("Charge for unknown transaction", payment_reference=command.payment_reference)
            return None

        first_capture = not transaction.checkout_data
        transaction.attach_charge(
            json.loads(command.charge_details),
            command.payment_reference,
            receipt_email=command.receipt_email,
        )
        current_domain.repository_for(Transaction).add(transaction)
        return str(transaction.id) if first_capture else None

    @handle(RecordDispute)
    def record_dispute(self, command):
        transaction = _locate(command.payment_reference)
        if transaction is None:
            logger.warning("Dispute for unknown transaction", payment_reference=command.payment_reference)
            return None

        transaction.open_dispute(command.dispute_id, command.dispute_status, command.dispute_amount)
        current_domain.repository_for(Transaction).add(transaction)
        logger.warning(
            "Transaction disputed",
            transaction_id=str(transaction.id),
            dispute_id=command.dispute_id,
            dispute_amount=command.dispute_amount,
        )
        return str(transaction.id)
