"""Recording a pending payment transaction for a freshly opened session."""

import json

from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.transaction.transaction import Transaction


@marketplace.command(part_of="Transaction")
class OpenCheckoutTransaction:
    transaction_id = Identifier(required=True)
    user_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)
    amount = Integer(required=True, min_value=1)
    currency = String(required=True, max_length=3)
    line_items = Text(required=True)  # JSON


@marketplace.command_handler(part_of=Transaction)
class OpenCheckoutTransactionHandler:
    @handle(OpenCheckoutTransaction)
    def open_checkout_transaction(self, command):
        transaction = Transaction.open_payment(
            transaction_id=command.transaction_id,
            customer_id=command.user_id,
            session_id=command.session_id,
            amount=command.amount,
            currency=command.currency,
            line_items=json.loads(command.line_items),
        )
        current_domain.repository_for(Transaction).add(transaction)
        return str(transaction.id)
