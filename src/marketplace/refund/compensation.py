"""Local side of a refund: ledger reversal and status changes.

These commands run before the gateway is asked to move any money, and each
one validates everything first so a conflict leaves storage untouched. A
ticket refund reserves its amount on the transaction in the same unit of
work, so a full refund started meanwhile only sends what is left. The
Record* commands close the loop once the gateway has accepted the refund.
"""

from collections import defaultdict

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition
from marketplace.ticket.ticket import Ticket, TicketStatus
from marketplace.transaction.transaction import Transaction
from marketplace.vendor.vendor import Vendor

REFUND_ACTOR = "refund"


@marketplace.command(part_of="Ticket")
class CompensateTicketRefund:
    ticket_id = Identifier(required=True)
    reason = String(max_length=500)


@marketplace.command(part_of="Transaction")
class CompensateTransactionRefund:
    transaction_id = Identifier(required=True)
    reason = String(max_length=500)


@marketplace.command(part_of="Transaction")
class RecordTicketRefund:
    transaction_id = Identifier(required=True)
    ticket_id = Identifier(required=True)
    refund_id = String(required=True, max_length=255)
    amount = Integer(required=True, min_value=0)
    reason = String(max_length=500)


@marketplace.command(part_of="Transaction")
class RecordTransactionRefund:
    transaction_id = Identifier(required=True)
    refund_id = String(required=True, max_length=255)


@marketplace.command_handler(part_of=Ticket)
class TicketRefundHandler:
    @handle(CompensateTicketRefund)
    def compensate_ticket_refund(self, command):
        ticket_repo = current_domain.repository_for(Ticket)
        ticket = ticket_repo.find(command.ticket_id)
        transaction = current_domain.repository_for(Transaction).resolve(ticket.transaction_id)

        if ticket.is_terminal:
            raise InvalidTransition(f"Ticket is already {ticket.status}", ticket_id=str(ticket.id))
        transaction.assert_refundable(ticket.unit_price)

        vendor_reversal = ticket.reverse_vendor_credit()
        if vendor_reversal:
            current_domain.repository_for(Vendor).atomic_adjust_balance(
                ticket.vendor_id,
                -vendor_reversal,
                reason=f"ticket {ticket.id} refunded",
            )

        ticket.change_status(TicketStatus.CANCELLED, reason=command.reason, actor=REFUND_ACTOR)
        ticket_repo.add(ticket)

        # Counted against the transaction before any money moves
        transaction.reserve_partial_refund(ticket.id, ticket.unit_price, reason=command.reason)
        current_domain.repository_for(Transaction).add(transaction)

        return {
            "ticket_id": str(ticket.id),
            "transaction_id": str(transaction.id),
            "payment_reference": transaction.payment_reference,
            "amount": ticket.unit_price,
            "vendor_reversal": vendor_reversal,
        }


@marketplace.command_handler(part_of=Transaction)
class TransactionRefundHandler:
    @handle(CompensateTransactionRefund)
    def compensate_transaction_refund(self, command):
        repo = current_domain.repository_for(Transaction)
        transaction = repo.find(command.transaction_id)
        transaction.assert_refundable()

        ticket_repo = current_domain.repository_for(Ticket)
        tickets = [ticket for ticket in ticket_repo.find_by_transaction(transaction.id) if not ticket.is_terminal]

        # One ledger adjustment per vendor; every vendor must exist before anything changes
        reversals = defaultdict(int)
        for ticket in tickets:
            if ticket.holds_unpaid_credit:
                reversals[str(ticket.vendor_id)] += ticket.vendor_credit
        vendor_repo = current_domain.repository_for(Vendor)
        for vendor_id in reversals:
            vendor_repo.find(vendor_id)

        for ticket in tickets:
            ticket.reverse_vendor_credit()
            ticket.change_status(TicketStatus.CANCELLED, reason=command.reason, actor=REFUND_ACTOR)
            ticket_repo.add(ticket)
        for vendor_id, amount in reversals.items():
            vendor_repo.atomic_adjust_balance(vendor_id, -amount, reason=f"transaction {transaction.id} refunded")

        remaining = transaction.begin_full_refund()
        repo.add(transaction)

        return {
            "transaction_id": str(transaction.id),
            "payment_reference": transaction.payment_reference,
            "amount": remaining,
            "cancelled_tickets": [str(ticket.id) for ticket in tickets],
            "vendor_reversals": dict(reversals),
        }

    @handle(RecordTicketRefund)
    def record_ticket_refund(self, command):
        repo = current_domain.repository_for(Transaction)
        transaction = repo.find(command.transaction_id)
        transaction.record_partial_refund(
            ticket_id=command.ticket_id,
            refund_id=command.refund_id,
            amount=command.amount,
            reason=command.reason,
        )
        repo.add(transaction)

    @handle(RecordTransactionRefund)
    def record_transaction_refund(self, command):
        repo = current_domain.repository_for(Transaction)
        transaction = repo.find(command.transaction_id)
        transaction.record_full_refund(command.refund_id)
        repo.add(transaction)
