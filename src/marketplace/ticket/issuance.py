"""Ticket issuance.

create_ticket() is shared by payment fulfillment and the IssueTicket command
(used to issue a ticket by hand during reconciliation). It runs inside the
caller's unit of work.
"""

from datetime import date

from protean import handle
from protean.fields import Date, Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.ticket.ticket import Ticket
from marketplace.vendor.vendor import Vendor


def create_ticket(
    user_id,
    transaction_id,
    vendor_id,
    product_item_id,
    unit_price: int,
    product_name=None,
    product_date=None,
    start_time=None,
) -> Ticket:
    """Issue one ACTIVE ticket, freezing the vendor's share at the current fee rate."""
    if isinstance(product_date, str):
        product_date = date.fromisoformat(product_date)

    vendor = current_domain.repository_for(Vendor).find(vendor_id)
    ticket = Ticket.issue(
        user_id=user_id,
        transaction_id=transaction_id,
        vendor_id=vendor_id,
        product_item_id=product_item_id,
        unit_price=unit_price,
        fee_rate=vendor.fee_rate,
        product_name=product_name,
        product_date=product_date,
        start_time=start_time,
    )
    current_domain.repository_for(Ticket).add(ticket)
    return ticket


@marketplace.command(part_of="Ticket")
class IssueTicket:
    user_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    product_item_id = Identifier(required=True)
    unit_price = Integer(required=True, min_value=0)
    product_name = String(max_length=255)
    product_date = Date()
    start_time = String(max_length=5)


@marketplace.command_handler(part_of=Ticket)
class IssueTicketHandler:
    @handle(IssueTicket)
    def issue_ticket(self, command):
        ticket = create_ticket(
            user_id=command.user_id,
            transaction_id=command.transaction_id,
            vendor_id=command.vendor_id,
            product_item_id=command.product_item_id,
            unit_price=command.unit_price,
            product_name=command.product_name,
            product_date=command.product_date,
            start_time=command.start_time,
        )
        return str(ticket.id)
