"""Ticket status changes — the only place vendor earnings are created.

Redeeming a ticket and crediting the vendor's ledger happen in one unit of
work. Cancelling or revoking never touches the ledger; reversing a credit is
left to the refund flow.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.ticket.ticket import Ticket, TicketStatus
from marketplace.vendor.vendor import Vendor

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Ticket")
class UpdateTicketStatus:
    ticket_id = Identifier(required=True)
    status = String(required=True, choices=TicketStatus)
    reason = String(max_length=500)
    actor = String(max_length=255)


@marketplace.command(part_of="Ticket")
class MarkTicketVendorPaid:
    ticket_id = Identifier(required=True)


@marketplace.command_handler(part_of=Ticket)
class TicketStatusHandler:
    @handle(UpdateTicketStatus)
    def update_ticket_status(self, command):
        repo = current_domain.repository_for(Ticket)
        ticket = repo.find(command.ticket_id)
        target = TicketStatus(command.status)

        if target != TicketStatus.REDEEMED:
            if ticket.change_status(target, reason=command.reason, actor=command.actor):
                repo.add(ticket)
            return ticket.status

        vendor_repo = current_domain.repository_for(Vendor)
        credit = vendor_repo.find(ticket.vendor_id).share_of(ticket.unit_price)
        if not ticket.redeem(credit, actor=command.actor, reason=command.reason):
            return ticket.status

        vendor_repo.atomic_adjust_balance(ticket.vendor_id, credit, reason=f"ticket {ticket.id} redeemed")
        repo.add(ticket)

        logger.info(
            "Ticket redeemed",
            ticket_id=str(ticket.id),
            vendor_id=str(ticket.vendor_id),
            vendor_credit=credit,
        )
        return ticket.status

    @handle(MarkTicketVendorPaid)
    def mark_ticket_vendor_paid(self, command):
        repo = current_domain.repository_for(Ticket)
        ticket = repo.find(command.ticket_id)
        ticket.mark_vendor_paid()
        repo.add(ticket)
