"""Repository for the Ticket aggregate."""

from protean.exceptions import ObjectNotFoundError

from marketplace.domain import marketplace
from marketplace.errors import NotFoundError
from marketplace.ticket.ticket import Ticket, TicketStatus


@marketplace.repository(part_of=Ticket)
class TicketRepository:
    def find(self, ticket_id) -> Ticket:
        try:
            return self.get(ticket_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError(f"Ticket {ticket_id} not found", ticket_id=str(ticket_id)) from exc

    def find_by_transaction(self, transaction_id) -> list[Ticket]:
        return self._dao.query.filter(transaction_id=str(transaction_id)).all().items

    def find_by_user(self, user_id) -> list[Ticket]:
        return self._dao.query.filter(user_id=str(user_id)).all().items

    def find_pending_payment(self, vendor_id) -> list[Ticket]:
        """Redeemed tickets whose vendor share has not been paid out yet."""
        return (
            self._dao.query.filter(
                vendor_id=str(vendor_id),
                status=TicketStatus.REDEEMED.value,
                vendor_paid=False,
            )
            .all()
            .items
        )
