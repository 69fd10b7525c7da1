"""Ticket aggregate — one redeemable entitlement for one purchased unit.

State Machine:
    ACTIVE → REDEEMED → CANCELLED / REVOKED
    ACTIVE → CANCELLED / REVOKED
    REDEEMED → REDEEMED is a no-op; CANCELLED and REVOKED are terminal.

``vendor_owed`` is the vendor's share frozen at issue time. ``vendor_credit``
is what the vendor ledger was actually credited at redemption (computed with
the fee rate in force then) and drops back to zero when a refund reverses it.
"""

from enum import Enum

from protean.fields import Boolean, Date, DateTime, Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition
from marketplace.ticket.events import TicketCancelled, TicketIssued, TicketRedeemed, TicketRevoked
from marketplace.utils.clock import utc_now
from marketplace.vendor.vendor import vendor_share


class TicketStatus(Enum):
    ACTIVE = "Active"
    REDEEMED = "Redeemed"
    CANCELLED = "Cancelled"
    REVOKED = "Revoked"


_VALID_TRANSITIONS = {
    TicketStatus.ACTIVE: {TicketStatus.REDEEMED, TicketStatus.CANCELLED, TicketStatus.REVOKED},
    TicketStatus.REDEEMED: {TicketStatus.CANCELLED, TicketStatus.REVOKED},
    TicketStatus.CANCELLED: set(),  # Terminal
    TicketStatus.REVOKED: set(),  # Terminal
}

TERMINAL_STATUSES = {TicketStatus.CANCELLED, TicketStatus.REVOKED}


@marketplace.aggregate
class Ticket:
    user_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    product_item_id = Identifier(required=True)
    product_name = String(max_length=255)
    unit_price = Integer(required=True, min_value=0)  # minor units
    product_date = Date()
    start_time = String(max_length=5)
    status = String(choices=TicketStatus, default=TicketStatus.ACTIVE.value)
    vendor_owed = Integer(default=0)
    vendor_credit = Integer(default=0)
    vendor_paid = Boolean(default=False)
    status_reason = String(max_length=500)
    status_updated_by = String(max_length=255)
    status_updated_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def issue(
        cls,
        user_id,
        transaction_id,
        vendor_id,
        product_item_id,
        unit_price: int,
        fee_rate: float,
        product_name=None,
        product_date=None,
        start_time=None,
    ):
        now = utc_now()
        ticket = cls(
            user_id=user_id,
            transaction_id=transaction_id,
            vendor_id=vendor_id,
            product_item_id=product_item_id,
            product_name=product_name,
            unit_price=unit_price,
            product_date=product_date,
            start_time=start_time,
            status=TicketStatus.ACTIVE.value,
            vendor_owed=vendor_share(unit_price, fee_rate),
            vendor_credit=0,
            vendor_paid=False,
            created_at=now,
            updated_at=now,
        )
        ticket.raise_(
            TicketIssued(
                ticket_id=str(ticket.id),
                user_id=str(user_id),
                transaction_id=str(transaction_id),
                vendor_id=str(vendor_id),
                product_item_id=str(product_item_id),
                unit_price=unit_price,
                vendor_owed=ticket.vendor_owed,
            )
        )
        return ticket

    @property
    def is_terminal(self) -> bool:
        return TicketStatus(self.status) in TERMINAL_STATUSES

    @property
    def holds_unpaid_credit(self) -> bool:
        """Redeemed, credited to the vendor and not yet paid out."""
        return TicketStatus(self.status) == TicketStatus.REDEEMED and not self.vendor_paid and (self.vendor_credit or 0) > 0

    def _stamp(self, reason, actor) -> None:
        now = utc_now()
        self.status_reason = reason
        self.status_updated_by = actor
        self.status_updated_at = now
        self.updated_at = now

    def change_status(self, new_status, reason=None, actor=None) -> bool:
        """Apply a status transition. Returns False when nothing changed."""
        target = TicketStatus(new_status)
        current = TicketStatus(self.status)

        if target == current == TicketStatus.REDEEMED:
            return False
        if target not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(
                f"Cannot move ticket from {current.value} to {target.value}",
                ticket_id=str(self.id),
            )

        self.status = target.value
        self._stamp(reason, actor)

        if target == TicketStatus.CANCELLED:
            self.raise_(
                TicketCancelled(
                    ticket_id=str(self.id),
                    previous_status=current.value,
                    reason=reason,
                    cancelled_by=actor,
                    cancelled_at=self.status_updated_at,
                )
            )
        elif target == TicketStatus.REVOKED:
            self.raise_(
                TicketRevoked(
                    ticket_id=str(self.id),
                    previous_status=current.value,
                    reason=reason,
                    revoked_by=actor,
                    revoked_at=self.status_updated_at,
                )
            )
        return True

    def redeem(self, vendor_credit: int, actor=None, reason=None) -> bool:
        """Mark the ticket used and record what the vendor was credited."""
        if not self.change_status(TicketStatus.REDEEMED, reason=reason, actor=actor):
            return False

        self.vendor_credit = vendor_credit
        self.raise_(
            TicketRedeemed(
                ticket_id=str(self.id),
                vendor_id=str(self.vendor_id),
                vendor_credit=vendor_credit,
                redeemed_by=actor,
                redeemed_at=self.status_updated_at,
            )
        )
        return True

    def reverse_vendor_credit(self) -> int:
        """Take back the unpaid credit, returning the amount to debit from the vendor."""
        if not self.holds_unpaid_credit:
            return 0
        amount = self.vendor_credit
        self.vendor_credit = 0
        self.updated_at = utc_now()
        return amount

    def mark_vendor_paid(self) -> None:
        self.vendor_paid = True
        self.updated_at = utc_now()
