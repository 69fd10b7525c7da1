"""Domain events for the Ticket aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Ticket")
class TicketIssued:
    """One entitlement was issued for a purchased unit."""

    __version__ = 1

    ticket_id = Identifier(required=True)
    user_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    product_item_id = Identifier(required=True)
    unit_price = Integer(required=True)
    vendor_owed = Integer(required=True)


@marketplace.event(part_of="Ticket")
class TicketRedeemed:
    """The ticket was used; the vendor earned ``vendor_credit``."""

    __version__ = 1

    ticket_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    vendor_credit = Integer(required=True)
    redeemed_by = String()
    redeemed_at = DateTime(required=True)


@marketplace.event(part_of="Ticket")
class TicketCancelled:
    __version__ = 1

    ticket_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String()
    cancelled_by = String()
    cancelled_at = DateTime(required=True)


@marketplace.event(part_of="Ticket")
class TicketRevoked:
    __version__ = 1

    ticket_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String()
    revoked_by = String()
    revoked_at = DateTime(required=True)
