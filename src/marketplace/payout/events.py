"""Domain events for the Payout aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Payout")
class PayoutInitiated:
    """Funds were sent to the vendor's connected account."""

    __version__ = 1

    payout_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    amount = Integer(required=True)
    transfer_id = String(required=True)


@marketplace.event(part_of="Payout")
class PayoutSucceeded:
    """The gateway confirmed the transfer."""

    __version__ = 1

    payout_id = Identifier(required=True)
    transfer_id = String(required=True)
    processed_at = DateTime(required=True)
