"""Vendor payouts — sending a vendor's earned balance to their connected account.

trigger_payout() checks the vendor can be paid, asks the gateway for the
transfer and only then records it: one unit of work creates the Payout,
drains the balance through the ledger primitive and marks the vendor's
redeemed tickets as paid. A rejected transfer changes nothing.
"""

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.config import get_settings
from marketplace.domain import marketplace
from marketplace.errors import PayoutNotAllowed
from marketplace.gateway import get_gateway
from marketplace.payout.payout import Payout
from marketplace.ticket.ticket import Ticket
from marketplace.utils.clock import utc_now
from marketplace.vendor.vendor import Vendor

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Payout")
class RecordPayout:
    vendor_id = Identifier(required=True)
    amount = Integer(required=True, min_value=1)
    currency = String(required=True, max_length=3)
    transfer_id = String(required=True, max_length=255)
    destination = String(required=True, max_length=255)
    transfer_group = String(max_length=255)
    source_type = String(max_length=50)


@marketplace.command(part_of="Payout")
class ConfirmPayoutTransfer:
    transfer_id = String(required=True, max_length=255)
    destination_payment = String(max_length=255)


@marketplace.command_handler(part_of=Payout)
class PayoutHandler:
    @handle(RecordPayout)
    def record_payout(self, command):
        payout = Payout.record_transfer(
            vendor_id=command.vendor_id,
            amount=command.amount,
            currency=command.currency,
            transfer_id=command.transfer_id,
            destination=command.destination,
            transfer_group=command.transfer_group,
            source_type=command.source_type,
        )
        current_domain.repository_for(Payout).add(payout)

        current_domain.repository_for(Vendor).atomic_adjust_balance(
            command.vendor_id,
            -command.amount,
            reason=f"payout {payout.id}",
        )

        ticket_repo = current_domain.repository_for(Ticket)
        for ticket in ticket_repo.find_pending_payment(command.vendor_id):
            ticket.mark_vendor_paid()
            ticket_repo.add(ticket)

        return str(payout.id)

    @handle(ConfirmPayoutTransfer)
    def confirm_payout_transfer(self, command):
        repo = current_domain.repository_for(Payout)
        payout = repo.find_by_transfer(command.transfer_id)
        if payout is None:
            logger.warning("Transfer for unknown payout", transfer_id=command.transfer_id)
            return None

        if payout.mark_succeeded(command.destination_payment):
            repo.add(payout)
        return str(payout.id)


def trigger_payout(vendor_id) -> dict:
    """Pay out the vendor's whole balance. Raises PayoutNotAllowed or ExternalGatewayError."""
    settings = get_settings()
    vendor = current_domain.repository_for(Vendor).find(vendor_id)

    if not vendor.connect_account_id:
        raise PayoutNotAllowed("Vendor has no connected payout account", vendor_id=str(vendor_id))
    if (vendor.balance or 0) <= 0:
        raise PayoutNotAllowed("Vendor has no balance to pay out", vendor_id=str(vendor_id), balance=vendor.balance)

    amount = vendor.balance
    transfer = get_gateway().create_transfer(
        amount=amount,
        currency=settings.currency,
        destination=vendor.connect_account_id,
        transfer_group=f"payout-{vendor_id}-{utc_now():%Y%m%d%H%M%S}",
        metadata={"vendor_id": str(vendor_id)},
    )

    payout_id = current_domain.process(
        RecordPayout(
            vendor_id=str(vendor_id),
            amount=amount,
            currency=settings.currency,
            transfer_id=transfer.transfer_id,
            destination=transfer.destination,
            transfer_group=transfer.transfer_group,
            source_type=transfer.source_type,
        ),
        asynchronous=False,
    )

    logger.info("Vendor payout sent", vendor_id=str(vendor_id), amount=amount, transfer_id=transfer.transfer_id)
    return {"payout_id": payout_id, "amount": amount, "transfer_id": transfer.transfer_id}
