"""Payout aggregate — one transfer of a vendor's earned balance.

State Machine:
    PENDING → PROCESSING → SUCCEEDED / FAILED

A payout is recorded PROCESSING once the gateway accepted the transfer and
moves to SUCCEEDED when the transfer-created event arrives.
"""

from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.payout.events import PayoutInitiated, PayoutSucceeded
from marketplace.utils.clock import utc_now


class PayoutStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


@marketplace.aggregate
class Payout:
    vendor_id = Identifier(required=True)
    amount = Integer(required=True, min_value=1)  # minor units
    currency = String(max_length=3, default="usd")
    status = String(choices=PayoutStatus, default=PayoutStatus.PENDING.value)
    transfer_id = String(max_length=255)
    destination = String(max_length=255)
    transfer_group = String(max_length=255)
    source_type = String(max_length=50)
    destination_payment = String(max_length=255)
    processed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def record_transfer(cls, vendor_id, amount, currency, transfer_id, destination, transfer_group=None, source_type=None):
        now = utc_now()
        payout = cls(
            vendor_id=vendor_id,
            amount=amount,
            currency=currency,
            status=PayoutStatus.PROCESSING.value,
            transfer_id=transfer_id,
            destination=destination,
            transfer_group=transfer_group,
            source_type=source_type,
            created_at=now,
            updated_at=now,
        )
        payout.raise_(
            PayoutInitiated(
                payout_id=str(payout.id),
                vendor_id=str(vendor_id),
                amount=amount,
                transfer_id=transfer_id,
            )
        )
        return payout

    def mark_succeeded(self, destination_payment=None) -> bool:
        if PayoutStatus(self.status) == PayoutStatus.SUCCEEDED:
            return False
        if PayoutStatus(self.status) != PayoutStatus.PROCESSING:
            raise ValidationError({"status": [f"Cannot complete a payout in {self.status} status"]})

        now = utc_now()
        self.status = PayoutStatus.SUCCEEDED.value
        self.destination_payment = destination_payment
        self.processed_at = now
        self.updated_at = now
        self.raise_(PayoutSucceeded(payout_id=str(self.id), transfer_id=self.transfer_id, processed_at=now))
        return True


@marketplace.repository(part_of=Payout)
class PayoutRepository:
    def find_by_transfer(self, transfer_id) -> Payout | None:
        return self._dao.query.filter(transfer_id=str(transfer_id)).all().first

    def find_by_vendor(self, vendor_id) -> list[Payout]:
        return self._dao.query.filter(vendor_id=str(vendor_id)).all().items
