"""Transaction aggregate — one checkout attempt and its payment lifecycle.

State Machine:
    PENDING → PROCESSING → SUCCEEDED → PARTIALLY_REFUNDED → REFUNDED
    PENDING → SUCCEEDED / FAILED
    FAILED → SUCCEEDED (a later attempt on the same session went through)
    SUCCEEDED / PARTIALLY_REFUNDED / REFUNDED → DISPUTED

Created PENDING when a checkout session opens and advanced only by gateway
events and refunds. ``fulfilled_at`` marks that tickets were issued, which
keeps replays of the completion event from issuing them twice. The sum of
partial refunds (reserved before the gateway is called) plus the final refund
never exceeds ``amount``.
"""

import json
from enum import Enum

from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text

from marketplace.domain import marketplace
from marketplace.errors import AlreadyFullyRefunded, InvalidTransition, PaymentNotConfirmed
from marketplace.transaction.events import (
    CheckoutSessionOpened,
    PaymentConfirmed,
    PaymentFailed,
    TransactionDisputed,
    TransactionPartiallyRefunded,
    TransactionRefunded,
)
from marketplace.utils.clock import utc_now


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class TransactionStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    REFUNDED = "Refunded"
    PARTIALLY_REFUNDED = "Partially_Refunded"
    DISPUTED = "Disputed"


class TransactionType(Enum):
    PAYMENT = "Payment"
    REFUND = "Refund"
    PAYOUT = "Payout"


_VALID_TRANSITIONS = {
    TransactionStatus.PENDING: {
        TransactionStatus.PROCESSING,
        TransactionStatus.SUCCEEDED,
        TransactionStatus.FAILED,
    },
    TransactionStatus.PROCESSING: {TransactionStatus.SUCCEEDED, TransactionStatus.FAILED},
    TransactionStatus.FAILED: {TransactionStatus.SUCCEEDED},
    TransactionStatus.SUCCEEDED: {
        TransactionStatus.PARTIALLY_REFUNDED,
        TransactionStatus.REFUNDED,
        TransactionStatus.DISPUTED,
    },
    TransactionStatus.PARTIALLY_REFUNDED: {
        TransactionStatus.PARTIALLY_REFUNDED,
        TransactionStatus.REFUNDED,
        TransactionStatus.DISPUTED,
    },
    TransactionStatus.REFUNDED: {TransactionStatus.DISPUTED},
    TransactionStatus.DISPUTED: set(),  # Terminal
}

_UNCONFIRMED = {TransactionStatus.PENDING, TransactionStatus.PROCESSING, TransactionStatus.FAILED}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Transaction")
class PartialRefund:
    """A single-ticket refund against this transaction.

    Reserved before the gateway is called, so its amount already counts
    against what is refundable. ``refund_id`` stays empty until the gateway
    accepts the refund.
    """

    ticket_id = Identifier(required=True)
    refund_id = String(max_length=255)
    amount = Integer(required=True, min_value=0)
    reason = String(max_length=500)
    requested_at = DateTime(required=True)
    refunded_at = DateTime()

    @property
    def is_pending(self) -> bool:
        return not self.refund_id


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Transaction:
    customer_id = Identifier(required=True)
    external_session_id = String(max_length=255, unique=True)
    payment_reference = String(max_length=255)
    receipt_email = String(max_length=254)
    amount = Integer(required=True, min_value=0)  # minor units
    currency = String(max_length=3, default="usd")
    status = String(choices=TransactionStatus, default=TransactionStatus.PENDING.value)
    transaction_type = String(choices=TransactionType, default=TransactionType.PAYMENT.value)
    line_items = Text()  # JSON snapshot of the cart lines
    partial_refunds = HasMany(PartialRefund)
    checkout_data = Text()  # JSON detail of the captured charge
    error = String(max_length=1000)
    dispute_id = String(max_length=255)
    dispute_status = String(max_length=50)
    dispute_amount = Integer()
    refund_id = String(max_length=255)
    refund_amount = Integer()
    fulfilled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open_payment(cls, transaction_id, customer_id, session_id, amount, currency, line_items):
        now = utc_now()
        transaction = cls(
            id=transaction_id,
            customer_id=customer_id,
            external_session_id=session_id,
            amount=amount,
            currency=currency,
            status=TransactionStatus.PENDING.value,
            transaction_type=TransactionType.PAYMENT.value,
            line_items=json.dumps(line_items),
            created_at=now,
            updated_at=now,
        )
        transaction.raise_(
            CheckoutSessionOpened(
                transaction_id=str(transaction.id),
                customer_id=str(customer_id),
                external_session_id=session_id,
                amount=amount,
                currency=currency,
            )
        )
        return transaction

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    @property
    def line_snapshot(self) -> list[dict]:
        return json.loads(self.line_items) if self.line_items else []

    @property
    def charge_details(self) -> dict:
        return json.loads(self.checkout_data) if self.checkout_data else {}

    @property
    def is_fulfilled(self) -> bool:
        return self.fulfilled_at is not None

    @property
    def is_paid(self) -> bool:
        return TransactionStatus(self.status) not in _UNCONFIRMED

    @property
    def partially_refunded_total(self) -> int:
        return sum(refund.amount for refund in self.partial_refunds or [])

    @property
    def refunded_total(self) -> int:
        return self.partially_refunded_total + (self.refund_amount or 0)

    @property
    def refundable_amount(self) -> int:
        return self.amount - self.refunded_total

    @property
    def pending_partial_refunds(self) -> list:
        return [refund for refund in self.partial_refunds or [] if refund.is_pending]

    @property
    def has_reversal(self) -> bool:
        """Money has gone back to the customer, or is being contested."""
        return self.refunded_total > 0 or TransactionStatus(self.status) in (
            TransactionStatus.REFUNDED,
            TransactionStatus.DISPUTED,
        )

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: TransactionStatus) -> None:
        current = TransactionStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(
                f"Cannot transition transaction from {current.value} to {target_status.value}",
                transaction_id=str(self.id),
            )

    def _move_to(self, target_status: TransactionStatus) -> None:
        self._assert_can_transition(target_status)
        self.status = target_status.value
        self.updated_at = utc_now()

    # -------------------------------------------------------------------
    # Payment outcome
    # -------------------------------------------------------------------
    def confirm_payment(self, payment_reference: str, receipt_email: str | None = None) -> None:
        """Record the gateway's confirmation. Already-confirmed transactions only fill blanks."""
        if not self.payment_reference:
            self.payment_reference = payment_reference
        if receipt_email and not self.receipt_email:
            self.receipt_email = receipt_email

        if TransactionStatus(self.status) not in _UNCONFIRMED:
            self.updated_at = utc_now()
            return

        self._move_to(TransactionStatus.SUCCEEDED)
        self.error = None
        self.raise_(
            PaymentConfirmed(
                transaction_id=str(self.id),
                external_session_id=self.external_session_id,
                payment_reference=self.payment_reference,
                amount=self.amount,
                confirmed_at=self.updated_at,
            )
        )

    def mark_fulfilled(self) -> None:
        self.fulfilled_at = utc_now()
        self.updated_at = self.fulfilled_at

    def mark_failed(self, error: str | None) -> None:
        self._move_to(TransactionStatus.FAILED)
        self.error = (error or "Payment failed")[:1000]
        self.raise_(PaymentFailed(transaction_id=str(self.id), error=self.error, failed_at=self.updated_at))

    def attach_charge(self, charge_details: dict, payment_reference: str, receipt_email: str | None = None) -> None:
        """Keep the captured-charge detail and make sure the payment reads as succeeded."""
        self.checkout_data = json.dumps(charge_details)
        self.confirm_payment(payment_reference, receipt_email=receipt_email)

    def open_dispute(self, dispute_id: str, dispute_status: str | None, dispute_amount: int | None) -> None:
        if TransactionStatus(self.status) == TransactionStatus.DISPUTED:
            self.dispute_status = dispute_status or self.dispute_status
            return

        self._move_to(TransactionStatus.DISPUTED)
        self.dispute_id = dispute_id
        self.dispute_status = dispute_status
        self.dispute_amount = dispute_amount
        self.raise_(
            TransactionDisputed(
                transaction_id=str(self.id),
                dispute_id=dispute_id,
                dispute_status=dispute_status,
                dispute_amount=dispute_amount,
            )
        )

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    def assert_refundable(self, amount: int | None = None) -> None:
        """Fail unless ``amount`` (or any remainder, when None) can still be refunded."""
        if not self.payment_reference:
            raise PaymentNotConfirmed(
                "Cannot refund a payment the gateway has not confirmed",
                transaction_id=str(self.id),
            )

        if TransactionStatus(self.status) == TransactionStatus.DISPUTED:
            raise InvalidTransition("Cannot refund a disputed transaction", transaction_id=str(self.id))

        remaining = self.refundable_amount
        if TransactionStatus(self.status) == TransactionStatus.REFUNDED or remaining <= 0:
            raise AlreadyFullyRefunded("Transaction is already fully refunded", transaction_id=str(self.id))
        if amount is not None and amount > remaining:
            raise AlreadyFullyRefunded(
                f"Refund of {amount} exceeds the {remaining} left on the transaction",
                transaction_id=str(self.id),
            )

    def reserve_partial_refund(self, ticket_id, amount: int, reason: str | None = None) -> PartialRefund:
        """Hold ``amount`` against the transaction while the gateway refund is in flight."""
        self.assert_refundable(amount)
        self._move_to(TransactionStatus.PARTIALLY_REFUNDED)
        reservation = PartialRefund(
            ticket_id=str(ticket_id),
            amount=amount,
            reason=reason,
            requested_at=self.updated_at,
        )
        self.add_partial_refunds(reservation)
        return reservation

    def record_partial_refund(self, ticket_id, refund_id: str, amount: int, reason: str | None = None) -> None:
        """Attach the gateway's refund id to the ticket's reservation, reserving first if there is none.

        A reservation is filled even when a full refund has since moved the
        transaction on; its amount was already excluded from that refund.
        """
        reservation = next(
            (refund for refund in self.pending_partial_refunds if str(refund.ticket_id) == str(ticket_id)),
            None,
        )
        if reservation is None:
            reservation = self.reserve_partial_refund(ticket_id, amount, reason=reason)

        reservation.refund_id = refund_id
        reservation.refunded_at = utc_now()
        self.updated_at = reservation.refunded_at
        self.raise_(
            TransactionPartiallyRefunded(
                transaction_id=str(self.id),
                ticket_id=str(ticket_id),
                refund_id=refund_id,
                amount=reservation.amount,
                refunded_total=self.refunded_total,
            )
        )

    def begin_full_refund(self) -> int:
        """Move to REFUNDED and return the amount left to send back."""
        self.assert_refundable()
        remaining = self.refundable_amount
        self._move_to(TransactionStatus.REFUNDED)
        self.refund_amount = remaining
        self.raise_(TransactionRefunded(transaction_id=str(self.id), amount=remaining, refunded_at=self.updated_at))
        return remaining

    def record_full_refund(self, refund_id: str) -> None:
        self.refund_id = refund_id
        self.updated_at = utc_now()
