"""Domain events for the Transaction aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Transaction")
class CheckoutSessionOpened:
    """A pending payment transaction was recorded for a new gateway session."""

    __version__ = 1

    transaction_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    external_session_id = String(required=True)
    amount = Integer(required=True)
    currency = String(required=True)


@marketplace.event(part_of="Transaction")
class PaymentConfirmed:
    """The gateway confirmed the payment for a session."""

    __version__ = 1

    transaction_id = Identifier(required=True)
    external_session_id = String(required=True)
    payment_reference = String(required=True)
    amount = Integer(required=True)
    confirmed_at = DateTime(required=True)


@marketplace.event(part_of="Transaction")
class PaymentFailed:
    """The gateway reported a failed payment attempt."""

    __version__ = 1

    transaction_id = Identifier(required=True)
    error = String()
    failed_at = DateTime(required=True)


@marketplace.event(part_of="Transaction")
class TransactionPartiallyRefunded:
    """One ticket's price was refunded."""

    __version__ = 1

    transaction_id = Identifier(required=True)
    ticket_id = Identifier(required=True)
    refund_id = String(required=True)
    amount = Integer(required=True)
    refunded_total = Integer(required=True)


@marketplace.event(part_of="Transaction")
class TransactionRefunded:
    """Everything not yet refunded on the transaction was refunded."""

    __version__ = 1

    transaction_id = Identifier(required=True)
    amount = Integer(required=True)
    refunded_at = DateTime(required=True)


@marketplace.event(part_of="Transaction")
class TransactionDisputed:
    """The customer opened a dispute with their bank."""

    __version__ = 1

    transaction_id = Identifier(required=True)
    dispute_id = String(required=True)
    dispute_status = String()
    dispute_amount = Integer()
