"""Refund coordination across the local ledgers and the payment gateway.

Both operations run in three steps:

1. compensate locally in one unit of work (reverse unpaid vendor credit,
   cancel tickets, then reserve the ticket's amount or, for a full refund,
   move the transaction to REFUNDED);
2. ask the gateway to send the money back;
3. record the gateway's refund id on the transaction.

Step 1 is committed before step 2 and is not undone when the gateway call
fails. That leaves the ticket cancelled with its refund reserved but no
gateway refund id on file. It is logged at error level with every
identifier for manual reconciliation and surfaced to the caller as
ExternalGatewayError.
"""

import structlog
from protean.utils.globals import current_domain

from marketplace.errors import ExternalGatewayError
from marketplace.gateway import get_gateway
from marketplace.refund.compensation import (
    CompensateTicketRefund,
    CompensateTransactionRefund,
    RecordTicketRefund,
    RecordTransactionRefund,
)

logger = structlog.get_logger(__name__)


def refund_ticket(ticket_id, reason: str | None = None) -> dict:
    """Refund one ticket's price and cancel it."""
    outcome = current_domain.process(
        CompensateTicketRefund(ticket_id=str(ticket_id), reason=reason),
        asynchronous=False,
    )

    try:
        refund = get_gateway().create_refund(
            payment_reference=outcome["payment_reference"],
            amount=outcome["amount"],
            metadata={"ticket_id": outcome["ticket_id"], "transaction_id": outcome["transaction_id"]},
        )
    except ExternalGatewayError as exc:
        logger.error(
            "Ticket cancelled but gateway refund failed; needs manual reconciliation",
            ticket_id=outcome["ticket_id"],
            transaction_id=outcome["transaction_id"],
            payment_reference=outcome["payment_reference"],
            amount=outcome["amount"],
            vendor_reversal=outcome["vendor_reversal"],
            error=str(exc),
        )
        raise

    current_domain.process(
        RecordTicketRefund(
            transaction_id=outcome["transaction_id"],
            ticket_id=outcome["ticket_id"],
            refund_id=refund.refund_id,
            amount=outcome["amount"],
            reason=reason,
        ),
        asynchronous=False,
    )

    logger.info(
        "Ticket refunded",
        ticket_id=outcome["ticket_id"],
        transaction_id=outcome["transaction_id"],
        refund_id=refund.refund_id,
        amount=outcome["amount"],
    )
    return {
        "ticket_id": outcome["ticket_id"],
        "transaction_id": outcome["transaction_id"],
        "refund_id": refund.refund_id,
        "amount": outcome["amount"],
    }


def refund_transaction(transaction_id, reason: str | None = None) -> dict:
    """Refund whatever is left on a transaction and cancel its live tickets."""
    outcome = current_domain.process(
        CompensateTransactionRefund(transaction_id=str(transaction_id), reason=reason),
        asynchronous=False,
    )

    try:
        refund = get_gateway().create_refund(
            payment_reference=outcome["payment_reference"],
            amount=outcome["amount"],
            metadata={"transaction_id": outcome["transaction_id"], "is_full_refund": "true"},
        )
    except ExternalGatewayError as exc:
        logger.error(
            "Transaction marked refunded but gateway refund failed; needs manual reconciliation",
            transaction_id=outcome["transaction_id"],
            payment_reference=outcome["payment_reference"],
            amount=outcome["amount"],
            cancelled_tickets=outcome["cancelled_tickets"],
            vendor_reversals=outcome["vendor_reversals"],
            error=str(exc),
        )
        raise

    current_domain.process(
        RecordTransactionRefund(transaction_id=outcome["transaction_id"], refund_id=refund.refund_id),
        asynchronous=False,
    )

    logger.info(
        "Transaction refunded",
        transaction_id=outcome["transaction_id"],
        refund_id=refund.refund_id,
        amount=outcome["amount"],
        cancelled_tickets=len(outcome["cancelled_tickets"]),
    )
    return {
        "transaction_id": outcome["transaction_id"],
        "refund_id": refund.refund_id,
        "amount": outcome["amount"],
        "cancelled_tickets": outcome["cancelled_tickets"],
    }
