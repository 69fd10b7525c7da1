"""Sale notifications sent once a charge is captured.

Both messages are best-effort: a delivery failure or an exception from the
mail adapter is logged and swallowed so it never affects payment state.
"""

from collections import defaultdict

import structlog
from protean.utils.globals import current_domain

from marketplace.errors import NotFoundError
from marketplace.invoice.queries import invoice_number
from marketplace.notifications import get_mailer
from marketplace.ticket.ticket import Ticket
from marketplace.vendor.vendor import Vendor, vendor_share

logger = structlog.get_logger(__name__)


def _money(amount: int, currency: str) -> str:
    return f"{amount / 100:.2f} {currency.upper()}"


def _deliver(to: str, subject: str, body: str, **context) -> bool:
    try:
        result = get_mailer().send(to=to, subject=subject, body=body)
    except Exception as exc:
        logger.error("Notification delivery raised", to=to, subject=subject, error=str(exc), **context)
        return False

    if result.get("status") != "sent":
        logger.warning("Notification not delivered", to=to, subject=subject, error=result.get("error"), **context)
        return False
    return True


def send_customer_receipt(transaction) -> bool:
    if not transaction.receipt_email:
        logger.info("No receipt email on transaction", transaction_id=str(transaction.id))
        return False

    lines = [
        f"{line['quantity']} x {line['name']} on {line.get('product_date') or ''} "
        f"{line.get('start_time') or ''}: {_money(line['unit_price'] * line['quantity'], transaction.currency)}"
        for line in transaction.line_snapshot
    ]
    # Empty when the charge is captured before the session completes
    tickets = current_domain.repository_for(Ticket).find_by_transaction(transaction.id)
    ticket_ids = [str(ticket.id) for ticket in tickets]
    body = "\n".join(
        [
            "Thank you for your booking.",
            "",
            *lines,
            "",
            f"Total paid: {_money(transaction.amount, transaction.currency)}",
            f"Invoice: {invoice_number(transaction)}",
            f"Reference: {transaction.id}",
            *(["", "Your tickets:", *ticket_ids] if ticket_ids else []),
        ]
    )
    return _deliver(
        transaction.receipt_email,
        "Your booking receipt",
        body,
        transaction_id=str(transaction.id),
    )


def send_vendor_sale_notice(vendor, lines: list[dict], transaction) -> bool:
    if not vendor.email:
        logger.info("Vendor has no email for sale notice", vendor_id=str(vendor.id))
        return False

    gross = sum(line["unit_price"] * line["quantity"] for line in lines)
    net = sum(vendor_share(line["unit_price"], vendor.fee_rate) * line["quantity"] for line in lines)
    body = "\n".join(
        [
            f"New booking for {vendor.name}.",
            "",
            *[f"{line['quantity']} x {line['name']} on {line.get('product_date') or ''}" for line in lines],
            "",
            f"Gross: {_money(gross, transaction.currency)}",
            f"Platform fee ({vendor.fee_rate:.0%}): {_money(gross - net, transaction.currency)}",
            f"Your earnings: {_money(net, transaction.currency)}",
        ]
    )
    return _deliver(
        vendor.email,
        "You have a new booking",
        body,
        transaction_id=str(transaction.id),
        vendor_id=str(vendor.id),
    )


def notify_sale(transaction) -> None:
    """Send the customer receipt and one sale notice per vendor on the transaction."""
    send_customer_receipt(transaction)

    by_vendor = defaultdict(list)
    for line in transaction.line_snapshot:
        by_vendor[line["vendor_id"]].append(line)

    vendor_repo = current_domain.repository_for(Vendor)
    for vendor_id, lines in by_vendor.items():
        try:
            vendor = vendor_repo.find(vendor_id)
        except NotFoundError as exc:
            logger.warning("Skipping sale notice", vendor_id=vendor_id, error=str(exc))
            continue
        send_vendor_sale_notice(vendor, lines, transaction)
