"""Invoices — a read view over paid transactions, grouped by vendor.

Nothing is stored: an invoice is built from the transaction's line snapshot
each time it is asked for. A vendor sees only its own group on each
invoice, and the invoice amount is that group's subtotal.
"""

from protean.utils.globals import current_domain

from marketplace.errors import NotFoundError
from marketplace.transaction.transaction import Transaction
from marketplace.vendor.vendor import Vendor

UNKNOWN_VENDOR = "Unknown vendor"


def _vendor_names(vendor_ids) -> dict[str, str]:
    repo = current_domain.repository_for(Vendor)
    names = {}
    for vendor_id in vendor_ids:
        try:
            names[vendor_id] = repo.find(vendor_id).name
        except NotFoundError:
            names[vendor_id] = UNKNOWN_VENDOR
    return names


def invoice_number(transaction) -> str:
    return f"INV-{str(transaction.id)[-6:].upper()}"


def build_invoice(transaction) -> dict:
    lines = transaction.line_snapshot
    vendor_ids = list(dict.fromkeys(line["vendor_id"] for line in lines))
    names = _vendor_names(vendor_ids)

    vendor_groups = []
    for vendor_id in vendor_ids:
        items = [
            {
                "product_item_id": line["product_item_id"],
                "product_name": line.get("name"),
                "unit_price": line["unit_price"],
                "quantity": line["quantity"],
                "product_date": line.get("product_date"),
                "start_time": line.get("start_time"),
                "duration_minutes": line.get("duration_minutes"),
            }
            for line in lines
            if line["vendor_id"] == vendor_id
        ]
        vendor_groups.append(
            {
                "vendor_id": vendor_id,
                "vendor_name": names[vendor_id],
                "subtotal": sum(item["unit_price"] * item["quantity"] for item in items),
                "items": items,
            }
        )

    return {
        "invoice_number": invoice_number(transaction),
        "transaction_id": str(transaction.id),
        "external_session_id": transaction.external_session_id,
        "customer_id": str(transaction.customer_id),
        "amount": transaction.amount,
        "refunded_total": transaction.refunded_total,
        "currency": transaction.currency,
        "status": transaction.status,
        "issued_at": transaction.created_at,
        "product_item_ids": [line["product_item_id"] for line in lines],
        "vendor_groups": vendor_groups,
    }


def get_invoice(transaction_id) -> dict:
    """The invoice for one transaction. Unpaid checkouts have none."""
    transaction = current_domain.repository_for(Transaction).find(transaction_id)
    if not transaction.is_paid:
        raise NotFoundError(
            f"No invoice for unpaid transaction {transaction_id}",
            transaction_id=str(transaction_id),
        )
    return build_invoice(transaction)


def invoices_for_customer(customer_id) -> list[dict]:
    transactions = current_domain.repository_for(Transaction).find_paid_for_customer(customer_id)
    return [build_invoice(transaction) for transaction in transactions]


def invoices_for_vendor(vendor_id) -> list[dict]:
    vendor_id = str(vendor_id)
    invoices = []
    for transaction in current_domain.repository_for(Transaction).find_paid_for_vendor(vendor_id):
        invoice = build_invoice(transaction)
        invoice["vendor_groups"] = [group for group in invoice["vendor_groups"] if group["vendor_id"] == vendor_id]
        invoice["amount"] = sum(group["subtotal"] for group in invoice["vendor_groups"])
        invoices.append(invoice)
    return invoices
