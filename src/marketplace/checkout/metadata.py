"""Line snapshots carried by a checkout.

Two shapes are produced from the cart lines:

- the full snapshot stored on the Transaction (everything fulfillment and
  receipts need), and
- the compact form sent to the gateway as session metadata, which has tight
  size limits: ``[{"id": item, "q": quantity, "d": "YYYY-MM-DD", "t": "HH:MM"}]``.
"""

import json

from marketplace.errors import InvalidGatewayEvent


def snapshot_lines(lines) -> list[dict]:
    return [
        {
            "product_item_id": str(line.product_item_id),
            "name": line.name,
            "unit_price": line.unit_price,
            "quantity": line.quantity,
            "vendor_id": str(line.vendor_id),
            "product_date": line.product_date.isoformat() if line.product_date else None,
            "start_time": line.start_time,
            "duration_minutes": line.duration_minutes,
        }
        for line in lines
    ]


def compact_lines(snapshot: list[dict]) -> str:
    return json.dumps(
        [
            {
                "id": line["product_item_id"],
                "q": line["quantity"],
                "d": line["product_date"],
                "t": line["start_time"],
            }
            for line in snapshot
        ],
        separators=(",", ":"),
    )


def parse_compact_lines(raw: str | None) -> list[dict]:
    """Expand gateway metadata back into ``product_item_id``/``quantity`` pairs."""
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except ValueError as exc:
        raise InvalidGatewayEvent("Session metadata items are not valid JSON") from exc

    return [
        {
            "product_item_id": item["id"],
            "quantity": int(item["q"]),
            "product_date": item.get("d"),
            "start_time": item.get("t"),
        }
        for item in items
    ]
