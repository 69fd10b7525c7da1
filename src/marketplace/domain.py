"""Marketplace bounded context — bookable inventory, checkout and fulfillment.

Owns the checkout-to-fulfillment pipeline of the booking marketplace: cart
reservations against dated inventory units, payment sessions opened with the
gateway, ticket issuance on confirmed payments, vendor earnings and refund
reconciliation. Everything lives in one domain so that a single unit of work
can span the aggregates it needs (cart + inventory, ticket + vendor ledger).
"""

import structlog
from protean.domain import Domain

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)
