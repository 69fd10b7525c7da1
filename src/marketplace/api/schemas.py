"""Pydantic request/response schemas for the marketplace API.

These are external contracts (anti-corruption layer), separate from the
internal Protean commands. Amounts are integers in minor units.
"""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str


class IdResponse(BaseModel):
    id: str


# ---------------------------------------------------------------------------
# Catalog seeding
# ---------------------------------------------------------------------------
class RegisterVendorRequest(BaseModel):
    name: str
    email: str | None = None
    connect_account_id: str | None = None
    application_fee_rate: float | None = Field(default=None, ge=0, le=1)


class VendorResponse(BaseModel):
    vendor_id: str
    name: str
    balance: int
    application_fee_rate: float
    connect_account_id: str | None = None


class RegisterInventoryUnitRequest(BaseModel):
    vendor_id: str
    name: str
    unit_price: int = Field(ge=0)
    product_date: date
    available_quantity: int = Field(ge=0)
    start_time: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    duration_minutes: int | None = Field(default=None, ge=0)
    publish: bool = True

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "vendor_id": "vendor-001",
                    "name": "Sunset kayak tour",
                    "unit_price": 4500,
                    "product_date": "2026-07-01",
                    "available_quantity": 12,
                    "start_time": "18:30",
                    "duration_minutes": 90,
                }
            ]
        }
    }


class InventoryUnitResponse(BaseModel):
    unit_id: str
    status: str
    available_quantity: int


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_item_id: str
    quantity: int = 1


class SetCheckoutStatusRequest(BaseModel):
    in_progress: bool


class CartLineSchema(BaseModel):
    product_item_id: str
    name: str | None = None
    unit_price: int
    quantity: int
    vendor_id: str
    product_date: str | None = None
    start_time: str | None = None
    duration_minutes: int | None = None


class CartResponse(BaseModel):
    cart_id: str | None = None
    user_id: str
    checkout_in_progress: bool
    total: int
    item_count: int
    lines: list[CartLineSchema]


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CreateCheckoutSessionRequest(BaseModel):
    user_id: str
    return_url: str | None = None


class CheckoutSessionResponse(BaseModel):
    client_secret: str
    session_id: str
    transaction_id: str


class SessionStatusResponse(BaseModel):
    status: str | None = None
    customer_email: str | None = None


class WebhookAckResponse(BaseModel):
    received: bool


# ---------------------------------------------------------------------------
# Tickets & refunds
# ---------------------------------------------------------------------------
class UpdateTicketStatusRequest(BaseModel):
    status: Literal["ACTIVE", "REDEEMED", "CANCELLED", "REVOKED"]
    reason: str | None = None
    actor: str | None = None


class TicketResponse(BaseModel):
    ticket_id: str
    user_id: str
    transaction_id: str
    vendor_id: str
    product_item_id: str
    product_name: str | None = None
    unit_price: int
    status: str
    vendor_owed: int
    vendor_paid: bool


class RefundRequest(BaseModel):
    reason: str | None = None


class TicketRefundResponse(BaseModel):
    ticket_id: str
    transaction_id: str
    refund_id: str
    amount: int


class TransactionRefundResponse(BaseModel):
    transaction_id: str
    refund_id: str
    amount: int
    cancelled_tickets: list[str]


class TransactionResponse(BaseModel):
    transaction_id: str
    customer_id: str
    external_session_id: str | None = None
    payment_reference: str | None = None
    amount: int
    currency: str
    status: str
    refunded_total: int


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------
class InvoiceItemSchema(BaseModel):
    product_item_id: str
    product_name: str | None = None
    unit_price: int
    quantity: int
    product_date: str | None = None
    start_time: str | None = None
    duration_minutes: int | None = None


class VendorGroupSchema(BaseModel):
    vendor_id: str
    vendor_name: str
    subtotal: int
    items: list[InvoiceItemSchema]


class InvoiceResponse(BaseModel):
    invoice_number: str
    transaction_id: str
    external_session_id: str | None = None
    customer_id: str
    amount: int
    refunded_total: int
    currency: str
    status: str
    issued_at: datetime | None = None
    product_item_ids: list[str]
    vendor_groups: list[VendorGroupSchema]


# ---------------------------------------------------------------------------
# Payouts & maintenance
# ---------------------------------------------------------------------------
class PayoutResponse(BaseModel):
    payout_id: str
    amount: int
    transfer_id: str


class SweepCartsRequest(BaseModel):
    idle_minutes: int | None = Field(default=None, gt=0)
    stuck_minutes: int | None = Field(default=None, gt=0)


class SweepCartsResponse(BaseModel):
    expired: int
    released: int


class ArchivePastUnitsResponse(BaseModel):
    archived: int


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Gateway unavailable"


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
