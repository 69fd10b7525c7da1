"""FastAPI routes for the marketplace — carts, checkout, webhooks, tickets, refunds, invoices, payouts."""

from fastapi import APIRouter, Header, HTTPException, Request
from protean.utils.globals import current_domain

from marketplace.api.schemas import (
    AddCartItemRequest,
    ArchivePastUnitsResponse,
    CartResponse,
    CheckoutSessionResponse,
    ConfigureGatewayRequest,
    CreateCheckoutSessionRequest,
    GatewayConfigResponse,
    IdResponse,
    InventoryUnitResponse,
    InvoiceResponse,
    PayoutResponse,
    RefundRequest,
    RegisterInventoryUnitRequest,
    RegisterVendorRequest,
    SessionStatusResponse,
    SetCheckoutStatusRequest,
    StatusResponse,
    SweepCartsRequest,
    SweepCartsResponse,
    TicketRefundResponse,
    TicketResponse,
    TransactionRefundResponse,
    TransactionResponse,
    UpdateTicketStatusRequest,
    VendorResponse,
    WebhookAckResponse,
)
from marketplace.cart.items import AddCartItem, ClearCart, RemoveCartItem
from marketplace.cart.management import SetCheckoutStatus
from marketplace.cart.queries import get_cart
from marketplace.cart.sweep import SweepCarts
from marketplace.checkout.orchestrator import create_session, get_session_status
from marketplace.config import get_settings
from marketplace.gateway import get_gateway
from marketplace.gateway.fake_adapter import FakeGateway
from marketplace.inventory.expiry import ArchivePastInventoryUnits
from marketplace.inventory.management import PublishInventoryUnit, RegisterInventoryUnit
from marketplace.inventory.unit import InventoryUnit
from marketplace.invoice.queries import get_invoice, invoices_for_customer, invoices_for_vendor
from marketplace.payment_events.processor import receive_gateway_event
from marketplace.payout.trigger import trigger_payout
from marketplace.refund.coordinator import refund_ticket, refund_transaction
from marketplace.ticket.status import UpdateTicketStatus
from marketplace.ticket.ticket import Ticket, TicketStatus
from marketplace.transaction.transaction import Transaction
from marketplace.vendor.registration import RegisterVendor
from marketplace.vendor.vendor import Vendor


def _ticket_response(ticket) -> TicketResponse:
    return TicketResponse(
        ticket_id=str(ticket.id),
        user_id=str(ticket.user_id),
        transaction_id=str(ticket.transaction_id),
        vendor_id=str(ticket.vendor_id),
        product_item_id=str(ticket.product_item_id),
        product_name=ticket.product_name,
        unit_price=ticket.unit_price,
        status=ticket.status,
        vendor_owed=ticket.vendor_owed,
        vendor_paid=bool(ticket.vendor_paid),
    )


# ---------------------------------------------------------------------------
# Vendor & Inventory Routers
# ---------------------------------------------------------------------------
vendor_router = APIRouter(prefix="/vendors", tags=["vendors"])


@vendor_router.post("", status_code=201, response_model=IdResponse)
async def register_vendor(body: RegisterVendorRequest) -> IdResponse:
    vendor_id = current_domain.process(RegisterVendor(**body.model_dump(exclude_none=True)), asynchronous=False)
    return IdResponse(id=vendor_id)


@vendor_router.get("/{vendor_id}", response_model=VendorResponse)
async def read_vendor(vendor_id: str) -> VendorResponse:
    vendor = current_domain.repository_for(Vendor).find(vendor_id)
    return VendorResponse(
        vendor_id=str(vendor.id),
        name=vendor.name,
        balance=vendor.balance or 0,
        application_fee_rate=vendor.fee_rate,
        connect_account_id=vendor.connect_account_id,
    )


@vendor_router.post("/{vendor_id}/payouts", status_code=201, response_model=PayoutResponse)
async def create_payout(vendor_id: str) -> PayoutResponse:
    """Transfer the vendor's earned balance to their connected account."""
    return PayoutResponse(**trigger_payout(vendor_id))


inventory_router = APIRouter(prefix="/inventory-units", tags=["inventory"])


@inventory_router.post("", status_code=201, response_model=IdResponse)
async def register_inventory_unit(body: RegisterInventoryUnitRequest) -> IdResponse:
    unit_id = current_domain.process(
        RegisterInventoryUnit(**body.model_dump(exclude={"publish"}, exclude_none=True)),
        asynchronous=False,
    )
    if body.publish:
        current_domain.process(PublishInventoryUnit(unit_id=unit_id), asynchronous=False)
    return IdResponse(id=unit_id)


@inventory_router.get("/{unit_id}", response_model=InventoryUnitResponse)
async def read_inventory_unit(unit_id: str) -> InventoryUnitResponse:
    unit = current_domain.repository_for(InventoryUnit).find_by_id_with_status(unit_id)
    return InventoryUnitResponse(
        unit_id=str(unit.id),
        status=unit.status,
        available_quantity=unit.available_quantity,
    )


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.get("/{user_id}", response_model=CartResponse)
async def read_cart(user_id: str) -> CartResponse:
    return CartResponse(**get_cart(user_id))


@cart_router.post("/{user_id}/items", status_code=201, response_model=CartResponse)
async def add_cart_item(user_id: str, body: AddCartItemRequest) -> CartResponse:
    """Reserve units of an inventory unit into the shopper's cart."""
    current_domain.process(
        AddCartItem(user_id=user_id, product_item_id=body.product_item_id, quantity=body.quantity),
        asynchronous=False,
    )
    return CartResponse(**get_cart(user_id))


@cart_router.delete("/{user_id}/items/{product_item_id}", response_model=CartResponse)
async def remove_cart_item(user_id: str, product_item_id: str) -> CartResponse:
    current_domain.process(RemoveCartItem(user_id=user_id, product_item_id=product_item_id), asynchronous=False)
    return CartResponse(**get_cart(user_id))


@cart_router.delete("/{user_id}", response_model=CartResponse)
async def clear_cart(user_id: str) -> CartResponse:
    current_domain.process(ClearCart(user_id=user_id), asynchronous=False)
    return CartResponse(**get_cart(user_id))


@cart_router.put("/{user_id}/checkout-status", response_model=CartResponse)
async def set_checkout_status(user_id: str, body: SetCheckoutStatusRequest) -> CartResponse:
    current_domain.process(SetCheckoutStatus(user_id=user_id, in_progress=body.in_progress), asynchronous=False)
    return CartResponse(**get_cart(user_id))


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("/sessions", status_code=201, response_model=CheckoutSessionResponse)
async def create_checkout_session(body: CreateCheckoutSessionRequest) -> CheckoutSessionResponse:
    return CheckoutSessionResponse(**create_session(body.user_id, return_url=body.return_url))


@checkout_router.get("/sessions/{session_id}", response_model=SessionStatusResponse)
async def read_session_status(session_id: str) -> SessionStatusResponse:
    return SessionStatusResponse(**get_session_status(session_id))


@checkout_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only)."""
    if get_settings().is_production:
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@webhook_router.post("/gateway", response_model=WebhookAckResponse)
async def gateway_webhook(request: Request, stripe_signature: str = Header(default="")) -> WebhookAckResponse:
    """Receive a payment gateway event. Verified deliveries are always acknowledged."""
    payload = await request.body()
    receive_gateway_event(payload, stripe_signature)
    return WebhookAckResponse(received=True)


# ---------------------------------------------------------------------------
# Ticket & Transaction Routers
# ---------------------------------------------------------------------------
ticket_router = APIRouter(prefix="/tickets", tags=["tickets"])


@ticket_router.get("/{ticket_id}", response_model=TicketResponse)
async def read_ticket(ticket_id: str) -> TicketResponse:
    return _ticket_response(current_domain.repository_for(Ticket).find(ticket_id))


@ticket_router.put("/{ticket_id}/status", response_model=StatusResponse)
async def update_ticket_status(ticket_id: str, body: UpdateTicketStatusRequest) -> StatusResponse:
    status = current_domain.process(
        UpdateTicketStatus(
            ticket_id=ticket_id,
            status=TicketStatus[body.status].value,
            reason=body.reason,
            actor=body.actor,
        ),
        asynchronous=False,
    )
    return StatusResponse(status=status)


@ticket_router.post("/{ticket_id}/refund", response_model=TicketRefundResponse)
async def refund_single_ticket(ticket_id: str, body: RefundRequest | None = None) -> TicketRefundResponse:
    return TicketRefundResponse(**refund_ticket(ticket_id, reason=body.reason if body else None))


transaction_router = APIRouter(prefix="/transactions", tags=["transactions"])


@transaction_router.get("/{transaction_id}", response_model=TransactionResponse)
async def read_transaction(transaction_id: str) -> TransactionResponse:
    transaction = current_domain.repository_for(Transaction).find(transaction_id)
    return TransactionResponse(
        transaction_id=str(transaction.id),
        customer_id=str(transaction.customer_id),
        external_session_id=transaction.external_session_id,
        payment_reference=transaction.payment_reference,
        amount=transaction.amount,
        currency=transaction.currency,
        status=transaction.status,
        refunded_total=transaction.refunded_total,
    )


@transaction_router.get("/{transaction_id}/tickets", response_model=list[TicketResponse])
async def read_transaction_tickets(transaction_id: str) -> list[TicketResponse]:
    tickets = current_domain.repository_for(Ticket).find_by_transaction(transaction_id)
    return [_ticket_response(ticket) for ticket in tickets]


@transaction_router.post("/{transaction_id}/refund", response_model=TransactionRefundResponse)
async def refund_whole_transaction(
    transaction_id: str, body: RefundRequest | None = None
) -> TransactionRefundResponse:
    return TransactionRefundResponse(**refund_transaction(transaction_id, reason=body.reason if body else None))


# ---------------------------------------------------------------------------
# Invoice Router
# ---------------------------------------------------------------------------
invoice_router = APIRouter(prefix="/invoices", tags=["invoices"])


@invoice_router.get("/customer/{customer_id}", response_model=list[InvoiceResponse])
async def read_customer_invoices(customer_id: str) -> list[InvoiceResponse]:
    return [InvoiceResponse(**invoice) for invoice in invoices_for_customer(customer_id)]


@invoice_router.get("/vendor/{vendor_id}", response_model=list[InvoiceResponse])
async def read_vendor_invoices(vendor_id: str) -> list[InvoiceResponse]:
    return [InvoiceResponse(**invoice) for invoice in invoices_for_vendor(vendor_id)]


@invoice_router.get("/{transaction_id}", response_model=InvoiceResponse)
async def read_invoice(transaction_id: str) -> InvoiceResponse:
    return InvoiceResponse(**get_invoice(transaction_id))


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/sweep-carts", response_model=SweepCartsResponse)
async def sweep_carts(body: SweepCartsRequest | None = None) -> SweepCartsResponse:
    """Expire idle carts and unstick abandoned checkouts. Called by an external scheduler."""
    body = body or SweepCartsRequest()
    result = current_domain.process(
        SweepCarts(idle_minutes=body.idle_minutes, stuck_minutes=body.stuck_minutes),
        asynchronous=False,
    )
    return SweepCartsResponse(**result)


@maintenance_router.post("/archive-past-units", response_model=ArchivePastUnitsResponse)
async def archive_past_units() -> ArchivePastUnitsResponse:
    archived = current_domain.process(ArchivePastInventoryUnits(), asynchronous=False)
    return ArchivePastUnitsResponse(archived=archived)
