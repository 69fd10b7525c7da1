from marketplace.api.routes import (
    cart_router,
    checkout_router,
    inventory_router,
    invoice_router,
    maintenance_router,
    ticket_router,
    transaction_router,
    vendor_router,
    webhook_router,
)

routers = [
    vendor_router,
    inventory_router,
    cart_router,
    checkout_router,
    webhook_router,
    ticket_router,
    transaction_router,
    invoice_router,
    maintenance_router,
]

__all__ = ["routers"]
