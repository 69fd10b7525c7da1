"""Map marketplace errors onto HTTP responses.

Protean's own exceptions (ValidationError and friends) are handled by
protean.integrations.fastapi; the marketplace taxonomy is added on top.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from marketplace.errors import (
    CheckoutCreationFailed,
    ConflictError,
    ExternalGatewayError,
    InvalidGatewayEvent,
    InvalidSignature,
    MarketplaceError,
    NotFoundError,
)

_STATUS_CODES = {
    InvalidSignature: 401,
    InvalidGatewayEvent: 400,
    NotFoundError: 404,
    ConflictError: 409,
    ExternalGatewayError: 502,
    CheckoutCreationFailed: 500,
    MarketplaceError: 500,
}


def _handler(status_code: int):
    async def handle(request: Request, exc: MarketplaceError) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": exc.message},
        )

    return handle


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    for exc_class, status_code in _STATUS_CODES.items():
        app.add_exception_handler(exc_class, _handler(status_code))
