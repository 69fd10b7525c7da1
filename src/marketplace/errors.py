"""Error taxonomy for the marketplace.

Bad input is reported with Protean's ``ValidationError`` (raised by command
field validation and aggregate checks). Everything below covers the other
outcomes callers need to tell apart: a missing record, a state conflict
that leaves storage untouched, and failures of the external gateway.
"""


class MarketplaceError(Exception):
    """Base class for marketplace errors."""

    def __init__(self, message: str, **context) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class NotFoundError(MarketplaceError):
    """A Cart, Ticket, Transaction, InventoryUnit, Vendor or cart line is missing."""


class ConflictError(MarketplaceError):
    """The operation is not allowed in the current state. Nothing was changed."""


class InsufficientInventory(ConflictError):
    pass


class ProductUnavailable(ConflictError):
    pass


class AlreadyFullyRefunded(ConflictError):
    pass


class PaymentNotConfirmed(ConflictError):
    """The transaction has no payment reference yet, so it cannot be refunded."""


class InvalidTransition(ConflictError):
    pass


class PayoutNotAllowed(ConflictError):
    pass


class ExternalGatewayError(MarketplaceError):
    """The payment gateway rejected a call or could not be reached."""


class CheckoutCreationFailed(MarketplaceError):
    pass


class InvalidGatewayEvent(MarketplaceError):
    """A webhook payload is malformed and was rejected before dispatch."""


class InvalidSignature(InvalidGatewayEvent):
    pass
