"""Payment gateway port (abstract interface).

Defines the contract every payment gateway adapter implements, so the
checkout, refund and payout flows run unchanged against FakeGateway
(dev/test) or StripeGateway (production). Adapters translate SDK failures
into ExternalGatewayError and bad webhook payloads into InvalidGatewayEvent.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from marketplace.errors import InvalidGatewayEvent


@dataclass(frozen=True)
class CheckoutSessionResult:
    session_id: str
    client_secret: str


@dataclass(frozen=True)
class SessionStatusResult:
    status: str | None
    customer_email: str | None = None


@dataclass(frozen=True)
class RefundResult:
    refund_id: str
    amount: int
    status: str | None = None


@dataclass(frozen=True)
class TransferResult:
    transfer_id: str
    amount: int
    destination: str
    transfer_group: str | None = None
    source_type: str | None = None


@dataclass(frozen=True)
class GatewayEvent:
    """A verified webhook delivery: its id, type and the object it carries."""

    id: str
    type: str
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> "GatewayEvent":
        if not isinstance(payload, dict):
            raise InvalidGatewayEvent("Webhook payload must be a JSON object")

        event_type = payload.get("type")
        if not event_type:
            raise InvalidGatewayEvent("Webhook payload has no event type")

        data = payload.get("data") or {}
        obj = data.get("object") if isinstance(data, dict) else None
        if not isinstance(obj, dict):
            raise InvalidGatewayEvent("Webhook payload has no data object", event_type=event_type)

        return cls(id=str(payload.get("id") or ""), type=event_type, data=obj)


class PaymentGateway(ABC):
    """Abstract payment gateway interface. Amounts are in minor units."""

    @abstractmethod
    def create_checkout_session(
        self,
        line_items: list[dict],
        metadata: dict[str, str],
        return_url: str,
        currency: str,
        idempotency_key: str,
    ) -> CheckoutSessionResult:
        """Open an embedded payment session for the given lines."""
        ...

    @abstractmethod
    def retrieve_session(self, session_id: str) -> SessionStatusResult:
        ...

    @abstractmethod
    def create_refund(
        self,
        payment_reference: str,
        amount: int,
        metadata: dict[str, str],
    ) -> RefundResult:
        """Refund ``amount`` of a confirmed payment."""
        ...

    @abstractmethod
    def create_transfer(
        self,
        amount: int,
        currency: str,
        destination: str,
        transfer_group: str,
        metadata: dict[str, str],
    ) -> TransferResult:
        """Move funds to a vendor's connected account."""
        ...

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str) -> GatewayEvent:
        """Verify a webhook signature and parse the delivery."""
        ...
