"""Configurable fake payment gateway for development and testing.

Simulates the gateway without external calls. It can be configured at
runtime to fail, records every call in ``calls`` and keeps the sessions it
opened so their status can be read back. Webhooks are accepted when signed
with ``test-signature``.
"""

import json
from uuid import uuid4

from marketplace.errors import ExternalGatewayError, InvalidGatewayEvent, InvalidSignature
from marketplace.gateway.port import (
    CheckoutSessionResult,
    GatewayEvent,
    PaymentGateway,
    RefundResult,
    SessionStatusResult,
    TransferResult,
)

TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []
        self.sessions: dict[str, dict] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]

    def _check(self, method: str) -> None:
        if not self.should_succeed:
            raise ExternalGatewayError(self.failure_reason, method=method)

    def create_checkout_session(
        self,
        line_items: list[dict],
        metadata: dict[str, str],
        return_url: str,
        currency: str,
        idempotency_key: str,
    ) -> CheckoutSessionResult:
        self.calls.append(
            {
                "method": "create_checkout_session",
                "line_items": line_items,
                "metadata": metadata,
                "return_url": return_url,
                "currency": currency,
                "idempotency_key": idempotency_key,
            }
        )
        self._check("create_checkout_session")

        session_id = f"cs_fake_{uuid4().hex[:16]}"
        self.sessions[session_id] = {"status": "open", "customer_email": None, "metadata": metadata}
        return CheckoutSessionResult(session_id=session_id, client_secret=f"{session_id}_secret")

    def retrieve_session(self, session_id: str) -> SessionStatusResult:
        self.calls.append({"method": "retrieve_session", "session_id": session_id})
        self._check("retrieve_session")

        session = self.sessions.get(session_id)
        if session is None:
            raise ExternalGatewayError(f"No such checkout session: {session_id}", session_id=session_id)
        return SessionStatusResult(status=session["status"], customer_email=session["customer_email"])

    def complete_session(self, session_id: str, customer_email: str | None = None) -> None:
        """Mark a fake session as paid, as the hosted page would."""
        self.sessions[session_id].update(status="complete", customer_email=customer_email)

    def create_refund(
        self,
        payment_reference: str,
        amount: int,
        metadata: dict[str, str],
    ) -> RefundResult:
        self.calls.append(
            {
                "method": "create_refund",
                "payment_reference": payment_reference,
                "amount": amount,
                "metadata": metadata,
            }
        )
        self._check("create_refund")
        return RefundResult(refund_id=f"re_fake_{uuid4().hex[:12]}", amount=amount, status="succeeded")

    def create_transfer(
        self,
        amount: int,
        currency: str,
        destination: str,
        transfer_group: str,
        metadata: dict[str, str],
    ) -> TransferResult:
        self.calls.append(
            {
                "method": "create_transfer",
                "amount": amount,
                "currency": currency,
                "destination": destination,
                "transfer_group": transfer_group,
                "metadata": metadata,
            }
        )
        self._check("create_transfer")
        return TransferResult(
            transfer_id=f"tr_fake_{uuid4().hex[:12]}",
            amount=amount,
            destination=destination,
            transfer_group=transfer_group,
            source_type="card",
        )

    def construct_event(self, payload: bytes, signature: str) -> GatewayEvent:
        if signature != TEST_SIGNATURE:
            raise InvalidSignature("Invalid webhook signature")
        try:
            body = json.loads(payload)
        except ValueError as exc:
            raise InvalidGatewayEvent("Webhook payload is not valid JSON") from exc
        return GatewayEvent.from_payload(body)
