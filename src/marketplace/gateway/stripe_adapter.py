"""Stripe payment gateway adapter.

Uses the stripe-python SDK: embedded Checkout Sessions for payment, Refunds
against the session's PaymentIntent, Transfers to Connect accounts for
vendor payouts and Webhook.construct_event for signature verification.
"""

import json

import structlog
import stripe

from marketplace.errors import ExternalGatewayError, InvalidGatewayEvent, InvalidSignature
from marketplace.gateway.port import (
    CheckoutSessionResult,
    GatewayEvent,
    PaymentGateway,
    RefundResult,
    SessionStatusResult,
    TransferResult,
)

logger = structlog.get_logger(__name__)


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str, webhook_secret: str) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def _fail(self, operation: str, exc: stripe.StripeError, **context) -> ExternalGatewayError:
        logger.error(
            "Stripe call failed",
            operation=operation,
            error=str(exc),
            error_type=type(exc).__name__,
            **context,
        )
        return ExternalGatewayError(f"Stripe {operation} failed: {exc.user_message or exc}", **context)

    def create_checkout_session(
        self,
        line_items: list[dict],
        metadata: dict[str, str],
        return_url: str,
        currency: str,
        idempotency_key: str,
    ) -> CheckoutSessionResult:
        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                ui_mode="embedded",
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": currency,
                            "product_data": {"name": line["name"]},
                            "unit_amount": line["unit_price"],
                        },
                        "quantity": line["quantity"],
                    }
                    for line in line_items
                ],
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
                return_url=return_url,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as exc:
            raise self._fail("checkout session", exc, customer_id=metadata.get("customer_id")) from exc

        return CheckoutSessionResult(session_id=session.id, client_secret=session.client_secret)

    def retrieve_session(self, session_id: str) -> SessionStatusResult:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            raise self._fail("session lookup", exc, session_id=session_id) from exc

        details = getattr(session, "customer_details", None)
        return SessionStatusResult(
            status=getattr(session, "status", None),
            customer_email=getattr(details, "email", None) if details else None,
        )

    def create_refund(
        self,
        payment_reference: str,
        amount: int,
        metadata: dict[str, str],
    ) -> RefundResult:
        try:
            refund = stripe.Refund.create(
                api_key=self.api_key,
                payment_intent=payment_reference,
                amount=amount,
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            raise self._fail("refund", exc, payment_reference=payment_reference, amount=amount) from exc

        return RefundResult(refund_id=refund.id, amount=refund.amount, status=refund.status)

    def create_transfer(
        self,
        amount: int,
        currency: str,
        destination: str,
        transfer_group: str,
        metadata: dict[str, str],
    ) -> TransferResult:
        try:
            transfer = stripe.Transfer.create(
                api_key=self.api_key,
                amount=amount,
                currency=currency,
                destination=destination,
                transfer_group=transfer_group,
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            raise self._fail("transfer", exc, destination=destination, amount=amount) from exc

        return TransferResult(
            transfer_id=transfer.id,
            amount=transfer.amount,
            destination=transfer.destination,
            transfer_group=getattr(transfer, "transfer_group", None),
            source_type=getattr(transfer, "source_type", None),
        )

    def construct_event(self, payload: bytes, signature: str) -> GatewayEvent:
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as exc:
            logger.warning("Stripe webhook signature invalid", error=str(exc))
            raise InvalidSignature("Invalid webhook signature") from exc
        except ValueError as exc:
            raise InvalidGatewayEvent("Webhook payload is not valid JSON") from exc

        # Verified above; parse as plain JSON
        return GatewayEvent.from_payload(json.loads(payload))
