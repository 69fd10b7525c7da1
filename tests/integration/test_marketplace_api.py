"""Integration tests for the marketplace HTTP API."""

import json
from datetime import date, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from marketplace.api import routers
from marketplace.api.errors import register_error_handlers
from marketplace.gateway.fake_adapter import TEST_SIGNATURE
from marketplace.transaction.transaction import Transaction, TransactionStatus
from protean import current_domain


@pytest.fixture()
def client(gateway):
    app = FastAPI()
    for router in routers:
        app.include_router(router)
    register_error_handlers(app)
    return TestClient(app)


def _seed(client, quantity=5, unit_price=10000, fee_rate=0.15):
    vendor = client.post(
        "/vendors",
        json={
            "name": "Harbour Kayaks",
            "email": "owner@harbourkayaks.test",
            "connect_account_id": "acct_harbour",
            "application_fee_rate": fee_rate,
        },
    )
    vendor_id = vendor.json()["id"]
    unit = client.post(
        "/inventory-units",
        json={
            "vendor_id": vendor_id,
            "name": "Sunset paddle",
            "unit_price": unit_price,
            "product_date": (date.today() + timedelta(days=7)).isoformat(),
            "available_quantity": quantity,
            "start_time": "18:30",
            "duration_minutes": 90,
        },
    )
    return vendor_id, unit.json()["id"]


def _webhook(client, event_type, obj, signature=TEST_SIGNATURE):
    payload = {"id": f"evt_{event_type}", "type": event_type, "data": {"object": obj}}
    return client.post(
        "/webhooks/gateway",
        content=json.dumps(payload),
        headers={"Stripe-Signature": signature, "Content-Type": "application/json"},
    )


def _purchase(client, quantity=2):
    vendor_id, unit_id = _seed(client)
    client.post("/carts/user-001/items", json={"product_item_id": unit_id, "quantity": quantity})
    session = client.post("/checkout/sessions", json={"user_id": "user-001"}).json()
    _webhook(
        client,
        "checkout.session.completed",
        {
            "id": session["session_id"],
            "payment_intent": "pi_001",
            "customer_details": {"email": "shopper@example.test"},
        },
    )
    tickets = client.get(f"/transactions/{session['transaction_id']}/tickets").json()
    return vendor_id, unit_id, session, tickets


class TestCartEndpoints:
    def test_add_item(self, client):
        _, unit_id = _seed(client)
        response = client.post("/carts/user-001/items", json={"product_item_id": unit_id, "quantity": 2})

        assert response.status_code == 201
        body = response.json()
        assert body["item_count"] == 2
        assert body["total"] == 20000
        assert client.get(f"/inventory-units/{unit_id}").json()["available_quantity"] == 3

    def test_insufficient_inventory_is_conflict(self, client):
        _, unit_id = _seed(client, quantity=1)
        response = client.post("/carts/user-001/items", json={"product_item_id": unit_id, "quantity": 2})

        assert response.status_code == 409
        assert response.json()["error"] == "InsufficientInventory"
        assert client.get(f"/inventory-units/{unit_id}").json()["available_quantity"] == 1

    def test_unknown_unit_is_not_found(self, client):
        response = client.post("/carts/user-001/items", json={"product_item_id": "unit-missing", "quantity": 1})
        assert response.status_code == 404

    def test_zero_quantity_is_bad_request(self, client):
        _, unit_id = _seed(client)
        response = client.post("/carts/user-001/items", json={"product_item_id": unit_id, "quantity": 0})
        assert response.status_code == 400

    def test_remove_item(self, client):
        _, unit_id = _seed(client)
        client.post("/carts/user-001/items", json={"product_item_id": unit_id, "quantity": 2})

        response = client.delete(f"/carts/user-001/items/{unit_id}")

        assert response.status_code == 200
        assert response.json()["lines"] == []
        assert client.get(f"/inventory-units/{unit_id}").json()["available_quantity"] == 5

    def test_clear_cart(self, client):
        _, unit_id = _seed(client)
        client.post("/carts/user-001/items", json={"product_item_id": unit_id, "quantity": 3})

        response = client.delete("/carts/user-001")

        assert response.json()["item_count"] == 0
        assert client.get(f"/inventory-units/{unit_id}").json()["available_quantity"] == 5

    def test_read_missing_cart(self, client):
        response = client.get("/carts/user-404")
        assert response.status_code == 200
        assert response.json()["lines"] == []

    def test_set_checkout_status(self, client):
        _, unit_id = _seed(client)
        client.post("/carts/user-001/items", json={"product_item_id": unit_id, "quantity": 1})

        response = client.put("/carts/user-001/checkout-status", json={"in_progress": True})

        assert response.json()["checkout_in_progress"] is True


class TestCheckoutEndpoints:
    def test_create_session(self, client):
        _, unit_id = _seed(client)
        client.post("/carts/user-001/items", json={"product_item_id": unit_id, "quantity": 1})

        response = client.post("/checkout/sessions", json={"user_id": "user-001"})

        assert response.status_code == 201
        body = response.json()
        assert body["client_secret"].endswith("_secret")
        assert client.get(f"/checkout/sessions/{body['session_id']}").json()["status"] == "open"

    def test_gateway_failure_is_server_error(self, client, gateway):
        _, unit_id = _seed(client)
        client.post("/carts/user-001/items", json={"product_item_id": unit_id, "quantity": 1})
        gateway.configure(should_succeed=False)

        response = client.post("/checkout/sessions", json={"user_id": "user-001"})

        assert response.status_code == 500
        assert response.json()["error"] == "CheckoutCreationFailed"
        assert client.get("/carts/user-001").json()["checkout_in_progress"] is False

    def test_missing_cart(self, client):
        response = client.post("/checkout/sessions", json={"user_id": "user-404"})
        assert response.status_code == 404


class TestWebhookEndpoint:
    def test_completed_session_issues_tickets(self, client):
        _, unit_id, session, tickets = _purchase(client, quantity=2)

        assert len(tickets) == 2
        assert client.get("/carts/user-001").json()["cart_id"] is None
        assert client.get(f"/inventory-units/{unit_id}").json()["available_quantity"] == 3

    def test_bad_signature_is_unauthorized(self, client):
        response = _webhook(client, "charge.succeeded", {"id": "ch_1", "payment_intent": "pi_1"}, signature="forged")
        assert response.status_code == 401

    def test_malformed_event_is_bad_request(self, client):
        response = _webhook(client, "checkout.session.completed", {"id": "cs_1"})
        assert response.status_code == 400

    def test_handler_failure_still_acknowledged(self, client):
        response = _webhook(client, "checkout.session.completed", {"id": "cs_unknown", "payment_intent": "pi_1"})
        assert response.status_code == 200
        assert response.json() == {"received": True}


class TestTicketEndpoints:
    def test_redeem_credits_vendor(self, client):
        vendor_id, _, _, tickets = _purchase(client, quantity=1)

        response = client.put(f"/tickets/{tickets[0]['ticket_id']}/status", json={"status": "REDEEMED"})

        assert response.status_code == 200
        assert response.json()["status"] == "Redeemed"
        assert client.get(f"/vendors/{vendor_id}").json()["balance"] == 8500

    def test_invalid_transition_is_conflict(self, client):
        _, _, _, tickets = _purchase(client, quantity=1)
        ticket_id = tickets[0]["ticket_id"]
        client.put(f"/tickets/{ticket_id}/status", json={"status": "CANCELLED"})

        response = client.put(f"/tickets/{ticket_id}/status", json={"status": "REDEEMED"})

        assert response.status_code == 409

    def test_unknown_status_rejected(self, client):
        _, _, _, tickets = _purchase(client, quantity=1)
        response = client.put(f"/tickets/{tickets[0]['ticket_id']}/status", json={"status": "USED"})
        assert response.status_code == 422


class TestRefundEndpoints:
    def test_refund_redeemed_ticket(self, client):
        vendor_id, _, session, tickets = _purchase(client, quantity=2)
        ticket_id = tickets[0]["ticket_id"]
        client.put(f"/tickets/{ticket_id}/status", json={"status": "REDEEMED"})

        response = client.post(f"/tickets/{ticket_id}/refund", json={"reason": "weather"})

        assert response.status_code == 200
        assert response.json()["amount"] == 10000
        assert client.get(f"/vendors/{vendor_id}").json()["balance"] == 0
        assert client.get(f"/tickets/{ticket_id}").json()["status"] == "Cancelled"
        transaction = client.get(f"/transactions/{session['transaction_id']}").json()
        assert transaction["status"] == TransactionStatus.PARTIALLY_REFUNDED.value

    def test_refund_transaction_twice_is_conflict(self, client):
        _, _, session, _ = _purchase(client)
        first = client.post(f"/transactions/{session['transaction_id']}/refund", json={})
        second = client.post(f"/transactions/{session['transaction_id']}/refund", json={})

        assert first.status_code == 200
        assert first.json()["amount"] == 20000
        assert second.status_code == 409
        assert second.json()["error"] == "AlreadyFullyRefunded"

    def test_gateway_refund_failure_is_bad_gateway(self, client, gateway):
        _, _, session, _ = _purchase(client)
        gateway.configure(should_succeed=False)

        response = client.post(f"/transactions/{session['transaction_id']}/refund", json={})

        assert response.status_code == 502
        transaction = current_domain.repository_for(Transaction).get(session["transaction_id"])
        assert transaction.status == TransactionStatus.REFUNDED.value


class TestPayoutEndpoints:
    def test_payout(self, client):
        vendor_id, _, _, tickets = _purchase(client, quantity=1)
        client.put(f"/tickets/{tickets[0]['ticket_id']}/status", json={"status": "REDEEMED"})

        response = client.post(f"/vendors/{vendor_id}/payouts")

        assert response.status_code == 201
        assert response.json()["amount"] == 8500
        assert client.get(f"/vendors/{vendor_id}").json()["balance"] == 0

    def test_empty_balance_is_conflict(self, client):
        vendor_id, _ = _seed(client)
        response = client.post(f"/vendors/{vendor_id}/payouts")
        assert response.status_code == 409


class TestInvoiceEndpoints:
    def test_invoice_for_paid_transaction(self, client):
        vendor_id, unit_id, session, _ = _purchase(client)

        response = client.get(f"/invoices/{session['transaction_id']}")

        assert response.status_code == 200
        body = response.json()
        assert body["amount"] == 20000
        assert body["product_item_ids"] == [unit_id]
        (group,) = body["vendor_groups"]
        assert group["vendor_id"] == vendor_id
        assert group["vendor_name"] == "Harbour Kayaks"
        assert group["subtotal"] == 20000

    def test_customer_and_vendor_listings(self, client):
        vendor_id, _, session, _ = _purchase(client)

        customer = client.get("/invoices/customer/user-001").json()
        vendor = client.get(f"/invoices/vendor/{vendor_id}").json()

        assert [invoice["transaction_id"] for invoice in customer] == [session["transaction_id"]]
        assert [invoice["transaction_id"] for invoice in vendor] == [session["transaction_id"]]

    def test_unpaid_transaction_has_no_invoice(self, client):
        _, unit_id = _seed(client)
        client.post("/carts/user-001/items", json={"product_item_id": unit_id, "quantity": 1})
        session = client.post("/checkout/sessions", json={"user_id": "user-001"}).json()

        assert client.get(f"/invoices/{session['transaction_id']}").status_code == 404


class TestMaintenanceEndpoints:
    def test_sweep_carts(self, client):
        _, unit_id = _seed(client)
        client.post("/carts/user-001/items", json={"product_item_id": unit_id, "quantity": 1})

        response = client.post("/maintenance/sweep-carts", json={"idle_minutes": 20})

        assert response.status_code == 200
        assert response.json() == {"expired": 0, "released": 0}

    def test_configure_fake_gateway(self, client, gateway):
        response = client.post(
            "/checkout/gateway/configure",
            json={"should_succeed": False, "failure_reason": "maintenance"},
        )
        assert response.status_code == 200
        assert gateway.should_succeed is False
        assert gateway.failure_reason == "maintenance"
