"""Shared BDD fixtures and step definitions for the checkout-to-fulfillment flow."""

from datetime import timedelta

import pytest
from marketplace.cart.cart import Cart
from marketplace.cart.items import AddCartItem
from marketplace.cart.sweep import SweepCarts
from marketplace.checkout.orchestrator import create_session
from marketplace.errors import MarketplaceError
from marketplace.inventory.unit import InventoryUnit
from marketplace.payment_events.fulfillment import CompleteCheckoutSession
from marketplace.refund.coordinator import refund_ticket
from marketplace.ticket.status import UpdateTicketStatus
from marketplace.ticket.ticket import Ticket, TicketStatus
from marketplace.transaction.transaction import Transaction
from marketplace.utils.clock import utc_now
from marketplace.vendor.vendor import Vendor
from protean import current_domain
from pytest_bdd import given, parsers, then, when

SHOPPER = "shopper-001"


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def units():
    """Inventory unit ids by their scenario label."""
    return {}


@pytest.fixture()
def error():
    """Holds the exception raised by a When step."""
    return {"exc": None}


@pytest.fixture()
def checkout():
    return {}


@pytest.fixture()
def ledger():
    return {}


def _add(unit_id, quantity):
    current_domain.process(AddCartItem(user_id=SHOPPER, product_item_id=unit_id, quantity=quantity), asynchronous=False)


def _transaction(checkout):
    return current_domain.repository_for(Transaction).get(checkout["transaction_id"])


def _tickets(checkout):
    return current_domain.repository_for(Ticket).find_by_transaction(checkout["transaction_id"])


def _balance(vendor_id):
    return current_domain.repository_for(Vendor).get(vendor_id).balance


def _complete(checkout):
    current_domain.process(
        CompleteCheckoutSession(session_id=checkout["session_id"], payment_reference="pi_bdd_001"),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a vendor with an application fee rate of {rate:f}"), target_fixture="vendor_id")
def _vendor(create_vendor, gateway, rate):
    return create_vendor(application_fee_rate=rate)


@given(parsers.cfparse('an inventory unit "{label}" priced {price:d} with {quantity:d} available'))
def _unit(create_unit, vendor_id, units, label, price, quantity):
    units[label] = create_unit(vendor_id, name=f"Unit {label}", unit_price=price, available_quantity=quantity)


@given(parsers.cfparse('the shopper has {quantity:d} of "{label}" in the cart'))
def _in_cart(units, label, quantity):
    _add(units[label], quantity)


@given("the shopper has checked out")
def _checked_out(checkout):
    checkout.update(create_session(SHOPPER))


@given("the gateway reported the session completed")
def _completed(checkout):
    _complete(checkout)


@given("the ticket was redeemed")
def _redeemed(checkout, vendor_id, ledger):
    (ticket,) = _tickets(checkout)
    current_domain.process(
        UpdateTicketStatus(ticket_id=str(ticket.id), status=TicketStatus.REDEEMED.value),
        asynchronous=False,
    )
    ledger["balance_before"] = _balance(vendor_id)
    ledger["ticket_id"] = str(ticket.id)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the shopper adds {quantity:d} of "{label}" to the cart'))
def _add_item(units, error, label, quantity):
    try:
        _add(units[label], quantity)
    except MarketplaceError as exc:
        error["exc"] = exc


@when("the shopper checks out")
def _check_out(checkout):
    checkout.update(create_session(SHOPPER))


@when("the gateway reports the session completed")
def _session_completed(checkout):
    _complete(checkout)


@when("the ticket is refunded")
def _refund(ledger):
    refund_ticket(ledger["ticket_id"], reason="weather")


@when(parsers.cfparse("the idle sweep runs {minutes:d} minutes later"))
def _sweep(minutes):
    current_domain.process(
        SweepCarts(idle_minutes=20, as_of=utc_now() + timedelta(minutes=minutes)),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('"{label}" has {quantity:d} available'))
def _available(units, label, quantity):
    assert current_domain.repository_for(InventoryUnit).get(units[label]).available_quantity == quantity


@then(parsers.cfparse('the cart has one line of {quantity:d} "{label}"'))
def _one_line(units, label, quantity):
    cart = current_domain.repository_for(Cart).get_for_user(SHOPPER)
    assert len(cart.lines) == 1
    assert cart.line_for(units[label]).quantity == quantity


@then(parsers.cfparse("the request fails with {error_type}"))
def _fails_with(error, error_type):
    assert error["exc"] is not None
    assert type(error["exc"]).__name__ == error_type


@then("the cart is empty")
def _cart_empty():
    cart = current_domain.repository_for(Cart).find_by_user(SHOPPER)
    assert cart is None or cart.is_empty


@then("the cart is checking out")
def _cart_checking_out():
    assert current_domain.repository_for(Cart).get_for_user(SHOPPER).checkout_in_progress is True


@then("the shopper has no cart")
def _no_cart():
    assert current_domain.repository_for(Cart).find_by_user(SHOPPER) is None


@then(parsers.cfparse("a pending transaction of {amount:d} is recorded for the session"))
def _pending_transaction(checkout, amount):
    transaction = _transaction(checkout)
    assert transaction.status == "Pending"
    assert transaction.amount == amount
    assert transaction.external_session_id == checkout["session_id"]


@then(parsers.cfparse("exactly {count:d} ticket is issued"))
def _ticket_count(checkout, count):
    assert len(_tickets(checkout)) == count


@then(parsers.cfparse('the transaction is "{status}"'))
def _transaction_status(checkout, status):
    assert _transaction(checkout).status == status


@then(parsers.cfparse("the vendor balance dropped by {amount:d}"))
def _balance_dropped(vendor_id, ledger, amount):
    assert ledger["balance_before"] - _balance(vendor_id) == amount


@then(parsers.cfparse('the ticket is "{status}"'))
def _ticket_status(ledger, status):
    assert current_domain.repository_for(Ticket).get(ledger["ticket_id"]).status == status


@then(parsers.cfparse("the transaction has {count:d} partial refund"))
def _partial_refunds(checkout, count):
    assert len(_transaction(checkout).partial_refunds) == count
