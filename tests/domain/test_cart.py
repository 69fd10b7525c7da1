"""Tests for the Cart aggregate."""

from datetime import date

import pytest
from marketplace.cart.cart import Cart
from marketplace.cart.events import CartCheckoutStatusChanged, CartCleared, CartLineAdded, CartLineRemoved
from marketplace.errors import NotFoundError
from marketplace.inventory.unit import InventoryUnit


def _make_unit(name="Harbour tour", unit_price=2500, vendor_id="vendor-001"):
    unit = InventoryUnit.register(
        vendor_id=vendor_id,
        name=name,
        unit_price=unit_price,
        product_date=date(2030, 6, 1),
        available_quantity=10,
        start_time="10:00",
        duration_minutes=60,
    )
    unit.publish()
    return unit


def _make_cart():
    cart = Cart.create(user_id="user-001")
    cart._events.clear()
    return cart


class TestCartLines:
    def test_new_cart_is_empty(self):
        cart = _make_cart()
        assert cart.is_empty
        assert cart.total == 0
        assert cart.item_count == 0
        assert cart.checkout_in_progress is False

    def test_add_line_copies_unit_details(self):
        cart = _make_cart()
        unit = _make_unit()
        cart.add_line(unit, 2)
        line = cart.line_for(unit.id)
        assert line.quantity == 2
        assert line.unit_price == 2500
        assert line.name == "Harbour tour"
        assert str(line.vendor_id) == "vendor-001"
        assert line.start_time == "10:00"

    def test_add_same_unit_merges_lines(self):
        cart = _make_cart()
        unit = _make_unit()
        cart.add_line(unit, 1)
        cart.add_line(unit, 2)
        assert len(cart.lines) == 1
        assert cart.item_count == 3
        assert cart._events[-1].line_quantity == 3

    def test_total_sums_lines(self):
        cart = _make_cart()
        cart.add_line(_make_unit(unit_price=2500), 2)
        cart.add_line(_make_unit(name="Night dive", unit_price=9000), 1)
        assert cart.total == 14000
        assert cart.item_count == 3

    def test_add_line_raises_event(self):
        cart = _make_cart()
        cart.add_line(_make_unit(), 1)
        assert isinstance(cart._events[0], CartLineAdded)

    def test_remove_line_returns_it(self):
        cart = _make_cart()
        unit = _make_unit()
        cart.add_line(unit, 3)
        cart._events.clear()
        line = cart.remove_line(unit.id)
        assert line.quantity == 3
        assert cart.is_empty
        assert isinstance(cart._events[0], CartLineRemoved)

    def test_remove_missing_line(self):
        cart = _make_cart()
        with pytest.raises(NotFoundError):
            cart.remove_line("unit-missing")

    def test_clear_returns_released_pairs(self):
        cart = _make_cart()
        first, second = _make_unit(), _make_unit(name="Night dive")
        cart.add_line(first, 2)
        cart.add_line(second, 1)
        cart._events.clear()
        released = cart.clear()
        assert sorted(released) == sorted([(str(first.id), 2), (str(second.id), 1)])
        assert cart.is_empty
        assert cart._events[0].released_units == 3
        assert isinstance(cart._events[0], CartCleared)


class TestCheckoutFlag:
    def test_set_checkout_status(self):
        cart = _make_cart()
        cart.set_checkout_status(True)
        assert cart.checkout_in_progress is True
        assert isinstance(cart._events[0], CartCheckoutStatusChanged)

    def test_setting_flag_refreshes_idle_timer(self):
        cart = _make_cart()
        before = cart.updated_at
        cart.set_checkout_status(False)
        assert cart.updated_at >= before

    def test_summary_shape(self):
        cart = _make_cart()
        cart.add_line(_make_unit(), 2)
        summary = cart.summary()
        assert summary["user_id"] == "user-001"
        assert summary["total"] == 5000
        assert summary["lines"][0]["product_date"] == "2030-06-01"
