"""Tests for the InventoryUnit aggregate and its quantity adjustments."""

from datetime import date

import pytest
from marketplace.errors import InsufficientInventory, ProductUnavailable
from marketplace.inventory.events import InventoryUnitArchived, InventoryUnitPublished, InventoryUnitRegistered
from marketplace.inventory.unit import InventoryStatus, InventoryUnit
from protean.exceptions import ValidationError


def _make_unit(available_quantity=5, publish=True):
    unit = InventoryUnit.register(
        vendor_id="vendor-001",
        name="Morning climb",
        unit_price=4000,
        product_date=date(2030, 6, 1),
        available_quantity=available_quantity,
        start_time="07:00",
        duration_minutes=180,
    )
    if publish:
        unit.publish()
    unit._events.clear()
    return unit


class TestRegistration:
    def test_register_starts_in_draft(self):
        unit = InventoryUnit.register(
            vendor_id="vendor-001",
            name="Morning climb",
            unit_price=4000,
            product_date=date(2030, 6, 1),
            available_quantity=5,
        )
        assert unit.status == InventoryStatus.DRAFT.value
        assert unit.available_quantity == 5

    def test_register_raises_event(self):
        unit = InventoryUnit.register(
            vendor_id="vendor-001",
            name="Morning climb",
            unit_price=4000,
            product_date=date(2030, 6, 1),
            available_quantity=5,
        )
        assert len(unit._events) == 1
        assert isinstance(unit._events[0], InventoryUnitRegistered)

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValidationError):
            InventoryUnit.register(
                vendor_id="vendor-001",
                name="Morning climb",
                unit_price=4000,
                product_date=date(2030, 6, 1),
                available_quantity=-1,
            )


class TestLifecycle:
    def test_publish_draft(self):
        unit = _make_unit(publish=False)
        unit.publish()
        assert unit.status == InventoryStatus.PUBLISHED.value
        assert isinstance(unit._events[-1], InventoryUnitPublished)

    def test_cannot_publish_twice(self):
        unit = _make_unit()
        with pytest.raises(ValidationError):
            unit.publish()

    def test_archive(self):
        unit = _make_unit()
        unit.archive(reason="date passed")
        assert unit.status == InventoryStatus.ARCHIVED.value
        assert unit._events[-1].reason == "date passed"
        assert isinstance(unit._events[-1], InventoryUnitArchived)

    def test_cannot_archive_twice(self):
        unit = _make_unit()
        unit.archive()
        with pytest.raises(ValidationError):
            unit.archive()


class TestAdjustQuantity:
    def test_reserve_decrements(self):
        unit = _make_unit(available_quantity=5)
        remaining = unit.adjust_quantity(-2, required_status=InventoryStatus.PUBLISHED, required_minimum=2)
        assert remaining == 3
        assert unit.available_quantity == 3

    def test_release_increments(self):
        unit = _make_unit(available_quantity=5)
        unit.adjust_quantity(3)
        assert unit.available_quantity == 8

    def test_reserve_exact_remaining(self):
        unit = _make_unit(available_quantity=2)
        unit.adjust_quantity(-2, required_status=InventoryStatus.PUBLISHED, required_minimum=2)
        assert unit.available_quantity == 0

    def test_insufficient_quantity_rejected_without_change(self):
        unit = _make_unit(available_quantity=1)
        with pytest.raises(InsufficientInventory):
            unit.adjust_quantity(-2, required_status=InventoryStatus.PUBLISHED, required_minimum=2)
        assert unit.available_quantity == 1

    def test_unpublished_unit_unavailable(self):
        unit = _make_unit(publish=False)
        with pytest.raises(ProductUnavailable):
            unit.adjust_quantity(-1, required_status=InventoryStatus.PUBLISHED, required_minimum=1)
        assert unit.available_quantity == 5

    def test_archived_unit_unavailable(self):
        unit = _make_unit()
        unit.archive()
        with pytest.raises(ProductUnavailable):
            unit.adjust_quantity(-1, required_status=InventoryStatus.PUBLISHED, required_minimum=1)

    def test_quantity_never_goes_negative(self):
        unit = _make_unit(available_quantity=1)
        with pytest.raises(InsufficientInventory):
            unit.adjust_quantity(-3)
        assert unit.available_quantity == 1
