"""InventoryUnit aggregate — a dated, timed capacity slot sold by a vendor.

State Machine:
    DRAFT → PUBLISHED → ARCHIVED
    DRAFT → ARCHIVED

The remaining capacity is only ever changed through adjust_quantity(), which
checks its preconditions against the loaded state before applying the delta.
The InventoryUnitRepository wraps it as the compare-and-adjust primitive used
by carts, fulfillment and the idle-cart sweep.
"""

from enum import Enum

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Date, DateTime, Identifier, Integer, String

from marketplace.domain import marketplace
from marketplace.errors import InsufficientInventory, NotFoundError, ProductUnavailable
from marketplace.inventory.events import (
    InventoryUnitArchived,
    InventoryUnitPublished,
    InventoryUnitRegistered,
)
from marketplace.utils.clock import utc_now


class InventoryStatus(Enum):
    DRAFT = "Draft"
    PUBLISHED = "Published"
    ARCHIVED = "Archived"


@marketplace.aggregate
class InventoryUnit:
    vendor_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    unit_price = Integer(required=True, min_value=0)  # minor units
    product_date = Date(required=True)
    start_time = String(max_length=5)  # HH:MM
    duration_minutes = Integer(min_value=0)
    available_quantity = Integer(default=0, min_value=0)
    status = String(choices=InventoryStatus, default=InventoryStatus.DRAFT.value)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(
        cls,
        vendor_id,
        name,
        unit_price,
        product_date,
        available_quantity,
        start_time=None,
        duration_minutes=None,
    ):
        now = utc_now()
        unit = cls(
            vendor_id=vendor_id,
            name=name,
            unit_price=unit_price,
            product_date=product_date,
            start_time=start_time,
            duration_minutes=duration_minutes,
            available_quantity=available_quantity,
            status=InventoryStatus.DRAFT.value,
            created_at=now,
            updated_at=now,
        )
        unit.raise_(
            InventoryUnitRegistered(
                unit_id=str(unit.id),
                vendor_id=str(vendor_id),
                name=name,
                unit_price=unit_price,
                product_date=product_date,
                available_quantity=available_quantity,
            )
        )
        return unit

    def publish(self):
        if InventoryStatus(self.status) != InventoryStatus.DRAFT:
            raise ValidationError({"status": [f"Cannot publish a unit in {self.status} status"]})

        now = utc_now()
        self.status = InventoryStatus.PUBLISHED.value
        self.updated_at = now
        self.raise_(InventoryUnitPublished(unit_id=str(self.id), published_at=now))

    def archive(self, reason=None):
        if InventoryStatus(self.status) == InventoryStatus.ARCHIVED:
            raise ValidationError({"status": ["Unit is already archived"]})

        now = utc_now()
        self.status = InventoryStatus.ARCHIVED.value
        self.updated_at = now
        self.raise_(InventoryUnitArchived(unit_id=str(self.id), reason=reason, archived_at=now))

    def adjust_quantity(self, delta: int, required_status=None, required_minimum=None) -> int:
        """Apply ``delta`` to the available quantity if the preconditions hold.

        Raises ProductUnavailable when the unit is not in ``required_status``
        and InsufficientInventory when it holds less than ``required_minimum``
        or the result would drop below zero. Nothing changes on failure.
        """
        if required_status is not None and self.status != InventoryStatus(required_status).value:
            raise ProductUnavailable(
                f"Product {self.name} is not available",
                unit_id=str(self.id),
                status=self.status,
            )

        current = self.available_quantity or 0
        if required_minimum is not None and current < required_minimum:
            raise InsufficientInventory(
                f"Only {current} left for {self.name}",
                unit_id=str(self.id),
                available=current,
                requested=required_minimum,
            )
        if current + delta < 0:
            raise InsufficientInventory(
                f"Only {current} left for {self.name}",
                unit_id=str(self.id),
                available=current,
                requested=-delta,
            )

        self.available_quantity = current + delta
        self.updated_at = utc_now()
        return self.available_quantity


@marketplace.repository(part_of=InventoryUnit)
class InventoryUnitRepository:
    def find_by_id_with_status(self, unit_id, status=None) -> InventoryUnit:
        """Load a unit, optionally insisting on its status. Raises NotFoundError."""
        try:
            unit = self.get(unit_id)
        except ObjectNotFoundError as exc:
            raise NotFoundError(f"Inventory unit {unit_id} not found", unit_id=str(unit_id)) from exc

        if status is not None and unit.status != InventoryStatus(status).value:
            raise NotFoundError(
                f"Inventory unit {unit_id} is not {InventoryStatus(status).value}",
                unit_id=str(unit_id),
            )
        return unit

    def atomic_adjust_quantity(self, unit_id, delta: int, required_status=None, required_minimum=None):
        """Compare-and-adjust the available quantity of one unit.

        Must run inside the caller's unit of work. The save is checked
        against the version that was loaded, so a concurrent adjustment
        fails the whole unit instead of overwriting it.
        """
        unit = self.find_by_id_with_status(unit_id)
        unit.adjust_quantity(delta, required_status=required_status, required_minimum=required_minimum)
        self.add(unit)
        return unit

    def find_published_before(self, cutoff_date) -> list[InventoryUnit]:
        units = self._dao.query.filter(status=InventoryStatus.PUBLISHED.value).all().items
        return [unit for unit in units if unit.product_date and unit.product_date < cutoff_date]
