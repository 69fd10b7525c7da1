"""Inventory unit lifecycle — register, publish and archive commands."""

from protean import handle
from protean.fields import Date, Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.inventory.unit import InventoryUnit


@marketplace.command(part_of="InventoryUnit")
class RegisterInventoryUnit:
    vendor_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    unit_price = Integer(required=True, min_value=0)
    product_date = Date(required=True)
    available_quantity = Integer(required=True, min_value=0)
    start_time = String(max_length=5)
    duration_minutes = Integer(min_value=0)


@marketplace.command(part_of="InventoryUnit")
class PublishInventoryUnit:
    unit_id = Identifier(required=True)


@marketplace.command(part_of="InventoryUnit")
class ArchiveInventoryUnit:
    unit_id = Identifier(required=True)
    reason = String(max_length=255)


@marketplace.command_handler(part_of=InventoryUnit)
class ManageInventoryUnitHandler:
    @handle(RegisterInventoryUnit)
    def register_inventory_unit(self, command):
        unit = InventoryUnit.register(
            vendor_id=command.vendor_id,
            name=command.name,
            unit_price=command.unit_price,
            product_date=command.product_date,
            available_quantity=command.available_quantity,
            start_time=command.start_time,
            duration_minutes=command.duration_minutes,
        )
        current_domain.repository_for(InventoryUnit).add(unit)
        return str(unit.id)

    @handle(PublishInventoryUnit)
    def publish_inventory_unit(self, command):
        repo = current_domain.repository_for(InventoryUnit)
        unit = repo.find_by_id_with_status(command.unit_id)
        unit.publish()
        repo.add(unit)

    @handle(ArchiveInventoryUnit)
    def archive_inventory_unit(self, command):
        repo = current_domain.repository_for(InventoryUnit)
        unit = repo.find_by_id_with_status(command.unit_id)
        unit.archive(reason=command.reason)
        repo.add(unit)
