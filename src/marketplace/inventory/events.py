"""Domain events for the InventoryUnit aggregate."""

from protean.fields import Date, DateTime, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="InventoryUnit")
class InventoryUnitRegistered:
    """A new bookable slot was created in draft."""

    __version__ = 1

    unit_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    name = String(required=True)
    unit_price = Integer(required=True)
    product_date = Date(required=True)
    available_quantity = Integer(required=True)


@marketplace.event(part_of="InventoryUnit")
class InventoryUnitPublished:
    """The slot became available for sale."""

    __version__ = 1

    unit_id = Identifier(required=True)
    published_at = DateTime(required=True)


@marketplace.event(part_of="InventoryUnit")
class InventoryUnitArchived:
    """The slot was withdrawn from sale."""

    __version__ = 1

    unit_id = Identifier(required=True)
    reason = String()
    archived_at = DateTime(required=True)
