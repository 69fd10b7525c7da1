"""Past-date archival — retire published units whose date has gone by.

Triggered daily by an external scheduler through the maintenance CLI or
endpoint. Each unit is archived in its own command so one failure does not
stop the run.
"""

from datetime import date

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Date
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import MarketplaceError
from marketplace.inventory.unit import InventoryUnit
from marketplace.utils.clock import utc_now

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="InventoryUnit")
class ArchivePastInventoryUnits:
    """Archive published units dated before ``as_of`` (defaults to today)."""

    as_of = Date()


@marketplace.command_handler(part_of=InventoryUnit)
class ArchivePastInventoryUnitsHandler:
    @handle(ArchivePastInventoryUnits)
    def archive_past_inventory_units(self, command):
        today: date = command.as_of or utc_now().date()
        past_units = current_domain.repository_for(InventoryUnit).find_published_before(today)

        if not past_units:
            logger.info("No past inventory units to archive", as_of=today.isoformat())
            return 0

        from marketplace.inventory.management import ArchiveInventoryUnit

        archived_count = 0
        for unit in past_units:
            try:
                current_domain.process(
                    ArchiveInventoryUnit(unit_id=str(unit.id), reason="date passed"),
                    asynchronous=False,
                )
                archived_count += 1
            except (ValidationError, MarketplaceError) as exc:
                logger.warning("Failed to archive inventory unit", unit_id=str(unit.id), error=str(exc))

        logger.info("Past inventory units archived", archived_count=archived_count)
        return archived_count
