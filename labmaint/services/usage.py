"""Usage ledger: append-only history of equipment/item usage."""

from labmaint.errors import UsageEntryNotFound
from labmaint.models.usage import UsageLogEntry
from labmaint.state.manager import StateManager
from labmaint.utils.logging import get_logger

logger = get_logger(__name__)


class UsageLedger:
    """
    Source of truth for cumulative usage.

    Entries are appended or removed, never rewritten; cumulative usage is the
    sum of ``quantity_used`` over the entries of an equipment/item pair.
    """

    collection = "usage_log"

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    def _entry_key(self, entry_id: int) -> str:
        """Generate storage key for a usage entry."""
        return f"{self.collection}:{entry_id}"

    async def next_id(self) -> int:
        """Allocate an entry id."""
        return await self.state.next_id(self.collection)

    async def append(self, entry: UsageLogEntry) -> UsageLogEntry:
        """Append an entry; ids are never reused."""
        await self.state.set(self._entry_key(entry.id), entry.model_dump(mode="json"))

        logger.info(
            "usage_appended",
            entry_id=entry.id,
            equipment_id=entry.equipment_id,
            item_id=entry.inventory_item_id,
            quantity_used=entry.quantity_used,
            stock_deducted=entry.stock_deducted,
        )
        return entry

    async def remove(self, entry_id: int) -> None:
        """Remove an entry."""
        if not await self.state.delete(self._entry_key(entry_id)):
            raise UsageEntryNotFound(entry_id)

        logger.info("usage_removed", entry_id=entry_id)

    async def get(self, entry_id: int) -> UsageLogEntry:
        """Return an entry or raise ``UsageEntryNotFound``."""
        data = await self.state.get(self._entry_key(entry_id))
        if not data:
            raise UsageEntryNotFound(entry_id)
        return UsageLogEntry(**data)

    async def list_all(self) -> list[UsageLogEntry]:
        """Every entry in append order."""
        return [
            UsageLogEntry(**data)
            for data in await self.state.list_values(f"{self.collection}:")
        ]

    async def for_equipment(self, equipment_id: int) -> list[UsageLogEntry]:
        """Entries of one piece of equipment."""
        return [e for e in await self.list_all() if e.equipment_id == equipment_id]

    async def for_item(self, item_id: int) -> list[UsageLogEntry]:
        """Entries of one inventory item."""
        return [e for e in await self.list_all() if e.inventory_item_id == item_id]

    async def cumulative_usage(self, equipment_id: int, item_id: int) -> float:
        """Sum of usage of an item on a piece of equipment, resets included."""
        return sum(
            (
                e.quantity_used
                for e in await self.list_all()
                if e.equipment_id == equipment_id and e.inventory_item_id == item_id
            ),
            0.0,
        )
