"""Inventory store: sole owner of stock quantities and stock status."""

from datetime import datetime
from typing import Any

from labmaint.errors import InsufficientStock, InvalidInput, InvalidQuantity, ItemNotFound
from labmaint.models.inventory import (
    InventoryItem,
    ItemKind,
    StockAdjustment,
    StockStatus,
    compute_stock_status,
)
from labmaint.models.requests import InventoryItemCreate, InventoryItemUpdate
from labmaint.state.locks import KeyedLocks
from labmaint.state.manager import StateManager
from labmaint.utils.logging import get_logger

logger = get_logger(__name__)


class InventoryStore:
    """
    Inventory items and their stock levels.

    Quantity and status are only ever written by ``adjust``, under the item's
    lock, so two concurrent deductions cannot both see the same quantity.
    """

    collection = "inventory"

    def __init__(self, state_manager: StateManager, locks: KeyedLocks):
        self.state = state_manager
        self.locks = locks

    def _item_key(self, item_id: int) -> str:
        """Generate storage key for an inventory item."""
        return f"{self.collection}:{item_id}"

    def _lock_key(self, item_id: int) -> str:
        return f"lock:{self.collection}:{item_id}"

    async def get_by_id(self, item_id: int) -> InventoryItem:
        """Return an item or raise ``ItemNotFound``."""
        data = await self.state.get(self._item_key(item_id))
        if not data:
            raise ItemNotFound(item_id)
        return InventoryItem(**data)

    async def find(self, item_id: int) -> InventoryItem | None:
        """Return an item or None."""
        data = await self.state.get(self._item_key(item_id))
        return InventoryItem(**data) if data else None

    async def list_all(self) -> list[InventoryItem]:
        """Return every item ordered by id."""
        return [
            InventoryItem(**data)
            for data in await self.state.list_values(f"{self.collection}:")
        ]

    async def search(self, term: str) -> list[InventoryItem]:
        """Case-insensitive search over name and description."""
        needle = term.strip().lower()
        if not needle:
            return await self.list_all()
        return [
            item
            for item in await self.list_all()
            if needle in item.name.lower()
            or (item.description and needle in item.description.lower())
        ]

    async def list_low_stock(self) -> list[InventoryItem]:
        """Items that are low or out of stock, lowest quantity first."""
        items = [
            item for item in await self.list_all() if item.status != StockStatus.IN_STOCK
        ]
        return sorted(items, key=lambda item: item.quantity)

    async def list_by_kind(self, kind: ItemKind) -> list[InventoryItem]:
        """Items of one kind."""
        return [item for item in await self.list_all() if item.kind == kind]

    async def list_wear_parts(self) -> list[InventoryItem]:
        """Items with a rated lifespan."""
        return await self.list_by_kind(ItemKind.WEAR_PART)

    async def create(self, request: InventoryItemCreate) -> InventoryItem:
        """Create an item with its stock status derived from the quantities."""
        item_id = await self.state.next_id(self.collection)
        item = self._build(
            {
                **request.model_dump(),
                "id": item_id,
                "status": compute_stock_status(request.quantity, request.min_quantity),
            }
        )
        await self._save(item)

        logger.info(
            "inventory_item_created",
            item_id=item.id,
            name=item.name,
            kind=item.kind.value,
            quantity=item.quantity,
        )
        return item

    async def update(self, item_id: int, request: InventoryItemUpdate) -> InventoryItem:
        """
        Update descriptive fields and minimum quantity.

        A ``quantity`` in the request is applied through ``set_quantity`` so
        stock only changes by adjustment.
        """
        changes = request.model_dump(exclude_unset=True, exclude={"quantity"})

        async with self.locks.hold(self._lock_key(item_id)):
            current = await self.get_by_id(item_id)
            merged = {**current.model_dump(), **changes}
            merged["status"] = compute_stock_status(merged["quantity"], merged["min_quantity"])
            merged["last_updated"] = datetime.utcnow()
            item = self._build(merged)
            await self._save(item)

        if request.quantity is not None:
            await self.set_quantity(item_id, request.quantity)
            item = await self.get_by_id(item_id)

        logger.info("inventory_item_updated", item_id=item_id, fields=sorted(changes))
        return item

    async def delete(self, item_id: int) -> None:
        """Delete an item."""
        async with self.locks.hold(self._lock_key(item_id)):
            if not await self.state.delete(self._item_key(item_id)):
                raise ItemNotFound(item_id)

        logger.info("inventory_item_deleted", item_id=item_id)

    async def adjust(self, item_id: int, delta: int) -> StockAdjustment:
        """
        Atomically change stock by a signed delta.

        Args:
            item_id: Item to adjust
            delta: Signed quantity change

        Returns:
            Previous and new quantity with the new status

        Raises:
            ItemNotFound: The item does not exist
            InsufficientStock: The result would be negative; nothing is written
        """
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise InvalidQuantity("Stock adjustments must be whole numbers", value=delta)

        async with self.locks.hold(self._lock_key(item_id)):
            item = await self.get_by_id(item_id)
            return await self._apply(item, delta)

    async def set_quantity(self, item_id: int, quantity: int) -> StockAdjustment:
        """Set stock to an absolute value through an adjustment."""
        if quantity < 0:
            raise InvalidQuantity("Quantity cannot be negative", value=quantity)

        async with self.locks.hold(self._lock_key(item_id)):
            item = await self.get_by_id(item_id)
            return await self._apply(item, quantity - item.quantity)

    async def _apply(self, item: InventoryItem, delta: int) -> StockAdjustment:
        """Write quantity and status together; caller holds the item lock."""
        new_quantity = item.quantity + delta
        if new_quantity < 0:
            raise InsufficientStock(item.id, available=item.quantity, requested=-delta)

        updated = item.model_copy(
            update={
                "quantity": new_quantity,
                "status": compute_stock_status(new_quantity, item.min_quantity),
                "last_updated": datetime.utcnow(),
            }
        )
        await self._save(updated)

        logger.info(
            "stock_adjusted",
            item_id=item.id,
            delta=delta,
            previous_quantity=item.quantity,
            new_quantity=new_quantity,
            status=updated.status.value,
        )

        return StockAdjustment(
            item_id=item.id,
            previous_quantity=item.quantity,
            new_quantity=new_quantity,
            new_status=updated.status,
        )

    def _build(self, data: dict[str, Any]) -> InventoryItem:
        try:
            return InventoryItem(**data)
        except ValueError as e:
            raise InvalidInput(f"Invalid inventory item: {e}") from e

    async def _save(self, item: InventoryItem) -> None:
        await self.state.set(self._item_key(item.id), item.model_dump(mode="json"))
