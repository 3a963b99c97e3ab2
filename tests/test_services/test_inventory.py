"""Tests for stock levels and adjustments."""

import asyncio
from typing import Any

import pytest

from labmaint.config import Settings
from labmaint.errors import InsufficientStock, InvalidInput, InvalidQuantity, ItemNotFound
from labmaint.models.inventory import (
    InventoryItem,
    ItemKind,
    StockAdjustment,
    StockStatus,
    compute_stock_status,
)
from labmaint.models.requests import InventoryItemCreate, InventoryItemUpdate
from labmaint.services import InventoryStore, Services, build_services
from labmaint.state.locks import KeyedLocks
from labmaint.state.manager import MemoryStateManager


@pytest.mark.parametrize(
    "quantity,min_quantity,expected",
    [
        (0, 0, StockStatus.OUT_OF_STOCK),
        (0, 5, StockStatus.OUT_OF_STOCK),
        (1, 5, StockStatus.LOW_STOCK),
        (4, 5, StockStatus.LOW_STOCK),
        (5, 5, StockStatus.IN_STOCK),
        (9, 5, StockStatus.IN_STOCK),
    ],
)
def test_compute_stock_status(quantity: int, min_quantity: int, expected: StockStatus) -> None:
    """Status depends only on quantity and minimum."""
    assert compute_stock_status(quantity, min_quantity) == expected


def test_compute_stock_status_over_range() -> None:
    for quantity in range(200):
        for min_quantity in range(200):
            if quantity == 0:
                expected = StockStatus.OUT_OF_STOCK
            elif quantity < min_quantity:
                expected = StockStatus.LOW_STOCK
            else:
                expected = StockStatus.IN_STOCK
            assert compute_stock_status(quantity, min_quantity) == expected, (
                quantity,
                min_quantity,
            )


@pytest.mark.asyncio
async def test_create_derives_status(services: Services) -> None:
    item = await services.inventory.create(
        InventoryItemCreate(name="Lens Blanks", category="Blanks", quantity=3, min_quantity=10)
    )

    assert item.id == 1
    assert item.status == StockStatus.LOW_STOCK
    assert [i.id for i in await services.inventory.list_low_stock()] == [item.id]


@pytest.mark.asyncio
async def test_wear_attributes_require_wear_kind(services: Services) -> None:
    with pytest.raises(InvalidInput):
        await services.inventory.create(
            InventoryItemCreate(
                name="Tape",
                category="Blocking",
                kind=ItemKind.CONSUMABLE,
                usage_unit="rolls",
                max_lifespan=10,
            )
        )

    with pytest.raises(InvalidInput):
        await services.inventory.create(
            InventoryItemCreate(name="Pad", category="Polishing", kind=ItemKind.WEAR_PART)
        )


@pytest.mark.asyncio
async def test_adjust_updates_quantity_and_status(
    services: Services, sample_consumable: InventoryItem
) -> None:
    adjustment = await services.inventory.adjust(sample_consumable.id, -4)

    assert adjustment.previous_quantity == 5
    assert adjustment.new_quantity == 1
    assert adjustment.new_status == StockStatus.LOW_STOCK

    item = await services.inventory.get_by_id(sample_consumable.id)
    assert item.quantity == 1
    assert item.status == StockStatus.LOW_STOCK
    assert item.last_updated >= sample_consumable.last_updated


@pytest.mark.asyncio
async def test_adjust_to_minimum_is_in_stock(
    services: Services, sample_consumable: InventoryItem
) -> None:
    adjustment = await services.inventory.adjust(sample_consumable.id, -3)

    assert adjustment.new_quantity == sample_consumable.min_quantity
    assert adjustment.new_status == StockStatus.IN_STOCK


@pytest.mark.asyncio
async def test_adjust_never_goes_negative(
    services: Services, sample_consumable: InventoryItem
) -> None:
    with pytest.raises(InsufficientStock) as exc_info:
        await services.inventory.adjust(sample_consumable.id, -6)

    assert exc_info.value.available == 5
    assert exc_info.value.requested == 6
    assert (await services.inventory.get_by_id(sample_consumable.id)).quantity == 5


@pytest.mark.asyncio
async def test_adjust_rejects_fractional_delta(
    services: Services, sample_consumable: InventoryItem
) -> None:
    with pytest.raises(InvalidQuantity):
        await services.inventory.adjust(sample_consumable.id, 1.5)


@pytest.mark.asyncio
async def test_adjust_unknown_item(services: Services) -> None:
    with pytest.raises(ItemNotFound):
        await services.inventory.adjust(99, 1)


class YieldingStateManager(MemoryStateManager):
    """Memory store that hands control back to the loop after every read."""

    async def get(self, key: str) -> Any:
        value = await super().get(key)
        await asyncio.sleep(0)
        return value


async def _deduct_twice(first: InventoryStore, second: InventoryStore, item_id: int) -> list:
    return await asyncio.gather(
        first.adjust(item_id, -3),
        second.adjust(item_id, -3),
        return_exceptions=True,
    )


@pytest.mark.asyncio
async def test_concurrent_deductions_cannot_both_pass(settings: Settings) -> None:
    services = build_services(YieldingStateManager(), settings)
    item = await services.inventory.create(
        InventoryItemCreate(name="Polishing Slurry", category="Polishing", quantity=5)
    )

    results = await _deduct_twice(services.inventory, services.inventory, item.id)

    assert sum(isinstance(r, StockAdjustment) for r in results) == 1
    assert sum(isinstance(r, InsufficientStock) for r in results) == 1
    assert (await services.inventory.get_by_id(item.id)).quantity == 2


@pytest.mark.asyncio
async def test_workers_sharing_a_store_serialize_deductions() -> None:
    store = YieldingStateManager()
    worker_a = InventoryStore(store, KeyedLocks(store))
    worker_b = InventoryStore(store, KeyedLocks(store))
    item = await worker_a.create(
        InventoryItemCreate(name="Polishing Slurry", category="Polishing", quantity=5)
    )

    results = await _deduct_twice(worker_a, worker_b, item.id)

    assert sum(isinstance(r, StockAdjustment) for r in results) == 1
    assert sum(isinstance(r, InsufficientStock) for r in results) == 1
    assert (await worker_b.get_by_id(item.id)).quantity == 2


@pytest.mark.asyncio
async def test_process_local_locks_alone_let_both_deductions_read_the_same_stock() -> None:
    store = YieldingStateManager()
    worker_a = InventoryStore(store, KeyedLocks())
    worker_b = InventoryStore(store, KeyedLocks())
    item = await worker_a.create(
        InventoryItemCreate(name="Polishing Slurry", category="Polishing", quantity=5)
    )

    results = await _deduct_twice(worker_a, worker_b, item.id)

    # the store yields between read and write, so unshared locks interleave
    assert [r.previous_quantity for r in results] == [5, 5]


@pytest.mark.asyncio
async def test_update_applies_quantity_as_adjustment(
    services: Services, sample_consumable: InventoryItem
) -> None:
    item = await services.inventory.update(
        sample_consumable.id, InventoryItemUpdate(quantity=0, location="Shelf B")
    )

    assert item.quantity == 0
    assert item.status == StockStatus.OUT_OF_STOCK
    assert item.location == "Shelf B"


@pytest.mark.asyncio
async def test_update_minimum_recomputes_status(
    services: Services, sample_consumable: InventoryItem
) -> None:
    item = await services.inventory.update(sample_consumable.id, InventoryItemUpdate(min_quantity=8))

    assert item.status == StockStatus.LOW_STOCK


@pytest.mark.asyncio
async def test_search_and_wear_part_listing(
    services: Services,
    sample_consumable: InventoryItem,
    sample_wear_item: InventoryItem,
) -> None:
    assert [i.id for i in await services.inventory.search("slurry")] == [sample_consumable.id]
    assert [i.id for i in await services.inventory.list_wear_parts()] == [sample_wear_item.id]
