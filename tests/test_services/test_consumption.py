"""Tests for maintenance part consumption and its reversal."""

from decimal import Decimal

import pytest

from labmaint.errors import (
    ConsumptionNotFound,
    InconsistentState,
    InsufficientStock,
    InvalidQuantity,
    ItemNotFound,
    MaintenanceNotFound,
    StorageUnavailable,
)
from labmaint.models.inventory import InventoryItem, StockStatus
from labmaint.models.maintenance import Maintenance
from labmaint.services import Services


async def _quantity(services: Services, item_id: int) -> int:
    return (await services.inventory.get_by_id(item_id)).quantity


async def _cost(services: Services, maintenance_id: int) -> Decimal:
    return (await services.maintenance.get(maintenance_id)).cost


@pytest.mark.asyncio
async def test_consume_part_deducts_stock_and_adds_cost(
    services: Services,
    sample_consumable: InventoryItem,
    sample_maintenance: Maintenance,
) -> None:
    """Three of five units at 85.00 each."""
    record = await services.consumption.consume_part(
        sample_maintenance.id, sample_consumable.id, 3, Decimal("85.0")
    )

    assert record.total_cost == Decimal("255.0")
    assert record.inventory_item_name == "Polishing Slurry"
    assert await _quantity(services, sample_consumable.id) == 2
    assert await _cost(services, sample_maintenance.id) == Decimal("255.0")
    assert await services.consumption.list_consumptions(sample_maintenance.id) == [record]


@pytest.mark.asyncio
async def test_consume_part_insufficient_stock_changes_nothing(
    services: Services,
    sample_consumable: InventoryItem,
    sample_maintenance: Maintenance,
) -> None:
    with pytest.raises(InsufficientStock) as exc_info:
        await services.consumption.consume_part(
            sample_maintenance.id, sample_consumable.id, 10, Decimal("85.0")
        )

    assert exc_info.value.available == 5
    assert exc_info.value.requested == 10
    assert await _quantity(services, sample_consumable.id) == 5
    assert await _cost(services, sample_maintenance.id) == Decimal("0")
    assert await services.consumption.list_consumptions() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -2, 1.5, True])
async def test_consume_part_rejects_invalid_quantity(
    services: Services,
    sample_consumable: InventoryItem,
    sample_maintenance: Maintenance,
    quantity: object,
) -> None:
    with pytest.raises(InvalidQuantity):
        await services.consumption.consume_part(
            sample_maintenance.id, sample_consumable.id, quantity, Decimal("1")
        )


@pytest.mark.asyncio
@pytest.mark.parametrize("unit_cost", ["-1", "NaN", "abc"])
async def test_consume_part_rejects_invalid_cost(
    services: Services,
    sample_consumable: InventoryItem,
    sample_maintenance: Maintenance,
    unit_cost: str,
) -> None:
    with pytest.raises(InvalidQuantity):
        await services.consumption.consume_part(
            sample_maintenance.id, sample_consumable.id, 1, unit_cost
        )

    assert await _quantity(services, sample_consumable.id) == 5


@pytest.mark.asyncio
async def test_consume_part_unknown_references(
    services: Services,
    sample_consumable: InventoryItem,
    sample_maintenance: Maintenance,
) -> None:
    with pytest.raises(MaintenanceNotFound):
        await services.consumption.consume_part(99, sample_consumable.id, 1, Decimal("1"))

    with pytest.raises(ItemNotFound):
        await services.consumption.consume_part(sample_maintenance.id, 99, 1, Decimal("1"))


@pytest.mark.asyncio
async def test_consume_then_reverse_round_trip(
    services: Services,
    sample_consumable: InventoryItem,
    sample_maintenance: Maintenance,
) -> None:
    record = await services.consumption.consume_part(
        sample_maintenance.id, sample_consumable.id, 5, Decimal("12.40")
    )
    assert (await services.inventory.get_by_id(sample_consumable.id)).status == (
        StockStatus.OUT_OF_STOCK
    )

    await services.consumption.reverse_consumption(record.id)

    item = await services.inventory.get_by_id(sample_consumable.id)
    assert item.quantity == 5
    assert item.status == StockStatus.IN_STOCK
    assert await _cost(services, sample_maintenance.id) == Decimal("0")
    assert await services.consumption.list_consumptions() == []


@pytest.mark.asyncio
async def test_reverse_clamps_cost_at_zero(
    services: Services,
    sample_consumable: InventoryItem,
    sample_maintenance: Maintenance,
) -> None:
    """Reversing more cost than the maintenance carries never goes negative."""
    record = await services.consumption.consume_part(
        sample_maintenance.id, sample_consumable.id, 3, Decimal("85.0")
    )
    await services.maintenance.set_cost(sample_maintenance.id, Decimal("100"))

    await services.consumption.reverse_consumption(record.id)

    assert await _cost(services, sample_maintenance.id) == Decimal("0")
    assert await _quantity(services, sample_consumable.id) == 5


@pytest.mark.asyncio
async def test_reverse_unknown_consumption(services: Services) -> None:
    with pytest.raises(ConsumptionNotFound):
        await services.consumption.reverse_consumption(42)


@pytest.mark.asyncio
async def test_reverse_keeps_record_when_restore_fails(
    services: Services,
    sample_consumable: InventoryItem,
    sample_maintenance: Maintenance,
) -> None:
    record = await services.consumption.consume_part(
        sample_maintenance.id, sample_consumable.id, 2, Decimal("5")
    )
    await services.inventory.delete(sample_consumable.id)

    with pytest.raises(ItemNotFound):
        await services.consumption.reverse_consumption(record.id)

    assert await services.consumption.get_consumption(record.id) == record
    assert await _cost(services, sample_maintenance.id) == Decimal("10")


@pytest.mark.asyncio
async def test_failed_cost_update_rolls_back_stock_and_record(
    services: Services,
    sample_consumable: InventoryItem,
    sample_maintenance: Maintenance,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    async def unavailable(*args: object) -> Decimal:
        raise StorageUnavailable("maintenance store down")

    monkeypatch.setattr(services.maintenance, "add_cost", unavailable)

    with pytest.raises(StorageUnavailable):
        await services.consumption.consume_part(
            sample_maintenance.id, sample_consumable.id, 3, Decimal("85.0")
        )

    assert await _quantity(services, sample_consumable.id) == 5
    assert await services.consumption.list_consumptions() == []


@pytest.mark.asyncio
async def test_failed_rollback_raises_inconsistent_state(
    services: Services,
    sample_consumable: InventoryItem,
    sample_maintenance: Maintenance,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    real_adjust = services.inventory.adjust
    calls: list[int] = []

    async def adjust_once(item_id: int, delta: int) -> object:
        calls.append(delta)
        if len(calls) > 1:
            raise StorageUnavailable("inventory store down")
        return await real_adjust(item_id, delta)

    async def unavailable(*args: object) -> Decimal:
        raise StorageUnavailable("maintenance store down")

    monkeypatch.setattr(services.inventory, "adjust", adjust_once)
    monkeypatch.setattr(services.maintenance, "add_cost", unavailable)

    with pytest.raises(InconsistentState) as exc_info:
        await services.consumption.consume_part(
            sample_maintenance.id, sample_consumable.id, 3, Decimal("85.0")
        )

    assert calls == [-3, 3]
    assert exc_info.value.details["failed_step"] == "restore_stock"


@pytest.mark.asyncio
async def test_delete_maintenance_returns_all_stock(
    services: Services,
    sample_consumable: InventoryItem,
    sample_wear_item: InventoryItem,
    sample_maintenance: Maintenance,
) -> None:
    await services.consumption.consume_part(
        sample_maintenance.id, sample_consumable.id, 2, Decimal("85")
    )
    await services.consumption.consume_part(
        sample_maintenance.id, sample_wear_item.id, 1, Decimal("320")
    )

    reversed_records = await services.consumption.delete_maintenance(sample_maintenance.id)

    assert len(reversed_records) == 2
    assert await _quantity(services, sample_consumable.id) == 5
    assert await _quantity(services, sample_wear_item.id) == 4
    assert await services.consumption.list_consumptions() == []
    assert await services.maintenance.exists(sample_maintenance.id) is False
