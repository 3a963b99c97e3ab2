"""Tests for derived reports."""

from datetime import date
from decimal import Decimal

import pytest

from labmaint.models.inventory import InventoryItem
from labmaint.models.machine import Machine, PartStatus
from labmaint.models.maintenance import Maintenance, MaintenanceType
from labmaint.models.requests import (
    MachineCreate,
    MachinePartCreate,
    MaintenanceCreate,
    RecordUsageRequest,
)
from labmaint.services import Services
from labmaint.services.reports import filter_history, trailing_months

TODAY = date(2024, 3, 20)


def test_trailing_months_cross_year_boundary() -> None:
    months = trailing_months(TODAY, 6)

    assert months[0] == date(2023, 10, 1)
    assert months[-1] == date(2024, 3, 1)
    assert len(months) == 6


@pytest.mark.asyncio
async def test_reports_on_empty_store(services: Services) -> None:
    reports = services.reports

    assert await reports.cost_by_equipment() == []
    assert await reports.monthly_cost_by_area(TODAY) == []
    assert await reports.most_used_parts() == []
    assert await reports.maintenance_history() == []
    assert await reports.spend_by_area() == []
    assert await reports.usage_overview() == []
    assert await reports.active_alerts() == []
    assert await reports.critical_parts() == []

    comparison = await reports.maintenance_type_comparison(TODAY)
    assert all(summary.count == 0 for summary in comparison.summary.values())
    assert all(summary.total_cost == Decimal("0") for summary in comparison.summary.values())
    assert [m.preventive for m in comparison.monthly_trend] == [0] * 6


@pytest.mark.asyncio
async def test_cost_by_equipment_adds_maintenance_and_parts(
    services: Services,
    sample_machine: Machine,
    sample_consumable: InventoryItem,
    sample_maintenance: Maintenance,
) -> None:
    await services.maintenance.create(
        MaintenanceCreate(
            machine_id=sample_machine.id,
            maintenance_type=MaintenanceType.CORRECTIVE,
            description="Replace belt",
            start_date=date(2024, 2, 3),
            technician="R. Alvarez",
            cost=Decimal("40"),
        )
    )
    await services.consumption.consume_part(
        sample_maintenance.id, sample_consumable.id, 2, Decimal("10")
    )
    idle = await services.machines.create(
        MachineCreate(name="Edger", model="ME-10", serial_number="ED-1")
    )

    rows = {row.equipment_id: row for row in await services.reports.cost_by_equipment()}

    # maintenance cost 20 from the consumption, 40 corrective, plus 20 in parts
    assert rows[sample_machine.id].total_cost == Decimal("80")
    assert rows[sample_machine.id].maintenance_count == 2
    assert rows[sample_machine.id].location == "Surfacing"
    assert rows[idle.id].total_cost == Decimal("0")
    assert rows[idle.id].location == "Unassigned"


@pytest.mark.asyncio
async def test_monthly_cost_by_area_buckets_calendar_months(
    services: Services,
    sample_machine: Machine,
    sample_maintenance: Maintenance,
) -> None:
    await services.maintenance.set_cost(sample_maintenance.id, Decimal("150"))
    await services.maintenance.create(
        MaintenanceCreate(
            machine_id=sample_machine.id,
            maintenance_type=MaintenanceType.CALIBRATION,
            description="Old calibration",
            start_date=date(2023, 9, 30),
            technician="R. Alvarez",
            cost=Decimal("999"),
        )
    )

    [area] = await services.reports.monthly_cost_by_area(TODAY)

    assert area.area == "Surfacing"
    assert [m.month for m in area.months] == [
        "Oct 2023",
        "Nov 2023",
        "Dec 2023",
        "Jan 2024",
        "Feb 2024",
        "Mar 2024",
    ]
    assert [m.cost for m in area.months] == [Decimal("0")] * 5 + [Decimal("150")]


@pytest.mark.asyncio
async def test_most_used_parts_sorted_by_quantity(
    services: Services,
    sample_consumable: InventoryItem,
    sample_wear_item: InventoryItem,
    sample_maintenance: Maintenance,
) -> None:
    await services.consumption.consume_part(
        sample_maintenance.id, sample_wear_item.id, 1, Decimal("320")
    )
    await services.consumption.consume_part(
        sample_maintenance.id, sample_consumable.id, 2, Decimal("85")
    )
    await services.consumption.consume_part(
        sample_maintenance.id, sample_consumable.id, 1, Decimal("85")
    )

    ranking = await services.reports.most_used_parts()

    assert [r.inventory_item_id for r in ranking] == [sample_consumable.id, sample_wear_item.id]
    assert ranking[0].total_quantity == 3
    assert ranking[0].total_cost == Decimal("255")
    assert ranking[0].uses == 2


@pytest.mark.asyncio
async def test_usage_overview_and_alerts(
    services: Services,
    sample_machine: Machine,
    sample_wear_item: InventoryItem,
    sample_consumable: InventoryItem,
) -> None:
    for item, quantity in ((sample_wear_item, 80), (sample_consumable, 3)):
        await services.consumption.record_usage(
            RecordUsageRequest(
                equipment_id=sample_machine.id,
                inventory_item_id=item.id,
                quantity_used=quantity,
            )
        )

    [row] = await services.reports.usage_overview()

    assert row.key == f"{sample_machine.id}_{sample_wear_item.id}"
    assert row.usage_percentage == pytest.approx(80.0)
    assert row.alert is True
    assert row.needs_maintenance is False
    assert [r.key for r in await services.reports.active_alerts()] == [row.key]


@pytest.mark.asyncio
async def test_critical_parts_lists_worn_parts(
    services: Services, sample_machine: Machine, sample_wear_item: InventoryItem
) -> None:
    worn = await services.tracker.install_part(
        MachinePartCreate(
            machine_id=sample_machine.id, inventory_item_id=sample_wear_item.id, name="Tool A"
        )
    )
    await services.tracker.install_part(
        MachinePartCreate(
            machine_id=sample_machine.id, inventory_item_id=sample_wear_item.id, name="Tool B"
        )
    )
    await services.tracker.record_usage(worn.id, 90)

    parts = await services.reports.critical_parts()

    assert [p.id for p in parts] == [worn.id]
    assert parts[0].status == PartStatus.WARNING


@pytest.mark.asyncio
async def test_machine_and_item_history(
    services: Services,
    sample_machine: Machine,
    sample_consumable: InventoryItem,
    sample_maintenance: Maintenance,
) -> None:
    await services.consumption.consume_part(
        sample_maintenance.id, sample_consumable.id, 2, Decimal("85")
    )
    await services.consumption.record_usage(
        RecordUsageRequest(
            equipment_id=sample_machine.id,
            inventory_item_id=sample_consumable.id,
            quantity_used=1,
        )
    )

    machine_history = await services.reports.machine_history(sample_machine.id)
    assert machine_history.stats.total_parts == 2
    assert machine_history.stats.total_cost == Decimal("340")
    assert machine_history.stats.total_maintenances == 1
    assert machine_history.stats.total_usage_logs == 1

    item_history = await services.reports.inventory_item_history(sample_consumable.id)
    assert item_history.stats.total_used == 1
    assert item_history.stats.total_used_in_maintenance == 2
    assert item_history.stats.total_cost == Decimal("170")
    assert item_history.consumptions[0].maintenance.id == sample_maintenance.id


@pytest.mark.asyncio
async def test_filter_history_by_date_and_person(
    services: Services, sample_machine: Machine, sample_maintenance: Maintenance
) -> None:
    later = await services.maintenance.create(
        MaintenanceCreate(
            machine_id=sample_machine.id,
            maintenance_type=MaintenanceType.CORRECTIVE,
            description="Coolant pump",
            start_date=date(2024, 6, 1),
            technician="J. Okafor",
        )
    )
    events = await services.maintenance.list_all()

    in_spring = filter_history(events, start=date(2024, 3, 1), end=date(2024, 3, 31))
    by_person = filter_history(events, responsible="okafor")

    assert [m.id for m in in_spring] == [sample_maintenance.id]
    assert [m.id for m in by_person] == [later.id]
    assert filter_history([], start=date(2024, 1, 1)) == []
