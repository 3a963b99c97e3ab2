"""Report aggregator: read-only folds over maintenance, consumption and usage records."""

from collections import defaultdict
from datetime import date
from typing import Any, Iterable, TypeVar

from pydantic import BaseModel

from labmaint.models.machine import (
    CRITICAL_THRESHOLD_PCT,
    WARNING_THRESHOLD_PCT,
    MachinePart,
    PartStatus,
    usage_percentage,
)
from labmaint.models.maintenance import Maintenance, MaintenancePartConsumption, MaintenanceType
from labmaint.models.reports import (
    ZERO,
    AreaEquipmentSpend,
    AreaMonthlyCost,
    AreaSpend,
    EquipmentCost,
    InventoryItemHistory,
    ItemConsumption,
    ItemHistoryStats,
    MachineHistory,
    MachineHistoryStats,
    MaintenanceHistoryRow,
    MaintenanceTypeComparison,
    MonthlyCost,
    MonthlyTypeCount,
    PartUsageRanking,
    TypeCostSummary,
)
from labmaint.models.usage import UsageSummary
from labmaint.services.consumption import ConsumptionCoordinator
from labmaint.services.inventory import InventoryStore
from labmaint.services.machines import MachineRegistry
from labmaint.services.maintenance import MaintenanceRegistry
from labmaint.services.usage import UsageLedger
from labmaint.services.wear_parts import WearPartTracker

UNASSIGNED_AREA = "Unassigned"

RowT = TypeVar("RowT", bound=BaseModel)


def trailing_months(today: date, count: int) -> list[date]:
    """First day of each of the last ``count`` calendar months, oldest first."""
    months = []
    year, month = today.year, today.month
    for _ in range(count):
        months.append(date(year, month, 1))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


def month_label(month: date) -> str:
    return month.strftime("%b %Y")


def _same_month(day: date | None, month: date) -> bool:
    return day is not None and day.year == month.year and day.month == month.month


def _area(location: str | None) -> str:
    return location.strip() if location and location.strip() else UNASSIGNED_AREA


class ReportAggregator:
    """
    Derived views computed on demand.

    Holds no state of its own and never writes. Every report tolerates empty
    stores and returns empty or zero-valued aggregates.
    """

    def __init__(
        self,
        machines: MachineRegistry,
        maintenance: MaintenanceRegistry,
        consumption: ConsumptionCoordinator,
        ledger: UsageLedger,
        inventory: InventoryStore,
        tracker: WearPartTracker,
        months: int = 6,
        warning_pct: float = WARNING_THRESHOLD_PCT,
        critical_pct: float = CRITICAL_THRESHOLD_PCT,
    ):
        self.machines = machines
        self.maintenance = maintenance
        self.consumption = consumption
        self.ledger = ledger
        self.inventory = inventory
        self.tracker = tracker
        self.months = months
        self.warning_pct = warning_pct
        self.critical_pct = critical_pct

    async def _consumptions_by_maintenance(self) -> dict[int, list[MaintenancePartConsumption]]:
        grouped: dict[int, list[MaintenancePartConsumption]] = defaultdict(list)
        for record in await self.consumption.list_consumptions():
            grouped[record.maintenance_id].append(record)
        return grouped

    async def cost_by_equipment(self) -> list[EquipmentCost]:
        """Maintenance cost plus consumed part cost per machine."""
        maintenances = await self.maintenance.list_all()
        consumptions = await self._consumptions_by_maintenance()

        rows = []
        for machine in await self.machines.list_all():
            machine_maintenances = [m for m in maintenances if m.machine_id == machine.id]
            parts_cost = sum(
                (c.total_cost for m in machine_maintenances for c in consumptions[m.id]),
                ZERO,
            )
            rows.append(
                EquipmentCost(
                    equipment_id=machine.id,
                    equipment_name=machine.name,
                    location=_area(machine.location),
                    total_cost=sum((m.cost for m in machine_maintenances), ZERO) + parts_cost,
                    maintenance_count=len(machine_maintenances),
                )
            )
        return rows

    async def monthly_cost_by_area(self, today: date | None = None) -> list[AreaMonthlyCost]:
        """Maintenance cost per area for each of the trailing calendar months."""
        months = trailing_months(today or date.today(), self.months)
        maintenances = await self.maintenance.list_all()

        machines_by_area: dict[str, set[int]] = {}
        for machine in await self.machines.list_all():
            machines_by_area.setdefault(_area(machine.location), set()).add(machine.id)

        rows = []
        for area, machine_ids in machines_by_area.items():
            area_maintenances = [m for m in maintenances if m.machine_id in machine_ids]
            rows.append(
                AreaMonthlyCost(
                    area=area,
                    months=[
                        MonthlyCost(
                            month=month_label(month),
                            cost=sum(
                                (
                                    m.cost
                                    for m in area_maintenances
                                    if _same_month(m.start_date, month)
                                ),
                                ZERO,
                            ),
                        )
                        for month in months
                    ],
                )
            )
        return rows

    async def most_used_parts(self) -> list[PartUsageRanking]:
        """Consumed items ranked by total quantity, highest first."""
        ranking: dict[int, PartUsageRanking] = {}
        for record in await self.consumption.list_consumptions():
            row = ranking.setdefault(
                record.inventory_item_id,
                PartUsageRanking(
                    inventory_item_id=record.inventory_item_id,
                    inventory_item_name=record.inventory_item_name,
                ),
            )
            row.total_quantity += record.quantity_used
            row.total_cost += record.total_cost
            row.uses += 1

        return sorted(ranking.values(), key=lambda r: r.total_quantity, reverse=True)

    async def maintenance_history(self) -> list[MaintenanceHistoryRow]:
        """Maintenance events with their part cost, most recent first."""
        consumptions = await self._consumptions_by_maintenance()
        maintenances = sorted(
            await self.maintenance.list_all(),
            key=lambda m: m.start_date or date.min,
            reverse=True,
        )

        rows = []
        for m in maintenances:
            records = consumptions[m.id]
            parts_cost = sum((c.total_cost for c in records), ZERO)
            rows.append(
                MaintenanceHistoryRow(
                    id=m.id,
                    equipment_name=m.machine_name,
                    maintenance_type=m.maintenance_type,
                    start_date=m.start_date,
                    end_date=m.end_date,
                    status=m.status,
                    technician=m.technician,
                    maintenance_cost=m.cost,
                    parts_cost=parts_cost,
                    total_cost=m.cost + parts_cost,
                    parts_count=len(records),
                )
            )
        return rows

    async def maintenance_type_comparison(
        self, today: date | None = None
    ) -> MaintenanceTypeComparison:
        """Counts and costs per maintenance type, with a monthly preventive/corrective trend."""
        maintenances = await self.maintenance.list_all()
        consumptions = await self._consumptions_by_maintenance()

        summary = {}
        for maintenance_type in MaintenanceType:
            of_type = [m for m in maintenances if m.maintenance_type == maintenance_type]
            maintenance_cost = sum((m.cost for m in of_type), ZERO)
            parts_cost = sum(
                (c.total_cost for m in of_type for c in consumptions[m.id]), ZERO
            )
            summary[maintenance_type] = TypeCostSummary(
                count=len(of_type),
                maintenance_cost=maintenance_cost,
                parts_cost=parts_cost,
                total_cost=maintenance_cost + parts_cost,
            )

        trend = []
        for month in trailing_months(today or date.today(), self.months):
            in_month = [m for m in maintenances if _same_month(m.start_date, month)]
            trend.append(
                MonthlyTypeCount(
                    month=month_label(month),
                    preventive=_count_type(in_month, MaintenanceType.PREVENTIVE),
                    corrective=_count_type(in_month, MaintenanceType.CORRECTIVE),
                )
            )

        return MaintenanceTypeComparison(summary=summary, monthly_trend=trend)

    async def spend_by_area(self) -> list[AreaSpend]:
        """Accumulated spend per area, highest first."""
        areas: dict[str, AreaSpend] = {}
        for row in await self.cost_by_equipment():
            area = areas.setdefault(row.location, AreaSpend(area=row.location))
            area.total_cost += row.total_cost
            area.equipment.append(
                AreaEquipmentSpend(id=row.equipment_id, name=row.equipment_name, cost=row.total_cost)
            )
        return sorted(areas.values(), key=lambda a: a.total_cost, reverse=True)

    async def usage_overview(self) -> list[UsageSummary]:
        """Cumulative ledger usage of every wear item on every piece of equipment."""
        entries_by_key: dict[str, list] = {}
        for entry in await self.ledger.list_all():
            entries_by_key.setdefault(entry.usage_key, []).append(entry)

        rows = []
        for key, entries in entries_by_key.items():
            first = entries[0]
            item = await self.inventory.find(first.inventory_item_id)
            if item is None or not item.is_wear_part:
                continue

            cumulative = sum((e.quantity_used for e in entries), 0.0)
            pct = usage_percentage(cumulative, item.max_lifespan)
            rows.append(
                UsageSummary(
                    key=key,
                    equipment_id=first.equipment_id,
                    equipment_name=entries[-1].equipment_name,
                    inventory_item_id=item.id,
                    inventory_item_name=item.name,
                    unit=item.usage_unit,
                    cumulative_usage=cumulative,
                    max_lifespan=item.max_lifespan,
                    usage_percentage=pct,
                    needs_maintenance=pct >= self.critical_pct,
                    alert=pct >= self.warning_pct,
                )
            )
        return rows

    async def active_alerts(self) -> list[UsageSummary]:
        """Usage overview rows at or above the warning threshold, worst first."""
        rows = [row for row in await self.usage_overview() if row.alert]
        return sorted(rows, key=lambda r: r.usage_percentage, reverse=True)

    async def critical_parts(self) -> list[MachinePart]:
        """Installed parts outside the normal band, worst first."""
        parts = [p for p in await self.tracker.list_all() if p.status != PartStatus.NORMAL]
        return sorted(parts, key=lambda p: p.usage_percentage, reverse=True)

    async def machine_history(
        self,
        machine_id: int,
        start: date | None = None,
        end: date | None = None,
        responsible: str | None = None,
    ) -> MachineHistory:
        """
        Usage, maintenance, consumption and installed parts of a machine.

        ``start``, ``end`` and ``responsible`` narrow usage entries and
        maintenance events through ``filter_history``; consumptions follow
        the maintenance events they belong to, and stats cover what remains.
        """
        machine = await self.machines.get(machine_id)
        usage_logs = filter_history(
            await self.ledger.for_equipment(machine_id), start, end, responsible
        )
        maintenances = filter_history(
            await self.maintenance.list_for_machine(machine_id), start, end, responsible
        )
        consumptions = await self._consumptions_by_maintenance()
        records = [c for m in maintenances for c in consumptions[m.id]]

        return MachineHistory(
            machine=machine,
            usage_logs=usage_logs,
            maintenances=maintenances,
            consumptions=records,
            installed_parts=await self.tracker.list_for_machine(machine_id),
            stats=MachineHistoryStats(
                total_parts=sum(c.quantity_used for c in records),
                total_cost=sum((c.total_cost for c in records), ZERO)
                + sum((m.cost for m in maintenances), ZERO),
                total_maintenances=len(maintenances),
                total_usage_logs=len(usage_logs),
            ),
        )

    async def inventory_item_history(
        self,
        item_id: int,
        start: date | None = None,
        end: date | None = None,
        responsible: str | None = None,
    ) -> InventoryItemHistory:
        """Usage entries and maintenance consumptions of an item; filters as in ``machine_history``."""
        item = await self.inventory.get_by_id(item_id)
        usage_logs = filter_history(await self.ledger.for_item(item_id), start, end, responsible)
        maintenances = {
            m.id: m
            for m in filter_history(
                await self.maintenance.list_all(), start, end, responsible
            )
        }

        consumptions = [
            ItemConsumption(maintenance=maintenances[c.maintenance_id], consumption=c)
            for c in await self.consumption.list_consumptions()
            if c.inventory_item_id == item_id and c.maintenance_id in maintenances
        ]

        return InventoryItemHistory(
            item=item,
            usage_logs=usage_logs,
            consumptions=consumptions,
            stats=ItemHistoryStats(
                total_used=sum((e.quantity_used for e in usage_logs), 0.0),
                total_used_in_maintenance=sum(c.consumption.quantity_used for c in consumptions),
                total_cost=sum((c.consumption.total_cost for c in consumptions), ZERO),
                total_usage_logs=len(usage_logs),
                total_maintenances=len(consumptions),
            ),
        )


def filter_history(
    rows: Iterable[RowT],
    start: date | None = None,
    end: date | None = None,
    responsible: str | None = None,
) -> list[RowT]:
    """
    Filter usage entries or maintenance events by date range and person.

    Dates are matched inclusively on ``usage_date``, ``start_date`` or
    ``recorded_at``, whichever the row has. ``responsible`` is a
    case-insensitive substring match on ``responsible`` or ``technician``.
    Rows without a date are dropped once a date bound is given.
    """
    needle = responsible.lower() if responsible else None

    filtered = []
    for row in rows:
        row_date = _first_attr(row, "usage_date", "start_date", "recorded_at")
        if (start or end) and row_date is None:
            continue
        if start and row_date < start:
            continue
        if end and row_date > end:
            continue
        if needle:
            person = _first_attr(row, "responsible", "technician") or ""
            if needle not in person.lower():
                continue
        filtered.append(row)
    return filtered


def _first_attr(row: Any, *names: str) -> Any:
    for name in names:
        value = getattr(row, name, None)
        if value is not None:
            return value
    return None


def _count_type(maintenances: list[Maintenance], maintenance_type: MaintenanceType) -> int:
    return sum(1 for m in maintenances if m.maintenance_type == maintenance_type)
