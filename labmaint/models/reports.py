"""Read-only report rows."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from labmaint.models.inventory import InventoryItem
from labmaint.models.machine import Machine, MachinePart
from labmaint.models.maintenance import (
    Maintenance,
    MaintenancePartConsumption,
    MaintenanceStatus,
    MaintenanceType,
)
from labmaint.models.usage import UsageLogEntry

ZERO = Decimal("0")


class EquipmentCost(BaseModel):
    """Total spend on one machine."""

    equipment_id: int
    equipment_name: str
    location: str
    total_cost: Decimal = ZERO
    maintenance_count: int = 0


class MonthlyCost(BaseModel):
    month: str
    cost: Decimal = ZERO


class AreaMonthlyCost(BaseModel):
    """Maintenance cost of one area bucketed by calendar month."""

    area: str
    months: list[MonthlyCost]


class PartUsageRanking(BaseModel):
    """Consumption of one inventory item across maintenance events."""

    inventory_item_id: int
    inventory_item_name: str
    total_quantity: int = 0
    total_cost: Decimal = ZERO
    uses: int = 0


class MaintenanceHistoryRow(BaseModel):
    id: int
    equipment_name: str
    maintenance_type: MaintenanceType
    start_date: date | None = None
    end_date: date | None = None
    status: MaintenanceStatus
    technician: str
    maintenance_cost: Decimal
    parts_cost: Decimal
    total_cost: Decimal
    parts_count: int


class TypeCostSummary(BaseModel):
    count: int = 0
    maintenance_cost: Decimal = ZERO
    parts_cost: Decimal = ZERO
    total_cost: Decimal = ZERO


class MonthlyTypeCount(BaseModel):
    month: str
    preventive: int = 0
    corrective: int = 0


class MaintenanceTypeComparison(BaseModel):
    """Preventive vs corrective (and calibration) work."""

    summary: dict[MaintenanceType, TypeCostSummary]
    monthly_trend: list[MonthlyTypeCount]


class AreaEquipmentSpend(BaseModel):
    id: int
    name: str
    cost: Decimal


class AreaSpend(BaseModel):
    """Accumulated spend of an area and its machines."""

    area: str
    total_cost: Decimal = ZERO
    equipment: list[AreaEquipmentSpend] = Field(default_factory=list)


class MachineHistoryStats(BaseModel):
    total_parts: int = 0
    total_cost: Decimal = ZERO
    total_maintenances: int = 0
    total_usage_logs: int = 0


class MachineHistory(BaseModel):
    """Everything recorded against one machine."""

    machine: Machine
    usage_logs: list[UsageLogEntry]
    maintenances: list[Maintenance]
    consumptions: list[MaintenancePartConsumption]
    installed_parts: list[MachinePart]
    stats: MachineHistoryStats


class ItemConsumption(BaseModel):
    maintenance: Maintenance
    consumption: MaintenancePartConsumption


class ItemHistoryStats(BaseModel):
    total_used: float = 0.0
    total_used_in_maintenance: int = 0
    total_cost: Decimal = ZERO
    total_usage_logs: int = 0
    total_maintenances: int = 0


class InventoryItemHistory(BaseModel):
    """Everything recorded against one inventory item."""

    item: InventoryItem
    usage_logs: list[UsageLogEntry]
    consumptions: list[ItemConsumption]
    stats: ItemHistoryStats
