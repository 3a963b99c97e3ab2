"""Typed request payloads validated before they reach the services."""

from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from labmaint.models.fault_report import FaultReportStatus, FaultReportType, Priority
from labmaint.models.inventory import ItemKind
from labmaint.models.machine import MachineStatus
from labmaint.models.maintenance import MaintenanceStatus, MaintenanceType


class InventoryItemCreate(BaseModel):
    """Request to create an inventory item."""

    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    kind: ItemKind = ItemKind.CONSUMABLE
    quantity: int = Field(default=0, ge=0)
    min_quantity: int = Field(default=0, ge=0)
    location: str | None = None
    description: str | None = None
    unit_price: Decimal | None = Field(default=None, ge=0)
    supplier: str | None = None
    usage_unit: str | None = None
    max_lifespan: float | None = Field(default=None, gt=0)


class InventoryItemUpdate(BaseModel):
    """Partial update of an inventory item.

    ``quantity`` is applied as a stock adjustment, never written directly.
    """

    name: str | None = Field(default=None, min_length=1)
    category: str | None = Field(default=None, min_length=1)
    kind: ItemKind | None = None
    quantity: int | None = Field(default=None, ge=0)
    min_quantity: int | None = Field(default=None, ge=0)
    location: str | None = None
    description: str | None = None
    unit_price: Decimal | None = Field(default=None, ge=0)
    supplier: str | None = None
    usage_unit: str | None = None
    max_lifespan: float | None = Field(default=None, gt=0)


class AdjustmentType(str, Enum):
    """Manual stock adjustment operations."""

    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


class QuantityAdjustmentRequest(BaseModel):
    """Manual stock adjustment."""

    adjustment_type: AdjustmentType
    quantity: int


class MachineCreate(BaseModel):
    """Request to register a machine."""

    name: str = Field(min_length=1)
    model: str = Field(min_length=1)
    serial_number: str = Field(min_length=1)
    status: MachineStatus = MachineStatus.OPERATIONAL
    location: str | None = None
    manufacturer: str | None = None
    description: str | None = None
    purchase_date: date | None = None
    last_maintenance: date | None = None
    next_maintenance: date | None = None
    associated_item_id: int | None = None


class MachineUpdate(MachineCreate):
    """Full replacement of a machine's editable fields."""


class MachinePartCreate(BaseModel):
    """Request to install a wear part on a machine."""

    machine_id: int
    inventory_item_id: int
    name: str = Field(min_length=1)
    installed_at: date | None = None
    usage_unit: str | None = None
    max_usage: float | None = None


class MachinePartUpdate(BaseModel):
    """Editable attributes of an installed part; usage is not editable."""

    inventory_item_id: int | None = None
    name: str | None = Field(default=None, min_length=1)
    installed_at: date | None = None
    usage_unit: str | None = None
    max_usage: float | None = None


class PartUsageRequest(BaseModel):
    """Usage to add to an installed part."""

    additional_usage: float


class PartReplacementRequest(BaseModel):
    """Replace an installed part with a new inventory item."""

    new_inventory_item_id: int


class MaintenanceCreate(BaseModel):
    """Request to register a maintenance event."""

    machine_id: int
    maintenance_type: MaintenanceType
    description: str = Field(min_length=1)
    start_date: date | None = None
    end_date: date | None = None
    status: MaintenanceStatus = MaintenanceStatus.SCHEDULED
    technician: str = Field(min_length=1)
    cost: Decimal = Field(default=Decimal("0"), ge=0)
    observations: str | None = None


class MaintenanceUpdate(BaseModel):
    """Partial update of a maintenance event; cost changes go through consumption."""

    maintenance_type: MaintenanceType | None = None
    description: str | None = Field(default=None, min_length=1)
    start_date: date | None = None
    end_date: date | None = None
    status: MaintenanceStatus | None = None
    technician: str | None = Field(default=None, min_length=1)
    observations: str | None = None


class ConsumePartRequest(BaseModel):
    """Stock consumed by a maintenance event."""

    maintenance_id: int
    inventory_item_id: int
    quantity: int
    unit_cost: Decimal


class RecordUsageRequest(BaseModel):
    """Usage of an inventory item on a piece of equipment."""

    equipment_id: int
    inventory_item_id: int
    usage_date: date = Field(default_factory=date.today)
    quantity_used: float
    unit: str | None = None
    responsible: str | None = None
    comment: str | None = None
    deduct_from_stock: bool = False


class MaintenanceResetRequest(BaseModel):
    """Maintenance performed on an item; resets its cumulative usage."""

    equipment_id: int
    inventory_item_id: int
    reset_date: date = Field(default_factory=date.today)
    responsible: str = Field(min_length=1)
    comment: str = ""


class FaultReportCreate(BaseModel):
    """Request to file a report against a machine."""

    machine_id: int
    report_type: FaultReportType
    description: str = Field(min_length=1)
    reported_by: str = Field(min_length=1)
    report_date: date = Field(default_factory=date.today)
    status: FaultReportStatus = FaultReportStatus.PENDING
    priority: Priority = Priority.MEDIUM
    assigned_to: str | None = None
    completed_date: date | None = None
    resolution: str | None = None


class FaultReportUpdate(BaseModel):
    """Partial update of a report; the machine cannot be changed."""

    report_type: FaultReportType | None = None
    description: str | None = Field(default=None, min_length=1)
    reported_by: str | None = Field(default=None, min_length=1)
    report_date: date | None = None
    status: FaultReportStatus | None = None
    priority: Priority | None = None
    assigned_to: str | None = None
    completed_date: date | None = None
    resolution: str | None = None
