"""Maintenance event and part consumption models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class MaintenanceType(str, Enum):
    """Kind of maintenance work."""

    PREVENTIVE = "preventive"
    CORRECTIVE = "corrective"
    CALIBRATION = "calibration"


class MaintenanceStatus(str, Enum):
    """Maintenance progression."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Maintenance(BaseModel):
    """Maintenance event on a machine with its accumulated cost."""

    id: int
    machine_id: int
    machine_name: str
    maintenance_type: MaintenanceType
    description: str
    start_date: date | None = None
    end_date: date | None = None
    status: MaintenanceStatus = MaintenanceStatus.SCHEDULED
    technician: str
    cost: Decimal = Field(default=Decimal("0"), ge=0)
    observations: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class MaintenancePartConsumption(BaseModel):
    """Inventory stock consumed by a maintenance event."""

    id: int
    maintenance_id: int
    inventory_item_id: int
    inventory_item_name: str
    quantity_used: int = Field(gt=0)
    unit_cost: Decimal = Field(ge=0)
    total_cost: Decimal = Field(ge=0)
    recorded_at: date = Field(default_factory=date.today)

    @classmethod
    def build(
        cls,
        id: int,
        maintenance_id: int,
        inventory_item_id: int,
        inventory_item_name: str,
        quantity_used: int,
        unit_cost: Decimal,
    ) -> "MaintenancePartConsumption":
        """Create a consumption record with its total cost computed."""
        return cls(
            id=id,
            maintenance_id=maintenance_id,
            inventory_item_id=inventory_item_id,
            inventory_item_name=inventory_item_name,
            quantity_used=quantity_used,
            unit_cost=unit_cost,
            total_cost=unit_cost * Decimal(quantity_used),
        )
