"""Machine and installed wear-part models."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field

from labmaint.models.notification import Notification

WARNING_THRESHOLD_PCT = 75.0
CRITICAL_THRESHOLD_PCT = 100.0


class MachineStatus(str, Enum):
    """Operational status of a machine."""

    OPERATIONAL = "operational"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"


class PartStatus(str, Enum):
    """Health of an installed wear part."""

    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


def usage_percentage(current_usage: float, max_usage: float) -> float:
    """Percentage of the rated maximum consumed so far."""
    return current_usage / max_usage * 100


def status_for_percentage(
    pct: float,
    warning_pct: float = WARNING_THRESHOLD_PCT,
    critical_pct: float = CRITICAL_THRESHOLD_PCT,
) -> PartStatus:
    """Map a usage percentage onto the three health bands."""
    if pct >= critical_pct:
        return PartStatus.CRITICAL
    if pct >= warning_pct:
        return PartStatus.WARNING
    return PartStatus.NORMAL


def compute_part_status(
    current_usage: float,
    max_usage: float,
    warning_pct: float = WARNING_THRESHOLD_PCT,
    critical_pct: float = CRITICAL_THRESHOLD_PCT,
) -> PartStatus:
    """Derive part health from accumulated usage against its rated maximum."""
    return status_for_percentage(
        usage_percentage(current_usage, max_usage), warning_pct, critical_pct
    )


class Machine(BaseModel):
    """Lab machine."""

    id: int
    name: str
    model: str
    serial_number: str
    status: MachineStatus = MachineStatus.OPERATIONAL
    location: str | None = None
    manufacturer: str | None = None
    description: str | None = None
    purchase_date: date | None = None
    last_maintenance: date | None = None
    next_maintenance: date | None = None
    associated_item_id: int | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class MachinePart(BaseModel):
    """Wear part installed on a machine."""

    id: int
    machine_id: int
    inventory_item_id: int
    name: str
    installed_at: date = Field(default_factory=date.today)
    usage_unit: str
    max_usage: float = Field(gt=0)
    current_usage: float = Field(default=0.0, ge=0)
    status: PartStatus = PartStatus.NORMAL

    @property
    def usage_percentage(self) -> float:
        """Percentage of the rated maximum consumed so far."""
        return usage_percentage(self.current_usage, self.max_usage)


class RetiredPart(BaseModel):
    """Snapshot of a part removed by replacement."""

    part: MachinePart
    replaced_by: int
    retired_at: datetime = Field(default_factory=datetime.utcnow)


class PartUsageUpdate(BaseModel):
    """Outcome of recording usage on an installed part."""

    part: MachinePart
    previous_status: PartStatus
    new_status: PartStatus
    status_changed: bool
    usage_percentage: float
    notification: Notification | None = None
