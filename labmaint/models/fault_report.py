"""Fault and service reports raised against machines."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


class FaultReportType(str, Enum):
    """What the report is about."""

    FAULT = "fault"
    MAINTENANCE = "maintenance"
    CALIBRATION = "calibration"


class FaultReportStatus(str, Enum):
    """Progress of a report."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FaultReport(BaseModel):
    """A problem or service request reported on a machine."""

    id: int
    machine_id: int
    machine_name: str
    report_type: FaultReportType
    description: str
    reported_by: str
    report_date: date | None = None
    status: FaultReportStatus = FaultReportStatus.PENDING
    priority: Priority = Priority.MEDIUM
    assigned_to: str | None = None
    completed_date: date | None = None
    resolution: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_open(self) -> bool:
        return self.status != FaultReportStatus.COMPLETED
