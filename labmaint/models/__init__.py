"""Data models for the lab maintenance service."""

from labmaint.models.fault_report import (
    FaultReport,
    FaultReportStatus,
    FaultReportType,
    Priority,
)
from labmaint.models.inventory import (
    InventoryItem,
    ItemKind,
    StockAdjustment,
    StockStatus,
    compute_stock_status,
)
from labmaint.models.machine import (
    Machine,
    MachinePart,
    MachineStatus,
    PartStatus,
    PartUsageUpdate,
    RetiredPart,
    compute_part_status,
)
from labmaint.models.maintenance import (
    Maintenance,
    MaintenancePartConsumption,
    MaintenanceStatus,
    MaintenanceType,
)
from labmaint.models.notification import Notification, NotificationType, Severity
from labmaint.models.results import ActionError, ActionResult
from labmaint.models.usage import UsageLogEntry, UsageRecordResult, UsageSummary

__all__ = [
    # Fault reports
    "FaultReport",
    "FaultReportStatus",
    "FaultReportType",
    "Priority",
    # Inventory
    "InventoryItem",
    "ItemKind",
    "StockAdjustment",
    "StockStatus",
    "compute_stock_status",
    # Machines
    "Machine",
    "MachinePart",
    "MachineStatus",
    "PartStatus",
    "PartUsageUpdate",
    "RetiredPart",
    "compute_part_status",
    # Maintenance
    "Maintenance",
    "MaintenancePartConsumption",
    "MaintenanceStatus",
    "MaintenanceType",
    # Notifications
    "Notification",
    "NotificationType",
    "Severity",
    # Results
    "ActionError",
    "ActionResult",
    # Usage
    "UsageLogEntry",
    "UsageRecordResult",
    "UsageSummary",
]
