"""Error taxonomy for inventory, wear-part and maintenance operations."""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable failure codes."""

    NOT_FOUND = "not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"
    INVALID_QUANTITY = "invalid_quantity"
    INVALID_INPUT = "invalid_input"
    INCONSISTENT_STATE = "inconsistent_state"
    STORAGE_UNAVAILABLE = "storage_unavailable"


class LabMaintError(Exception):
    """Base class for all service errors."""

    code: ErrorCode = ErrorCode.INVALID_INPUT

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for an action result."""
        return {"code": self.code.value, "message": self.message, "details": self.details}


class BusinessRuleError(LabMaintError):
    """Expected outcome of a rejected request; returned to callers, never retried."""


class NotFoundError(BusinessRuleError):
    """A referenced entity does not exist."""

    code = ErrorCode.NOT_FOUND
    entity = "entity"

    def __init__(self, entity_id: Any):
        super().__init__(f"{self.entity} {entity_id} not found", entity=self.entity, entity_id=entity_id)
        self.entity_id = entity_id


class MachineNotFound(NotFoundError):
    entity = "machine"


class MaintenanceNotFound(NotFoundError):
    entity = "maintenance"


class ItemNotFound(NotFoundError):
    entity = "inventory_item"


class PartNotFound(NotFoundError):
    entity = "machine_part"


class ConsumptionNotFound(NotFoundError):
    entity = "consumption"


class UsageEntryNotFound(NotFoundError):
    entity = "usage_entry"


class NotificationNotFound(NotFoundError):
    entity = "notification"


class FaultReportNotFound(NotFoundError):
    entity = "fault_report"


class InsufficientStock(BusinessRuleError):
    """Requested quantity exceeds the available stock."""

    code = ErrorCode.INSUFFICIENT_STOCK

    def __init__(self, item_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient stock. Available: {available}, requested: {requested}",
            item_id=item_id,
            available=available,
            requested=requested,
        )
        self.item_id = item_id
        self.available = available
        self.requested = requested


class InvalidQuantity(BusinessRuleError):
    """Quantity is non-positive, negative or not a finite number."""

    code = ErrorCode.INVALID_QUANTITY

    def __init__(self, message: str, value: Any = None):
        super().__init__(message, value=value)
        self.value = value


class InvalidInput(BusinessRuleError):
    """Request payload failed validation."""

    code = ErrorCode.INVALID_INPUT


class InconsistentState(LabMaintError):
    """A compensating rollback failed; records may disagree and need an operator."""

    code = ErrorCode.INCONSISTENT_STATE


class StorageUnavailable(LabMaintError):
    """The storage backend could not be reached."""

    code = ErrorCode.STORAGE_UNAVAILABLE
