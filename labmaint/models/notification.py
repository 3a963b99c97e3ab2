"""Notification models."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class Severity(str, Enum):
    """Notification severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NotificationType(str, Enum):
    """Source of a notification."""

    WEAR_PART_ALERT = "wear_part_alert"
    USAGE_ALERT = "usage_alert"
    MAINTENANCE = "maintenance"


class Notification(BaseModel):
    """Notification handed to the notification sink; only ``read`` changes later."""

    id: UUID = Field(default_factory=uuid4)
    type: NotificationType
    title: str
    message: str
    severity: Severity
    related_id: str | None = None
    read: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
