"""Threshold alerting and the notification sink."""

from abc import ABC, abstractmethod
from uuid import UUID

from pydantic import BaseModel

from labmaint.errors import NotificationNotFound
from labmaint.models.machine import PartStatus
from labmaint.models.notification import Notification, NotificationType, Severity
from labmaint.state.manager import StateManager
from labmaint.utils.logging import get_logger

logger = get_logger(__name__)

SEVERITY_BY_STATUS = {
    PartStatus.CRITICAL: Severity.HIGH,
    PartStatus.WARNING: Severity.MEDIUM,
}


class AlertContext(BaseModel):
    """What an alert is about; ``related_id`` is chosen by the caller's key space."""

    notification_type: NotificationType
    related_id: str
    item_name: str
    equipment_name: str
    current_usage: float
    max_usage: float
    unit: str


class NotificationSink(ABC):
    """Receives notifications for delivery."""

    @abstractmethod
    async def deliver(self, notification: Notification) -> None:
        """Hand off a notification."""


class NotificationCenter(NotificationSink):
    """Persists notifications so the dashboard can list them."""

    collection = "notification"

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    def _notification_key(self, notification_id: UUID) -> str:
        return f"{self.collection}:{notification_id}"

    async def deliver(self, notification: Notification) -> None:
        """Store a notification."""
        await self.state.set(
            self._notification_key(notification.id), notification.model_dump(mode="json")
        )
        logger.info(
            "notification_stored",
            notification_id=str(notification.id),
            type=notification.type.value,
            severity=notification.severity.value,
            related_id=notification.related_id,
        )

    async def get(self, notification_id: UUID) -> Notification:
        """Return a notification or raise ``NotificationNotFound``."""
        data = await self.state.get(self._notification_key(notification_id))
        if not data:
            raise NotificationNotFound(notification_id)
        return Notification(**data)

    async def list_all(self, unread_only: bool = False) -> list[Notification]:
        """Notifications, newest first."""
        notifications = [
            Notification(**data)
            for data in await self.state.list_values(f"{self.collection}:")
        ]
        if unread_only:
            notifications = [n for n in notifications if not n.read]
        return sorted(notifications, key=lambda n: n.created_at, reverse=True)

    async def for_related(self, related_id: str) -> list[Notification]:
        """Notifications about one entity."""
        return [n for n in await self.list_all() if n.related_id == related_id]

    async def unread_count(self) -> int:
        """Number of unread notifications."""
        return len(await self.list_all(unread_only=True))

    async def mark_read(self, notification_id: UUID) -> Notification:
        """Flag a notification as read."""
        notification = await self.get(notification_id)
        updated = notification.model_copy(update={"read": True})
        await self.state.set(self._notification_key(notification_id), updated.model_dump(mode="json"))
        return updated

    async def delete(self, notification_id: UUID) -> None:
        """Delete a notification."""
        if not await self.state.delete(self._notification_key(notification_id)):
            raise NotificationNotFound(notification_id)


class AlertEngine:
    """
    Emits a notification when usage crosses into the warning or critical band.

    The only de-duplication rule: a notification is emitted when the new status
    is warning or critical *and* differs from the previous status. Staying in
    the same band never emits again.
    """

    def __init__(self, sink: NotificationSink):
        self.sink = sink

    @staticmethod
    def should_alert(previous_status: PartStatus, new_status: PartStatus) -> bool:
        """Check whether a status transition is an alertable crossing."""
        return new_status in SEVERITY_BY_STATUS and new_status != previous_status

    async def evaluate(
        self,
        context: AlertContext,
        previous_status: PartStatus,
        new_status: PartStatus,
        usage_percentage: float,
    ) -> Notification | None:
        """
        Build and deliver an alert for a threshold crossing.

        Args:
            context: Subject of the alert
            previous_status: Status stored before the update
            new_status: Status computed after the update
            usage_percentage: Accumulated usage over the rated maximum, in percent

        Returns:
            The delivered notification, or None when nothing crossed
        """
        if not self.should_alert(previous_status, new_status):
            return None

        notification = Notification(
            type=context.notification_type,
            title=_alert_title(context.notification_type, new_status),
            message=_alert_message(context, new_status, usage_percentage),
            severity=SEVERITY_BY_STATUS[new_status],
            related_id=context.related_id,
        )
        await self.sink.deliver(notification)

        logger.info(
            "wear_alert_emitted",
            related_id=context.related_id,
            previous_status=previous_status.value,
            new_status=new_status.value,
            usage_percentage=round(usage_percentage, 2),
        )
        return notification

    async def maintenance_notice(
        self,
        related_id: str,
        item_name: str,
        equipment_name: str,
        responsible: str,
    ) -> Notification:
        """Deliver the low-severity notice for a maintenance reset."""
        notification = Notification(
            type=NotificationType.MAINTENANCE,
            title="Maintenance recorded",
            message=(
                f"Maintenance recorded for {item_name} on {equipment_name} "
                f"by {responsible}."
            ),
            severity=Severity.LOW,
            related_id=related_id,
        )
        await self.sink.deliver(notification)
        return notification


def format_amount(value: float) -> str:
    """Render a usage amount without float noise."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _alert_title(notification_type: NotificationType, status: PartStatus) -> str:
    if notification_type == NotificationType.WEAR_PART_ALERT:
        if status == PartStatus.CRITICAL:
            return "Part replacement required"
        return "Wear part alert"
    if status == PartStatus.CRITICAL:
        return "Critical usage alert"
    return "Usage alert"


def _alert_message(context: AlertContext, status: PartStatus, usage_percentage: float) -> str:
    usage = (
        f"{format_amount(context.current_usage)} of "
        f"{format_amount(context.max_usage)} {context.unit}"
    )
    subject = f"{context.item_name} on {context.equipment_name}"
    if status == PartStatus.CRITICAL:
        return (
            f"{subject} has reached {usage_percentage:.1f}% of its rated life ({usage}). "
            "Replace it now."
        )
    return (
        f"{subject} is at {usage_percentage:.1f}% of its rated life ({usage}). "
        "Plan a replacement soon."
    )
