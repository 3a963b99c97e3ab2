"""User-facing actions over the service graph."""

import asyncio
import time
from datetime import date
from typing import Any, Awaitable, Callable
from uuid import UUID

from labmaint.config import Settings, get_settings
from labmaint.errors import (
    BusinessRuleError,
    InvalidInput,
    InvalidQuantity,
    LabMaintError,
    StorageUnavailable,
)
from labmaint.models.fault_report import FaultReportStatus
from labmaint.models.requests import (
    AdjustmentType,
    ConsumePartRequest,
    FaultReportCreate,
    FaultReportUpdate,
    InventoryItemCreate,
    InventoryItemUpdate,
    MachineCreate,
    MachinePartCreate,
    MachinePartUpdate,
    MachineUpdate,
    MaintenanceCreate,
    MaintenanceResetRequest,
    MaintenanceUpdate,
    PartReplacementRequest,
    PartUsageRequest,
    QuantityAdjustmentRequest,
    RecordUsageRequest,
)
from labmaint.models.results import ActionError, ActionResult
from labmaint.services import Services
from labmaint.utils.logging import ActionLogger

Operation = Callable[[], Awaitable[Any]]


class LabActions:
    """
    Entry point for every caller-visible operation.

    Each action returns an ``ActionResult``. Business-rule failures (not found,
    insufficient stock, invalid quantity or input) come back as typed failures
    and are never retried. ``StorageUnavailable`` is retried with exponential
    backoff for single-record actions only; ``InconsistentState`` and
    exhausted storage retries propagate.
    """

    def __init__(self, services: Services, settings: Settings | None = None):
        self.services = services
        self.settings = settings or get_settings()
        self.logger = ActionLogger("lab_actions")

    async def _execute(
        self,
        action: str,
        operation: Operation,
        message: str | Callable[[Any], str],
        retry: bool = False,
    ) -> ActionResult:
        """
        Run an operation and wrap its outcome.

        Args:
            action: Action name used in logs and the result
            operation: Zero-argument coroutine factory
            message: Success message, or a callable building it from the data
            retry: Retry storage failures; only for single-record writes and reads

        Returns:
            ActionResult carrying data on success or the typed error on failure
        """
        start_time = time.time()

        try:
            if retry:
                data = await self._with_retry(action, operation)
            else:
                data = await operation()

        except BusinessRuleError as e:
            execution_time_ms = (time.time() - start_time) * 1000
            self.logger.log_action(
                action, execution_time_ms, success=False, error_code=e.code.value
            )
            return ActionResult(
                action=action,
                success=False,
                message=e.message,
                error=ActionError(code=e.code, message=e.message, details=e.details),
                execution_time_ms=execution_time_ms,
            )

        except LabMaintError as e:
            self.logger.log_error(action, str(e), error_code=e.code.value, details=e.details)
            raise

        execution_time_ms = (time.time() - start_time) * 1000
        self.logger.log_action(action, execution_time_ms, success=True)

        return ActionResult(
            action=action,
            success=True,
            message=message(data) if callable(message) else message,
            data=data,
            execution_time_ms=execution_time_ms,
        )

    async def _with_retry(self, action: str, operation: Operation) -> Any:
        """Retry an operation on storage failures with exponential backoff."""
        max_attempts = self.settings.storage_max_retries
        retry_delay = self.settings.storage_retry_delay

        for attempt in range(max_attempts):
            try:
                return await operation()

            except StorageUnavailable as e:
                if attempt == max_attempts - 1:
                    raise

                wait_time = retry_delay * (2**attempt)
                self.logger.log_retry(action, attempt + 1, max_attempts, wait_time, str(e))
                await asyncio.sleep(wait_time)

    # Inventory

    async def list_inventory(self, term: str | None = None) -> ActionResult:
        inventory = self.services.inventory
        return await self._execute(
            "list_inventory",
            lambda: inventory.search(term) if term else inventory.list_all(),
            lambda items: f"{len(items)} inventory items",
            retry=True,
        )

    async def get_inventory_item(self, item_id: int) -> ActionResult:
        return await self._execute(
            "get_inventory_item",
            lambda: self.services.inventory.get_by_id(item_id),
            "Inventory item found",
            retry=True,
        )

    async def list_low_stock(self) -> ActionResult:
        return await self._execute(
            "list_low_stock",
            self.services.inventory.list_low_stock,
            lambda items: f"{len(items)} items below minimum stock",
            retry=True,
        )

    async def list_wear_parts(self) -> ActionResult:
        return await self._execute(
            "list_wear_parts",
            self.services.inventory.list_wear_parts,
            lambda items: f"{len(items)} wear parts",
            retry=True,
        )

    async def create_inventory_item(self, request: InventoryItemCreate) -> ActionResult:
        return await self._execute(
            "create_inventory_item",
            lambda: self.services.inventory.create(request),
            "Inventory item created",
            retry=True,
        )

    async def update_inventory_item(
        self, item_id: int, request: InventoryItemUpdate
    ) -> ActionResult:
        return await self._execute(
            "update_inventory_item",
            lambda: self.services.inventory.update(item_id, request),
            "Inventory item updated",
        )

    async def delete_inventory_item(self, item_id: int) -> ActionResult:
        return await self._execute(
            "delete_inventory_item",
            lambda: self.services.inventory.delete(item_id),
            "Inventory item deleted",
            retry=True,
        )

    async def adjust_quantity(
        self, item_id: int, request: QuantityAdjustmentRequest
    ) -> ActionResult:
        """Manual stock adjustment: add, subtract or set."""
        inventory = self.services.inventory

        async def adjust() -> Any:
            if request.adjustment_type == AdjustmentType.SET:
                if request.quantity < 0:
                    raise InvalidQuantity("Stock cannot be set below zero", value=request.quantity)
                return await inventory.set_quantity(item_id, request.quantity)

            if request.quantity <= 0:
                raise InvalidQuantity("Adjustment must be positive", value=request.quantity)
            if request.adjustment_type == AdjustmentType.ADD:
                return await inventory.adjust(item_id, request.quantity)
            return await inventory.adjust(item_id, -request.quantity)

        return await self._execute(
            "adjust_quantity",
            adjust,
            lambda result: f"Stock updated to {result.new_quantity}",
            retry=True,
        )

    # Machines

    async def list_machines(self) -> ActionResult:
        return await self._execute(
            "list_machines",
            self.services.machines.list_all,
            lambda machines: f"{len(machines)} machines",
            retry=True,
        )

    async def get_machine(self, machine_id: int) -> ActionResult:
        return await self._execute(
            "get_machine",
            lambda: self.services.machines.get(machine_id),
            "Machine found",
            retry=True,
        )

    async def create_machine(self, request: MachineCreate) -> ActionResult:
        return await self._execute(
            "create_machine",
            lambda: self.services.machines.create(request),
            "Machine created",
            retry=True,
        )

    async def update_machine(self, machine_id: int, request: MachineUpdate) -> ActionResult:
        return await self._execute(
            "update_machine",
            lambda: self.services.machines.update(machine_id, request),
            "Machine updated",
            retry=True,
        )

    async def delete_machine(self, machine_id: int) -> ActionResult:
        """Delete a machine along with its installed parts and fault reports."""

        async def delete() -> int:
            await self.services.machines.get(machine_id)
            removed = await self.services.tracker.remove_for_machine(machine_id)
            await self.services.fault_reports.remove_for_machine(machine_id)
            await self.services.machines.delete(machine_id)
            return removed

        return await self._execute(
            "delete_machine",
            delete,
            lambda removed: f"Machine deleted with {removed} installed parts",
        )

    # Installed parts

    async def list_machine_parts(self, machine_id: int) -> ActionResult:
        async def parts() -> Any:
            await self.services.machines.get(machine_id)
            return await self.services.tracker.list_for_machine(machine_id)

        return await self._execute(
            "list_machine_parts",
            parts,
            lambda items: f"{len(items)} installed parts",
            retry=True,
        )

    async def list_retired_parts(self, machine_id: int | None = None) -> ActionResult:
        return await self._execute(
            "list_retired_parts",
            lambda: self.services.tracker.list_retired(machine_id),
            lambda items: f"{len(items)} retired parts",
            retry=True,
        )

    async def install_part(self, request: MachinePartCreate) -> ActionResult:
        return await self._execute(
            "install_part",
            lambda: self.services.tracker.install_part(request),
            "Part installed",
            retry=True,
        )

    async def update_part(self, part_id: int, request: MachinePartUpdate) -> ActionResult:
        return await self._execute(
            "update_part",
            lambda: self.services.tracker.update_part(part_id, request),
            _usage_message("Part updated"),
        )

    async def delete_part(self, part_id: int) -> ActionResult:
        return await self._execute(
            "delete_part",
            lambda: self.services.tracker.delete_part(part_id),
            "Part removed",
            retry=True,
        )

    async def record_part_usage(self, part_id: int, request: PartUsageRequest) -> ActionResult:
        return await self._execute(
            "record_part_usage",
            lambda: self.services.tracker.record_usage(part_id, request.additional_usage),
            _usage_message("Usage recorded"),
        )

    async def replace_part(self, part_id: int, request: PartReplacementRequest) -> ActionResult:
        return await self._execute(
            "replace_part",
            lambda: self.services.tracker.replace_part(part_id, request.new_inventory_item_id),
            "Part replaced",
        )

    # Maintenance

    async def list_maintenance(self, machine_id: int | None = None) -> ActionResult:
        maintenance = self.services.maintenance
        return await self._execute(
            "list_maintenance",
            lambda: (
                maintenance.list_for_machine(machine_id)
                if machine_id is not None
                else maintenance.list_all()
            ),
            lambda events: f"{len(events)} maintenance events",
            retry=True,
        )

    async def get_maintenance(self, maintenance_id: int) -> ActionResult:
        return await self._execute(
            "get_maintenance",
            lambda: self.services.maintenance.get(maintenance_id),
            "Maintenance found",
            retry=True,
        )

    async def create_maintenance(self, request: MaintenanceCreate) -> ActionResult:
        return await self._execute(
            "create_maintenance",
            lambda: self.services.maintenance.create(request),
            "Maintenance created",
            retry=True,
        )

    async def update_maintenance(
        self, maintenance_id: int, request: MaintenanceUpdate
    ) -> ActionResult:
        return await self._execute(
            "update_maintenance",
            lambda: self.services.maintenance.update(maintenance_id, request),
            "Maintenance updated",
            retry=True,
        )

    async def delete_maintenance(self, maintenance_id: int) -> ActionResult:
        return await self._execute(
            "delete_maintenance",
            lambda: self.services.consumption.delete_maintenance(maintenance_id),
            lambda records: f"Maintenance deleted, {len(records)} consumptions returned to stock",
        )

    async def list_consumptions(self, maintenance_id: int | None = None) -> ActionResult:
        return await self._execute(
            "list_consumptions",
            lambda: self.services.consumption.list_consumptions(maintenance_id),
            lambda records: f"{len(records)} consumption records",
            retry=True,
        )

    async def consume_part(self, request: ConsumePartRequest) -> ActionResult:
        return await self._execute(
            "consume_part",
            lambda: self.services.consumption.consume_part(
                request.maintenance_id,
                request.inventory_item_id,
                request.quantity,
                request.unit_cost,
            ),
            "Part registered and stock updated",
        )

    async def reverse_consumption(self, consumption_id: int) -> ActionResult:
        return await self._execute(
            "reverse_consumption",
            lambda: self.services.consumption.reverse_consumption(consumption_id),
            "Part removed and stock restored",
        )

    # Fault reports

    async def list_fault_reports(
        self,
        machine_id: int | None = None,
        status: FaultReportStatus | None = None,
    ) -> ActionResult:
        return await self._execute(
            "list_fault_reports",
            lambda: self.services.fault_reports.list_all(machine_id, status),
            lambda reports: f"{len(reports)} fault reports",
            retry=True,
        )

    async def get_fault_report(self, report_id: int) -> ActionResult:
        return await self._execute(
            "get_fault_report",
            lambda: self.services.fault_reports.get(report_id),
            "Fault report found",
            retry=True,
        )

    async def create_fault_report(self, request: FaultReportCreate) -> ActionResult:
        return await self._execute(
            "create_fault_report",
            lambda: self.services.fault_reports.create(request),
            "Fault report created",
            retry=True,
        )

    async def update_fault_report(self, report_id: int, request: FaultReportUpdate) -> ActionResult:
        return await self._execute(
            "update_fault_report",
            lambda: self.services.fault_reports.update(report_id, request),
            "Fault report updated",
            retry=True,
        )

    async def delete_fault_report(self, report_id: int) -> ActionResult:
        return await self._execute(
            "delete_fault_report",
            lambda: self.services.fault_reports.delete(report_id),
            "Fault report deleted",
            retry=True,
        )

    # Usage log

    async def list_usage_logs(self, equipment_id: int | None = None) -> ActionResult:
        ledger = self.services.ledger
        return await self._execute(
            "list_usage_logs",
            lambda: (
                ledger.for_equipment(equipment_id) if equipment_id is not None else ledger.list_all()
            ),
            lambda entries: f"{len(entries)} usage entries",
            retry=True,
        )

    async def record_usage(self, request: RecordUsageRequest) -> ActionResult:
        return await self._execute(
            "record_usage",
            lambda: self.services.consumption.record_usage(request),
            _usage_message("Usage recorded"),
        )

    async def update_usage_entry(self, entry_id: int, request: RecordUsageRequest) -> ActionResult:
        return await self._execute(
            "update_usage_entry",
            lambda: self.services.consumption.update_usage_entry(entry_id, request),
            _usage_message("Usage entry updated"),
        )

    async def delete_usage_entry(self, entry_id: int) -> ActionResult:
        return await self._execute(
            "delete_usage_entry",
            lambda: self.services.consumption.delete_usage_entry(entry_id),
            "Usage entry deleted",
        )

    async def reset_usage(self, request: MaintenanceResetRequest) -> ActionResult:
        return await self._execute(
            "reset_usage",
            lambda: self.services.consumption.reset_usage(request),
            "Maintenance recorded and usage reset",
        )

    # Notifications

    async def list_notifications(self, unread_only: bool = False) -> ActionResult:
        return await self._execute(
            "list_notifications",
            lambda: self.services.notifications.list_all(unread_only=unread_only),
            lambda items: f"{len(items)} notifications",
            retry=True,
        )

    async def mark_notification_read(self, notification_id: UUID) -> ActionResult:
        return await self._execute(
            "mark_notification_read",
            lambda: self.services.notifications.mark_read(notification_id),
            "Notification marked as read",
            retry=True,
        )

    async def delete_notification(self, notification_id: UUID) -> ActionResult:
        return await self._execute(
            "delete_notification",
            lambda: self.services.notifications.delete(notification_id),
            "Notification deleted",
            retry=True,
        )

    # Reports

    async def report(self, name: str, today: date | None = None) -> ActionResult:
        """Run a named report; ``today`` anchors the monthly reports."""
        reports = self.services.reports

        async def run() -> Any:
            if name not in REPORTS:
                raise InvalidInput(f"Unknown report '{name}'", report=name)
            method = getattr(reports, name)
            if name in DATED_REPORTS:
                return await method(today)
            return await method()

        return await self._execute(f"report:{name}", run, "Report generated", retry=True)

    async def machine_history(
        self,
        machine_id: int,
        start: date | None = None,
        end: date | None = None,
        responsible: str | None = None,
    ) -> ActionResult:
        return await self._execute(
            "machine_history",
            lambda: self.services.reports.machine_history(machine_id, start, end, responsible),
            "Machine history generated",
            retry=True,
        )

    async def inventory_item_history(
        self,
        item_id: int,
        start: date | None = None,
        end: date | None = None,
        responsible: str | None = None,
    ) -> ActionResult:
        return await self._execute(
            "inventory_item_history",
            lambda: self.services.reports.inventory_item_history(
                item_id, start, end, responsible
            ),
            "Inventory item history generated",
            retry=True,
        )


DATED_REPORTS = frozenset({"monthly_cost_by_area", "maintenance_type_comparison"})

REPORTS = DATED_REPORTS | frozenset(
    {
        "cost_by_equipment",
        "most_used_parts",
        "maintenance_history",
        "spend_by_area",
        "usage_overview",
        "active_alerts",
        "critical_parts",
    }
)


def _usage_message(default: str) -> Callable[[Any], str]:
    """Use the alert title as the message when an update raised one."""

    def build(result: Any) -> str:
        notification = getattr(result, "notification", None)
        if notification is not None:
            return f"{default}. {notification.title}"
        return default

    return build
