"""Consumption coordinator: keeps stock, consumption records and usage history in step."""

import math
from contextlib import AsyncExitStack, asynccontextmanager
from decimal import Decimal, InvalidOperation
from typing import Any, AsyncGenerator

from labmaint.errors import ConsumptionNotFound, InsufficientStock, InvalidQuantity
from labmaint.models.inventory import InventoryItem
from labmaint.models.machine import PartUsageUpdate, usage_percentage
from labmaint.models.maintenance import MaintenancePartConsumption
from labmaint.models.notification import Notification, NotificationType
from labmaint.models.requests import MaintenanceResetRequest, RecordUsageRequest
from labmaint.models.usage import UsageLogEntry, UsageRecordResult, usage_key
from labmaint.services.alerts import AlertContext, AlertEngine
from labmaint.services.inventory import InventoryStore
from labmaint.services.machines import MachineRegistry
from labmaint.services.maintenance import MaintenanceRegistry
from labmaint.services.usage import UsageLedger
from labmaint.services.wear_parts import WearPartTracker
from labmaint.state.locks import KeyedLocks
from labmaint.state.manager import StateManager
from labmaint.state.transaction import CompensatingTransaction
from labmaint.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_USAGE_UNIT = "units"


class ConsumptionCoordinator:
    """
    Orchestrates every write that touches stock and a history record together.

    Each operation is a ``CompensatingTransaction``: when a later step fails the
    earlier ones are undone before the error surfaces, and a failed undo raises
    ``InconsistentState``. After any call returns or raises, inventory quantity
    and the consumption/usage records agree.
    """

    collection = "consumption"

    def __init__(
        self,
        state_manager: StateManager,
        locks: KeyedLocks,
        inventory: InventoryStore,
        maintenance: MaintenanceRegistry,
        machines: MachineRegistry,
        ledger: UsageLedger,
        tracker: WearPartTracker,
        alerts: AlertEngine,
    ):
        self.state = state_manager
        self.locks = locks
        self.inventory = inventory
        self.maintenance = maintenance
        self.machines = machines
        self.ledger = ledger
        self.tracker = tracker
        self.alerts = alerts

    def _consumption_key(self, consumption_id: int) -> str:
        """Generate storage key for a consumption record."""
        return f"{self.collection}:{consumption_id}"

    # Maintenance part consumption

    async def get_consumption(self, consumption_id: int) -> MaintenancePartConsumption:
        """Return a consumption record or raise ``ConsumptionNotFound``."""
        data = await self.state.get(self._consumption_key(consumption_id))
        if not data:
            raise ConsumptionNotFound(consumption_id)
        return MaintenancePartConsumption(**data)

    async def list_consumptions(
        self, maintenance_id: int | None = None
    ) -> list[MaintenancePartConsumption]:
        """Consumption records, optionally of one maintenance event."""
        records = [
            MaintenancePartConsumption(**data)
            for data in await self.state.list_values(f"{self.collection}:")
        ]
        if maintenance_id is not None:
            records = [r for r in records if r.maintenance_id == maintenance_id]
        return records

    async def consume_part(
        self,
        maintenance_id: int,
        inventory_item_id: int,
        quantity: int,
        unit_cost: Decimal | float | str,
    ) -> MaintenancePartConsumption:
        """
        Deduct stock for a maintenance event and record the consumption.

        Args:
            maintenance_id: Maintenance event consuming the stock
            inventory_item_id: Item consumed
            quantity: Units consumed, positive
            unit_cost: Cost per unit, non-negative

        Returns:
            The persisted consumption record

        Raises:
            MaintenanceNotFound, ItemNotFound, InsufficientStock, InvalidQuantity
        """
        _check_whole_quantity(quantity)
        cost = _to_cost(unit_cost)

        await self.maintenance.get(maintenance_id)
        item = await self.inventory.get_by_id(inventory_item_id)
        if quantity > item.quantity:
            raise InsufficientStock(item.id, available=item.quantity, requested=quantity)

        record = MaintenancePartConsumption.build(
            id=await self.state.next_id(self.collection),
            maintenance_id=maintenance_id,
            inventory_item_id=item.id,
            inventory_item_name=item.name,
            quantity_used=quantity,
            unit_cost=cost,
        )
        record_key = self._consumption_key(record.id)

        async with CompensatingTransaction(
            "consume_part", maintenance_id=maintenance_id, item_id=item.id
        ) as txn:
            with txn.step("deduct_stock", quantity=quantity):
                await self.inventory.adjust(item.id, -quantity)
            txn.on_rollback("restore_stock", lambda: self.inventory.adjust(item.id, quantity))

            with txn.step("persist_consumption", consumption_id=record.id):
                await self.state.set(record_key, record.model_dump(mode="json"))
            txn.on_rollback("delete_consumption", lambda: self.state.delete(record_key))

            with txn.step("add_maintenance_cost", amount=str(record.total_cost)):
                await self.maintenance.add_cost(maintenance_id, record.total_cost)

        logger.info(
            "consumption_recorded",
            consumption_id=record.id,
            maintenance_id=maintenance_id,
            item_id=item.id,
            quantity=quantity,
            total_cost=str(record.total_cost),
        )
        return record

    async def reverse_consumption(self, consumption_id: int) -> MaintenancePartConsumption:
        """
        Return consumed stock to inventory and delete the consumption record.

        The maintenance cost drops by the record's total, clamped at zero. When
        the stock restore fails the record is kept and the error surfaces.
        """
        async with self.locks.hold(f"lock:{self.collection}:{consumption_id}"):
            record = await self.get_consumption(consumption_id)
            item_id = record.inventory_item_id
            quantity = record.quantity_used
            maintenance_id = record.maintenance_id

            async with CompensatingTransaction(
                "reverse_consumption", consumption_id=consumption_id
            ) as txn:
                with txn.step("restore_stock", quantity=quantity):
                    await self.inventory.adjust(item_id, quantity)
                txn.on_rollback("deduct_stock", lambda: self.inventory.adjust(item_id, -quantity))

                if await self.maintenance.exists(maintenance_id):
                    with txn.step("subtract_maintenance_cost", amount=str(record.total_cost)):
                        previous_cost = await self.maintenance.subtract_cost(
                            maintenance_id, record.total_cost
                        )
                    txn.on_rollback(
                        "restore_maintenance_cost",
                        lambda: self.maintenance.set_cost(maintenance_id, previous_cost),
                    )

                with txn.step("delete_consumption"):
                    await self.state.delete(self._consumption_key(consumption_id))

        logger.info(
            "consumption_reversed",
            consumption_id=consumption_id,
            maintenance_id=maintenance_id,
            item_id=item_id,
            quantity=quantity,
        )
        return record

    async def delete_maintenance(self, maintenance_id: int) -> list[MaintenancePartConsumption]:
        """Reverse every consumption of a maintenance event, then delete it."""
        await self.maintenance.get(maintenance_id)

        reversed_records = []
        for record in await self.list_consumptions(maintenance_id):
            reversed_records.append(await self.reverse_consumption(record.id))

        await self.maintenance.delete(maintenance_id)
        return reversed_records

    # Usage ledger

    async def record_usage(self, request: RecordUsageRequest) -> UsageRecordResult:
        """
        Append a usage entry and propagate it to stock, wear parts and alerts.

        When the item is installed as a tracked part on the equipment, the part
        drives the alert (keyed by part id). Otherwise wear items are alerted
        on their cumulative ledger usage (keyed ``equipment_item``).
        """
        _check_usage_quantity(request.quantity_used)
        machine = await self.machines.get(request.equipment_id)
        item = await self.inventory.get_by_id(request.inventory_item_id)
        deduct = _stock_deduction(request)

        async with self._hold_usage((request.equipment_id, request.inventory_item_id)):
            before = await self.ledger.cumulative_usage(machine.id, item.id)
            entry = await self._build_entry(request, machine.name, item, deduct)

            async with CompensatingTransaction("record_usage", key=entry.usage_key) as txn:
                part_update = await self._append_entry(txn, entry, item.id, entry.quantity_used)

            after = before + entry.quantity_used

        return await self._usage_result(entry, item, machine.name, before, after, part_update)

    async def update_usage_entry(
        self, entry_id: int, request: RecordUsageRequest
    ) -> UsageRecordResult:
        """
        Edit a usage entry as delete + recreate.

        The replacement gets a new id. Alerts fire only when the edit raised
        the cumulative usage of the pair, so lowering a quantity never re-arms
        an alert. Tracked parts only receive positive differences.
        """
        _check_usage_quantity(request.quantity_used)
        old = await self.ledger.get(entry_id)
        machine = await self.machines.get(request.equipment_id)
        item = await self.inventory.get_by_id(request.inventory_item_id)
        deduct = _stock_deduction(request)
        same_pair = old.usage_key == usage_key(machine.id, item.id)

        async with self._hold_usage(
            (old.equipment_id, old.inventory_item_id), (machine.id, item.id)
        ):
            before = await self.ledger.cumulative_usage(machine.id, item.id)
            entry = await self._build_entry(request, machine.name, item, deduct)
            usage_delta = entry.quantity_used - (old.quantity_used if same_pair else 0.0)

            async with CompensatingTransaction(
                "update_usage_entry", entry_id=entry_id, replacement_id=entry.id
            ) as txn:
                await self._remove_entry(txn, old)
                part_update = await self._append_entry(txn, entry, item.id, usage_delta)

            after = before + usage_delta

        logger.info("usage_entry_replaced", old_entry_id=entry_id, new_entry_id=entry.id)

        if after <= before:
            pct = usage_percentage(after, item.max_lifespan) if item.is_wear_part else None
            return UsageRecordResult(entry=entry, cumulative_usage=after, usage_percentage=pct)
        return await self._usage_result(entry, item, machine.name, before, after, part_update)

    async def delete_usage_entry(self, entry_id: int) -> UsageLogEntry:
        """Remove a usage entry, returning any stock it deducted."""
        entry = await self.ledger.get(entry_id)

        async with self._hold_usage((entry.equipment_id, entry.inventory_item_id)):
            async with CompensatingTransaction("delete_usage_entry", entry_id=entry_id) as txn:
                await self._remove_entry(txn, entry)

        return entry

    async def reset_usage(self, request: MaintenanceResetRequest) -> UsageRecordResult:
        """
        Record maintenance on an item by zeroing its cumulative usage.

        A negative entry cancelling the accumulated usage is appended and a
        low-severity maintenance notification is delivered.
        """
        machine = await self.machines.get(request.equipment_id)
        item = await self.inventory.get_by_id(request.inventory_item_id)

        async with self._hold_usage((machine.id, item.id)):
            cumulative = await self.ledger.cumulative_usage(machine.id, item.id)
            entry = UsageLogEntry(
                id=await self.ledger.next_id(),
                equipment_id=machine.id,
                equipment_name=machine.name,
                inventory_item_id=item.id,
                inventory_item_name=item.name,
                usage_date=request.reset_date,
                quantity_used=-cumulative if cumulative else 0.0,
                unit=item.usage_unit or DEFAULT_USAGE_UNIT,
                responsible=request.responsible,
                comment=_reset_comment(request.comment),
            )
            await self.ledger.append(entry)

        notification = await self.alerts.maintenance_notice(
            related_id=entry.usage_key,
            item_name=item.name,
            equipment_name=machine.name,
            responsible=request.responsible,
        )

        logger.info(
            "usage_reset",
            key=entry.usage_key,
            previous_cumulative=cumulative,
            responsible=request.responsible,
        )
        return UsageRecordResult(
            entry=entry,
            cumulative_usage=0.0,
            usage_percentage=0.0 if item.is_wear_part else None,
            notification=notification,
        )

    # Helpers

    @asynccontextmanager
    async def _hold_usage(self, *pairs: tuple[int, int]) -> AsyncGenerator[None, None]:
        """Lock equipment/item pairs in a stable order."""
        keys = sorted({f"lock:usage:{usage_key(*pair)}" for pair in pairs})

        async with AsyncExitStack() as stack:
            for key in keys:
                await stack.enter_async_context(self.locks.hold(key))
            yield

    async def _build_entry(
        self,
        request: RecordUsageRequest,
        equipment_name: str,
        item: InventoryItem,
        deduct: int,
    ) -> UsageLogEntry:
        return UsageLogEntry(
            id=await self.ledger.next_id(),
            equipment_id=request.equipment_id,
            equipment_name=equipment_name,
            inventory_item_id=item.id,
            inventory_item_name=item.name,
            usage_date=request.usage_date,
            quantity_used=request.quantity_used,
            unit=request.unit or item.usage_unit or DEFAULT_USAGE_UNIT,
            responsible=request.responsible,
            comment=request.comment,
            stock_deducted=deduct,
        )

    async def _append_entry(
        self,
        txn: CompensatingTransaction,
        entry: UsageLogEntry,
        item_id: int,
        part_usage: float,
    ) -> PartUsageUpdate | None:
        """Deduct stock, append the entry and feed a tracked part."""
        if entry.stock_deducted:
            with txn.step("deduct_stock", quantity=entry.stock_deducted):
                await self.inventory.adjust(item_id, -entry.stock_deducted)
            txn.on_rollback(
                "restore_stock", lambda: self.inventory.adjust(item_id, entry.stock_deducted)
            )

        with txn.step("append_usage", entry_id=entry.id):
            await self.ledger.append(entry)
        txn.on_rollback("remove_usage", lambda: self.ledger.remove(entry.id))

        part = await self.tracker.find_installed(entry.equipment_id, item_id)
        if part is None or part_usage <= 0:
            return None

        with txn.step("record_part_usage", part_id=part.id):
            return await self.tracker.record_usage(part.id, part_usage)

    async def _remove_entry(self, txn: CompensatingTransaction, entry: UsageLogEntry) -> None:
        """Return deducted stock, then remove the entry."""
        if entry.stock_deducted:
            with txn.step("restore_stock", quantity=entry.stock_deducted):
                await self.inventory.adjust(entry.inventory_item_id, entry.stock_deducted)
            txn.on_rollback(
                "deduct_stock",
                lambda: self.inventory.adjust(entry.inventory_item_id, -entry.stock_deducted),
            )

        with txn.step("remove_usage", entry_id=entry.id):
            await self.ledger.remove(entry.id)
        txn.on_rollback("restore_usage", lambda: self.ledger.append(entry))

    async def _usage_result(
        self,
        entry: UsageLogEntry,
        item: InventoryItem,
        equipment_name: str,
        before: float,
        after: float,
        part_update: PartUsageUpdate | None,
    ) -> UsageRecordResult:
        if part_update is not None:
            return UsageRecordResult(
                entry=entry,
                cumulative_usage=after,
                usage_percentage=part_update.usage_percentage,
                notification=part_update.notification,
            )

        if not item.is_wear_part:
            return UsageRecordResult(entry=entry, cumulative_usage=after)

        pct, notification = await self._evaluate_ledger_alert(
            entry, item, equipment_name, before, after
        )
        return UsageRecordResult(
            entry=entry,
            cumulative_usage=after,
            usage_percentage=pct,
            notification=notification,
        )

    async def _evaluate_ledger_alert(
        self,
        entry: UsageLogEntry,
        item: InventoryItem,
        equipment_name: str,
        before: float,
        after: float,
    ) -> tuple[float, Notification | None]:
        pct = usage_percentage(after, item.max_lifespan)
        notification = await self.alerts.evaluate(
            AlertContext(
                notification_type=NotificationType.USAGE_ALERT,
                related_id=entry.usage_key,
                item_name=item.name,
                equipment_name=equipment_name,
                current_usage=after,
                max_usage=item.max_lifespan,
                unit=item.usage_unit,
            ),
            self.tracker.compute_status(before, item.max_lifespan),
            self.tracker.compute_status(after, item.max_lifespan),
            pct,
        )
        return pct, notification


def _check_whole_quantity(quantity: Any) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity("Quantity must be a positive whole number", value=quantity)


def _check_usage_quantity(quantity: Any) -> None:
    if (
        isinstance(quantity, bool)
        or not isinstance(quantity, (int, float))
        or not math.isfinite(quantity)
        or quantity <= 0
    ):
        raise InvalidQuantity("Usage must be a positive number", value=quantity)


def _stock_deduction(request: RecordUsageRequest) -> int:
    if not request.deduct_from_stock:
        return 0
    if not float(request.quantity_used).is_integer():
        raise InvalidQuantity(
            "Only whole units can be deducted from stock", value=request.quantity_used
        )
    return int(request.quantity_used)


def _to_cost(value: Decimal | float | str) -> Decimal:
    try:
        cost = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise InvalidQuantity("Unit cost must be a number", value=str(value)) from e
    if not cost.is_finite() or cost < 0:
        raise InvalidQuantity("Unit cost must be a non-negative number", value=str(value))
    return cost


def _reset_comment(comment: str) -> str:
    if comment:
        return f"Maintenance performed: {comment}"
    return "Maintenance performed"
