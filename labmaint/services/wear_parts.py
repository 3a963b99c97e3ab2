"""Wear-part tracker: installed parts, their usage and health status."""

import math
from datetime import date

from labmaint.errors import InvalidInput, InvalidQuantity, MachineNotFound, PartNotFound
from labmaint.models.machine import (
    CRITICAL_THRESHOLD_PCT,
    WARNING_THRESHOLD_PCT,
    MachinePart,
    PartStatus,
    PartUsageUpdate,
    RetiredPart,
    compute_part_status,
)
from labmaint.models.notification import NotificationType
from labmaint.models.requests import MachinePartCreate, MachinePartUpdate
from labmaint.services.alerts import AlertContext, AlertEngine
from labmaint.services.inventory import InventoryStore
from labmaint.services.machines import MachineRegistry
from labmaint.state.locks import KeyedLocks
from labmaint.state.manager import StateManager
from labmaint.state.transaction import CompensatingTransaction
from labmaint.utils.logging import get_logger

logger = get_logger(__name__)


class WearPartTracker:
    """
    Registry of parts installed on machines.

    Sole writer of ``current_usage`` and ``status``. Usage only grows through
    ``record_usage``; replacement swaps in a fresh record and tombstones the
    old one instead of resetting it.
    """

    collection = "machine_part"
    retired_collection = "machine_part_retired"

    def __init__(
        self,
        state_manager: StateManager,
        locks: KeyedLocks,
        machines: MachineRegistry,
        inventory: InventoryStore,
        alerts: AlertEngine,
        warning_pct: float = WARNING_THRESHOLD_PCT,
        critical_pct: float = CRITICAL_THRESHOLD_PCT,
    ):
        self.state = state_manager
        self.locks = locks
        self.machines = machines
        self.inventory = inventory
        self.alerts = alerts
        self.warning_pct = warning_pct
        self.critical_pct = critical_pct

    def _part_key(self, part_id: int) -> str:
        """Generate storage key for an installed part."""
        return f"{self.collection}:{part_id}"

    def _retired_key(self, part_id: int) -> str:
        return f"{self.retired_collection}:{part_id}"

    def _lock_key(self, part_id: int) -> str:
        return f"lock:{self.collection}:{part_id}"

    def compute_status(self, current_usage: float, max_usage: float) -> PartStatus:
        """Health status with the configured thresholds."""
        return compute_part_status(
            current_usage, max_usage, self.warning_pct, self.critical_pct
        )

    async def get(self, part_id: int) -> MachinePart:
        """Return a part or raise ``PartNotFound``."""
        data = await self.state.get(self._part_key(part_id))
        if not data:
            raise PartNotFound(part_id)
        return MachinePart(**data)

    async def list_all(self) -> list[MachinePart]:
        """Every installed part."""
        return [
            MachinePart(**data)
            for data in await self.state.list_values(f"{self.collection}:")
        ]

    async def list_for_machine(self, machine_id: int) -> list[MachinePart]:
        """Parts installed on one machine."""
        return [p for p in await self.list_all() if p.machine_id == machine_id]

    async def find_installed(self, machine_id: int, item_id: int) -> MachinePart | None:
        """The part of an inventory item installed on a machine, if any."""
        for part in await self.list_for_machine(machine_id):
            if part.inventory_item_id == item_id:
                return part
        return None

    async def list_retired(self, machine_id: int | None = None) -> list[RetiredPart]:
        """Tombstones of replaced parts."""
        retired = [
            RetiredPart(**data)
            for data in await self.state.list_values(f"{self.retired_collection}:")
        ]
        if machine_id is not None:
            retired = [r for r in retired if r.part.machine_id == machine_id]
        return retired

    async def install_part(self, request: MachinePartCreate) -> MachinePart:
        """
        Install a part on a machine.

        Usage unit and rated maximum default to the inventory item's wear
        attributes when the request leaves them out.
        """
        await self.machines.get(request.machine_id)
        item = await self.inventory.get_by_id(request.inventory_item_id)

        usage_unit = request.usage_unit or item.usage_unit
        max_usage = request.max_usage if request.max_usage is not None else item.max_lifespan
        if not usage_unit:
            raise InvalidInput("A usage unit is required for installed parts")
        self._check_max_usage(max_usage)

        part = MachinePart(
            id=await self.state.next_id(self.collection),
            machine_id=request.machine_id,
            inventory_item_id=request.inventory_item_id,
            name=request.name,
            installed_at=request.installed_at or date.today(),
            usage_unit=usage_unit,
            max_usage=max_usage,
        )
        await self._save(part)

        logger.info(
            "part_installed",
            part_id=part.id,
            machine_id=part.machine_id,
            item_id=part.inventory_item_id,
            max_usage=part.max_usage,
        )
        return part

    async def update_part(self, part_id: int, request: MachinePartUpdate) -> PartUsageUpdate:
        """Update part attributes; status is recomputed against the new maximum."""
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if "max_usage" in changes:
            self._check_max_usage(changes["max_usage"])
        if "inventory_item_id" in changes:
            await self.inventory.get_by_id(changes["inventory_item_id"])

        async with self.locks.hold(self._lock_key(part_id)):
            current = await self.get(part_id)
            merged = current.model_copy(update=changes)
            new_status = self.compute_status(merged.current_usage, merged.max_usage)
            part = merged.model_copy(update={"status": new_status})
            await self._save(part)

        logger.info("part_updated", part_id=part_id, fields=sorted(changes))
        return await self._status_update(part, current.status)

    async def delete_part(self, part_id: int) -> None:
        """Remove an installed part."""
        async with self.locks.hold(self._lock_key(part_id)):
            if not await self.state.delete(self._part_key(part_id)):
                raise PartNotFound(part_id)

        logger.info("part_deleted", part_id=part_id)

    async def remove_for_machine(self, machine_id: int) -> int:
        """Remove every part of a machine; returns how many were removed."""
        parts = await self.list_for_machine(machine_id)
        for part in parts:
            await self.delete_part(part.id)
        return len(parts)

    async def record_usage(self, part_id: int, additional_usage: float) -> PartUsageUpdate:
        """
        Add usage to a part and recompute its status.

        Args:
            part_id: Installed part
            additional_usage: Non-negative usage to add

        Returns:
            Previous and new status, whether it changed, the usage percentage and
            the alert emitted for an upward crossing, if any
        """
        if (
            isinstance(additional_usage, bool)
            or not isinstance(additional_usage, (int, float))
            or not math.isfinite(additional_usage)
            or additional_usage < 0
        ):
            raise InvalidQuantity(
                "Usage must be a non-negative number", value=additional_usage
            )

        async with self.locks.hold(self._lock_key(part_id)):
            current = await self.get(part_id)
            new_usage = current.current_usage + additional_usage
            part = current.model_copy(
                update={
                    "current_usage": new_usage,
                    "status": self.compute_status(new_usage, current.max_usage),
                }
            )
            await self._save(part)

        logger.info(
            "part_usage_recorded",
            part_id=part_id,
            additional_usage=additional_usage,
            current_usage=part.current_usage,
            status=part.status.value,
        )
        return await self._status_update(part, current.status)

    async def replace_part(self, part_id: int, new_inventory_item_id: int) -> MachinePart:
        """
        Replace a worn part with a fresh one.

        The new record starts at zero usage and copies machine, name, usage
        unit and rated maximum. The old record is tombstoned and deleted.
        """
        async with self.locks.hold(self._lock_key(part_id)):
            old = await self.get(part_id)
            await self.inventory.get_by_id(new_inventory_item_id)

            new_part = MachinePart(
                id=await self.state.next_id(self.collection),
                machine_id=old.machine_id,
                inventory_item_id=new_inventory_item_id,
                name=old.name,
                installed_at=date.today(),
                usage_unit=old.usage_unit,
                max_usage=old.max_usage,
            )
            tombstone = RetiredPart(part=old, replaced_by=new_part.id)

            async with CompensatingTransaction("replace_part", part_id=part_id) as txn:
                with txn.step("create_replacement"):
                    await self._save(new_part)
                txn.on_rollback(
                    "remove_replacement", lambda: self.state.delete(self._part_key(new_part.id))
                )

                with txn.step("tombstone_old"):
                    await self.state.set(
                        self._retired_key(old.id), tombstone.model_dump(mode="json")
                    )
                txn.on_rollback(
                    "remove_tombstone", lambda: self.state.delete(self._retired_key(old.id))
                )

                with txn.step("delete_old"):
                    await self.state.delete(self._part_key(old.id))

        logger.info(
            "part_replaced",
            old_part_id=old.id,
            new_part_id=new_part.id,
            machine_id=old.machine_id,
            final_usage=old.current_usage,
            final_status=old.status.value,
        )
        return new_part

    async def _status_update(self, part: MachinePart, previous_status: PartStatus) -> PartUsageUpdate:
        pct = part.usage_percentage
        notification = await self.alerts.evaluate(
            AlertContext(
                notification_type=NotificationType.WEAR_PART_ALERT,
                related_id=str(part.id),
                item_name=part.name,
                equipment_name=await self._machine_name(part.machine_id),
                current_usage=part.current_usage,
                max_usage=part.max_usage,
                unit=part.usage_unit,
            ),
            previous_status,
            part.status,
            pct,
        )
        return PartUsageUpdate(
            part=part,
            previous_status=previous_status,
            new_status=part.status,
            status_changed=part.status != previous_status,
            usage_percentage=pct,
            notification=notification,
        )

    async def _machine_name(self, machine_id: int) -> str:
        try:
            return (await self.machines.get(machine_id)).name
        except MachineNotFound:
            return f"machine {machine_id}"

    @staticmethod
    def _check_max_usage(max_usage: float | None) -> None:
        if max_usage is None or not math.isfinite(max_usage) or max_usage <= 0:
            raise InvalidQuantity("Maximum usage must be a positive number", value=max_usage)

    async def _save(self, part: MachinePart) -> None:
        await self.state.set(self._part_key(part.id), part.model_dump(mode="json"))
