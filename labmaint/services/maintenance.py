"""Maintenance registry: maintenance events and their accumulated cost."""

from decimal import Decimal
from typing import Any

from labmaint.errors import InvalidInput, InvalidQuantity, MaintenanceNotFound
from labmaint.models.maintenance import Maintenance
from labmaint.models.requests import MaintenanceCreate, MaintenanceUpdate
from labmaint.services.machines import MachineRegistry
from labmaint.state.locks import KeyedLocks
from labmaint.state.manager import StateManager
from labmaint.utils.logging import get_logger

logger = get_logger(__name__)


class MaintenanceRegistry:
    """Persists maintenance events; the only writer of ``Maintenance.cost``."""

    collection = "maintenance"

    def __init__(
        self,
        state_manager: StateManager,
        locks: KeyedLocks,
        machines: MachineRegistry,
    ):
        self.state = state_manager
        self.locks = locks
        self.machines = machines

    def _maintenance_key(self, maintenance_id: int) -> str:
        """Generate storage key for a maintenance event."""
        return f"{self.collection}:{maintenance_id}"

    def _lock_key(self, maintenance_id: int) -> str:
        return f"lock:{self.collection}:{maintenance_id}"

    async def get(self, maintenance_id: int) -> Maintenance:
        """Return a maintenance event or raise ``MaintenanceNotFound``."""
        data = await self.state.get(self._maintenance_key(maintenance_id))
        if not data:
            raise MaintenanceNotFound(maintenance_id)
        return Maintenance(**data)

    async def exists(self, maintenance_id: int) -> bool:
        """Check if a maintenance event exists."""
        return await self.state.exists(self._maintenance_key(maintenance_id))

    async def list_all(self) -> list[Maintenance]:
        """Return every maintenance event."""
        return [
            Maintenance(**data)
            for data in await self.state.list_values(f"{self.collection}:")
        ]

    async def list_for_machine(self, machine_id: int) -> list[Maintenance]:
        """Maintenance events of one machine."""
        return [m for m in await self.list_all() if m.machine_id == machine_id]

    async def create(self, request: MaintenanceCreate) -> Maintenance:
        """Register a maintenance event on an existing machine."""
        machine = await self.machines.get(request.machine_id)
        maintenance_id = await self.state.next_id(self.collection)
        maintenance = Maintenance(
            id=maintenance_id,
            machine_name=machine.name,
            **request.model_dump(),
        )
        await self._save(maintenance)

        logger.info(
            "maintenance_created",
            maintenance_id=maintenance.id,
            machine_id=machine.id,
            maintenance_type=maintenance.maintenance_type.value,
        )
        return maintenance

    async def update(self, maintenance_id: int, request: MaintenanceUpdate) -> Maintenance:
        """Update descriptive fields of a maintenance event."""
        changes = request.model_dump(exclude_unset=True)

        async with self.locks.hold(self._lock_key(maintenance_id)):
            current = await self.get(maintenance_id)
            maintenance = self._build({**current.model_dump(), **changes})
            await self._save(maintenance)

        logger.info("maintenance_updated", maintenance_id=maintenance_id, fields=sorted(changes))
        return maintenance

    async def delete(self, maintenance_id: int) -> None:
        """Delete the maintenance record; consumptions are reversed by the caller."""
        async with self.locks.hold(self._lock_key(maintenance_id)):
            if not await self.state.delete(self._maintenance_key(maintenance_id)):
                raise MaintenanceNotFound(maintenance_id)

        logger.info("maintenance_deleted", maintenance_id=maintenance_id)

    async def add_cost(self, maintenance_id: int, amount: Decimal) -> Decimal:
        """Add to the accumulated cost; returns the previous cost."""
        if amount < 0:
            raise InvalidQuantity("Cost increments cannot be negative", value=str(amount))

        async with self.locks.hold(self._lock_key(maintenance_id)):
            maintenance = await self.get(maintenance_id)
            previous = maintenance.cost
            await self._save(maintenance.model_copy(update={"cost": previous + amount}))

        logger.debug(
            "maintenance_cost_added",
            maintenance_id=maintenance_id,
            amount=str(amount),
            cost=str(previous + amount),
        )
        return previous

    async def subtract_cost(self, maintenance_id: int, amount: Decimal) -> Decimal:
        """Subtract from the accumulated cost, clamping at zero; returns the previous cost."""
        async with self.locks.hold(self._lock_key(maintenance_id)):
            maintenance = await self.get(maintenance_id)
            previous = maintenance.cost
            new_cost = max(Decimal("0"), previous - amount)
            await self._save(maintenance.model_copy(update={"cost": new_cost}))

        logger.debug(
            "maintenance_cost_subtracted",
            maintenance_id=maintenance_id,
            amount=str(amount),
            cost=str(new_cost),
        )
        return previous

    async def set_cost(self, maintenance_id: int, cost: Decimal) -> None:
        """Restore an accumulated cost; used by compensations."""
        async with self.locks.hold(self._lock_key(maintenance_id)):
            maintenance = await self.get(maintenance_id)
            await self._save(maintenance.model_copy(update={"cost": cost}))

    def _build(self, data: dict[str, Any]) -> Maintenance:
        try:
            return Maintenance(**data)
        except ValueError as e:
            raise InvalidInput(f"Invalid maintenance: {e}") from e

    async def _save(self, maintenance: Maintenance) -> None:
        await self.state.set(
            self._maintenance_key(maintenance.id), maintenance.model_dump(mode="json")
        )
