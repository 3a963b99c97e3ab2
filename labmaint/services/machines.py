"""Machine registry."""

from labmaint.errors import MachineNotFound
from labmaint.models.machine import Machine
from labmaint.models.requests import MachineCreate, MachineUpdate
from labmaint.state.manager import StateManager
from labmaint.utils.logging import get_logger

logger = get_logger(__name__)


class MachineRegistry:
    """Persists lab machines."""

    collection = "machine"

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    def _machine_key(self, machine_id: int) -> str:
        """Generate storage key for a machine."""
        return f"{self.collection}:{machine_id}"

    async def get(self, machine_id: int) -> Machine:
        """Return a machine or raise ``MachineNotFound``."""
        data = await self.state.get(self._machine_key(machine_id))
        if not data:
            raise MachineNotFound(machine_id)
        return Machine(**data)

    async def list_all(self) -> list[Machine]:
        """Return every machine."""
        return [Machine(**data) for data in await self.state.list_values(f"{self.collection}:")]

    async def create(self, request: MachineCreate) -> Machine:
        """Register a machine."""
        machine_id = await self.state.next_id(self.collection)
        machine = Machine(id=machine_id, **request.model_dump())
        await self._save(machine)

        logger.info("machine_created", machine_id=machine.id, name=machine.name)
        return machine

    async def update(self, machine_id: int, request: MachineUpdate) -> Machine:
        """Replace the editable fields of a machine."""
        current = await self.get(machine_id)
        machine = Machine(id=machine_id, created_at=current.created_at, **request.model_dump())
        await self._save(machine)

        logger.info("machine_updated", machine_id=machine_id)
        return machine

    async def delete(self, machine_id: int) -> None:
        """Delete a machine record; installed parts are removed by the caller."""
        if not await self.state.delete(self._machine_key(machine_id)):
            raise MachineNotFound(machine_id)

        logger.info("machine_deleted", machine_id=machine_id)

    async def _save(self, machine: Machine) -> None:
        await self.state.set(self._machine_key(machine.id), machine.model_dump(mode="json"))
