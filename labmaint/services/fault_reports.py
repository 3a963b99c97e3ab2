"""Fault report registry: problems and service requests filed against machines."""

from datetime import date, datetime
from typing import Any

from labmaint.errors import FaultReportNotFound, InvalidInput
from labmaint.models.fault_report import FaultReport, FaultReportStatus
from labmaint.models.requests import FaultReportCreate, FaultReportUpdate
from labmaint.services.machines import MachineRegistry
from labmaint.state.locks import KeyedLocks
from labmaint.state.manager import StateManager
from labmaint.utils.logging import get_logger

logger = get_logger(__name__)


class FaultReportRegistry:
    """Persists fault reports.

    A report moving to ``completed`` without a completion date is stamped
    with today's date. The completion date may not precede the report date.
    """

    collection = "fault_report"

    def __init__(self, state_manager: StateManager, locks: KeyedLocks, machines: MachineRegistry):
        self.state = state_manager
        self.locks = locks
        self.machines = machines

    def _report_key(self, report_id: int) -> str:
        return f"{self.collection}:{report_id}"

    def _lock_key(self, report_id: int) -> str:
        return f"lock:{self.collection}:{report_id}"

    async def get(self, report_id: int) -> FaultReport:
        """Return a report or raise ``FaultReportNotFound``."""
        data = await self.state.get(self._report_key(report_id))
        if not data:
            raise FaultReportNotFound(report_id)
        return FaultReport(**data)

    async def list_all(
        self,
        machine_id: int | None = None,
        status: FaultReportStatus | None = None,
    ) -> list[FaultReport]:
        """Reports, optionally restricted to one machine or status."""
        reports = [
            FaultReport(**data)
            for data in await self.state.list_values(f"{self.collection}:")
        ]
        if machine_id is not None:
            reports = [r for r in reports if r.machine_id == machine_id]
        if status is not None:
            reports = [r for r in reports if r.status == status]
        return reports

    async def create(self, request: FaultReportCreate) -> FaultReport:
        """File a report against an existing machine."""
        machine = await self.machines.get(request.machine_id)
        report_id = await self.state.next_id(self.collection)
        report = self._build(
            {"id": report_id, "machine_name": machine.name, **request.model_dump()}
        )
        await self._save(report)

        logger.info(
            "fault_report_created",
            report_id=report.id,
            machine_id=machine.id,
            report_type=report.report_type.value,
            priority=report.priority.value,
        )
        return report

    async def update(self, report_id: int, request: FaultReportUpdate) -> FaultReport:
        """Update a report; explicit nulls clear only the optional fields."""
        changes = request.model_dump(exclude_unset=True)

        async with self.locks.hold(self._lock_key(report_id)):
            current = await self.get(report_id)
            report = self._build(
                {**current.model_dump(), **changes, "updated_at": datetime.utcnow()}
            )
            await self._save(report)

        logger.info(
            "fault_report_updated",
            report_id=report_id,
            fields=sorted(changes),
            status=report.status.value,
        )
        return report

    async def delete(self, report_id: int) -> None:
        """Delete a report."""
        async with self.locks.hold(self._lock_key(report_id)):
            if not await self.state.delete(self._report_key(report_id)):
                raise FaultReportNotFound(report_id)

        logger.info("fault_report_deleted", report_id=report_id)

    async def remove_for_machine(self, machine_id: int) -> int:
        """Delete every report of a machine; returns how many were removed."""
        reports = await self.list_all(machine_id=machine_id)
        for report in reports:
            await self.delete(report.id)
        return len(reports)

    def _build(self, data: dict[str, Any]) -> FaultReport:
        if data.get("status") == FaultReportStatus.COMPLETED and not data.get("completed_date"):
            data["completed_date"] = date.today()
        try:
            report = FaultReport(**data)
        except ValueError as e:
            raise InvalidInput(f"Invalid fault report: {e}") from e

        if (
            report.completed_date
            and report.report_date
            and report.completed_date < report.report_date
        ):
            raise InvalidInput(
                "Completion date cannot precede the report date",
                report_date=str(report.report_date),
                completed_date=str(report.completed_date),
            )
        return report

    async def _save(self, report: FaultReport) -> None:
        await self.state.set(self._report_key(report.id), report.model_dump(mode="json"))
