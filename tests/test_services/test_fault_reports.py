"""Tests for the fault report registry."""

from datetime import date

import pytest

from labmaint.errors import FaultReportNotFound, InvalidInput, MachineNotFound
from labmaint.models.fault_report import FaultReportStatus, FaultReportType, Priority
from labmaint.models.machine import Machine
from labmaint.models.requests import FaultReportCreate, FaultReportUpdate, MachineCreate
from labmaint.services import Services


def _fault(machine: Machine, **overrides: object) -> FaultReportCreate:
    fields = {
        "machine_id": machine.id,
        "report_type": FaultReportType.FAULT,
        "description": "Tracer does not recognise frame patterns",
        "reported_by": "J. Okafor",
        "report_date": date(2024, 4, 10),
        "priority": Priority.HIGH,
        "assigned_to": "R. Alvarez",
    }
    fields.update(overrides)
    return FaultReportCreate(**fields)


@pytest.mark.asyncio
async def test_create_fills_machine_name(services: Services, sample_machine: Machine) -> None:
    report = await services.fault_reports.create(_fault(sample_machine))

    assert report.id == 1
    assert report.machine_name == "Surfacing Generator"
    assert report.status == FaultReportStatus.PENDING
    assert report.is_open
    assert await services.fault_reports.get(report.id) == report


@pytest.mark.asyncio
async def test_create_on_unknown_machine(services: Services) -> None:
    with pytest.raises(MachineNotFound):
        await services.fault_reports.create(
            FaultReportCreate(
                machine_id=42,
                report_type=FaultReportType.CALIBRATION,
                description="Needs calibration",
                reported_by="M. Chen",
            )
        )


@pytest.mark.asyncio
async def test_list_filters_by_machine_and_status(
    services: Services, sample_machine: Machine
) -> None:
    edger = await services.machines.create(
        MachineCreate(name="Edger", model="ME-10", serial_number="ED-1")
    )
    first = await services.fault_reports.create(_fault(sample_machine))
    await services.fault_reports.create(
        _fault(edger, status=FaultReportStatus.IN_PROGRESS, priority=Priority.MEDIUM)
    )

    registry = services.fault_reports
    assert len(await registry.list_all()) == 2
    assert [r.id for r in await registry.list_all(machine_id=sample_machine.id)] == [first.id]
    in_progress = await registry.list_all(status=FaultReportStatus.IN_PROGRESS)
    assert [r.machine_name for r in in_progress] == ["Edger"]


@pytest.mark.asyncio
async def test_completing_stamps_completion_date(
    services: Services, sample_machine: Machine
) -> None:
    report = await services.fault_reports.create(_fault(sample_machine))

    updated = await services.fault_reports.update(
        report.id,
        FaultReportUpdate(
            status=FaultReportStatus.COMPLETED, resolution="Recalibrated the tracer head"
        ),
    )

    assert updated.status == FaultReportStatus.COMPLETED
    assert updated.completed_date == date.today()
    assert updated.resolution == "Recalibrated the tracer head"
    assert updated.description == report.description
    assert not updated.is_open


@pytest.mark.asyncio
async def test_completion_before_report_date_is_rejected(
    services: Services, sample_machine: Machine
) -> None:
    report = await services.fault_reports.create(_fault(sample_machine))

    with pytest.raises(InvalidInput):
        await services.fault_reports.update(
            report.id, FaultReportUpdate(completed_date=date(2024, 4, 1))
        )

    assert (await services.fault_reports.get(report.id)).completed_date is None


@pytest.mark.asyncio
async def test_update_with_null_required_field_is_invalid(
    services: Services, sample_machine: Machine
) -> None:
    report = await services.fault_reports.create(_fault(sample_machine))

    with pytest.raises(InvalidInput):
        await services.fault_reports.update(
            report.id, FaultReportUpdate.model_validate({"reported_by": None})
        )


@pytest.mark.asyncio
async def test_delete_and_unknown_report(services: Services, sample_machine: Machine) -> None:
    report = await services.fault_reports.create(_fault(sample_machine))

    await services.fault_reports.delete(report.id)

    with pytest.raises(FaultReportNotFound):
        await services.fault_reports.get(report.id)
    with pytest.raises(FaultReportNotFound):
        await services.fault_reports.delete(report.id)
    with pytest.raises(FaultReportNotFound):
        await services.fault_reports.update(report.id, FaultReportUpdate(priority=Priority.LOW))
