"""API routes for the lab maintenance service."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status

from labmaint.actions import LabActions
from labmaint.errors import ErrorCode
from labmaint.models.fault_report import FaultReportStatus
from labmaint.models.requests import (
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
from labmaint.models.results import ActionResult

router = APIRouter()

STATUS_BY_ERROR = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INSUFFICIENT_STOCK: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_QUANTITY: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.INVALID_INPUT: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


# Dependency to get the action facade


def get_actions(request: Request) -> LabActions:
    """Get the action facade built at startup."""
    return request.app.state.actions


def reply(
    result: ActionResult,
    response: Response,
    success_status: int = status.HTTP_200_OK,
) -> ActionResult:
    """Set the HTTP status from an action result."""
    if result.success:
        response.status_code = success_status
    else:
        response.status_code = STATUS_BY_ERROR.get(
            result.error.code, status.HTTP_400_BAD_REQUEST
        )
    return result


# Inventory


@router.get("/inventory", response_model=ActionResult)
async def list_inventory(
    response: Response,
    q: str | None = None,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    """List inventory items, optionally filtered by a search term."""
    return reply(await actions.list_inventory(q), response)


@router.get("/inventory/low-stock", response_model=ActionResult)
async def list_low_stock(
    response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.list_low_stock(), response)


@router.get("/inventory/wear-parts", response_model=ActionResult)
async def list_wear_parts(
    response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.list_wear_parts(), response)


@router.get("/inventory/{item_id}", response_model=ActionResult)
async def get_inventory_item(
    item_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.get_inventory_item(item_id), response)


@router.get("/inventory/{item_id}/history", response_model=ActionResult)
async def inventory_item_history(
    item_id: int,
    response: Response,
    start: date | None = None,
    end: date | None = None,
    responsible: str | None = None,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    """Usage entries and maintenance consumptions of an item, optionally filtered."""
    return reply(
        await actions.inventory_item_history(item_id, start, end, responsible), response
    )


@router.post("/inventory", response_model=ActionResult)
async def create_inventory_item(
    request: InventoryItemCreate,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(
        await actions.create_inventory_item(request), response, status.HTTP_201_CREATED
    )


@router.patch("/inventory/{item_id}", response_model=ActionResult)
async def update_inventory_item(
    item_id: int,
    request: InventoryItemUpdate,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.update_inventory_item(item_id, request), response)


@router.delete("/inventory/{item_id}", response_model=ActionResult)
async def delete_inventory_item(
    item_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.delete_inventory_item(item_id), response)


@router.post("/inventory/{item_id}/adjust", response_model=ActionResult)
async def adjust_quantity(
    item_id: int,
    request: QuantityAdjustmentRequest,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    """Add, subtract or set the stock of an item."""
    return reply(await actions.adjust_quantity(item_id, request), response)


# Machines and installed parts


@router.get("/machines", response_model=ActionResult)
async def list_machines(
    response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.list_machines(), response)


@router.get("/machines/{machine_id}", response_model=ActionResult)
async def get_machine(
    machine_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.get_machine(machine_id), response)


@router.post("/machines", response_model=ActionResult)
async def create_machine(
    request: MachineCreate,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.create_machine(request), response, status.HTTP_201_CREATED)


@router.put("/machines/{machine_id}", response_model=ActionResult)
async def update_machine(
    machine_id: int,
    request: MachineUpdate,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.update_machine(machine_id, request), response)


@router.delete("/machines/{machine_id}", response_model=ActionResult)
async def delete_machine(
    machine_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    """Delete a machine with its installed parts and fault reports."""
    return reply(await actions.delete_machine(machine_id), response)


@router.get("/machines/{machine_id}/parts", response_model=ActionResult)
async def list_machine_parts(
    machine_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.list_machine_parts(machine_id), response)


@router.get("/machines/{machine_id}/retired-parts", response_model=ActionResult)
async def list_retired_parts(
    machine_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.list_retired_parts(machine_id), response)


@router.get("/machines/{machine_id}/history", response_model=ActionResult)
async def machine_history(
    machine_id: int,
    response: Response,
    start: date | None = None,
    end: date | None = None,
    responsible: str | None = None,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    """Usage, maintenance and consumption history of a machine, optionally filtered."""
    return reply(await actions.machine_history(machine_id, start, end, responsible), response)


@router.post("/parts", response_model=ActionResult)
async def install_part(
    request: MachinePartCreate,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.install_part(request), response, status.HTTP_201_CREATED)


@router.patch("/parts/{part_id}", response_model=ActionResult)
async def update_part(
    part_id: int,
    request: MachinePartUpdate,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.update_part(part_id, request), response)


@router.delete("/parts/{part_id}", response_model=ActionResult)
async def delete_part(
    part_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.delete_part(part_id), response)


@router.post("/parts/{part_id}/usage", response_model=ActionResult)
async def record_part_usage(
    part_id: int,
    request: PartUsageRequest,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    """Add usage to an installed part."""
    return reply(await actions.record_part_usage(part_id, request), response)


@router.post("/parts/{part_id}/replace", response_model=ActionResult)
async def replace_part(
    part_id: int,
    request: PartReplacementRequest,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.replace_part(part_id, request), response, status.HTTP_201_CREATED)


# Maintenance


@router.get("/maintenance", response_model=ActionResult)
async def list_maintenance(
    response: Response,
    machine_id: int | None = None,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.list_maintenance(machine_id), response)


@router.get("/maintenance/{maintenance_id}", response_model=ActionResult)
async def get_maintenance(
    maintenance_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.get_maintenance(maintenance_id), response)


@router.post("/maintenance", response_model=ActionResult)
async def create_maintenance(
    request: MaintenanceCreate,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.create_maintenance(request), response, status.HTTP_201_CREATED)


@router.patch("/maintenance/{maintenance_id}", response_model=ActionResult)
async def update_maintenance(
    maintenance_id: int,
    request: MaintenanceUpdate,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.update_maintenance(maintenance_id, request), response)


@router.delete("/maintenance/{maintenance_id}", response_model=ActionResult)
async def delete_maintenance(
    maintenance_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    """Delete a maintenance event, returning its consumed parts to stock."""
    return reply(await actions.delete_maintenance(maintenance_id), response)


@router.get("/maintenance/{maintenance_id}/consumptions", response_model=ActionResult)
async def list_consumptions(
    maintenance_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.list_consumptions(maintenance_id), response)


@router.post("/consumptions", response_model=ActionResult)
async def consume_part(
    request: ConsumePartRequest,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    """Register a part consumed by a maintenance event."""
    return reply(await actions.consume_part(request), response, status.HTTP_201_CREATED)


@router.delete("/consumptions/{consumption_id}", response_model=ActionResult)
async def reverse_consumption(
    consumption_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    """Remove a consumption and return its stock."""
    return reply(await actions.reverse_consumption(consumption_id), response)


# Fault reports


@router.get("/fault-reports", response_model=ActionResult)
async def list_fault_reports(
    response: Response,
    machine_id: int | None = None,
    status_filter: FaultReportStatus | None = Query(default=None, alias="status"),
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.list_fault_reports(machine_id, status_filter), response)


@router.get("/fault-reports/{report_id}", response_model=ActionResult)
async def get_fault_report(
    report_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.get_fault_report(report_id), response)


@router.post("/fault-reports", response_model=ActionResult)
async def create_fault_report(
    request: FaultReportCreate,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    """File a fault, maintenance or calibration report against a machine."""
    return reply(await actions.create_fault_report(request), response, status.HTTP_201_CREATED)


@router.patch("/fault-reports/{report_id}", response_model=ActionResult)
async def update_fault_report(
    report_id: int,
    request: FaultReportUpdate,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.update_fault_report(report_id, request), response)


@router.delete("/fault-reports/{report_id}", response_model=ActionResult)
async def delete_fault_report(
    report_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.delete_fault_report(report_id), response)


# Usage log


@router.get("/usage-logs", response_model=ActionResult)
async def list_usage_logs(
    response: Response,
    equipment_id: int | None = None,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.list_usage_logs(equipment_id), response)


@router.post("/usage-logs", response_model=ActionResult)
async def record_usage(
    request: RecordUsageRequest,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.record_usage(request), response, status.HTTP_201_CREATED)


@router.post("/usage-logs/reset", response_model=ActionResult)
async def reset_usage(
    request: MaintenanceResetRequest,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    """Record maintenance on an item and reset its cumulative usage."""
    return reply(await actions.reset_usage(request), response, status.HTTP_201_CREATED)


@router.put("/usage-logs/{entry_id}", response_model=ActionResult)
async def update_usage_entry(
    entry_id: int,
    request: RecordUsageRequest,
    response: Response,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.update_usage_entry(entry_id, request), response)


@router.delete("/usage-logs/{entry_id}", response_model=ActionResult)
async def delete_usage_entry(
    entry_id: int, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.delete_usage_entry(entry_id), response)


# Notifications


@router.get("/notifications", response_model=ActionResult)
async def list_notifications(
    response: Response,
    unread_only: bool = False,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    return reply(await actions.list_notifications(unread_only), response)


@router.post("/notifications/{notification_id}/read", response_model=ActionResult)
async def mark_notification_read(
    notification_id: UUID, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.mark_notification_read(notification_id), response)


@router.delete("/notifications/{notification_id}", response_model=ActionResult)
async def delete_notification(
    notification_id: UUID, response: Response, actions: LabActions = Depends(get_actions)
) -> ActionResult:
    return reply(await actions.delete_notification(notification_id), response)


# Reports


@router.get("/reports/{name}", response_model=ActionResult)
async def run_report(
    name: str,
    response: Response,
    today: date | None = None,
    actions: LabActions = Depends(get_actions),
) -> ActionResult:
    """
    Run a report by name.

    ``today`` anchors the trailing-month window of the monthly reports.
    """
    return reply(await actions.report(name, today), response)
