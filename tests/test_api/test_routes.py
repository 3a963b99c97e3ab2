"""Tests for the HTTP API."""

import pytest
from httpx import AsyncClient


async def _seed(client: AsyncClient) -> dict[str, int]:
    machine = await client.post(
        "/api/v1/machines",
        json={"name": "Edger", "model": "ME-10", "serial_number": "ED-1", "location": "Finishing"},
    )
    item = await client.post(
        "/api/v1/inventory",
        json={"name": "Edging Wheel", "category": "Tooling", "quantity": 5, "min_quantity": 1},
    )
    maintenance = await client.post(
        "/api/v1/maintenance",
        json={
            "machine_id": machine.json()["data"]["id"],
            "maintenance_type": "corrective",
            "description": "Wheel change",
            "start_date": "2024-03-12",
            "technician": "R. Alvarez",
        },
    )
    return {
        "machine_id": machine.json()["data"]["id"],
        "item_id": item.json()["data"]["id"],
        "maintenance_id": maintenance.json()["data"]["id"],
    }


@pytest.mark.asyncio
async def test_health(test_client: AsyncClient) -> None:
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_create_and_fetch_inventory_item(test_client: AsyncClient) -> None:
    created = await test_client.post(
        "/api/v1/inventory",
        json={"name": "Lens Blanks", "category": "Blanks", "quantity": 2, "min_quantity": 5},
    )

    assert created.status_code == 201
    body = created.json()
    assert body["success"] is True
    assert body["data"]["status"] == "low_stock"

    fetched = await test_client.get(f"/api/v1/inventory/{body['data']['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["data"]["name"] == "Lens Blanks"


@pytest.mark.asyncio
async def test_unknown_item_is_404(test_client: AsyncClient) -> None:
    response = await test_client.get("/api/v1/inventory/999")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "not_found"


@pytest.mark.asyncio
async def test_consume_and_reverse_over_http(test_client: AsyncClient) -> None:
    ids = await _seed(test_client)

    consumed = await test_client.post(
        "/api/v1/consumptions",
        json={
            "maintenance_id": ids["maintenance_id"],
            "inventory_item_id": ids["item_id"],
            "quantity": 2,
            "unit_cost": "30.00",
        },
    )
    assert consumed.status_code == 201
    consumption_id = consumed.json()["data"]["id"]

    item = await test_client.get(f"/api/v1/inventory/{ids['item_id']}")
    assert item.json()["data"]["quantity"] == 3

    reversed_ = await test_client.delete(f"/api/v1/consumptions/{consumption_id}")
    assert reversed_.status_code == 200

    item = await test_client.get(f"/api/v1/inventory/{ids['item_id']}")
    assert item.json()["data"]["quantity"] == 5


@pytest.mark.asyncio
async def test_insufficient_stock_is_409(test_client: AsyncClient) -> None:
    ids = await _seed(test_client)

    response = await test_client.post(
        "/api/v1/consumptions",
        json={
            "maintenance_id": ids["maintenance_id"],
            "inventory_item_id": ids["item_id"],
            "quantity": 50,
            "unit_cost": "1",
        },
    )

    assert response.status_code == 409
    assert response.json()["error"]["details"]["available"] == 5


@pytest.mark.asyncio
async def test_invalid_adjustment_is_422(test_client: AsyncClient) -> None:
    ids = await _seed(test_client)

    response = await test_client.post(
        f"/api/v1/inventory/{ids['item_id']}/adjust",
        json={"adjustment_type": "add", "quantity": -2},
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "invalid_quantity"


@pytest.mark.asyncio
async def test_reports_endpoint(test_client: AsyncClient) -> None:
    await _seed(test_client)

    response = await test_client.get(
        "/api/v1/reports/monthly_cost_by_area", params={"today": "2024-03-20"}
    )

    assert response.status_code == 200
    [area] = response.json()["data"]
    assert area["area"] == "Finishing"
    assert area["months"][-1]["month"] == "Mar 2024"

    unknown = await test_client.get("/api/v1/reports/everything")
    assert unknown.status_code == 422


@pytest.mark.asyncio
async def test_fault_report_lifecycle(test_client: AsyncClient) -> None:
    ids = await _seed(test_client)

    created = await test_client.post(
        "/api/v1/fault-reports",
        json={
            "machine_id": ids["machine_id"],
            "report_type": "fault",
            "description": "Abnormal noise while edging",
            "reported_by": "A. Moreau",
            "report_date": "2024-04-12",
            "priority": "high",
        },
    )
    assert created.status_code == 201
    report = created.json()["data"]
    assert report["machine_name"] == "Edger"
    assert report["status"] == "pending"

    pending = await test_client.get("/api/v1/fault-reports", params={"status": "pending"})
    assert [r["id"] for r in pending.json()["data"]] == [report["id"]]

    updated = await test_client.patch(
        f"/api/v1/fault-reports/{report['id']}",
        json={"status": "completed", "completed_date": "2024-04-13", "resolution": "Bearing replaced"},
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["completed_date"] == "2024-04-13"

    invalid = await test_client.patch(
        f"/api/v1/fault-reports/{report['id']}", json={"description": None}
    )
    assert invalid.status_code == 422

    deleted = await test_client.delete(f"/api/v1/fault-reports/{report['id']}")
    assert deleted.status_code == 200

    missing = await test_client.get(f"/api/v1/fault-reports/{report['id']}")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_maintenance_update_with_null_is_422(test_client: AsyncClient) -> None:
    ids = await _seed(test_client)

    response = await test_client.patch(
        f"/api/v1/maintenance/{ids['maintenance_id']}", json={"technician": None}
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "invalid_input"


@pytest.mark.asyncio
async def test_machine_history_filters(test_client: AsyncClient) -> None:
    ids = await _seed(test_client)

    in_range = await test_client.get(
        f"/api/v1/machines/{ids['machine_id']}/history",
        params={"start": "2024-03-01", "end": "2024-03-31", "responsible": "alvarez"},
    )
    out_of_range = await test_client.get(
        f"/api/v1/machines/{ids['machine_id']}/history", params={"start": "2024-04-01"}
    )

    assert [m["id"] for m in in_range.json()["data"]["maintenances"]] == [ids["maintenance_id"]]
    assert out_of_range.json()["data"]["maintenances"] == []
    assert out_of_range.json()["data"]["stats"]["total_maintenances"] == 0
