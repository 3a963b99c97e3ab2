"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from labmaint.actions import LabActions
from labmaint.config import Settings
from labmaint.main import create_app
from labmaint.models.inventory import InventoryItem, ItemKind
from labmaint.models.machine import Machine
from labmaint.models.maintenance import Maintenance, MaintenanceType
from labmaint.models.requests import InventoryItemCreate, MachineCreate, MaintenanceCreate
from labmaint.services import Services, build_services
from labmaint.state.manager import MemoryStateManager, StateManager


@pytest.fixture
def settings() -> Settings:
    """Default settings, ignoring any local .env file."""
    return Settings(_env_file=None, storage_retry_delay=0)


@pytest_asyncio.fixture
async def state_manager() -> AsyncGenerator[StateManager, None]:
    """Create a test state manager."""
    manager = MemoryStateManager()
    await manager.connect()
    yield manager
    await manager.disconnect()


@pytest.fixture
def services(state_manager: StateManager, settings: Settings) -> Services:
    """Fresh service graph per test."""
    return build_services(state_manager, settings)


@pytest.fixture
def actions(services: Services, settings: Settings) -> LabActions:
    return LabActions(services, settings)


@pytest_asyncio.fixture
async def test_client() -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client over an in-memory store."""
    app = create_app(MemoryStateManager())
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


# Sample data fixtures


@pytest_asyncio.fixture
async def sample_machine(services: Services) -> Machine:
    """Create a sample machine."""
    return await services.machines.create(
        MachineCreate(
            name="Surfacing Generator",
            model="HSC Master",
            serial_number="GEN-0042",
            location="Surfacing",
            manufacturer="Schneider",
        )
    )


@pytest_asyncio.fixture
async def sample_consumable(services: Services) -> InventoryItem:
    """Create a consumable with five units in stock."""
    return await services.inventory.create(
        InventoryItemCreate(
            name="Polishing Slurry",
            category="Polishing",
            kind=ItemKind.CONSUMABLE,
            quantity=5,
            min_quantity=2,
            unit_price=Decimal("85.00"),
        )
    )


@pytest_asyncio.fixture
async def sample_wear_item(services: Services) -> InventoryItem:
    """Create a wear item rated for 100 hours."""
    return await services.inventory.create(
        InventoryItemCreate(
            name="Diamond Cutting Tool",
            category="Tooling",
            kind=ItemKind.WEAR_PART,
            quantity=4,
            min_quantity=1,
            unit_price=Decimal("320.00"),
            usage_unit="hours",
            max_lifespan=100,
        )
    )


@pytest_asyncio.fixture
async def sample_maintenance(services: Services, sample_machine: Machine) -> Maintenance:
    """Create a preventive maintenance event with no cost yet."""
    return await services.maintenance.create(
        MaintenanceCreate(
            machine_id=sample_machine.id,
            maintenance_type=MaintenanceType.PREVENTIVE,
            description="Quarterly spindle service",
            start_date=date(2024, 3, 12),
            technician="R. Alvarez",
        )
    )
