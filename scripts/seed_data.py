"""Seed sample data for an optical surfacing lab."""

import asyncio
from datetime import date
from decimal import Decimal

from labmaint.models.inventory import ItemKind
from labmaint.models.maintenance import MaintenanceStatus, MaintenanceType
from labmaint.models.requests import (
    InventoryItemCreate,
    MachineCreate,
    MachinePartCreate,
    MaintenanceCreate,
    RecordUsageRequest,
)
from labmaint.services import Services, build_services
from labmaint.state.manager import create_state_manager


async def seed_inventory(services: Services) -> dict[str, int]:
    """Seed consumables, spare parts and wear parts."""
    print("Seeding inventory...")

    items = [
        InventoryItemCreate(
            name="Polishing Slurry",
            category="Consumables",
            quantity=12,
            min_quantity=4,
            unit_price=Decimal("85.00"),
            supplier="Satisloh",
        ),
        InventoryItemCreate(
            name="Fining Pads",
            category="Consumables",
            quantity=200,
            min_quantity=50,
            unit_price=Decimal("1.20"),
        ),
        InventoryItemCreate(
            name="Edger Drive Belt",
            category="Spare parts",
            kind=ItemKind.SPARE_PART,
            quantity=2,
            min_quantity=1,
            unit_price=Decimal("40.00"),
        ),
        InventoryItemCreate(
            name="Diamond Cutting Tool",
            category="Tooling",
            kind=ItemKind.WEAR_PART,
            quantity=3,
            min_quantity=1,
            unit_price=Decimal("320.00"),
            usage_unit="lenses",
            max_lifespan=25000,
        ),
        InventoryItemCreate(
            name="Edging Wheel",
            category="Tooling",
            kind=ItemKind.WEAR_PART,
            quantity=1,
            min_quantity=1,
            unit_price=Decimal("410.00"),
            usage_unit="hours",
            max_lifespan=600,
        ),
    ]

    ids = {}
    for request in items:
        item = await services.inventory.create(request)
        ids[item.name] = item.id
        print(f"  ✓ Added {item.name} (stock: {item.quantity}, status: {item.status.value})")

    print("✓ Inventory seeded successfully\n")
    return ids


async def seed_machines(services: Services) -> dict[str, int]:
    """Seed lab equipment."""
    print("Seeding machines...")

    machines = [
        MachineCreate(
            name="Surfacing Generator",
            model="VFT-orbit 2",
            serial_number="GEN-0042",
            location="Surfacing",
            manufacturer="Satisloh",
        ),
        MachineCreate(
            name="Polisher",
            model="Duo-FLEX",
            serial_number="POL-0107",
            location="Surfacing",
        ),
        MachineCreate(
            name="Edger",
            model="ME-10",
            serial_number="EDG-0311",
            location="Finishing",
        ),
    ]

    ids = {}
    for request in machines:
        machine = await services.machines.create(request)
        ids[machine.name] = machine.id
        print(f"  ✓ Added {machine.name} ({machine.location})")

    print("✓ Machines seeded successfully\n")
    return ids


async def seed_activity(
    services: Services, items: dict[str, int], machines: dict[str, int]
) -> None:
    """Seed installed parts, maintenance events and usage."""
    print("Seeding activity...")

    part = await services.tracker.install_part(
        MachinePartCreate(
            machine_id=machines["Surfacing Generator"],
            inventory_item_id=items["Diamond Cutting Tool"],
            name="Cutting tool, spindle A",
            installed_at=date(2024, 1, 8),
        )
    )
    update = await services.tracker.record_usage(part.id, 18000)
    print(f"  ✓ Installed {part.name} ({update.usage_percentage:.1f}% used)")

    maintenance = await services.maintenance.create(
        MaintenanceCreate(
            machine_id=machines["Edger"],
            maintenance_type=MaintenanceType.CORRECTIVE,
            description="Drive belt replacement",
            start_date=date(2024, 3, 12),
            end_date=date(2024, 3, 12),
            status=MaintenanceStatus.COMPLETED,
            technician="R. Alvarez",
        )
    )
    await services.consumption.consume_part(
        maintenance.id, items["Edger Drive Belt"], 1, Decimal("40.00")
    )
    print(f"  ✓ Logged maintenance #{maintenance.id} on the Edger")

    result = await services.consumption.record_usage(
        RecordUsageRequest(
            equipment_id=machines["Edger"],
            inventory_item_id=items["Edging Wheel"],
            quantity_used=420,
            responsible="M. Chen",
        )
    )
    print(f"  ✓ Logged {result.cumulative_usage:g} hours on the edging wheel")

    print("✓ Activity seeded successfully\n")


async def main() -> None:
    """Run all seed functions."""
    print("\n" + "=" * 60)
    print("SEEDING LAB MAINTENANCE DATA")
    print("=" * 60 + "\n")

    state_manager = create_state_manager()
    await state_manager.connect()
    try:
        services = build_services(state_manager)
        items = await seed_inventory(services)
        machines = await seed_machines(services)
        await seed_activity(services, items, machines)
    finally:
        await state_manager.disconnect()

    print("=" * 60)
    print("✓ ALL DATA SEEDED SUCCESSFULLY")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
