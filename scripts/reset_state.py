"""Reset all lab maintenance state (useful for testing)."""

import asyncio

from labmaint.state.manager import create_state_manager


async def reset_all_state() -> None:
    """Clear every stored record."""
    print("\n⚠️  WARNING: This will delete ALL lab maintenance data!")
    response = input("Are you sure? (yes/no): ")

    if response.lower() != "yes":
        print("Cancelled.")
        return

    print("\nResetting state...")

    state_manager = create_state_manager()
    await state_manager.connect()
    try:
        await state_manager.flush()
    finally:
        await state_manager.disconnect()

    print("✓ All state cleared\n")


if __name__ == "__main__":
    asyncio.run(reset_all_state())
