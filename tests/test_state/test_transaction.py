"""Tests for compensating transactions and keyed locks."""

import asyncio

import pytest

from labmaint.errors import InconsistentState, StorageUnavailable
from labmaint.state.locks import KeyedLocks
from labmaint.state.manager import MemoryStateManager
from labmaint.state.transaction import CompensatingTransaction


@pytest.mark.asyncio
async def test_commit_keeps_writes() -> None:
    store = MemoryStateManager()

    async with CompensatingTransaction("two_writes") as txn:
        with txn.step("first"):
            await store.set("a:1", {"v": 1})
        txn.on_rollback("undo_first", lambda: store.delete("a:1"))
        with txn.step("second"):
            await store.set("a:2", {"v": 2})

    assert await store.keys("a:") == ["a:1", "a:2"]
    assert txn.rolled_back is False
    assert txn.tracer.steps() == ["first", "second"]
    assert txn.tracer.steps("commit") == ["two_writes"]


@pytest.mark.asyncio
async def test_failure_runs_compensations_in_reverse() -> None:
    order: list[str] = []

    async def undo(name: str) -> None:
        order.append(name)

    with pytest.raises(StorageUnavailable):
        async with CompensatingTransaction("three_steps") as txn:
            txn.on_rollback("undo_first", lambda: undo("first"))
            txn.on_rollback("undo_second", lambda: undo("second"))
            raise StorageUnavailable("backend down")

    assert order == ["second", "first"]
    assert txn.rolled_back is True
    assert txn.tracer.steps("compensation") == ["undo_second", "undo_first"]


@pytest.mark.asyncio
async def test_failed_compensation_raises_inconsistent_state() -> None:
    async def broken() -> None:
        raise StorageUnavailable("still down")

    with pytest.raises(InconsistentState) as exc_info:
        async with CompensatingTransaction("broken_rollback", item_id=7) as txn:
            txn.on_rollback("restore_stock", broken)
            raise ValueError("write failed")

    assert exc_info.value.details["failed_step"] == "restore_stock"
    assert exc_info.value.details["item_id"] == 7
    assert isinstance(exc_info.value.__cause__, StorageUnavailable)


@pytest.mark.asyncio
async def test_keyed_locks_serialize_same_key() -> None:
    locks = KeyedLocks()
    events: list[str] = []

    async def worker(name: str) -> None:
        async with locks.hold("inventory:1"):
            events.append(f"{name}-in")
            await asyncio.sleep(0.01)
            events.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert events == ["a-in", "a-out", "b-in", "b-out"]
    assert locks.is_locked("inventory:1") is False


@pytest.mark.asyncio
async def test_memory_state_returns_copies() -> None:
    store = MemoryStateManager()
    await store.set("item:1", {"quantity": 5})

    first = await store.get("item:1")
    first["quantity"] = 0

    assert (await store.get("item:1"))["quantity"] == 5
    assert await store.next_id("item") == 1
    assert await store.next_id("item") == 2


@pytest.mark.asyncio
async def test_memory_state_orders_keys_numerically() -> None:
    store = MemoryStateManager()
    for key in ("usage_log:10", "usage_log:2", "usage_log:1"):
        await store.set(key, {})

    assert await store.keys("usage_log:") == ["usage_log:1", "usage_log:2", "usage_log:10"]
