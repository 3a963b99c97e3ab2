"""State management modules."""

from labmaint.state.locks import KeyedLocks
from labmaint.state.manager import (
    MemoryStateManager,
    RedisStateManager,
    StateManager,
    create_state_manager,
)
from labmaint.state.transaction import CompensatingTransaction

__all__ = [
    "CompensatingTransaction",
    "KeyedLocks",
    "MemoryStateManager",
    "RedisStateManager",
    "StateManager",
    "create_state_manager",
]
