"""Compensating transactions for writes spanning several records."""

from contextlib import AbstractContextManager
from types import TracebackType
from typing import Any, Awaitable, Callable

from labmaint.errors import InconsistentState
from labmaint.utils.logging import get_logger
from labmaint.utils.tracing import TransactionTracer

logger = get_logger(__name__)

Compensation = Callable[[], Awaitable[Any]]


class CompensatingTransaction:
    """
    Saga over a sequence of single-record writes.

    Each committed step registers the action that undoes it. When the block
    raises, the registered compensations run in reverse order and the original
    error propagates. If a compensation fails the records may disagree, so
    ``InconsistentState`` is raised instead.

    Usage::

        async with CompensatingTransaction("consume_part") as txn:
            await store.adjust(item_id, -quantity)
            txn.on_rollback("restore_stock", lambda: store.adjust(item_id, quantity))
            ...
    """

    def __init__(self, name: str, **context: Any):
        self.name = name
        self.context = context
        self.tracer = TransactionTracer(name)
        self.rolled_back = False
        self._compensations: list[tuple[str, Compensation]] = []

    async def __aenter__(self) -> "CompensatingTransaction":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc is None:
            self.tracer.add_event("commit", self.name)
            return False

        await self.rollback(exc)
        return False

    def step(self, name: str, **metadata: Any) -> AbstractContextManager[None]:
        """Trace a forward step."""
        return self.tracer.trace_step(name, **metadata)

    def on_rollback(self, step: str, compensation: Compensation) -> None:
        """Register the action undoing a committed step."""
        self._compensations.append((step, compensation))

    async def rollback(self, cause: BaseException) -> None:
        """Run the registered compensations in reverse order."""
        if not self._compensations:
            return

        logger.warning(
            "transaction_rolling_back",
            transaction=self.name,
            cause=repr(cause),
            steps=[step for step, _ in reversed(self._compensations)],
            **self.context,
        )

        while self._compensations:
            step, compensation = self._compensations.pop()
            try:
                with self.tracer.trace_step(step, event_type="compensation"):
                    await compensation()
            except Exception as e:
                logger.critical(
                    "compensation_failed",
                    transaction=self.name,
                    step=step,
                    cause=repr(cause),
                    error=repr(e),
                    pending=[pending for pending, _ in reversed(self._compensations)],
                    trace=self.tracer.get_trace_summary(),
                    **self.context,
                )
                raise InconsistentState(
                    f"{self.name}: rollback step '{step}' failed after {cause!r}",
                    transaction=self.name,
                    failed_step=step,
                    cause=repr(cause),
                    **self.context,
                ) from e

        self.rolled_back = True
        logger.info("transaction_rolled_back", transaction=self.name, **self.context)
