"""Step tracing for multi-record transactions."""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generator
from uuid import UUID, uuid4

from labmaint.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TraceEvent:
    """Individual step or compensation in a transaction."""

    timestamp: datetime
    event_type: str
    step: str
    transaction_id: UUID
    duration_ms: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class TransactionTracer:
    """Traces the steps of one compensating transaction."""

    def __init__(self, name: str, transaction_id: UUID | None = None):
        self.name = name
        self.transaction_id = transaction_id or uuid4()
        self.events: list[TraceEvent] = []
        self.start_time = time.time()

    def add_event(
        self,
        event_type: str,
        step: str,
        duration_ms: float | None = None,
        **metadata: Any,
    ) -> None:
        """Add a trace event."""
        event = TraceEvent(
            timestamp=datetime.utcnow(),
            event_type=event_type,
            step=step,
            transaction_id=self.transaction_id,
            duration_ms=duration_ms,
            metadata=metadata,
        )
        self.events.append(event)

        logger.debug(
            "trace_event",
            transaction=self.name,
            transaction_id=str(self.transaction_id),
            event_type=event_type,
            step=step,
            duration_ms=duration_ms,
            **metadata,
        )

    @contextmanager
    def trace_step(
        self, step: str, event_type: str = "step", **metadata: Any
    ) -> Generator[None, None, None]:
        """Context manager to trace a step with timing and outcome."""
        start = time.time()
        succeeded = False
        try:
            yield
            succeeded = True
        finally:
            duration_ms = (time.time() - start) * 1000
            self.add_event(
                event_type, step, duration_ms=duration_ms, succeeded=succeeded, **metadata
            )

    def steps(self, event_type: str = "step") -> list[str]:
        """Names of the recorded events of one type, in order."""
        return [event.step for event in self.events if event.event_type == event_type]

    def get_trace_summary(self) -> dict[str, Any]:
        """Get a summary of the trace."""
        total_duration = (time.time() - self.start_time) * 1000

        return {
            "transaction": self.name,
            "transaction_id": str(self.transaction_id),
            "total_duration_ms": total_duration,
            "total_events": len(self.events),
            "events": [
                {
                    "timestamp": event.timestamp.isoformat(),
                    "event_type": event.event_type,
                    "step": event.step,
                    "duration_ms": event.duration_ms,
                    "metadata": event.metadata,
                }
                for event in self.events
            ],
        }
