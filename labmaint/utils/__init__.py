"""Utility modules."""

from labmaint.utils.logging import ActionLogger, get_logger, setup_logging
from labmaint.utils.tracing import TransactionTracer

__all__ = ["ActionLogger", "TransactionTracer", "get_logger", "setup_logging"]
