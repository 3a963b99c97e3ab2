"""Structured logging configuration."""

import logging
import sys
from typing import Any

import structlog
from pythonjsonlogger import jsonlogger

from labmaint.config import get_settings


def setup_logging() -> None:
    """Configure structured logging for the application."""
    settings = get_settings()

    # Configure standard library logging
    log_level = getattr(logging, settings.log_level)

    if settings.log_format == "json":
        # JSON logging for production
        handler = logging.StreamHandler(sys.stdout)
        formatter = jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"levelname": "level", "asctime": "timestamp"},
        )
        handler.setFormatter(formatter)
    else:
        # Human-readable logging for development
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer() if settings.log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class ActionLogger:
    """Logger for the outcome of user-facing actions."""

    def __init__(self, component: str):
        self.component = component
        self.logger = get_logger(component)

    def log_action(
        self,
        action: str,
        duration_ms: float,
        success: bool,
        error_code: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Log a completed action with structured data."""
        log_data: dict[str, Any] = {
            "component": self.component,
            "action": action,
            "duration_ms": round(duration_ms, 3),
            "success": success,
        }

        if error_code is not None:
            log_data["error_code"] = error_code

        log_data.update(kwargs)
        if success:
            self.logger.info("action_completed", **log_data)
        else:
            self.logger.warning("action_rejected", **log_data)

    def log_retry(
        self,
        action: str,
        attempt: int,
        max_attempts: int,
        wait_seconds: float,
        error: str,
    ) -> None:
        """Log a storage retry."""
        self.logger.warning(
            "action_retry",
            component=self.component,
            action=action,
            attempt=attempt,
            max_attempts=max_attempts,
            wait_seconds=wait_seconds,
            error=error,
        )

    def log_error(
        self,
        action: str,
        error: str,
        **kwargs: Any,
    ) -> None:
        """Log an unexpected error."""
        self.logger.error(
            "action_error",
            component=self.component,
            action=action,
            error=error,
            **kwargs,
        )
