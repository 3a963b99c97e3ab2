"""Discriminated results returned by every action."""

from typing import Any

from pydantic import BaseModel, Field

from labmaint.errors import ErrorCode


class ActionError(BaseModel):
    """Typed failure of an action."""

    code: ErrorCode
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ActionResult(BaseModel):
    """Result from an action: either ``data`` on success or ``error`` on failure."""

    action: str
    success: bool
    message: str
    data: Any = None
    error: ActionError | None = None
    execution_time_ms: float = 0.0
