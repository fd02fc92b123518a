"""Pydantic models for graph execution runs."""

from datetime import datetime
from typing import Any

from pydantic import Field

from computeflow.models.node import CamelModel

CANCELLED_MESSAGE = "Cancelled"


class ExecutionProgress(CamelModel):
    """Progress of the current (or most recent) run."""

    run_id: str | None = None
    is_running: bool = False
    completed: int = 0
    total: int = 0
    started_at: datetime | None = None
    error: str | None = None
    cancelled: bool = False


class EngineEvent(CamelModel):
    """A single event received from the execution engine.

    ``event`` is the name from the ``event:`` line, ``data`` the decoded
    JSON object from the ``data:`` line. Non-streamed responses surface
    as a single ``result`` event.
    """

    event: str = "message"
    data: dict[str, Any] = Field(default_factory=dict)
