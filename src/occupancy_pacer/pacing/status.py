"""Status reporting for pacing runs.

The controller pushes a QueueStatus on every state transition and
counter change, and exactly one QueueComplete per finished run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Literal, Protocol

from pydantic import Field

from occupancy_pacer.schemas import SchemaBase

from .state import ControllerState

logger = logging.getLogger(__name__)


class QueueStatus(SchemaBase):
    """Point-in-time view of a run, as reported by GET_STATUS."""

    state: ControllerState
    total: int = Field(ge=0)
    current: int = Field(ge=0, description="Cursor: index of the next unsent item")
    submitted_count: int = Field(ge=0)
    failed_count: int = Field(ge=0)
    remaining: int = Field(ge=0)
    last_known_occupancy: int | None = None
    started_at: datetime | None = None

    @property
    def progress_percent(self) -> float:
        """Share of items sent (0-100)."""
        if self.total == 0:
            return 100.0
        return (self.current / self.total) * 100


class QueueComplete(SchemaBase):
    """Completion event, emitted once per run on reaching COMPLETE."""

    type: Literal["QUEUE_COMPLETE"] = "QUEUE_COMPLETE"
    submitted_count: int = Field(ge=0)
    failed_count: int = Field(ge=0)
    total: int = Field(ge=0)
    elapsed_seconds: float = Field(default=0.0, ge=0)


StatusCallback = Callable[[QueueStatus], None]
CompleteCallback = Callable[[QueueComplete], None]


class StatusSink(Protocol):
    """Receives controller status for presentation and reporting."""

    def on_status(self, status: QueueStatus) -> None: ...

    def on_complete(self, event: QueueComplete) -> None: ...


class CallbackStatusSink:
    """Fan-out sink that forwards to registered callbacks.

    Usage:
        sink = CallbackStatusSink()
        sink.add_status_listener(lambda s: print(f"{s.progress_percent:.0f}%"))
        sink.add_complete_listener(lambda e: print(e.to_wire()))
    """

    def __init__(self) -> None:
        self._status_callbacks: list[StatusCallback] = []
        self._complete_callbacks: list[CompleteCallback] = []
        self._last_status: QueueStatus | None = None

    def add_status_listener(self, callback: StatusCallback) -> None:
        """Register a callback for every status update."""
        self._status_callbacks.append(callback)

    def add_complete_listener(self, callback: CompleteCallback) -> None:
        """Register a callback for completion events."""
        self._complete_callbacks.append(callback)

    @property
    def last_status(self) -> QueueStatus | None:
        """Most recent status received."""
        return self._last_status

    def on_status(self, status: QueueStatus) -> None:
        self._last_status = status
        for callback in self._status_callbacks:
            try:
                callback(status)
            except Exception as e:
                logger.warning("Status callback error: %s", e)

    def on_complete(self, event: QueueComplete) -> None:
        for callback in self._complete_callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.warning("Completion callback error: %s", e)


class LoggingStatusSink:
    """Sink that logs state transitions and the completion summary."""

    def __init__(self) -> None:
        self._last_state: ControllerState | None = None

    def on_status(self, status: QueueStatus) -> None:
        if status.state != self._last_state:
            logger.info(
                "Queue %s (%d/%d sent)",
                status.state.value,
                status.current,
                status.total,
            )
            self._last_state = status.state

    def on_complete(self, event: QueueComplete) -> None:
        minutes, seconds = divmod(int(event.elapsed_seconds), 60)
        logger.info(
            "Queue complete: %d/%d submitted, %d failed in %dm %ds",
            event.submitted_count,
            event.total,
            event.failed_count,
            minutes,
            seconds,
        )
