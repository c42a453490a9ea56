"""Controller state and run bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from occupancy_pacer.schemas import WorkItem


class ControllerState(StrEnum):
    """State of the pacing controller."""

    IDLE = "IDLE"
    BURSTING = "BURSTING"
    AWAITING_SLOT = "AWAITING_SLOT"
    PAUSED = "PAUSED"
    DRAINING_ON_STOP = "DRAINING_ON_STOP"
    COMPLETE = "COMPLETE"


@dataclass
class RunStatistics:
    """Counters for one run. Reset exactly once, at start."""

    submitted_count: int = 0
    failed_count: int = 0
    started_at: datetime | None = None
    started_monotonic: float | None = None

    @property
    def processed(self) -> int:
        """Items sent, regardless of outcome."""
        return self.submitted_count + self.failed_count


@dataclass
class QueueRun:
    """Everything owned by a single run of the controller.

    The generation identifies the run; deferred work captured under an
    older generation is obsolete and must not act.
    """

    generation: int
    items: tuple[WorkItem, ...]
    stats: RunStatistics = field(default_factory=RunStatistics)
    cursor: int = 0
    burst_sent: int = 0
    step_active: bool = False

    # Reactive pacing
    awaiting: bool = False
    sequence_floor: int = 0
    slot_claimed: bool = False
    claimed_sequence: int = 0

    # Pause bookkeeping
    resume_state: ControllerState | None = None

    @property
    def total(self) -> int:
        """Number of items in the queue."""
        return len(self.items)

    @property
    def remaining(self) -> int:
        """Items not yet sent."""
        return self.total - self.cursor

    @property
    def exhausted(self) -> bool:
        """Whether the cursor has reached the end of the queue."""
        return self.cursor >= self.total

    def current_item(self) -> WorkItem:
        """Item under the cursor."""
        return self.items[self.cursor]
