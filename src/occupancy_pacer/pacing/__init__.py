"""Submission pacing against inferred remote occupancy.

Components:
- PacingController: Burst-then-reactive state machine
- ControllerState / QueueRun / RunStatistics: Run bookkeeping
- QueueStatus / QueueComplete / StatusSink: Observable status reporting
"""

from .controller import PacingController, Submitter
from .state import ControllerState, QueueRun, RunStatistics
from .status import (
    CallbackStatusSink,
    LoggingStatusSink,
    QueueComplete,
    QueueStatus,
    StatusSink,
)

__all__ = [
    # Controller
    "PacingController",
    "Submitter",
    # State
    "ControllerState",
    "QueueRun",
    "RunStatistics",
    # Status
    "CallbackStatusSink",
    "LoggingStatusSink",
    "QueueComplete",
    "QueueStatus",
    "StatusSink",
]
