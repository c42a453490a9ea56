"""Injectable time source for the pacing components."""

from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime


class Clock:
    """Wall clock, monotonic clock and sleep behind one seam.

    Tests substitute a subclass to observe or shorten waits without
    touching the event loop.
    """

    def now(self) -> datetime:
        """Current UTC time."""
        return datetime.now(UTC)

    def monotonic(self) -> float:
        """Monotonic seconds, for elapsed-time calculations."""
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        """Suspend the calling task for ``seconds``."""
        await asyncio.sleep(max(0.0, seconds))


SYSTEM_CLOCK = Clock()
