"""Fallback occupancy probing.

When the host issues no organic requests to the occupancy endpoint, the
PollTrigger manufactures them on a fixed interval. Probes go through an
instrumented client so the SignalObserver sees their responses exactly
like organic ones.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import httpx

from occupancy_pacer.clock import SYSTEM_CLOCK, Clock
from occupancy_pacer.exceptions import ProbeConfigurationError

from .observer import SignalObserver

logger = logging.getLogger(__name__)

FireCondition = Callable[[], bool]


class PollTrigger:
    """Issues occupancy probes on an interval while a condition holds.

    Usage:
        observer = SignalObserver("pending")
        client = observer.instrument(httpx.AsyncClient())
        trigger = PollTrigger(client, observer)

        trigger.arm(url, 2000, condition=lambda: controller.is_awaiting_slot)
        ...
        trigger.disarm()
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        observer: SignalObserver,
        clock: Clock | None = None,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the poll trigger.

        Args:
            client: Async client already instrumented by ``observer``
            observer: Observer whose latest snapshot gates probing
            clock: Optional time source for the interval
            timeout: Timeout in seconds for a single probe
        """
        self._client = client
        self._observer = observer
        self._clock = clock or SYSTEM_CLOCK
        self._timeout = timeout

        self._endpoint: str | None = None
        self._interval = 0.0
        self._condition: FireCondition | None = None
        self._task: asyncio.Task[None] | None = None
        self._probe_tasks: set[asyncio.Task[None]] = set()  # Prevent task GC
        self._acknowledged_sequence = 0

        # Statistics
        self._probes_sent = 0
        self._probes_failed = 0
        self._ticks_skipped = 0

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    def arm(
        self,
        endpoint: str,
        interval_ms: int,
        condition: FireCondition | None = None,
    ) -> None:
        """Start probing ``endpoint`` every ``interval_ms`` milliseconds.

        Re-arming replaces any running interval.

        Args:
            endpoint: Occupancy URL to probe
            interval_ms: Milliseconds between ticks
            condition: Optional predicate; ticks are skipped while it is False

        Raises:
            ProbeConfigurationError: If the observer would not capture the endpoint
        """
        if not self._observer.matches(endpoint):
            raise ProbeConfigurationError(
                f"Probe endpoint {endpoint!r} does not match the occupancy pattern"
            )

        self.disarm()
        self._endpoint = endpoint
        self._interval = interval_ms / 1000
        self._condition = condition
        self._task = asyncio.create_task(self._interval_loop())
        logger.debug("Poll trigger armed (%s every %dms)", endpoint, interval_ms)

    def disarm(self) -> None:
        """Stop probing. Safe to call repeatedly."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug("Poll trigger disarmed")
        for task in list(self._probe_tasks):
            task.cancel()
        self._probe_tasks.clear()

    @property
    def is_armed(self) -> bool:
        """Whether an interval is currently running."""
        return self._task is not None and not self._task.done()

    # -------------------------------------------------------------------------
    # Probing
    # -------------------------------------------------------------------------
    async def _interval_loop(self) -> None:
        while True:
            await self._clock.sleep(self._interval)
            await self._tick()

    async def _tick(self) -> None:
        if self._condition is not None and not self._condition():
            self._ticks_skipped += 1
            return

        latest = self._observer.latest
        if (
            latest is not None
            and latest.is_empty
            and latest.sequence > self._acknowledged_sequence
        ):
            # An unconsumed empty slot is on record; the controller decides what to do
            self._ticks_skipped += 1
            return

        await self.probe()

    async def probe(self) -> None:
        """Issue one probe request, swallowing any failure."""
        if self._endpoint is None:
            return

        self._probes_sent += 1
        try:
            response = await self._client.get(
                self._endpoint,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            self._probes_failed += 1
            logger.debug("Occupancy probe failed: %s", e)
            return

        if not response.is_success:
            self._probes_failed += 1
            logger.debug("Occupancy probe returned status %d", response.status_code)

    def probe_now(self) -> None:
        """Schedule an immediate probe outside the interval."""
        if self._endpoint is None:
            return
        task = asyncio.create_task(self.probe())
        self._probe_tasks.add(task)
        task.add_done_callback(self._probe_tasks.discard)

    def acknowledge(self, sequence: int) -> None:
        """Mark snapshots up to ``sequence`` as consumed.

        A consumed empty snapshot no longer suppresses probing, so the
        next tick fetches fresh occupancy instead of waiting forever.

        Args:
            sequence: Sequence number of the last consumed snapshot
        """
        self._acknowledged_sequence = max(self._acknowledged_sequence, sequence)

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------
    def get_stats(self) -> dict[str, int | bool | str | None]:
        """Get trigger statistics."""
        return {
            "endpoint": self._endpoint,
            "is_armed": self.is_armed,
            "probes_sent": self._probes_sent,
            "probes_failed": self._probes_failed,
            "ticks_skipped": self._ticks_skipped,
        }
