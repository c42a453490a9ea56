"""Burst-then-reactive pacing controller.

The controller front-loads a small fixed burst of submissions at a fixed
cadence, then admits one further item each time the remote queue is
observed empty, after a settle delay. An unknown and unstable remote
concurrency limit thereby becomes a one-in-one-out admission policy.

State flow:
    IDLE -> BURSTING -> AWAITING_SLOT <-> (settle, submit) -> COMPLETE
    BURSTING / AWAITING_SLOT <-> PAUSED
    any active state -> DRAINING_ON_STOP -> IDLE
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Protocol

from occupancy_pacer.clock import SYSTEM_CLOCK, Clock
from occupancy_pacer.config import PacingConfig, get_settings
from occupancy_pacer.exceptions import InvalidStartRequestError, ProbeConfigurationError
from occupancy_pacer.logging import bind_item, bind_run, get_logger
from occupancy_pacer.occupancy.observer import SignalObserver
from occupancy_pacer.occupancy.poller import PollTrigger
from occupancy_pacer.occupancy.schemas import OccupancySnapshot
from occupancy_pacer.schemas import WorkItem

from .state import ControllerState, QueueRun, RunStatistics
from .status import QueueComplete, QueueStatus, StatusSink

logger = get_logger(__name__)

Step = Callable[[QueueRun], Awaitable[None]]

_ACTIVE_STATES = (
    ControllerState.BURSTING,
    ControllerState.AWAITING_SLOT,
    ControllerState.PAUSED,
)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Submitter(Protocol):
    """Performs one submission and reports whether it succeeded."""

    async def submit(self, text: str) -> bool: ...


class PacingController:
    """Decides when to submit the next queued item.

    Usage:
        observer = SignalObserver("pending")
        client = observer.instrument(httpx.AsyncClient())
        controller = PacingController(
            adapter,
            observer,
            trigger=PollTrigger(client, observer),
            probe_url="https://host/backend/video/pending",
        )

        controller.start(["first prompt", "second prompt"])
        await controller.wait()

    Every deferred action is an asyncio task bound to the run generation
    that scheduled it. stop() and start() bump the generation, so a task
    that wakes up late finds itself obsolete and does nothing.
    """

    def __init__(
        self,
        submitter: Submitter,
        observer: SignalObserver,
        *,
        trigger: PollTrigger | None = None,
        sink: StatusSink | None = None,
        config: PacingConfig | None = None,
        probe_url: str | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the pacing controller.

        Args:
            submitter: Performs single submissions (usually an ActuatorAdapter)
            observer: Source of occupancy snapshots
            trigger: Optional poll trigger for fallback probing
            sink: Optional status sink for presentation and completion
            config: Pacing configuration (uses settings if not provided)
            probe_url: Occupancy URL to probe (uses settings if not provided)
            clock: Optional time source

        Raises:
            ProbeConfigurationError: If the probe URL would not be observed
        """
        self._submitter = submitter
        self._observer = observer
        self._trigger = trigger
        self._sink = sink
        self._config = config or get_settings().pacing
        self._probe_url = probe_url if probe_url is not None else get_settings().signal.probe_url
        self._clock = clock or SYSTEM_CLOCK

        if trigger is not None and self._probe_url and not observer.matches(self._probe_url):
            raise ProbeConfigurationError(
                f"Probe URL {self._probe_url!r} does not match the occupancy pattern"
            )

        # State
        self._state = ControllerState.IDLE
        self._generation = 0
        self._run: QueueRun | None = None
        self._last_sequence = 0
        self._loop: asyncio.AbstractEventLoop | None = None

        # Deferred work: at most one scheduled step, at most one submission
        self._timer: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()  # Prevent task GC
        self._in_flight = False
        self._submit_lock = asyncio.Lock()

        self._done = asyncio.Event()
        self._done.set()

        self._unsubscribe = observer.subscribe(self.on_snapshot)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------
    @property
    def config(self) -> PacingConfig:
        """Get the pacing configuration."""
        return self._config

    @property
    def state(self) -> ControllerState:
        """Current controller state."""
        return self._state

    @property
    def is_active(self) -> bool:
        """Whether a run is in progress (including paused)."""
        return self._state in _ACTIVE_STATES

    @property
    def is_awaiting_slot(self) -> bool:
        """Whether the controller is waiting for an empty-slot snapshot."""
        run = self._run
        return (
            self._state == ControllerState.AWAITING_SLOT
            and run is not None
            and run.awaiting
        )

    @property
    def in_flight(self) -> bool:
        """Whether an actuator call is currently running."""
        return self._in_flight

    @property
    def cursor(self) -> int:
        """Index of the next unsent item (0 before any run)."""
        return self._run.cursor if self._run else 0

    @property
    def stats(self) -> RunStatistics:
        """Statistics of the current (or last) run."""
        return self._run.stats if self._run else RunStatistics()

    @property
    def generation(self) -> int:
        """Run generation counter."""
        return self._generation

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------
    def start(self, items: Sequence[WorkItem | str | Mapping[str, object]]) -> None:
        """Start a new run over ``items``.

        A run already in progress is stopped first.

        Args:
            items: Work items, bare strings, or item mappings

        Raises:
            InvalidStartRequestError: If ``items`` is empty
        """
        queue = tuple(
            item if isinstance(item, WorkItem) else WorkItem.model_validate(item)
            for item in items
        )
        if not queue:
            raise InvalidStartRequestError("Cannot start a run without work items")

        if self.is_active:
            self.stop()

        self._loop = asyncio.get_running_loop()
        self._generation += 1
        run = QueueRun(generation=self._generation, items=queue)
        run.stats.started_at = self._clock.now()
        run.stats.started_monotonic = self._clock.monotonic()
        self._run = run
        self._done = asyncio.Event()

        burst_count = min(self._config.burst_size, run.total)
        bind_run(run.generation).info(
            "Starting run: {total} items, burst of {burst}",
            total=run.total,
            burst=burst_count,
        )

        self._set_state(ControllerState.BURSTING)
        if burst_count == 0:
            self._enter_awaiting(run)
        else:
            self._schedule(run, 0.0, self._burst_step, ControllerState.BURSTING)

    def stop(self) -> None:
        """Stop the current run immediately.

        No submission starts after this returns. An actuator call already
        in flight finishes, but its continuation is discarded.
        """
        if self._run is None or self._state == ControllerState.IDLE:
            return

        self._generation += 1
        self._set_state(ControllerState.DRAINING_ON_STOP)
        self._cancel_timer()
        if self._trigger is not None:
            self._trigger.disarm()
        self._run.awaiting = False
        self._run.resume_state = None

        bind_run(self._run.generation).info(
            "Run stopped at {cursor}/{total}",
            cursor=self._run.cursor,
            total=self._run.total,
        )
        self._set_state(ControllerState.IDLE)
        self._done.set()

    def pause(self) -> None:
        """Freeze progress without losing position.

        Pending burst/settle timers are cancelled and probing stops.
        Snapshots keep being recorded, but no action is taken on them.
        """
        run = self._run
        if run is None or self._state not in (
            ControllerState.BURSTING,
            ControllerState.AWAITING_SLOT,
        ):
            logger.debug("Pause ignored in state {state}", state=self._state.value)
            return

        run.resume_state = self._state
        self._cancel_timer()
        if self._trigger is not None:
            self._trigger.disarm()
        self._set_state(ControllerState.PAUSED)
        bind_run(run.generation).info(
            "Run paused at {cursor}/{total}", cursor=run.cursor, total=run.total
        )

    def resume(self) -> None:
        """Restore the state held before pause().

        Resuming into AWAITING_SLOT acts once on a free slot claimed or
        observed while paused; otherwise it re-checks occupancy with a
        fresh probe.
        """
        run = self._run
        if run is None or self._state != ControllerState.PAUSED or run.resume_state is None:
            logger.debug("Resume ignored in state {state}", state=self._state.value)
            return

        prior = run.resume_state
        run.resume_state = None
        bind_run(run.generation).info("Run resumed ({state})", state=prior.value)

        if run.step_active:
            # The running step continues on its own once it sees the restored state
            self._set_state(prior)
            return

        if prior == ControllerState.BURSTING:
            self._set_state(ControllerState.BURSTING)
            self._continue_burst(run)
            return

        self._set_state(ControllerState.AWAITING_SLOT)
        latest = self._observer.latest
        if latest is not None and latest.is_empty and (
            # Settle timer was cancelled by pause; the claim holds while the
            # queue has stayed empty since
            (run.slot_claimed and latest.sequence >= run.claimed_sequence)
            or (run.awaiting and latest.sequence > run.sequence_floor)
        ):
            self._claim_slot(run, latest.sequence)
        else:
            self._enter_awaiting(run)
            if self._trigger is not None:
                self._trigger.probe_now()

    async def wait(self, timeout: float | None = None) -> None:
        """Wait until the current run completes or is stopped.

        Args:
            timeout: Optional timeout in seconds

        Raises:
            asyncio.TimeoutError: If timeout exceeded
        """
        if timeout is None:
            await self._done.wait()
        else:
            await asyncio.wait_for(self._done.wait(), timeout)

    async def close(self) -> None:
        """Stop any run and detach from the observer."""
        self.stop()
        self._unsubscribe()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Occupancy
    # -------------------------------------------------------------------------
    def on_snapshot(self, snapshot: OccupancySnapshot) -> None:
        """Consume an occupancy snapshot.

        Only the first empty snapshot observed since entering AWAITING_SLOT
        schedules a submission; anything else is recorded and ignored.

        Snapshots published from another thread are handed over to the
        event loop the run was started on.
        """
        loop = self._loop
        if loop is not None and _running_loop() is not loop:
            if not loop.is_closed():
                loop.call_soon_threadsafe(self.on_snapshot, snapshot)
            return

        if snapshot.sequence <= self._last_sequence:
            logger.debug("Discarding stale snapshot #{seq}", seq=snapshot.sequence)
            return
        self._last_sequence = snapshot.sequence

        run = self._run
        if run is None or not self.is_active:
            return

        if (
            self._state == ControllerState.AWAITING_SLOT
            and run.awaiting
            and snapshot.sequence > run.sequence_floor
            and snapshot.is_empty
        ):
            self._claim_slot(run, snapshot.sequence)

        self._notify()

    def _claim_slot(self, run: QueueRun, sequence: int) -> None:
        # Schedule first: the run keeps awaiting if no task can be created
        self._schedule(
            run,
            self._config.settle_delay,
            self._reactive_step,
            ControllerState.AWAITING_SLOT,
        )
        run.awaiting = False
        run.slot_claimed = True
        run.claimed_sequence = sequence
        if self._trigger is not None:
            self._trigger.acknowledge(sequence)
        bind_run(run.generation).info(
            "Slot free, submitting item {index} in {delay:.1f}s",
            index=run.cursor + 1,
            delay=self._config.settle_delay,
        )

    def _enter_awaiting(self, run: QueueRun) -> None:
        run.awaiting = True
        run.slot_claimed = False
        run.sequence_floor = self._observer.sequence
        self._set_state(ControllerState.AWAITING_SLOT)

        if self._trigger is None:
            return
        self._trigger.acknowledge(run.sequence_floor)
        if not self._probe_url:
            logger.warning("No probe URL configured, waiting for organic occupancy traffic")
        elif not self._trigger.is_armed:
            self._trigger.arm(
                self._probe_url,
                self._config.poll_interval_ms,
                condition=lambda: self.is_awaiting_slot,
            )

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------
    async def _burst_step(self, run: QueueRun) -> None:
        sent = await self._submit_current(run, ControllerState.BURSTING)
        if not self._is_current(run) or not sent:
            return

        run.burst_sent += 1
        if run.exhausted:
            self._complete(run)
            return
        if self._state == ControllerState.BURSTING:
            self._continue_burst(run)

    def _continue_burst(self, run: QueueRun) -> None:
        if run.burst_sent < min(self._config.burst_size, run.total):
            self._schedule(
                run, self._config.burst_delay, self._burst_step, ControllerState.BURSTING
            )
        else:
            bind_run(run.generation).info(
                "Burst finished, waiting for free slots ({remaining} left)",
                remaining=run.remaining,
            )
            self._enter_awaiting(run)

    async def _reactive_step(self, run: QueueRun) -> None:
        sent = await self._submit_current(run, ControllerState.AWAITING_SLOT)
        if not self._is_current(run) or not sent:
            return

        run.slot_claimed = False
        if run.exhausted:
            self._complete(run)
            return
        if self._state == ControllerState.AWAITING_SLOT:
            self._enter_awaiting(run)

    async def _submit_current(self, run: QueueRun, expected: ControllerState) -> bool:
        """Submit the item under the cursor and advance past it.

        Returns:
            True if a submission was attempted (successful or not)
        """
        async with self._submit_lock:
            if not self._is_current(run) or self._state != expected or run.exhausted:
                return False

            index = run.cursor
            item = run.current_item()
            item_logger = bind_item(run.generation, index)
            item_logger.info(
                "Submitting [{number}/{total}]: {name}",
                number=index + 1,
                total=run.total,
                name=item.display_name,
            )

            self._in_flight = True
            try:
                success = await self._submitter.submit(item.text)
            except Exception as e:
                item_logger.error("Submission raised: {error}", error=str(e))
                success = False
            finally:
                self._in_flight = False

            # Failed items are not retried; the queue drains regardless of outcome
            run.cursor += 1
            if success:
                run.stats.submitted_count += 1
                item_logger.info(
                    "Submitted ({sent}/{total})",
                    sent=run.stats.submitted_count,
                    total=run.total,
                )
            else:
                run.stats.failed_count += 1
                item_logger.warning("Submission failed")

        if self._is_current(run):
            self._notify()
        return True

    def _complete(self, run: QueueRun) -> None:
        self._cancel_timer()
        if self._trigger is not None:
            self._trigger.disarm()
        run.awaiting = False
        self._set_state(ControllerState.COMPLETE)

        elapsed = 0.0
        if run.stats.started_monotonic is not None:
            elapsed = max(0.0, self._clock.monotonic() - run.stats.started_monotonic)
        event = QueueComplete(
            submitted_count=run.stats.submitted_count,
            failed_count=run.stats.failed_count,
            total=run.total,
            elapsed_seconds=elapsed,
        )
        bind_run(run.generation).info(
            "Run complete: {sent}/{total} submitted, {failed} failed",
            sent=event.submitted_count,
            total=event.total,
            failed=event.failed_count,
        )
        if self._sink is not None:
            try:
                self._sink.on_complete(event)
            except Exception as e:
                logger.error("Status sink failed on completion: {error}", error=str(e))
        self._done.set()

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------
    def _schedule(
        self,
        run: QueueRun,
        delay: float,
        step: Step,
        expected: ControllerState,
    ) -> None:
        self._cancel_timer()
        task = asyncio.create_task(self._deferred(run, delay, step, expected))
        self._timer = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deferred(
        self,
        run: QueueRun,
        delay: float,
        step: Step,
        expected: ControllerState,
    ) -> None:
        if delay > 0:
            await self._clock.sleep(delay)

        if not self._is_current(run) or self._state != expected:
            return

        # Detach: pause/stop must not cancel a submission once it has begun
        self._timer = None
        run.step_active = True
        try:
            await step(run)
        finally:
            run.step_active = False

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _is_current(self, run: QueueRun) -> bool:
        return run is self._run and run.generation == self._generation

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------
    def _set_state(self, state: ControllerState) -> None:
        if state != self._state:
            logger.debug(
                "State {old} -> {new}",
                old=self._state.value,
                new=state.value,
            )
        self._state = state
        self._notify()

    def _notify(self) -> None:
        if self._sink is None:
            return
        try:
            self._sink.on_status(self.get_status())
        except Exception as e:
            logger.error("Status sink failed: {error}", error=str(e))

    def get_status(self) -> QueueStatus:
        """Get the current run status."""
        run = self._run
        latest = self._observer.latest
        return QueueStatus(
            state=self._state,
            total=run.total if run else 0,
            current=run.cursor if run else 0,
            submitted_count=run.stats.submitted_count if run else 0,
            failed_count=run.stats.failed_count if run else 0,
            remaining=run.remaining if run else 0,
            last_known_occupancy=latest.size if latest else None,
            started_at=run.stats.started_at if run else None,
        )
