"""Pytest configuration and shared fixtures.

Usage Guide:
- For controller tests: use `fast_config`, `observer` and `RecordingSubmitter`
- For network tests: build clients with `make_occupancy_transport`
- To wait for asynchronous progress: `await wait_until(lambda: ...)`
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import httpx
import pytest

from occupancy_pacer.config import ActuatorConfig, PacingConfig
from occupancy_pacer.occupancy import SignalObserver
from occupancy_pacer.pacing import CallbackStatusSink, QueueComplete, QueueStatus
from tests.fixtures.occupancy_responses import PENDING_URL

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the event loop until it holds or ``timeout`` expires."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


class RecordingSubmitter:
    """Submitter fake that records texts and tracks concurrent calls."""

    def __init__(
        self,
        fail_on: set[str] | None = None,
        raise_on: set[str] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.fail_on = fail_on or set()
        self.raise_on = raise_on or set()
        self.delay = delay
        self.submitted: list[str] = []
        self.active = 0
        self.max_active = 0
        self.gate: asyncio.Event | None = None

    async def submit(self, text: str) -> bool:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            self.submitted.append(text)
            if text in self.raise_on:
                raise RuntimeError(f"actuator exploded on {text}")
            return text not in self.fail_on
        finally:
            self.active -= 1


class RecordingSink(CallbackStatusSink):
    """Status sink that keeps every update and completion event."""

    def __init__(self) -> None:
        super().__init__()
        self.statuses: list[QueueStatus] = []
        self.completions: list[QueueComplete] = []
        self.add_status_listener(self.statuses.append)
        self.add_complete_listener(self.completions.append)


def make_occupancy_transport(
    bodies: list[str] | str,
    status_code: int = 200,
    calls: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    """Mock transport replying with ``bodies`` in turn (the last one repeats)."""
    queue = [bodies] if isinstance(bodies, str) else list(bodies)

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        body = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(
            status_code,
            content=body.encode(),
            headers={"content-type": "application/json"},
        )

    return httpx.MockTransport(handler)


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def fast_config() -> PacingConfig:
    """Pacing config with no delays (test mode)."""
    return PacingConfig(
        burst_size=3,
        burst_delay_ms=0,
        settle_delay_ms=0,
        poll_interval_ms=10,
    )


@pytest.fixture
def instant_actuator_config() -> ActuatorConfig:
    """Actuator config with no step delays."""
    return ActuatorConfig(
        pre_submit_delay_ms=0,
        fill_settle_delay_ms=0,
        post_activate_delay_ms=0,
    )


@pytest.fixture
def observer() -> SignalObserver:
    """Observer matching the fixture occupancy URL."""
    return SignalObserver("pending")


@pytest.fixture
def submitter() -> RecordingSubmitter:
    return RecordingSubmitter()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def pending_url() -> str:
    return PENDING_URL
