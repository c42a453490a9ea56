"""Actuator adapter: performs a single submission.

The pacing controller only needs ``submit(text) -> bool``. The adapter
builds that from the four-step Actuator protocol (locate input, set
value, locate submit control, activate), absorbing every failure into
a False result.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
from rich.console import Console

from occupancy_pacer.clock import SYSTEM_CLOCK, Clock
from occupancy_pacer.config import ActuatorConfig, get_settings
from occupancy_pacer.logging import get_logger

logger = get_logger(__name__)


class Actuator(Protocol):
    """Low-level submission surface.

    Handles are opaque to the adapter; ``None`` means "not found".
    """

    async def locate_input(self) -> Any | None: ...

    async def set_value(self, handle: Any, text: str) -> None: ...

    async def locate_submit_control(self) -> Any | None: ...

    async def activate(self, handle: Any) -> None: ...


class ActuatorAdapter:
    """Turns an Actuator into a boolean ``submit(text)``.

    Usage:
        adapter = ActuatorAdapter(HttpFormActuator(client, submit_url))
        ok = await adapter.submit("a prompt")
    """

    def __init__(
        self,
        actuator: Actuator,
        config: ActuatorConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            actuator: Surface performing the individual steps
            config: Step timing (uses settings if not provided)
            clock: Optional time source for step delays
        """
        self._actuator = actuator
        self._config = config or get_settings().actuator
        self._clock = clock or SYSTEM_CLOCK

    @property
    def config(self) -> ActuatorConfig:
        """Get the actuator configuration."""
        return self._config

    async def submit(self, text: str) -> bool:
        """Perform one submission.

        A missing input or submit control is a failed submission, not an
        error. Exceptions raised by the actuator are logged and reported
        as failure.

        Args:
            text: Payload to submit

        Returns:
            True if the submit control was activated
        """
        try:
            await self._clock.sleep(self._config.pre_submit_delay_ms / 1000)

            field = await self._actuator.locate_input()
            if field is None:
                logger.error("Input not found")
                return False

            await self._actuator.set_value(field, text)
            await self._clock.sleep(self._config.fill_settle_delay_ms / 1000)

            control = await self._actuator.locate_submit_control()
            if control is None:
                logger.error("Submit control not found")
                return False

            await self._actuator.activate(control)
            await self._clock.sleep(self._config.post_activate_delay_ms / 1000)

            if self._config.clear_after_submit:
                await self._actuator.set_value(field, "")
            return True

        except Exception as e:
            logger.error("Submission error: {error}", error=str(e))
            return False


class HttpFormActuator:
    """Actuator that submits the payload as a form field over HTTP.

    The "input" is a pending form payload and the "submit control" is
    the target URL; activation POSTs the form and raises on a non-2xx
    response.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        submit_url: str,
        field: str = "prompt",
    ) -> None:
        self._client = client
        self._submit_url = submit_url
        self._field = field
        self._form: dict[str, str] = {}

    async def locate_input(self) -> dict[str, str] | None:
        return self._form if self._field else None

    async def set_value(self, handle: dict[str, str], text: str) -> None:
        if text:
            handle[self._field] = text
        else:
            handle.pop(self._field, None)

    async def locate_submit_control(self) -> str | None:
        return self._submit_url or None

    async def activate(self, handle: str) -> None:
        response = await self._client.post(handle, data=dict(self._form))
        response.raise_for_status()


class EchoActuator:
    """Dry-run actuator that prints each submission instead of sending it."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._value = ""
        self.submitted: list[str] = []

    async def locate_input(self) -> str:
        return "input"

    async def set_value(self, handle: str, text: str) -> None:
        self._value = text

    async def locate_submit_control(self) -> str:
        return "submit"

    async def activate(self, handle: str) -> None:
        self.submitted.append(self._value)
        preview = self._value[:60] + ("..." if len(self._value) > 60 else "")
        self._console.print(f"[dim]would submit:[/dim] {preview}")
