"""Host-to-controller command channel.

Each message is a mapping with a ``type`` key; every message yields a
synchronous acknowledgement dict.

Messages:
    START_QUEUE {"items": [...]}  -> {"success": True}
    STOP_QUEUE {}                 -> {"success": True}
    PAUSE_QUEUE {}                -> {"success": True}
    RESUME_QUEUE {}               -> {"success": True}
    GET_STATUS {}                 -> {state, total, current, ...}
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter, ValidationError

from occupancy_pacer.exceptions import PacerError, UnknownCommandError
from occupancy_pacer.logging import get_logger
from occupancy_pacer.pacing.controller import PacingController
from occupancy_pacer.schemas import WorkItem

logger = get_logger(__name__)


class StartQueueCommand(BaseModel):
    """Start a run over the given items."""

    type: Literal["START_QUEUE"]
    items: list[WorkItem] = Field(
        default_factory=list,
        validation_alias=AliasChoices("items", "prompts"),
    )


class StopQueueCommand(BaseModel):
    type: Literal["STOP_QUEUE"]


class PauseQueueCommand(BaseModel):
    type: Literal["PAUSE_QUEUE"]


class ResumeQueueCommand(BaseModel):
    type: Literal["RESUME_QUEUE"]


class GetStatusCommand(BaseModel):
    type: Literal["GET_STATUS"]


Command = Annotated[
    StartQueueCommand
    | StopQueueCommand
    | PauseQueueCommand
    | ResumeQueueCommand
    | GetStatusCommand,
    Field(discriminator="type"),
]

_COMMAND_ADAPTER: TypeAdapter[Command] = TypeAdapter(Command)

COMMAND_TYPES = frozenset(
    {"START_QUEUE", "STOP_QUEUE", "PAUSE_QUEUE", "RESUME_QUEUE", "GET_STATUS"}
)


def parse_command(message: Mapping[str, Any]) -> Command:
    """Validate a raw message into a typed command.

    Payload fields may sit at the top level or under a ``data`` key.

    Raises:
        UnknownCommandError: If the message type is not recognised
        ValidationError: If the payload is malformed
    """
    message_type = message.get("type")
    if not isinstance(message_type, str) or message_type not in COMMAND_TYPES:
        raise UnknownCommandError(message_type)

    payload = dict(message)
    data = payload.pop("data", None)
    if isinstance(data, Mapping):
        payload.update(data)
    return _COMMAND_ADAPTER.validate_python(payload)


class CommandChannel:
    """Dispatches command messages to a PacingController.

    Usage:
        channel = CommandChannel(controller)
        channel.handle({"type": "START_QUEUE", "items": ["a", "b"]})
        status = channel.handle({"type": "GET_STATUS"})
    """

    def __init__(self, controller: PacingController) -> None:
        self._controller = controller

    def handle(self, message: Mapping[str, Any]) -> dict[str, Any]:
        """Handle one message and return its acknowledgement."""
        try:
            command = parse_command(message)
        except UnknownCommandError:
            logger.warning("Unknown message: {type}", type=message.get("type"))
            return {"success": False, "error": "Unknown message"}
        except ValidationError as e:
            logger.warning(
                "Invalid {type} message: {error}", type=message.get("type"), error=str(e)
            )
            return {"success": False, "error": f"Invalid message: {e.error_count()} error(s)"}

        try:
            return self._dispatch(command)
        except PacerError as e:
            logger.warning("{type} rejected: {error}", type=command.type, error=str(e))
            return {"success": False, "error": str(e)}

    def _dispatch(self, command: Command) -> dict[str, Any]:
        match command:
            case StartQueueCommand(items=items):
                self._controller.start(items)
            case StopQueueCommand():
                self._controller.stop()
            case PauseQueueCommand():
                self._controller.pause()
            case ResumeQueueCommand():
                self._controller.resume()
            case GetStatusCommand():
                return self._controller.get_status().to_wire()
        return {"success": True}
