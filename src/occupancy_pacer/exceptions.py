"""Occupancy pacer exceptions."""


class PacerError(Exception):
    """Base exception for occupancy pacer errors."""

    pass


class InvalidStartRequestError(PacerError):
    """Raised when a run is started without any work items."""

    pass


class UnknownCommandError(PacerError):
    """Raised when a command message has an unrecognised type."""

    def __init__(self, message_type: object) -> None:
        super().__init__(f"Unknown message type: {message_type!r}")
        self.message_type = message_type


class ProbeConfigurationError(PacerError):
    """Raised when the probe URL would not be captured by the occupancy matcher."""

    pass
