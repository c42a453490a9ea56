"""Pydantic schemas for occupancy observations.

An occupancy snapshot is derived from a response of the remote
"pending" endpoint, whose body is a JSON array of in-flight jobs.
"""

import json
from datetime import UTC, datetime
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, computed_field


class OccupancySnapshot(BaseModel):
    """A sequenced, timestamped observation of remote queue occupancy.

    Sequence numbers are assigned by the SignalObserver and increase
    strictly; a snapshot is stale once one with a greater sequence exists.
    """

    model_config = ConfigDict(frozen=True)

    size: int | None = Field(ge=0, description="Number of in-flight jobs (None if unknown)")
    sequence: int = Field(ge=1, description="Monotonic observation counter")
    observed_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the response was observed",
    )
    source_url: str | None = Field(default=None, description="URL the body came from")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_empty(self) -> bool:
        """True when the remote reports no in-flight jobs (a free slot)."""
        return self.size == 0

    def is_newer_than(self, other: Self | None) -> bool:
        """Whether this snapshot supersedes ``other``."""
        return other is None or self.sequence > other.sequence


def parse_occupancy(body: str | bytes) -> int | None:
    """Extract occupancy size from a response body.

    Args:
        body: Raw response body

    Returns:
        Length of the JSON array, or None when the body is not JSON
        or the JSON value is not an array
    """
    try:
        data = json.loads(body)
    except (ValueError, TypeError):
        return None

    if not isinstance(data, list):
        return None
    return len(data)
