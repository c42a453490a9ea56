"""Passive occupancy tracking from observed HTTP traffic.

This module turns responses of the remote occupancy endpoint into
sequenced OccupancySnapshots without issuing any requests of its own.

Key Features:
- Transparent httpx instrumentation (sync and async clients)
- Transport-agnostic feed via observe_response()
- Last-value-wins: no snapshot queue, only the freshest matters
- Observable via subscriber callbacks
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

import httpx

from occupancy_pacer.clock import SYSTEM_CLOCK, Clock

from .schemas import OccupancySnapshot, parse_occupancy

logger = logging.getLogger(__name__)

UrlMatcher = Callable[[str], bool]
SnapshotCallback = Callable[[OccupancySnapshot], None]

ClientT = TypeVar("ClientT", httpx.Client, httpx.AsyncClient)


def url_contains(pattern: str) -> UrlMatcher:
    """Build a matcher accepting any URL that contains ``pattern``."""

    def _matches(url: str) -> bool:
        return pattern in url

    return _matches


class SignalObserver:
    """Publishes occupancy snapshots from responses matching a URL pattern.

    The observer is fed either by instrumented httpx clients (the usual
    case) or directly through observe_response() by any other traffic
    source. Both organic traffic and synthetic probes flow through the
    same path, so snapshots are attributed identically regardless of
    origin.

    Usage:
        observer = SignalObserver("pending")
        observer.subscribe(controller.on_snapshot)

        async with observer.instrument(httpx.AsyncClient()) as client:
            await client.get("https://host/backend/video/pending")
            print(observer.latest.size)
    """

    def __init__(
        self,
        matcher: UrlMatcher | str,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the signal observer.

        Args:
            matcher: Predicate on the request URL, or a URL substring
            clock: Optional time source for snapshot timestamps
        """
        self._matcher = url_contains(matcher) if isinstance(matcher, str) else matcher
        self._clock = clock or SYSTEM_CLOCK

        # State
        self._sequence = 0
        self._latest: OccupancySnapshot | None = None
        self._ignored = 0

        # Callbacks
        self._subscribers: list[SnapshotCallback] = []

    # -------------------------------------------------------------------------
    # Instrumentation
    # -------------------------------------------------------------------------
    def instrument(self, client: ClientT) -> ClientT:
        """Attach a response hook to an httpx client.

        The hook reads the body before the caller does; httpx caches the
        content, so the caller still gets the full, unmodified response.

        Args:
            client: httpx.Client or httpx.AsyncClient to observe

        Returns:
            The same client, for chaining
        """
        if isinstance(client, httpx.AsyncClient):

            async def _async_hook(response: httpx.Response) -> None:
                if not self.matches(str(response.request.url)):
                    return
                await response.aread()
                self._observe(response)

            client.event_hooks["response"].append(_async_hook)
        else:

            def _sync_hook(response: httpx.Response) -> None:
                if not self.matches(str(response.request.url)):
                    return
                response.read()
                self._observe(response)

            client.event_hooks["response"].append(_sync_hook)

        return client

    def matches(self, url: str) -> bool:
        """Whether ``url`` is the occupancy endpoint."""
        return self._matcher(url)

    def _observe(self, response: httpx.Response) -> None:
        self.observe_response(
            str(response.request.url),
            response.content,
            status_code=response.status_code,
        )

    # -------------------------------------------------------------------------
    # Feed
    # -------------------------------------------------------------------------
    def observe_response(
        self,
        url: str,
        body: str | bytes,
        status_code: int = 200,
    ) -> OccupancySnapshot | None:
        """Record a response and publish a snapshot if it carries occupancy.

        Non-matching URLs, non-success statuses, non-JSON bodies and JSON
        values that are not arrays are ignored silently.

        Args:
            url: URL the response came from
            body: Raw response body
            status_code: HTTP status of the response

        Returns:
            The published snapshot, or None if the response was ignored
        """
        if not self.matches(url):
            return None

        if not 200 <= status_code < 300:
            self._ignored += 1
            logger.debug("Ignoring occupancy response with status %d", status_code)
            return None

        size = parse_occupancy(body)
        if size is None:
            self._ignored += 1
            logger.debug("Ignoring non-array occupancy body from %s", url)
            return None

        self._sequence += 1
        snapshot = OccupancySnapshot(
            size=size,
            sequence=self._sequence,
            observed_at=self._clock.now(),
            source_url=url,
        )
        self._latest = snapshot

        if snapshot.is_empty:
            logger.debug("Occupancy #%d: empty (slot free)", snapshot.sequence)
        else:
            logger.debug("Occupancy #%d: %d in flight", snapshot.sequence, size)

        self._publish(snapshot)
        return snapshot

    def _publish(self, snapshot: OccupancySnapshot) -> None:
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.error("Snapshot subscriber failed: %s", e)

    # -------------------------------------------------------------------------
    # Callbacks & Observability
    # -------------------------------------------------------------------------
    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register a callback for every new snapshot.

        Args:
            callback: Function receiving each published snapshot

        Returns:
            Function that removes the subscription when called
        """
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    @property
    def latest(self) -> OccupancySnapshot | None:
        """Most recent snapshot (None if none observed yet)."""
        return self._latest

    @property
    def sequence(self) -> int:
        """Sequence number of the most recent snapshot (0 if none)."""
        return self._sequence

    def to_dict(self) -> dict[str, Any]:
        """Export current state as dictionary (for logging/status)."""
        latest = self._latest
        return {
            "sequence": self._sequence,
            "ignored": self._ignored,
            "size": latest.size if latest else None,
            "is_empty": latest.is_empty if latest else None,
            "observed_at": latest.observed_at.isoformat() if latest else None,
        }
