"""Occupancy signal capture.

This module infers remote queue occupancy from HTTP traffic:

Components:
- SignalObserver: Passive capture of occupancy responses
- PollTrigger: Interval probing when organic traffic is absent
- OccupancySnapshot: Sequenced occupancy observation
"""

from .observer import SignalObserver, url_contains
from .poller import PollTrigger
from .schemas import OccupancySnapshot, parse_occupancy

__all__ = [
    "OccupancySnapshot",
    "PollTrigger",
    "SignalObserver",
    "parse_occupancy",
    "url_contains",
]
