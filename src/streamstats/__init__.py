"""Playback quality-of-experience statistics for adaptive streaming pipelines."""

from .events import Event, EventBus
from .stats import StatsAggregator, StatsRecord, SwitchMode

__version__ = "0.1.0"

__all__ = [
    "Event",
    "EventBus",
    "StatsAggregator",
    "StatsRecord",
    "SwitchMode",
    "__version__",
]
