"""Incremental quality-of-experience statistics for a playback session."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sized
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Optional, Protocol, Union

from .events import Event, EventBus, EventHandler
from .logging_utils import get_logger

DEFAULT_TECHNOLOGY = "streamstats"

Number = Union[int, float]

_MAX_EXACT_INT = 2**53

log = get_logger(__name__)


class CappingSource(Protocol):
    """Exposes the level cap currently imposed on automatic level selection."""

    auto_level_capping: Number


class PlaybackContext(Protocol):
    """Exposes the live playback position in seconds."""

    current_time: Number


class SwitchMode(Enum):
    """Level selection mode of the previous fragment change."""

    NONE = "none"
    AUTO = "auto"
    MANUAL = "manual"


@dataclass(slots=True)
class StatsRecord:
    """Aggregate statistics for the current session.

    Every field except ``technology`` stays ``None`` until the first event
    that contributes to it has been observed.
    """

    technology: Optional[str] = None
    level_count: Optional[int] = None
    level_start: Optional[Number] = None

    frag_changed_auto: Optional[int] = None
    auto_level_min: Optional[Number] = None
    auto_level_max: Optional[Number] = None
    auto_level_switch: Optional[int] = None
    auto_level_avg: Optional[float] = None
    auto_level_last: Optional[Number] = None

    frag_changed_manual: Optional[int] = None
    manual_level_min: Optional[Number] = None
    manual_level_max: Optional[Number] = None
    manual_level_switch: Optional[int] = None
    manual_level_last: Optional[Number] = None

    frag_buffered: Optional[int] = None
    frag_buffered_bytes: Optional[Number] = None
    frag_min_latency: Optional[Number] = None
    frag_max_latency: Optional[Number] = None
    frag_avg_latency: Optional[Number] = None
    frag_min_kbps: Optional[Number] = None
    frag_max_kbps: Optional[Number] = None
    frag_avg_kbps: Optional[Number] = None
    auto_level_capping_min: Optional[Number] = None
    auto_level_capping_max: Optional[Number] = None
    auto_level_capping_last: Optional[Number] = None

    frag_load_timeout: Optional[int] = None
    frag_load_error: Optional[int] = None

    fps_drop_event: Optional[int] = None
    fps_total_dropped_frames: Optional[Number] = None

    def as_dict(self) -> dict[str, Any]:
        """Return the populated fields, in declaration order."""

        data: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is not None:
                data[item.name] = value
        return data


def _number(value: Any) -> Number:
    """Return *value* when numeric, otherwise NaN.

    Integers beyond float precision are converted to floats so that later
    arithmetic saturates to infinity instead of raising.
    """

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return math.nan
    if isinstance(value, int) and abs(value) > _MAX_EXACT_INT:
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    return value


def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def _min(current: Number, value: Number) -> Number:
    if _is_nan(current) or _is_nan(value):
        return math.nan
    return min(current, value)


def _max(current: Number, value: Number) -> Number:
    if _is_nan(current) or _is_nan(value):
        return math.nan
    return max(current, value)


def _round_half_up(value: Number) -> Number:
    """Round halves towards positive infinity; non-finite values pass through."""

    if isinstance(value, float) and not math.isfinite(value):
        return value
    floored = math.floor(value)
    if value - floored >= 0.5:
        return floored + 1
    return floored


def _kbps(length: Number, duration: Number) -> Number:
    try:
        return _round_half_up(8 * length / duration)
    except ZeroDivisionError:
        if length > 0:
            return math.inf
        if length < 0:
            return -math.inf
        return math.nan


def _field(data: Any, *names: str) -> Any:
    """Return the first of *names* present on a mapping or object payload."""

    if data is None:
        return None
    for name in names:
        if isinstance(data, Mapping):
            value = data.get(name)
        else:
            value = getattr(data, name, None)
        if value is not None:
            return value
    return None


class StatsAggregator:
    """Maintain a :class:`StatsRecord` from pipeline events.

    The aggregator subscribes to *bus* on construction and stays subscribed
    until :meth:`dispose`. Handlers never raise: events received before a
    manifest has been parsed are ignored and malformed numbers are carried
    into the record as NaN or infinity.
    """

    def __init__(
        self,
        bus: EventBus,
        controller: CappingSource,
        *,
        technology: str = DEFAULT_TECHNOLOGY,
    ) -> None:
        self._bus = bus
        self._controller = controller
        self._technology = technology
        self._playback: Optional[PlaybackContext] = None
        self._stats: Optional[StatsRecord] = None
        self._previous_mode = SwitchMode.NONE
        self._sum_auto_level: Number = 0
        self._sum_latency: Number = 0
        self._sum_kbps: Number = 0
        self._subscriptions: list[tuple[Event, EventHandler]] = [
            (Event.MANIFEST_PARSED, self._handle_manifest_parsed),
            (Event.FRAG_BUFFERED, self._handle_fragment_buffered),
            (Event.FRAG_CHANGED, self._handle_fragment_changed),
            (Event.FRAG_LOAD_ERROR, self._handle_fragment_load_error),
            (Event.FRAG_LOAD_TIMEOUT, self._handle_fragment_load_timeout),
            (Event.FPS_DROP, self._handle_fps_drop),
        ]
        for event, handler in self._subscriptions:
            bus.on(event, handler)

    @property
    def active(self) -> bool:
        """Return ``True`` once a session has started."""

        return self._stats is not None

    @property
    def technology(self) -> str:
        return self._technology

    def dispose(self) -> None:
        """Unsubscribe from the event bus."""

        for event, handler in self._subscriptions:
            self._bus.off(event, handler)
        if self._subscriptions:
            log.debug("Stats aggregator detached from event bus")
        self._subscriptions = []

    def attach_playback_context(self, context: PlaybackContext) -> None:
        self._playback = context

    def detach_playback_context(self) -> None:
        self._playback = None

    # ------------------------------------------------------------------
    # Typed handlers
    # ------------------------------------------------------------------
    def on_manifest_parsed(self, level_count: Optional[int]) -> None:
        """Start a new session, discarding all previous statistics."""

        self._stats = StatsRecord(technology=self._technology, level_count=level_count)
        self._previous_mode = SwitchMode.NONE
        self._sum_auto_level = 0
        self._sum_latency = 0
        self._sum_kbps = 0
        log.debug("Stats reset for new session with %s level(s)", level_count)

    def on_fragment_changed(self, level: Any, auto_level: bool) -> None:
        """Record that playback of a fragment at *level* has started.

        A switch is only counted when the previous fragment was selected in
        the same mode, so changing between auto and manual selection never
        increments either switch counter.
        """

        stats = self._stats
        if stats is None:
            return
        level = _number(level)
        if stats.level_start is None and not _is_nan(level):
            stats.level_start = level
        if auto_level:
            if stats.frag_changed_auto:
                stats.auto_level_min = _min(stats.auto_level_min, level)
                stats.auto_level_max = _max(stats.auto_level_max, level)
                stats.frag_changed_auto += 1
                if (
                    self._previous_mode is SwitchMode.AUTO
                    and level != stats.auto_level_last
                ):
                    stats.auto_level_switch += 1
            else:
                stats.auto_level_min = stats.auto_level_max = level
                stats.auto_level_switch = 0
                stats.frag_changed_auto = 1
                self._sum_auto_level = 0
            self._sum_auto_level += level
            stats.auto_level_avg = (
                _round_half_up(1000 * self._sum_auto_level / stats.frag_changed_auto)
                / 1000
            )
            stats.auto_level_last = level
            self._previous_mode = SwitchMode.AUTO
        else:
            if stats.frag_changed_manual:
                stats.manual_level_min = _min(stats.manual_level_min, level)
                stats.manual_level_max = _max(stats.manual_level_max, level)
                stats.frag_changed_manual += 1
                if (
                    self._previous_mode is SwitchMode.MANUAL
                    and level != stats.manual_level_last
                ):
                    stats.manual_level_switch += 1
            else:
                stats.manual_level_min = stats.manual_level_max = level
                stats.manual_level_switch = 0
                stats.frag_changed_manual = 1
            stats.manual_level_last = level
            self._previous_mode = SwitchMode.MANUAL

    def on_fragment_buffered(
        self,
        request_time: Any,
        first_byte_time: Any,
        buffered_time: Any,
        byte_length: Any,
        capping_level: Any,
    ) -> None:
        """Fold one buffered fragment into latency, bitrate and capping stats."""

        stats = self._stats
        if stats is None:
            return
        request_time = _number(request_time)
        first_byte_time = _number(first_byte_time)
        buffered_time = _number(buffered_time)
        byte_length = _number(byte_length)
        capping_level = _number(capping_level)

        latency = first_byte_time - request_time
        kbps = _kbps(byte_length, buffered_time - first_byte_time)
        if isinstance(kbps, float) and not math.isfinite(kbps):
            log.debug(
                "Non-finite bitrate sample (%s bytes buffered in %s ms)",
                byte_length,
                buffered_time - first_byte_time,
            )

        if stats.frag_buffered:
            stats.frag_min_latency = _min(stats.frag_min_latency, latency)
            stats.frag_max_latency = _max(stats.frag_max_latency, latency)
            stats.frag_min_kbps = _min(stats.frag_min_kbps, kbps)
            stats.frag_max_kbps = _max(stats.frag_max_kbps, kbps)
            stats.auto_level_capping_min = _min(stats.auto_level_capping_min, capping_level)
            stats.auto_level_capping_max = _max(stats.auto_level_capping_max, capping_level)
            stats.frag_buffered += 1
        else:
            stats.frag_min_latency = stats.frag_max_latency = latency
            stats.frag_min_kbps = stats.frag_max_kbps = kbps
            stats.auto_level_capping_min = stats.auto_level_capping_max = capping_level
            stats.frag_buffered = 1
            stats.frag_buffered_bytes = 0
            self._sum_latency = 0
            self._sum_kbps = 0
        self._sum_latency += latency
        self._sum_kbps += kbps
        stats.frag_buffered_bytes += byte_length
        stats.frag_avg_latency = _round_half_up(self._sum_latency / stats.frag_buffered)
        stats.frag_avg_kbps = _round_half_up(self._sum_kbps / stats.frag_buffered)
        stats.auto_level_capping_last = capping_level

    def on_fragment_load_timeout(self) -> None:
        stats = self._stats
        if stats is None:
            return
        if stats.frag_load_timeout is None:
            stats.frag_load_timeout = 1
        else:
            stats.frag_load_timeout += 1

    def on_fragment_load_error(self) -> None:
        stats = self._stats
        if stats is None:
            return
        if stats.frag_load_error is None:
            stats.frag_load_error = 1
        else:
            stats.frag_load_error += 1

    def on_fps_drop(self, total_dropped_frames: Any) -> None:
        """Count a frame-drop event and keep the pipeline's cumulative total."""

        stats = self._stats
        if stats is None:
            return
        if stats.fps_drop_event is None:
            stats.fps_drop_event = 1
        else:
            stats.fps_drop_event += 1
        stats.fps_total_dropped_frames = _number(total_dropped_frames)

    # ------------------------------------------------------------------
    # Bus adapters
    # ------------------------------------------------------------------
    def _handle_manifest_parsed(self, event: Event, data: Any) -> None:
        levels = _field(data, "levels")
        level_count = len(levels) if isinstance(levels, Sized) else None
        self.on_manifest_parsed(level_count)

    def _handle_fragment_changed(self, event: Event, data: Any) -> None:
        frag = _field(data, "frag")
        self.on_fragment_changed(
            _field(frag, "level"),
            bool(_field(frag, "autoLevel", "auto_level")),
        )

    def _handle_fragment_buffered(self, event: Event, data: Any) -> None:
        if self._stats is None:
            return
        timings = _field(data, "stats")
        self.on_fragment_buffered(
            _field(timings, "trequest"),
            _field(timings, "tfirst"),
            _field(timings, "tbuffered"),
            _field(timings, "length"),
            getattr(self._controller, "auto_level_capping", None),
        )

    def _handle_fragment_load_timeout(self, event: Event, data: Any) -> None:
        self.on_fragment_load_timeout()

    def _handle_fragment_load_error(self, event: Event, data: Any) -> None:
        self.on_fragment_load_error()

    def _handle_fps_drop(self, event: Event, data: Any) -> None:
        self.on_fps_drop(_field(data, "totalDroppedFrames", "total_dropped_frames"))

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    def snapshot(self) -> Optional[dict[str, Any]]:
        """Return a copy of the current statistics, or ``None`` before a session.

        When a playback context is attached the copy also carries
        ``last_pos``, the current position rendered with three decimals.
        """

        if self._stats is None:
            return None
        data = self._stats.as_dict()
        if self._playback is not None:
            position = _number(getattr(self._playback, "current_time", None))
            data["last_pos"] = f"{float(position):.3f}"
        return data


__all__ = [
    "DEFAULT_TECHNOLOGY",
    "CappingSource",
    "PlaybackContext",
    "StatsAggregator",
    "StatsRecord",
    "SwitchMode",
]
