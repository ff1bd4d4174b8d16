"""Replay recorded pipeline events through a :class:`StatsAggregator`."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

from .events import Event, EventBus
from .logging_utils import get_logger
from .stats import DEFAULT_TECHNOLOGY, Number, StatsAggregator

log = get_logger(__name__)

UNCAPPED_LEVEL = -1


@dataclass(slots=True)
class RecordedEvent:
    """One line of a recording.

    ``position`` and ``capping`` describe the player state at the time the
    event was captured and are applied before the event is dispatched.
    """

    event: Event
    data: dict[str, Any] = field(default_factory=dict)
    position: Optional[float] = None
    capping: Optional[int] = None


@dataclass(slots=True)
class ReplayContext:
    """Stand-in for the player: exposes position and level capping."""

    current_time: Number = 0.0
    auto_level_capping: Number = UNCAPPED_LEVEL


def _optional_number(raw: Any, name: str) -> Optional[float]:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"'{name}' must be a number, got {raw!r}")
    return raw


def parse_event_line(line: str) -> RecordedEvent:
    """Parse a single JSON encoded event."""

    try:
        payload = json.loads(line)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Event line must be a JSON object")
    name = payload.get("event")
    if not isinstance(name, str):
        raise ValueError("Event line is missing the 'event' name")
    event = Event.parse(name)
    data = payload.get("data")
    if data is None:
        data = {}
    elif not isinstance(data, dict):
        raise ValueError("'data' must be a JSON object")
    return RecordedEvent(
        event=event,
        data=data,
        position=_optional_number(payload.get("position"), "position"),
        capping=_optional_number(payload.get("capping"), "capping"),
    )


def load_events(path: Path) -> list[RecordedEvent]:
    """Load a JSON-lines recording, skipping lines that cannot be parsed."""

    log.debug("Loading recorded events from %s", path)
    events: list[RecordedEvent] = []
    with path.open("rb") as handle:
        for line_number, raw_line in enumerate(handle, start=1):
            try:
                line = raw_line.decode("utf8").strip()
                if not line or line.startswith("#"):
                    continue
                events.append(parse_event_line(line))
            except ValueError as exc:
                log.warning("Skipping line %d of %s: %s", line_number, path, exc)
    log.info("Loaded %d event(s) from %s", len(events), path)
    return events


class ReplaySession:
    """Own a bus, a replay context and an aggregator wired together."""

    def __init__(
        self,
        *,
        technology: str = DEFAULT_TECHNOLOGY,
        attach_position: bool = True,
    ) -> None:
        self.bus = EventBus()
        self.context = ReplayContext()
        self.aggregator = StatsAggregator(self.bus, self.context, technology=technology)
        if attach_position:
            self.aggregator.attach_playback_context(self.context)
        self.steps = 0

    def step(self, recorded: RecordedEvent) -> None:
        if recorded.position is not None:
            self.context.current_time = recorded.position
        if recorded.capping is not None:
            self.context.auto_level_capping = recorded.capping
        self.bus.emit(recorded.event, recorded.data)
        self.steps += 1

    def run(self, events: Iterable[RecordedEvent]) -> Optional[dict[str, Any]]:
        for recorded in events:
            self.step(recorded)
        log.debug("Replayed %d event(s)", self.steps)
        return self.snapshot()

    def snapshot(self) -> Optional[dict[str, Any]]:
        return self.aggregator.snapshot()

    def close(self) -> None:
        self.aggregator.dispose()


__all__ = [
    "UNCAPPED_LEVEL",
    "RecordedEvent",
    "ReplayContext",
    "ReplaySession",
    "load_events",
    "parse_event_line",
]
