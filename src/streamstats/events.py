"""Pipeline event names and a minimal publish/subscribe bus."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List

from .logging_utils import get_logger

log = get_logger(__name__)

EventHandler = Callable[["Event", Any], None]


class Event(str, Enum):
    """Lifecycle events emitted by an adaptive streaming pipeline."""

    MANIFEST_PARSED = "hlsManifestParsed"
    FRAG_CHANGED = "hlsFragChanged"
    FRAG_BUFFERED = "hlsFragBuffered"
    FRAG_LOAD_TIMEOUT = "hlsFragLoadTimeOut"
    FRAG_LOAD_ERROR = "hlsFragLoadError"
    FPS_DROP = "hlsFPSDrop"

    @classmethod
    def parse(cls, name: str) -> "Event":
        """Return the event matching a wire value or a member name."""

        candidate = name.strip()
        for member in cls:
            if candidate == member.value or candidate.upper() == member.name:
                return member
        raise ValueError(f"Unknown event: {name!r}")


class EventBus:
    """Dispatch events to handlers registered per event kind."""

    __slots__ = ("_listeners",)

    def __init__(self) -> None:
        self._listeners: Dict[Event, List[EventHandler]] = {}

    def on(self, event: Event, handler: EventHandler) -> None:
        """Subscribe *handler* to *event*; duplicate registrations are ignored."""

        handlers = self._listeners.setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event: Event, handler: EventHandler) -> None:
        """Remove *handler* from *event* if it is subscribed."""

        handlers = self._listeners.get(event)
        if not handlers or handler not in handlers:
            return
        handlers.remove(handler)
        if not handlers:
            del self._listeners[event]

    def emit(self, event: Event, data: Any = None) -> None:
        """Deliver *data* to every handler subscribed to *event*."""

        handlers = list(self._listeners.get(event, ()))
        if not handlers:
            log.debug("No listeners for %s", event.value)
            return
        for handler in handlers:
            handler(event, data)

    def listener_count(self, event: Event) -> int:
        return len(self._listeners.get(event, ()))


__all__ = ["Event", "EventBus", "EventHandler"]
