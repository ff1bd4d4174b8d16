"""Textual application that steps through a recording and shows live stats."""
from __future__ import annotations

from typing import Any, Optional, Sequence

try:
    from textual.app import App, ComposeResult
    from textual.binding import Binding
    from textual.reactive import reactive
    from textual.timer import Timer
    from textual.widgets import Footer, Header, Static
except ModuleNotFoundError as exc:  # pragma: no cover - dependency guard
    raise ModuleNotFoundError(
        "The 'textual' package is required for the stats monitor. "
        "Install dependencies with 'pip install -e .[dev]' or 'pip install streamstats'."
    ) from exc

from .logging_utils import get_logger
from .render import snapshot_lines
from .replay import RecordedEvent, ReplaySession
from .stats import DEFAULT_TECHNOLOGY

log = get_logger(__name__)


class StatsPanel(Static):
    """Render the latest statistics snapshot."""

    snapshot: reactive[Optional[dict[str, Any]]] = reactive(None, always_update=True)

    def on_mount(self) -> None:
        self._refresh_view()

    def watch_snapshot(self, _: Optional[dict[str, Any]]) -> None:
        self._refresh_view()

    def _refresh_view(self) -> None:
        self.update("\n".join(snapshot_lines(self.snapshot)))


class StatsMonitorApp(App[None]):
    """Replay recorded events one at a time, or on a timer."""

    TITLE = "streamstats"

    BINDINGS = [
        Binding("n", "step", "Next event"),
        Binding("r", "restart", "Restart"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        recording: Sequence[RecordedEvent],
        *,
        technology: str = DEFAULT_TECHNOLOGY,
        attach_position: bool = True,
        interval: float = 0.0,
    ) -> None:
        super().__init__()
        self._recording = list(recording)
        self._technology = technology
        self._attach_position = attach_position
        self._step_interval = interval
        self._step_timer: Optional[Timer] = None
        self._next_index = 0
        self._status = ""
        self._replay = self._new_replay()

    @property
    def replay(self) -> ReplaySession:
        return self._replay

    @property
    def dispatched(self) -> int:
        """Number of recorded events dispatched so far."""

        return self._next_index

    @property
    def status(self) -> str:
        """Progress line shown below the stats panel."""

        return self._status

    @property
    def at_end(self) -> bool:
        return self._next_index >= len(self._recording)

    def _new_replay(self) -> ReplaySession:
        return ReplaySession(
            technology=self._technology,
            attach_position=self._attach_position,
        )

    def compose(self) -> ComposeResult:
        yield Header()
        yield StatsPanel(id="stats-panel")
        yield Static("", id="progress")
        yield Footer()

    def on_mount(self) -> None:
        self._refresh_view()
        if self._step_interval > 0:
            self._step_timer = self.set_interval(self._step_interval, self.action_step)

    def on_unmount(self) -> None:
        self._replay.close()

    def action_step(self) -> None:
        if self.at_end:
            if self._step_timer is not None:
                self._step_timer.pause()
            return
        recorded = self._recording[self._next_index]
        self._replay.step(recorded)
        self._next_index += 1
        log.debug(
            "Dispatched %s (%d/%d)",
            recorded.event.value,
            self._next_index,
            len(self._recording),
        )
        self._refresh_view()

    def action_restart(self) -> None:
        self._replay.close()
        self._replay = self._new_replay()
        self._next_index = 0
        log.info("Restarted replay of %d event(s)", len(self._recording))
        self._refresh_view()
        if self._step_timer is not None:
            self._step_timer.resume()

    def _refresh_view(self) -> None:
        self.query_one(StatsPanel).snapshot = self._replay.snapshot()
        total = len(self._recording)
        if self.at_end:
            self._status = f"event {self._next_index}/{total} • end of recording"
        else:
            self._status = f"event {self._next_index}/{total}"
        self.query_one("#progress", Static).update(self._status)


__all__ = ["StatsMonitorApp", "StatsPanel"]
