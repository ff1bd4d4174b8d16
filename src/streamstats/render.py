"""Human readable rendering of statistics snapshots."""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from rich.markup import escape
from rich.table import Table

EMPTY_VALUE = "–"
NO_SESSION = "No active session"


def _non_finite(value: Any) -> Optional[str]:
    if isinstance(value, float) and not math.isfinite(value):
        if math.isnan(value):
            return "nan"
        return "inf" if value > 0 else "-inf"
    return None


def format_kbps(value: Optional[float]) -> str:
    """Render a bitrate expressed in kbps."""

    if value is None:
        return EMPTY_VALUE
    special = _non_finite(value)
    if special is not None:
        return special
    if value >= 1_000:
        return f"{value / 1_000:.2f} Mbps"
    return f"{value:.0f} kbps"


def format_bytes(size: Optional[float]) -> str:
    """Return ``size`` formatted as a human-readable string."""

    if size is None:
        return EMPTY_VALUE
    special = _non_finite(size)
    if special is not None:
        return special
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    for unit in units:
        if value < 1024.0 or unit == units[-1]:
            if unit == "B":
                return f"{int(value)} {unit}"
            return f"{value:.1f} {unit}"
        value /= 1024.0
    return f"{value:.1f} PB"  # pragma: no cover - unreachable


def format_latency(value: Optional[float]) -> str:
    if value is None:
        return EMPTY_VALUE
    special = _non_finite(value)
    if special is not None:
        return special
    return f"{value:.0f} ms"


def json_safe(snapshot: Optional[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    """Return a copy of *snapshot* with non-finite numbers spelled as strings."""

    if snapshot is None:
        return None
    safe: dict[str, Any] = {}
    for key, value in snapshot.items():
        special = _non_finite(value)
        safe[key] = value if special is None else special
    return safe


def _plain(value: Any) -> str:
    if value is None:
        return EMPTY_VALUE
    special = _non_finite(value)
    if special is not None:
        return special
    return str(value)


def _min_max(snapshot: Mapping[str, Any], low: str, high: str, formatter=_plain) -> str:
    return f"{formatter(snapshot.get(low))} / {formatter(snapshot.get(high))}"


def snapshot_rows(snapshot: Optional[Mapping[str, Any]]) -> list[tuple[str, str]]:
    """Return ``(label, value)`` pairs for every populated group of fields."""

    if snapshot is None:
        return []
    rows: list[tuple[str, str]] = [
        ("Technology", _plain(snapshot.get("technology"))),
        ("Levels", _plain(snapshot.get("level_count"))),
    ]
    if "level_start" in snapshot:
        rows.append(("Start level", _plain(snapshot["level_start"])))
    if "last_pos" in snapshot:
        rows.append(("Position", f"{snapshot['last_pos']} s"))

    if "frag_changed_auto" in snapshot:
        rows.append(("Auto fragments", _plain(snapshot["frag_changed_auto"])))
        rows.append(
            ("Auto level min / max", _min_max(snapshot, "auto_level_min", "auto_level_max"))
        )
        rows.append(("Auto level avg", _plain(snapshot.get("auto_level_avg"))))
        rows.append(("Auto level last", _plain(snapshot.get("auto_level_last"))))
        rows.append(("Auto switches", _plain(snapshot.get("auto_level_switch"))))
    if "frag_changed_manual" in snapshot:
        rows.append(("Manual fragments", _plain(snapshot["frag_changed_manual"])))
        rows.append(
            (
                "Manual level min / max",
                _min_max(snapshot, "manual_level_min", "manual_level_max"),
            )
        )
        rows.append(("Manual level last", _plain(snapshot.get("manual_level_last"))))
        rows.append(("Manual switches", _plain(snapshot.get("manual_level_switch"))))

    if "frag_buffered" in snapshot:
        rows.append(("Buffered fragments", _plain(snapshot["frag_buffered"])))
        rows.append(("Buffered bytes", format_bytes(snapshot.get("frag_buffered_bytes"))))
        rows.append(
            (
                "Latency min / max",
                _min_max(snapshot, "frag_min_latency", "frag_max_latency", format_latency),
            )
        )
        rows.append(("Latency avg", format_latency(snapshot.get("frag_avg_latency"))))
        rows.append(
            (
                "Bitrate min / max",
                _min_max(snapshot, "frag_min_kbps", "frag_max_kbps", format_kbps),
            )
        )
        rows.append(("Bitrate avg", format_kbps(snapshot.get("frag_avg_kbps"))))
        rows.append(
            (
                "Capping min / max",
                _min_max(snapshot, "auto_level_capping_min", "auto_level_capping_max"),
            )
        )
        rows.append(("Capping last", _plain(snapshot.get("auto_level_capping_last"))))

    if "frag_load_timeout" in snapshot:
        rows.append(("Load timeouts", _plain(snapshot["frag_load_timeout"])))
    if "frag_load_error" in snapshot:
        rows.append(("Load errors", _plain(snapshot["frag_load_error"])))
    if "fps_drop_event" in snapshot:
        rows.append(("Frame drop events", _plain(snapshot["fps_drop_event"])))
        rows.append(
            ("Dropped frames", _plain(snapshot.get("fps_total_dropped_frames")))
        )
    return rows


def snapshot_table(snapshot: Optional[Mapping[str, Any]], *, title: str = "Playback stats") -> Table:
    """Build a two column rich table for *snapshot*."""

    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    rows = snapshot_rows(snapshot)
    if not rows:
        table.add_row(NO_SESSION, EMPTY_VALUE)
        return table
    for label, value in rows:
        table.add_row(escape(label), escape(value))
    return table


def snapshot_lines(snapshot: Optional[Mapping[str, Any]]) -> list[str]:
    """Return rich markup lines describing *snapshot*."""

    rows = snapshot_rows(snapshot)
    if not rows:
        return [f"[dim]{NO_SESSION}[/dim]"]
    return [f"[b]{escape(label)}:[/b] {escape(value)}" for label, value in rows]


__all__ = [
    "format_bytes",
    "format_kbps",
    "format_latency",
    "json_safe",
    "snapshot_lines",
    "snapshot_rows",
    "snapshot_table",
]
