"""Configuration management for the stats monitor."""
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .logging_utils import get_logger
from .stats import DEFAULT_TECHNOLOGY

CONFIG_PATH = Path.home() / ".config" / "streamstats" / "config.yaml"
DEFAULT_REFRESH_INTERVAL = 1.0

log = get_logger(__name__)


@dataclass(slots=True)
class MonitorConfig:
    """Settings for replaying and displaying playback statistics."""

    technology: str = DEFAULT_TECHNOLOGY
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    attach_position: bool = True
    log_level: Optional[str] = None
    log_file: Optional[str] = None


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _clean_scalar(value: str) -> str:
    value = value.strip()
    if value.startswith(("'", '"')) and value.endswith(("'", '"')):
        value = value[1:-1]
    return value


def _parse_bool(value: object, *, default: bool = True) -> bool:
    """Coerce *value* into a boolean flag."""

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "yes", "on", "1"}:
            return True
        if normalized in {"false", "no", "off", "0"}:
            return False
    return default


def _parse_interval(value: object) -> float:
    """Return the auto-step interval; zero selects manual stepping."""

    if value is None:
        return DEFAULT_REFRESH_INTERVAL
    try:
        interval = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        log.warning("Invalid refresh_interval %r; using default %.1f", value, DEFAULT_REFRESH_INTERVAL)
        return DEFAULT_REFRESH_INTERVAL
    if interval < 0 or not math.isfinite(interval):
        log.warning(
            "refresh_interval %.2f must be zero or positive; using default %.1f",
            interval,
            DEFAULT_REFRESH_INTERVAL,
        )
        return DEFAULT_REFRESH_INTERVAL
    return interval


def _optional_text(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_config(raw: str) -> dict[str, object]:
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        pass
    else:
        return data if isinstance(data, dict) else {}

    result: dict[str, object] = {}
    for line in raw.splitlines():
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        key, separator, value = line.partition(":")
        if not separator:
            log.warning("Ignoring malformed configuration line: %s", line.strip())
            continue
        result[key.strip()] = _clean_scalar(value)
    return result


def _dump_config(config: MonitorConfig) -> str:
    lines = [
        "technology: " + config.technology,
        f"refresh_interval: {config.refresh_interval}",
        "attach_position: " + ("true" if config.attach_position else "false"),
    ]
    if config.log_level:
        lines.append("log_level: " + config.log_level)
    if config.log_file:
        lines.append("log_file: " + config.log_file)
    lines.append("")
    return "\n".join(lines)


def load_config(path: Optional[Path] = None) -> MonitorConfig:
    """Load configuration from *path* or return the defaults."""

    config_path = path or CONFIG_PATH
    if not config_path.exists():
        log.info("Configuration file missing at %s; using defaults", config_path)
        return MonitorConfig()
    log.debug("Loading configuration from %s", config_path)
    data = _parse_config(config_path.read_text(encoding="utf8"))

    technology = _optional_text(data.get("technology"))
    if technology is None:
        if "technology" in data:
            log.warning("Empty technology label in %s; using default", config_path)
        technology = DEFAULT_TECHNOLOGY
    config = MonitorConfig(
        technology=technology,
        refresh_interval=_parse_interval(data.get("refresh_interval")),
        attach_position=_parse_bool(data.get("attach_position"), default=True),
        log_level=_optional_text(data.get("log_level")),
        log_file=_optional_text(data.get("log_file")),
    )
    log.info("Loaded configuration from %s", config_path)
    return config


def save_config(config: MonitorConfig, path: Optional[Path] = None) -> None:
    """Persist *config* to disk at *path*."""

    config_path = path or CONFIG_PATH
    _ensure_parent(config_path)
    config_path.write_text(_dump_config(config), encoding="utf8")
    log.info("Configuration saved to %s", config_path)


__all__ = [
    "CONFIG_PATH",
    "DEFAULT_REFRESH_INTERVAL",
    "MonitorConfig",
    "load_config",
    "save_config",
]
