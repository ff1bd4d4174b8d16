import json
from pathlib import Path
from typing import Any

import pytest

from streamstats import cli


def write_recording(path: Path) -> Path:
    lines = [
        {"event": "hlsManifestParsed", "data": {"levels": [{}, {}, {}]}},
        {"event": "hlsFragChanged", "data": {"frag": {"level": 2, "autoLevel": True}}, "position": 0.5},
        {
            "event": "hlsFragBuffered",
            "data": {"stats": {"trequest": 0, "tfirst": 100, "tbuffered": 200, "length": 12500}},
            "capping": 2,
        },
        {"event": "hlsFragLoadError"},
        {"event": "hlsFPSDrop", "data": {"totalDroppedFrames": 4}, "position": 1.75},
    ]
    path.write_text("\n".join(json.dumps(line) for line in lines), encoding="utf8")
    return path


def test_main_prints_json_snapshot(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    recording = write_recording(tmp_path / "session.jsonl")

    status = cli.main(
        [str(recording), "--json", "--config", str(tmp_path / "none.yaml"), "--technology", "cli"]
    )

    assert status == 0
    snapshot = json.loads(capsys.readouterr().out)
    assert snapshot["technology"] == "cli"
    assert snapshot["level_count"] == 3
    assert snapshot["level_start"] == 2
    assert snapshot["frag_avg_kbps"] == 1000
    assert snapshot["frag_load_error"] == 1
    assert snapshot["fps_total_dropped_frames"] == 4
    assert snapshot["last_pos"] == "1.750"


def test_main_honours_config_and_no_position(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    recording = write_recording(tmp_path / "session.jsonl")
    config_path = tmp_path / "config.yaml"
    config_path.write_text("technology: configured\n")

    status = cli.main([str(recording), "--json", "--no-position", "--config", str(config_path)])

    assert status == 0
    snapshot = json.loads(capsys.readouterr().out)
    assert snapshot["technology"] == "configured"
    assert "last_pos" not in snapshot


def test_main_prints_table_by_default(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    recording = write_recording(tmp_path / "session.jsonl")

    status = cli.main([str(recording), "--config", str(tmp_path / "none.yaml")])

    assert status == 0
    output = capsys.readouterr().out
    assert "Playback stats" in output
    assert "Load errors" in output


def test_main_reports_missing_recording(tmp_path: Path) -> None:
    status = cli.main([str(tmp_path / "missing.jsonl"), "--config", str(tmp_path / "none.yaml")])
    assert status == 1


def test_main_launches_monitor(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    recording = write_recording(tmp_path / "session.jsonl")
    created: list[Any] = []

    class DummyApp:
        def __init__(self, events: Any, **kwargs: Any) -> None:
            self.events = list(events)
            self.kwargs = kwargs
            self.ran = False
            created.append(self)

        def run(self) -> None:
            self.ran = True

    monkeypatch.setattr(cli, "StatsMonitorApp", DummyApp)

    status = cli.main(
        [str(recording), "--tui", "--interval", "0", "--config", str(tmp_path / "none.yaml")]
    )

    assert status == 0
    assert created and created[-1].ran
    assert len(created[-1].events) == 5
    assert created[-1].kwargs["interval"] == 0
    assert created[-1].kwargs["attach_position"] is True


def test_json_and_tui_are_mutually_exclusive(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        cli.parse_args([str(tmp_path / "x.jsonl"), "--json", "--tui"])


def test_json_output_is_strict_for_non_finite_values(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    recording = tmp_path / "zero-window.jsonl"
    lines = [
        {"event": "hlsManifestParsed", "data": {"levels": [{}]}},
        {
            "event": "hlsFragBuffered",
            "data": {"stats": {"trequest": 0, "tfirst": 100, "tbuffered": 100, "length": 500}},
        },
    ]
    recording.write_text("\n".join(json.dumps(line) for line in lines), encoding="utf8")

    status = cli.main([str(recording), "--json", "--config", str(tmp_path / "none.yaml")])

    assert status == 0

    def reject_constant(token: str) -> None:
        raise ValueError(f"non-standard JSON token {token}")

    snapshot = json.loads(capsys.readouterr().out, parse_constant=reject_constant)
    assert snapshot["frag_min_kbps"] == "inf"
    assert snapshot["frag_avg_kbps"] == "inf"
    assert snapshot["frag_min_latency"] == 0
