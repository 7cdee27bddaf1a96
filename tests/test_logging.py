# Watchlistarr test scripts
from __future__ import annotations

import io
import json

from _logging import Logger
from providers.sync import _log


def test_children_follow_root_level_and_stream() -> None:
    root = Logger(stream=io.StringIO(), use_color=False, show_time=False)
    child = root.child("SYNC")

    child.debug("hidden")
    root.set_level("debug")
    out = io.StringIO()
    root.set_stream(out)
    child.debug("shown", extra={"items": 3, "skip": None})

    assert out.getvalue() == "[SYNC] DEBUG shown items=3\n"


def test_custom_label_and_silent_level() -> None:
    out = io.StringIO()
    lg = Logger(stream=out, use_color=False, show_time=False)
    lg("cycle abc completed", level="CYCLE")
    lg.set_level("silent")
    lg.error("not written")
    assert out.getvalue() == "CYCLE cycle abc completed\n"


def test_json_sink_is_shared(tmp_path) -> None:
    root = Logger(stream=io.StringIO(), use_color=False)
    path = tmp_path / "log.jsonl"
    root.enable_json(str(path))
    root.child("MAIN").warn("careful", extra={"n": 1})
    root._json_sink.close()

    row = json.loads(path.read_text(encoding="utf-8").splitlines()[0])
    assert row["level"] == "WARN"
    assert row["ctx"] == {"module": "MAIN"}
    assert row["extra"] == {"n": 1}


def test_record_lines_kv_and_json(quiet_logs, monkeypatch) -> None:
    _log.log("radarr", "Dispatch", "info", "added", title="Fight Club", ids={"tmdb": "550"}, error=None)
    assert quiet_logs.getvalue() == '[RADARR:dispatch] INFO added ids=tmdb:550 title="Fight Club"\n'

    quiet_logs.truncate(0)
    quiet_logs.seek(0)
    monkeypatch.setenv("WL_LOG_FORMAT", "json")
    _log.log("SONARR", "tags", "warn", "tagging failed", tag="plex")
    row = json.loads(quiet_logs.getvalue())
    assert (row["provider"], row["feature"], row["level"], row["tag"]) == ("SONARR", "tags", "WARN", "plex")


def test_record_level_gate(quiet_logs, monkeypatch) -> None:
    _log.log("PLEX", "watchlist", "debug", "feed parsed")
    assert quiet_logs.getvalue() == ""
    monkeypatch.setenv("WL_PLEX_LOG_LEVEL", "debug")
    _log.log("PLEX", "watchlist", "debug", "feed parsed")
    assert "feed parsed" in quiet_logs.getvalue()
