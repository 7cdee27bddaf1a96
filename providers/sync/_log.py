# /providers/sync/_log.py
# Watchlistarr - per-record diagnostics (kv or json lines)
from __future__ import annotations

import json
import os
import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, TextIO

_LEVELS: dict[str, int] = {
    "off": 99,
    "error": 40,
    "warn": 30,
    "warning": 30,
    "info": 20,
    "debug": 10,
}

RESET = "\033[0m"
DIM = "\033[90m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[33m"
BLUE = "\033[94m"

_LEVEL_COLOR: dict[str, str] = {
    "ERROR": RED,
    "WARN": YELLOW,
    "WARNING": YELLOW,
    "INFO": BLUE,
    "DEBUG": DIM,
    "SUCCESS": GREEN,
}

_SINK: TextIO | None = None


def set_sink(stream: TextIO | None) -> None:
    """Redirect record lines (None restores stdout)."""
    global _SINK
    _SINK = stream


def _env_bool(name: str) -> bool:
    v = (os.getenv(name) or "").strip().lower()
    return v in ("1", "true", "yes", "on")


def _use_color(fmt: str) -> bool:
    if fmt == "json" or os.getenv("NO_COLOR") is not None:
        return False
    mode = (os.getenv("WL_LOG_COLOR") or "auto").strip().lower()
    if mode in ("0", "false", "no", "off"):
        return False
    if mode in ("1", "true", "yes", "on"):
        return True
    return bool(getattr(_SINK or sys.stdout, "isatty", lambda: False)())


def _c(text: str, color: str, *, on: bool) -> str:
    if not on or not color:
        return text
    return f"{color}{text}{RESET}"


def _level_num(level: str) -> int:
    return _LEVELS.get(str(level or "info").strip().lower(), 20)


def _env_level(provider: str) -> int:
    p = str(provider).strip().upper()
    v = os.getenv(f"WL_{p}_LOG_LEVEL") or os.getenv("WL_LOG_LEVEL") or ""
    if v.strip():
        return _level_num(v)
    if _env_bool("WL_DEBUG") or _env_bool(f"WL_{p}_DEBUG"):
        return _level_num("debug")
    return _level_num("info")


def _one_line(s: Any) -> str:
    t = str(s if s is not None else "")
    return " ".join(t.replace("\n", " ").replace("\r", " ").split())


def _kv(fields: Mapping[str, Any]) -> str:
    parts: list[str] = []
    for k in sorted(fields.keys()):
        v = fields[k]
        if v is None:
            continue
        if isinstance(v, Mapping):
            vs = ",".join(f"{ik}:{iv}" for ik, iv in sorted(v.items()) if iv)
        else:
            vs = _one_line(v)
        if vs == "":
            continue
        if any(ch.isspace() for ch in vs) or any(ch in vs for ch in ['"', "="]):
            vs = json.dumps(vs, ensure_ascii=False)
        parts.append(f"{k}={vs}")
    return " ".join(parts)


def item_fields(item: Any) -> dict[str, Any]:
    """Identity fields for a watchlist item: enough to find it in Plex or an Arr."""
    kind = getattr(item, "kind", None)
    return {
        "title": getattr(item, "title", None),
        "year": getattr(item, "year", None),
        "kind": getattr(kind, "value", kind),
        "ids": dict(getattr(item, "external_ids", None) or {}),
        "rating_key": getattr(item, "rating_key", None),
    }


def log(provider: str, feature: str, level: str, msg: str, **fields: Any) -> None:
    provider_s = str(provider).strip().upper()
    feature_s = str(feature).strip().lower()
    level_s = str(level).strip().upper()

    if _level_num(level_s) < _env_level(provider_s):
        return

    fmt = (os.getenv("WL_LOG_FORMAT") or "kv").strip().lower()
    out = _SINK or sys.stdout

    if fmt == "json":
        ts = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
        payload = {"ts": ts, "provider": provider_s, "feature": feature_s, "level": level_s, "msg": _one_line(msg)}
        payload.update({k: v for k, v in fields.items() if v is not None})
        out.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
        out.flush()
        return

    use_color = _use_color(fmt)
    head = _c(f"[{provider_s}:{feature_s}]", DIM, on=use_color)
    lvl = _c(level_s, _LEVEL_COLOR.get(level_s, ""), on=use_color)
    line = f"{head} {lvl} {_one_line(msg)}"
    tail = _kv(fields)
    if tail:
        line = f"{line} {tail}"
    out.write(line + "\n")
    out.flush()


def log_item(provider: str, feature: str, level: str, msg: str, item: Any, **fields: Any) -> None:
    log(provider, feature, level, msg, **item_fields(item), **fields)
