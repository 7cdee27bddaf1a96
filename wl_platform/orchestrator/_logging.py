# wl_platform/orchestrator/_logging.py
# Progress events emitted by the sync engine.
from __future__ import annotations

import json
from collections import deque
from typing import Any, Callable, Deque


class Emitter:
    """Progress events for one orchestrator: JSON lines to a callback plus a short in-memory tail."""

    def __init__(self, cb: Callable[[str], None] | None = None, *, debug: bool = False, keep: int = 200):
        self.cb = cb
        self.debug = debug
        self.recent: Deque[dict[str, Any]] = deque(maxlen=keep)

    def emit(self, event: str, **data: Any) -> None:
        payload = {"event": event}
        payload.update(data)
        self.recent.append(payload)
        if not self.cb:
            return
        try:
            self.cb(json.dumps(payload, separators=(",", ":"), default=str))
        except Exception:
            pass

    def info(self, line: str) -> None:
        if not self.cb:
            return
        try:
            self.cb(line)
        except Exception:
            pass

    def dbg(self, msg: str, **fields: Any) -> None:
        if not self.debug:
            return
        if fields:
            self.emit("debug", msg=msg, **fields)
        else:
            self.info(f"[DEBUG] {msg}")

    def events(self, prefix: str = "") -> list[dict[str, Any]]:
        return [e for e in self.recent if str(e.get("event", "")).startswith(prefix)]
