# _logging.py
# Structured app logger: coloured console lines plus an optional JSON-lines file sink.
from __future__ import annotations
import os, sys, datetime, json, threading
from typing import Any, Optional, TextIO, Mapping, Dict

RESET = "\033[0m"
DIM = "\033[90m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[33m"
BLUE = "\033[94m"

LEVELS = {"silent": 60, "error": 40, "warn": 30, "info": 20, "debug": 10}

def _env_debug() -> bool:
    return (os.getenv("WL_DEBUG") or "").strip().lower() in ("1", "true", "yes", "on")

def _tty(stream: TextIO) -> bool:
    if os.getenv("NO_COLOR") is not None:
        return False
    return bool(getattr(stream, "isatty", lambda: False)())

class Logger:
    def __init__(
        self,
        stream: TextIO = sys.stdout,
        level: str = "info",
        use_color: Optional[bool] = None,
        show_time: bool = True,
        time_fmt: str = "%Y-%m-%d %H:%M:%S",
        tag_color_map: Optional[dict[str, str]] = None,
        *,
        _context: Optional[Dict[str, Any]] = None,
        _name: Optional[str] = None,
        _json_stream: Optional[TextIO] = None,
        _lock: Optional[threading.Lock] = None,
        _root: Optional["Logger"] = None,
    ):
        # children share stream, level, colour and json sink with the root
        self._root = _root
        self._stream = stream
        self._level_no = LEVELS.get("debug" if _env_debug() else level, 20)
        self._use_color = _tty(stream) if use_color is None else use_color
        self.show_time = show_time
        self.time_fmt = time_fmt
        self.tag_color_map = tag_color_map or {
            "DEBUG": DIM,
            "INFO": BLUE,
            "WARN": YELLOW,
            "ERROR": RED,
            "SUCCESS": GREEN,
            "CYCLE": GREEN,
        }
        self._context: Dict[str, Any] = dict(_context or {})
        if _name:
            self._context.setdefault("module", _name)
        self._json_sink: Optional[TextIO] = _json_stream
        self._lock = _lock or threading.Lock()

    @property
    def root(self) -> "Logger":
        return self._root or self

    @property
    def stream(self) -> TextIO:
        return self.root._stream

    @stream.setter
    def stream(self, value: TextIO) -> None:
        self.root._stream = value

    @property
    def level_no(self) -> int:
        return self.root._level_no

    @level_no.setter
    def level_no(self, value: int) -> None:
        self.root._level_no = value

    @property
    def use_color(self) -> bool:
        return self.root._use_color

    @use_color.setter
    def use_color(self, value: bool) -> None:
        self.root._use_color = value

    @property
    def _json_stream(self) -> Optional[TextIO]:
        return self.root._json_sink

    # Configuration
    def set_level(self, level: str) -> None:
        self.level_no = LEVELS.get(str(level or "").lower(), self.level_no)

    def enable_color(self, on: bool = True) -> None:
        self.use_color = on

    def enable_json(self, file_path: str) -> None:
        self.root._json_sink = open(file_path, "a", encoding="utf-8")

    def set_stream(self, stream: TextIO) -> None:
        self.stream = stream

    # Context
    def bind(self, **ctx: Any) -> "Logger":
        new_ctx = dict(self._context); new_ctx.update(ctx)
        return Logger(
            stream=self.stream,
            use_color=self.use_color,
            show_time=self.show_time,
            time_fmt=self.time_fmt,
            tag_color_map=dict(self.tag_color_map),
            _context=new_ctx,
            _name=new_ctx.get("module"),
            _lock=self._lock,
            _root=self.root,
        )

    def child(self, name: str) -> "Logger":
        return self.bind(module=name)

    @property
    def level_name(self) -> str:
        for k, v in LEVELS.items():
            if v == self.level_no:
                return k
        return "info"

    def enabled_for(self, severity: str) -> bool:
        return self.level_no <= LEVELS.get(severity, LEVELS["info"])

    # Formatting
    def _fmt_text(self, display_level: str, msg: str, extra: Optional[Mapping[str, Any]]) -> str:
        mod = str(self._context.get("module") or "").strip()
        col = self.tag_color_map.get(display_level.upper()) if self.use_color else None
        lvl = f"{col}{display_level}{RESET}" if col else display_level
        head = f"[{mod}]" if mod else ""
        line = f"{head} {lvl} {msg}".strip()
        if extra:
            tail = " ".join(f"{k}={v}" for k, v in extra.items() if v is not None)
            if tail:
                line = f"{line} {DIM}{tail}{RESET}" if self.use_color else f"{line} {tail}"
        if self.show_time:
            ts = datetime.datetime.now().strftime(self.time_fmt)
            prefix = f"{DIM}[{ts}]{RESET}" if self.use_color else f"[{ts}]"
            return f"{prefix} {line}"
        return line

    def _write_sinks(self, display_level: str, text: str, *, msg: str, extra: Optional[Mapping[str, Any]]) -> None:
        with self._lock:
            self.stream.write(text + "\n")
            self.stream.flush()
            if self._json_stream:
                ts = datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds")
                payload: Dict[str, Any] = {
                    "ts": ts.replace("+00:00", "Z"),
                    "level": display_level,
                    "msg": msg,
                    "ctx": self._context or {},
                }
                if extra:
                    payload["extra"] = dict(extra)
                self._json_stream.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
                self._json_stream.flush()

    def _emit(self, severity: str, display_level: str, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        if not self.enabled_for(severity):
            return
        msg = " ".join(str(p) for p in parts)
        self._write_sinks(display_level, self._fmt_text(display_level, msg, extra), msg=msg, extra=extra)

    # Public API
    def debug(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("debug", "DEBUG", *parts, extra=extra)

    def info(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("info", "INFO", *parts, extra=extra)

    def warn(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("warn", "WARN", *parts, extra=extra)

    warning = warn

    def error(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("error", "ERROR", *parts, extra=extra)

    def success(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("info", "SUCCESS", *parts, extra=extra)

    # logger("text", level="CYCLE", extra={...}); unknown labels log at info severity
    def __call__(
        self,
        message: str,
        *,
        level: str = "INFO",
        module: Optional[str] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        target = self.bind(module=module) if module else self
        label = (level or "INFO").upper()
        if label == "WARNING":
            label = "WARN"
        severity = _SEVERITY.get(label, "info")
        target._emit(severity, label, message, extra=extra)

# display label -> severity
_SEVERITY: Dict[str, str] = {"DEBUG": "debug", "INFO": "info", "SUCCESS": "info", "WARN": "warn", "ERROR": "error"}

# default instance
log = Logger()

def configure(*, level: Optional[str] = None, debug: bool = False, json_path: Optional[str] = None) -> Logger:
    """Apply runtime settings to the shared logger."""
    if debug or _env_debug():
        log.set_level("debug")
    elif level:
        log.set_level(level)
    if json_path:
        log.enable_json(json_path)
    return log

__all__ = ["Logger", "log", "configure", "LEVELS", "RESET", "DIM", "RED", "GREEN", "YELLOW", "BLUE"]
