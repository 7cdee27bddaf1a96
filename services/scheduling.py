# services/scheduling.py
# Watchlistarr - fixed-interval scheduler for sync cycles
from __future__ import annotations

import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from wl_platform.orchestrator._types import CycleStatus, SyncCycleResult


class CycleRunner(Protocol):
    def run_cycle(self, stop: threading.Event | None = None) -> SyncCycleResult: ...


def _now_ts() -> int:
    return int(time.time())


def _iso(ts: float | int) -> str:
    if not ts:
        return ""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class SyncScheduler:
    """Runs one cycle on every `interval` boundary; at most one cycle is ever active.

    Ticks whose slot passes while a cycle is still running are dropped, not queued.
    """

    def __init__(
        self,
        runner: CycleRunner,
        *,
        interval: float = 15.0,
        stop: threading.Event | None = None,
        log_fn: Callable[..., Any] | None = None,
    ) -> None:
        self.runner = runner
        self.interval = max(1.0, float(interval))
        self.log_fn = log_fn

        self._thread: threading.Thread | None = None
        self._manual: threading.Thread | None = None
        self._stop = stop or getattr(getattr(runner, "ctx", None), "stop", None) or threading.Event()
        self._poke = threading.Event()
        self._lock = threading.Lock()
        self._cycle_lock = threading.Lock()

        self._last: SyncCycleResult | None = None
        self._status: dict[str, Any] = {
            "state": CycleStatus.IDLE.value,
            "running": False,
            "interval_seconds": self.interval,
            "cycles_run": 0,
            "ticks_dropped": 0,
            "last_tick": 0,
            "last_run_at": 0,
            "last_run_ok": None,
            "last_error": "",
            "next_run_at": 0,
            "current_cycle_source": "",
        }

    def _log(self, msg: str, *, level: str = "INFO") -> None:
        if not self.log_fn:
            return
        self.log_fn(msg, level=level)

    # ── state ──

    @property
    def stop_event(self) -> threading.Event:
        return self._stop

    def busy(self) -> bool:
        return self._cycle_lock.locked()

    def last_result(self) -> SyncCycleResult | None:
        with self._lock:
            return self._last

    def status(self) -> dict[str, Any]:
        with self._lock:
            st = dict(self._status)
            last = self._last
        st["thread_alive"] = bool(self._thread and self._thread.is_alive())
        st["next_run_iso"] = _iso(st["next_run_at"])
        st["last_run_iso"] = _iso(st["last_run_at"])
        st["last"] = last.summary() if last is not None else None
        return st

    # ── cycles ──

    def _drop(self, source: str) -> None:
        with self._lock:
            self._status["ticks_dropped"] += 1
        self._log(f"{source}: cycle already running; tick dropped", level="DEBUG")

    def _run_locked(self, source: str) -> SyncCycleResult:
        """Run one cycle; the caller holds the single-flight lock and this releases it."""
        try:
            with self._lock:
                self._status.update(state=CycleStatus.RUNNING.value, current_cycle_source=source)
            try:
                result = self.runner.run_cycle(self._stop)
            except Exception as e:
                result = SyncCycleResult(cycle_id=uuid.uuid4().hex[:12], error=f"{type(e).__name__}: {e}")
                result.finish(CycleStatus.ABORTED)
                self._log(f"cycle aborted by unexpected error: {e}", level="ERROR")
            with self._lock:
                self._last = result
                self._status.update(
                    state=result.status.value,
                    cycles_run=self._status["cycles_run"] + 1,
                    last_run_at=_now_ts(),
                    last_run_ok=result.status is CycleStatus.COMPLETED and not result.error,
                    last_error=result.error or result.fetch_error or "",
                    current_cycle_source="",
                )
            return result
        finally:
            self._cycle_lock.release()

    def run_once(self, *, source: str = "manual") -> SyncCycleResult | None:
        """Run a cycle now on this thread; None when another cycle is active."""
        if not self._cycle_lock.acquire(blocking=False):
            self._drop(source)
            return None
        return self._run_locked(source)

    def trigger(self) -> bool:
        """Start a cycle on a worker thread; False when one is already running."""
        if self._stop.is_set() or not self._cycle_lock.acquire(blocking=False):
            self._drop("manual")
            return False
        t = threading.Thread(target=self._run_locked, args=("manual",), name="SyncCycle-manual", daemon=True)
        self._manual = t
        t.start()
        return True

    # ── thread ──

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._poke.clear()
        self._thread = threading.Thread(target=self._loop, name="SyncScheduler", daemon=True)
        self._thread.start()
        self._log(f"scheduler started (every {self.interval:g}s)", level="INFO")

    def stop(self, timeout: float = 30.0) -> None:
        """Stop scheduling and ask the active cycle to wind down at its next checkpoint."""
        self._stop.set()
        self._poke.set()
        for t in (self._thread, self._manual):
            if t and t.is_alive() and t is not threading.current_thread():
                t.join(timeout=timeout)
        with self._lock:
            self._status["running"] = False
        self._log("scheduler stopped", level="INFO")

    def _loop(self) -> None:
        with self._lock:
            self._status["running"] = True
        next_at = time.monotonic()
        try:
            while not self._stop.is_set():
                with self._lock:
                    self._status["last_tick"] = _now_ts()
                self.run_once(source="interval")
                if self._stop.is_set():
                    break
                next_at += self.interval
                now = time.monotonic()
                while next_at <= now:
                    self._drop("interval")
                    next_at += self.interval
                wait = next_at - now
                with self._lock:
                    self._status["next_run_at"] = _now_ts() + int(round(wait))
                self._sleep_or_poke(wait)
        finally:
            with self._lock:
                self._status["running"] = False
                self._status["next_run_at"] = 0

    def _sleep_or_poke(self, seconds: float) -> None:
        if seconds <= 0:
            return
        self._poke.wait(timeout=seconds)
        self._poke.clear()
