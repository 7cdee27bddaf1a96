# wl_platform/orchestrator/_retry.py
# Bounded exponential backoff for service calls.
from __future__ import annotations

import random
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

__all__ = ["RetryPolicy", "Attempt", "attempt"]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_max: float = 30.0
    jitter: float = 0.25
    rng: Callable[[], float] = field(default=random.random, repr=False, compare=False)
    sleep: Callable[[float], None] | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            object.__setattr__(self, "max_attempts", 1)

    @classmethod
    def from_cfg(cls, cfg: Mapping[str, Any], **kw: Any) -> RetryPolicy:
        d = dict(cfg.get("dispatch") or {})
        return cls(
            max_attempts=int(d.get("max_attempts") or 3),
            backoff_base=float(d.get("backoff_base", 1.0)),
            backoff_max=float(d.get("backoff_max", 30.0)),
            jitter=float(d.get("jitter", 0.25)),
            **kw,
        )

    def delay(self, attempts_made: int, *, retry_after: float | None = None) -> float:
        """Seconds to wait before the next attempt; a server hint replaces the exponential step."""
        if retry_after is not None and retry_after >= 0:
            return min(float(retry_after), self.backoff_max)
        step = self.backoff_base * (2 ** max(0, attempts_made - 1))
        if self.jitter > 0:
            step *= 1.0 + self.jitter * self.rng()
        return max(0.0, min(step, self.backoff_max))

    def pause(self, seconds: float, stop: threading.Event | None = None) -> bool:
        """Wait before a retry. Returns True when the stop event ended the wait."""
        if self.sleep is not None:
            self.sleep(seconds)
            return bool(stop is not None and stop.is_set())
        if stop is not None:
            return stop.wait(seconds)
        time.sleep(seconds)
        return False


@dataclass(frozen=True)
class Attempt:
    number: int
    value: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def retryable(self) -> bool:
        return bool(getattr(self.error, "retryable", False))

    @property
    def status(self) -> int | None:
        return getattr(self.error, "status", None)

    @property
    def retry_after(self) -> float | None:
        return getattr(self.error, "retry_after", None)


def attempt(fn: Callable[[], Any], number: int) -> Attempt:
    try:
        return Attempt(number, value=fn())
    except Exception as e:
        return Attempt(number, error=e)
