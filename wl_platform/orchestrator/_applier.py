# wl_platform/orchestrator/_applier.py
# Adds routed items to their service with retries, pacing and tags.
from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable

from providers.sync._log import log_item

from ._retry import Attempt, RetryPolicy, attempt
from ._types import DispatchOutcome, ItemRecord, ServiceClient, WatchlistItem


#--- Per-role add settings ----------------------------------------------------
@dataclass(frozen=True)
class DispatchSettings:
    profile: str | None = None
    monitoring: str = "all"
    tags: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_section(cls, sec: Mapping[str, Any], *, monitoring: str) -> DispatchSettings:
        tags = sec.get("tags") or ()
        if isinstance(tags, str):
            tags = tags.split(",")
        return cls(
            profile=(str(sec.get("quality_profile") or "").strip() or None),
            monitoring=(str(sec.get("monitoring") or "").strip() or monitoring),
            tags=tuple(t.strip() for t in tags if str(t).strip()),
        )


def _noop(event: str, **data: Any) -> None:
    return None


#--- Dispatcher -----------------------------------------------------------------
class Dispatcher:
    """Adds items to one service, retrying transient failures and tagging what was added."""

    def __init__(
        self,
        client: ServiceClient,
        policy: RetryPolicy,
        settings: DispatchSettings,
        *,
        stop: threading.Event | None = None,
        emit: Callable[..., Any] | None = None,
        concurrency: int = 1,
        pace_ms: int = 0,
    ):
        self.client = client
        self.policy = policy
        self.settings = settings
        self.stop = stop or threading.Event()
        self.emit = emit or _noop
        self.concurrency = max(1, int(concurrency or 1))
        self.pace_ms = max(0, int(pace_ms or 0))

    @property
    def role(self) -> str:
        return self.client.role

    def _add(self, item: WatchlistItem) -> Any:
        return self.client.add_item(
            item,
            profile=self.settings.profile,
            monitoring=self.settings.monitoring,
            tags=self.settings.tags,
        )

    def _record(self, item: WatchlistItem, outcome: DispatchOutcome, last: Attempt | None, n: int) -> ItemRecord:
        err = last.error if last is not None else None
        return ItemRecord(
            item=item,
            role=self.role,
            outcome=outcome,
            attempts=n,
            error=str(err) if err is not None else None,
            status=last.status if last is not None else None,
        )

    def dispatch(self, item: WatchlistItem) -> ItemRecord:
        n = 0
        while True:
            n += 1
            res = attempt(lambda: self._add(item), n)
            if res.ok:
                self.emit("dispatch:added", role=self.role, title=item.title, attempts=n)
                self.apply_tags(item, getattr(res.value, "remote_id", None))
                return self._record(item, DispatchOutcome.ADDED, None, n)

            if getattr(res.error, "already_exists", False):
                return self._record(item, DispatchOutcome.SKIPPED_DUPLICATE, res, n)
            if not res.retryable:
                return self._record(item, DispatchOutcome.FAILED_PERMANENT, res, n)
            if n >= self.policy.max_attempts:
                return self._record(item, DispatchOutcome.FAILED_RETRYABLE, res, n)

            wait = self.policy.delay(n, retry_after=res.retry_after)
            self.emit("dispatch:retry", role=self.role, title=item.title, attempt=n, delay=round(wait, 3), status=res.status)
            if self.policy.pause(wait, self.stop):
                return self._record(item, DispatchOutcome.FAILED_RETRYABLE, res, n)

    def apply_tags(self, item: WatchlistItem, remote_id: int | None) -> None:
        if not self.settings.tags:
            return
        if remote_id is None:
            log_item(self.role, "tags", "warn", "add returned no id; tags not applied", item)
            return
        for name in self.settings.tags:
            try:
                tag_id = self.client.ensure_tag(name)
                self.client.apply_tag(remote_id, tag_id)
            except Exception as e:
                log_item(self.role, "tags", "warn", "tagging failed", item, tag=name, error=str(e), status=getattr(e, "status", None))

    def _pace(self) -> None:
        if self.pace_ms:
            self.stop.wait(self.pace_ms / 1000.0)

    def _one(self, item: WatchlistItem) -> ItemRecord:
        if self.stop.is_set():
            return ItemRecord(item=item, role=self.role, outcome=DispatchOutcome.ABANDONED)
        rec = self.dispatch(item)
        self._pace()
        return rec

    def dispatch_all(self, items: Sequence[WatchlistItem]) -> list[ItemRecord]:
        """One record per item, in input order; items not started before stop are ABANDONED."""
        self.emit("apply:add:start", role=self.role, count=len(items))
        if self.concurrency == 1 or len(items) <= 1:
            records = [self._one(it) for it in items]
        else:
            with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix=f"wl-{self.role.lower()}") as ex:
                records = list(ex.map(self._one, items))
        added = sum(1 for r in records if r.outcome is DispatchOutcome.ADDED)
        self.emit("apply:add:done", role=self.role, attempted=len(items), added=added)
        return records
