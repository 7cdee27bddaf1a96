# wl_platform/orchestrator/facade.py
# one sync cycle: fetch, classify, check duplicates, dispatch.
from __future__ import annotations

import threading
import uuid
from collections import defaultdict
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from _logging import log as _app_log
from providers.sync._log import log_item

from ..id_map import KEY_PRIORITY, preferred_id_key
from ._applier import DispatchSettings, Dispatcher
from ._logging import Emitter
from ._providers import ROLE_SECTIONS, build_clients, build_feed
from ._retry import RetryPolicy
from ._snapshots import build_indexes
from ._types import (
    ROLE_FOR_KIND,
    CycleStatus,
    DispatchOutcome,
    FeedSource,
    ItemRecord,
    MediaKind,
    ServiceClient,
    SyncCycleResult,
    WatchlistItem,
)

__all__ = ["SyncContext", "Orchestrator"]

log = _app_log.child("SYNC")

_DEFAULT_MONITORING = {"SONARR": "all", "RADARR": "movieOnly"}

# outcomes that get a per-item record line
_QUIET = {DispatchOutcome.ADDED}


@dataclass
class SyncContext:
    feed: FeedSource
    clients: Mapping[str, ServiceClient]
    policy: RetryPolicy = field(default_factory=RetryPolicy)
    settings: Mapping[str, DispatchSettings] = field(default_factory=dict)
    emitter: Emitter = field(default_factory=Emitter)
    stop: threading.Event = field(default_factory=threading.Event)
    concurrency: int = 1
    pace_ms: int = 0

    @classmethod
    def from_config(
        cls,
        cfg: Mapping[str, Any],
        *,
        on_progress: Callable[[str], None] | None = None,
        feed: FeedSource | None = None,
        clients: Mapping[str, ServiceClient] | None = None,
        policy: RetryPolicy | None = None,
        stop: threading.Event | None = None,
    ) -> SyncContext:
        rt = dict(cfg.get("runtime") or {})
        d = dict(cfg.get("dispatch") or {})
        emitter = Emitter(on_progress, debug=bool(rt.get("debug", False)))
        settings = {
            role: DispatchSettings.from_section(cfg.get(section) or {}, monitoring=_DEFAULT_MONITORING[role])
            for section, role in ROLE_SECTIONS.items()
        }
        return cls(
            feed=feed if feed is not None else build_feed(cfg, emitter),
            clients=dict(clients) if clients is not None else build_clients(cfg, emitter),
            policy=policy or RetryPolicy.from_cfg(cfg),
            settings=settings,
            emitter=emitter,
            stop=stop or threading.Event(),
            concurrency=int(d.get("concurrency") or 1),
            pace_ms=int(d.get("pace_ms") or 0),
        )


def _identity(role: str, item: WatchlistItem) -> str:
    key = preferred_id_key(item.external_ids, KEY_PRIORITY)
    if key:
        return f"{role}|{key}"
    return f"{role}|title:{item.title.strip().lower()}|{item.year or ''}"


@dataclass
class Orchestrator:
    ctx: SyncContext

    def __post_init__(self) -> None:
        self.emit = self.ctx.emitter.emit
        self.dbg = self.ctx.emitter.dbg

    # records

    def _record(self, result: SyncCycleResult, rec: ItemRecord) -> None:
        result.add(rec)
        if rec.outcome in _QUIET:
            return
        level = "error" if rec.outcome.bucket == "failed" else "info"
        log_item(
            rec.role or "SYNC",
            "dispatch",
            level,
            rec.outcome.value,
            rec.item,
            attempts=rec.attempts or None,
            error=rec.error,
            status=rec.status,
            cycle=result.cycle_id,
        )

    def _abandon(self, result: SyncCycleResult, role: str, items: Sequence[WatchlistItem]) -> None:
        for it in items:
            self._record(result, ItemRecord(item=it, role=role, outcome=DispatchOutcome.ABANDONED))

    # phases

    def _route(self, result: SyncCycleResult, items: Sequence[WatchlistItem]) -> dict[str, list[WatchlistItem]]:
        routed: dict[str, list[WatchlistItem]] = defaultdict(list)
        seen: set[str] = set()
        for it in items:
            if it.kind is MediaKind.UNKNOWN or it.kind not in ROLE_FOR_KIND:
                self._record(result, ItemRecord(item=it, role=None, outcome=DispatchOutcome.SKIPPED_AMBIGUOUS))
                continue
            role = ROLE_FOR_KIND[it.kind]
            if role not in self.ctx.clients:
                self._record(result, ItemRecord(item=it, role=role, outcome=DispatchOutcome.SKIPPED_NO_SERVICE))
                continue
            ident = _identity(role, it)
            if ident in seen:
                self._record(
                    result,
                    ItemRecord(item=it, role=role, outcome=DispatchOutcome.SKIPPED_DUPLICATE, error="repeated in feed"),
                )
                continue
            seen.add(ident)
            routed[role].append(it)
        return dict(routed)

    def _filter_existing(
        self, result: SyncCycleResult, routed: Mapping[str, list[WatchlistItem]]
    ) -> dict[str, list[WatchlistItem]]:
        clients = {r: self.ctx.clients[r] for r, its in routed.items() if its}
        indexes, errors = build_indexes(clients, emit=self.emit)
        pending: dict[str, list[WatchlistItem]] = {}
        for role, its in routed.items():
            if role in errors:
                result.duplicate_check_errors[role] = str(errors[role])
                log.warn(f"{role} catalog unavailable; {len(its)} item(s) left for the next cycle", extra={"error": str(errors[role].cause)})
                for it in its:
                    self._record(
                        result,
                        ItemRecord(
                            item=it,
                            role=role,
                            outcome=DispatchOutcome.SKIPPED_UNCHECKED,
                            error=str(errors[role].cause),
                            status=errors[role].status,
                        ),
                    )
                continue
            idx = indexes[role]
            fresh: list[WatchlistItem] = []
            for it in its:
                if idx.contains(it):
                    self._record(result, ItemRecord(item=it, role=role, outcome=DispatchOutcome.SKIPPED_DUPLICATE))
                else:
                    fresh.append(it)
            pending[role] = fresh
        return pending

    def _dispatcher(self, role: str, stop: threading.Event) -> Dispatcher:
        return Dispatcher(
            self.ctx.clients[role],
            self.ctx.policy,
            self.ctx.settings.get(role) or DispatchSettings(monitoring=_DEFAULT_MONITORING.get(role, "all")),
            stop=stop,
            emit=self.emit,
            concurrency=self.ctx.concurrency,
            pace_ms=self.ctx.pace_ms,
        )

    def _dispatch(self, result: SyncCycleResult, pending: Mapping[str, list[WatchlistItem]], stop: threading.Event) -> None:
        work = {r: its for r, its in pending.items() if its}
        if not work:
            return
        with ThreadPoolExecutor(max_workers=len(work), thread_name_prefix="wl-dispatch") as ex:
            futs = {role: ex.submit(self._dispatcher(role, stop).dispatch_all, its) for role, its in work.items()}
            for role, fut in futs.items():
                for rec in fut.result():
                    self._record(result, rec)

    # cycle

    def run_cycle(self, stop: threading.Event | None = None) -> SyncCycleResult:
        stop = stop or self.ctx.stop
        result = SyncCycleResult(cycle_id=uuid.uuid4().hex[:12])
        self.emit("cycle:start", cycle_id=result.cycle_id)

        try:
            items = list(self.ctx.feed.fetch())
        except Exception as e:
            result.fetch_error = str(e)
            log.warn(f"watchlist fetch failed: {e}", extra={"status": getattr(e, "status", None)})
            return self._finish(result, CycleStatus.COMPLETED)

        self.dbg("feed fetched", items=len(items))
        if stop.is_set():
            return self._finish(result, CycleStatus.ABORTED)

        routed = self._route(result, items)
        pending = self._filter_existing(result, routed)

        if stop.is_set():
            for role, its in pending.items():
                self._abandon(result, role, its)
            return self._finish(result, CycleStatus.ABORTED)

        self._dispatch(result, pending, stop)
        aborted = any(r.outcome is DispatchOutcome.ABANDONED for r in result.records)
        return self._finish(result, CycleStatus.ABORTED if aborted else CycleStatus.COMPLETED)

    def _finish(self, result: SyncCycleResult, status: CycleStatus) -> SyncCycleResult:
        result.finish(status)
        c = result.counts()
        self.emit("cycle:done", **result.summary())
        msg = (
            f"cycle {result.cycle_id} {status.value}: added={c['added']} skipped={c['skipped']} "
            f"failed={c['failed']} total={c['total']} ({result.duration_ms} ms)"
        )
        if status is CycleStatus.ABORTED or c["failed"]:
            log.warn(msg)
        else:
            log(msg, level="CYCLE")
        return result
