# wl_platform/orchestrator/_types.py
# types and protocols for the sync engine.
from __future__ import annotations

import time
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Protocol

from ..id_map import coalesce_ids


class MediaKind(str, Enum):
    MOVIE = "movie"
    SHOW = "show"
    UNKNOWN = "unknown"


# Service roles; the kind each one receives.
SONARR = "SONARR"
RADARR = "RADARR"
ROLE_FOR_KIND: Mapping[MediaKind, str] = MappingProxyType({MediaKind.SHOW: SONARR, MediaKind.MOVIE: RADARR})


@dataclass(frozen=True)
class WatchlistItem:
    title: str
    year: int | None = None
    external_ids: Mapping[str, str] = field(default_factory=dict)
    kind: MediaKind = MediaKind.UNKNOWN
    rating_key: str | None = None
    guid: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "external_ids", MappingProxyType(coalesce_ids(self.external_ids)))

    @property
    def label(self) -> str:
        return f"{self.title} ({self.year})" if self.year else self.title


@dataclass(frozen=True)
class LibraryEntry:
    role: str
    external_ids: Mapping[str, str]
    remote_id: int | None = None
    title: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "external_ids", MappingProxyType(coalesce_ids(self.external_ids)))


@dataclass(frozen=True)
class AddResult:
    remote_id: int | None
    title: str = ""
    external_ids: Mapping[str, str] = field(default_factory=dict)


class ServiceClient(Protocol):
    """Capability interface implemented once per downstream service role."""

    role: str
    id_schemes: tuple[str, ...]

    def ping(self) -> Mapping[str, Any]: ...

    def list_existing(self) -> Sequence[LibraryEntry]: ...

    def add_item(
        self,
        item: WatchlistItem,
        *,
        profile: str | None,
        monitoring: str,
        tags: Sequence[str] = (),
    ) -> AddResult: ...

    def ensure_tag(self, name: str) -> int: ...

    def apply_tag(self, remote_id: int, tag_id: int) -> None: ...


class FeedSource(Protocol):
    def fetch(self) -> Sequence[WatchlistItem]: ...


class DispatchOutcome(str, Enum):
    ADDED = "added"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_AMBIGUOUS = "skipped_ambiguous"
    SKIPPED_UNCHECKED = "skipped_unchecked"
    SKIPPED_NO_SERVICE = "skipped_no_service"
    FAILED_RETRYABLE = "failed_retryable"
    FAILED_PERMANENT = "failed_permanent"
    ABANDONED = "abandoned"

    @property
    def bucket(self) -> str:
        if self is DispatchOutcome.ADDED:
            return "added"
        if self.value.startswith("failed"):
            return "failed"
        return "skipped"


class CycleStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class ItemRecord:
    item: WatchlistItem
    role: str | None
    outcome: DispatchOutcome
    attempts: int = 0
    error: str | None = None
    status: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "title": self.item.title,
            "year": self.item.year,
            "kind": self.item.kind.value,
            "ids": dict(self.item.external_ids),
            "role": self.role,
            "outcome": self.outcome.value,
            "attempts": self.attempts,
            "error": self.error,
            "status": self.status,
        }


@dataclass
class SyncCycleResult:
    cycle_id: str
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    status: CycleStatus = CycleStatus.RUNNING
    records: list[ItemRecord] = field(default_factory=list)
    fetch_error: str | None = None
    duplicate_check_errors: dict[str, str] = field(default_factory=dict)
    error: str | None = None

    def add(self, rec: ItemRecord) -> None:
        self.records.append(rec)

    def counts(self) -> dict[str, int]:
        c = Counter(r.outcome.bucket for r in self.records)
        return {"added": c["added"], "skipped": c["skipped"], "failed": c["failed"], "total": len(self.records)}

    def finish(self, status: CycleStatus) -> None:
        self.status = status
        self.finished_at = time.time()

    @property
    def duration_ms(self) -> int:
        end = self.finished_at or time.time()
        return int((end - self.started_at) * 1000)

    def summary(self) -> dict[str, Any]:
        detail = Counter(r.outcome.value for r in self.records)
        return {
            "cycle_id": self.cycle_id,
            "status": self.status.value,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_ms": self.duration_ms,
            **self.counts(),
            "outcomes": dict(sorted(detail.items())),
            "fetch_error": self.fetch_error,
            "duplicate_check_errors": dict(self.duplicate_check_errors),
            "error": self.error,
        }
