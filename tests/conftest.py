# Watchlistarr test scripts
from __future__ import annotations

import io
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from _logging import log as app_log  # noqa: E402
from providers.sync import _log as record_log  # noqa: E402
from wl_platform.orchestrator._applier import DispatchSettings  # noqa: E402
from wl_platform.orchestrator._retry import RetryPolicy  # noqa: E402
from wl_platform.orchestrator._types import (  # noqa: E402
    AddResult,
    LibraryEntry,
    MediaKind,
    WatchlistItem,
)
from wl_platform.orchestrator.facade import Orchestrator, SyncContext  # noqa: E402


@pytest.fixture()
def config_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CONFIG_BASE", str(tmp_path))
    return tmp_path


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch: pytest.MonkeyPatch):
    """Capture record lines and app log output instead of writing to stdout."""
    sink = io.StringIO()
    record_log.set_sink(sink)
    monkeypatch.setattr(app_log, "stream", io.StringIO())
    monkeypatch.setattr(app_log, "level_no", app_log.level_no)
    for k in ("WL_LOG_LEVEL", "WL_LOG_FORMAT", "WL_DEBUG", "WL_API_HITS"):
        monkeypatch.delenv(k, raising=False)
    yield sink
    record_log.set_sink(None)


class ServiceFailure(RuntimeError):
    """Stand-in for the provider error taxonomy: carries the attributes the engine inspects."""

    def __init__(
        self,
        msg: str = "boom",
        *,
        retryable: bool = False,
        status: int | None = None,
        already_exists: bool = False,
        retry_after: float | None = None,
    ):
        super().__init__(msg)
        self.retryable = retryable
        self.status = status
        self.already_exists = already_exists
        self.retry_after = retry_after


@dataclass
class FakeClient:
    role: str
    id_schemes: tuple[str, ...]
    library: list[LibraryEntry] = field(default_factory=list)
    add_errors: list[Exception] = field(default_factory=list)
    fail_titles: dict[str, Exception] = field(default_factory=dict)
    list_error: Exception | None = None
    tag_error: Exception | None = None
    add_calls: list[WatchlistItem] = field(default_factory=list)
    list_calls: int = 0
    tag_calls: list[tuple[int, int]] = field(default_factory=list)
    tags: dict[str, int] = field(default_factory=dict)
    next_id: int = 100

    def ping(self) -> dict[str, Any]:
        return {"ok": True, "app": self.role}

    def list_existing(self) -> list[LibraryEntry]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.library)

    def add_item(
        self,
        item: WatchlistItem,
        *,
        profile: str | None,
        monitoring: str,
        tags: Sequence[str] = (),
    ) -> AddResult:
        self.add_calls.append(item)
        if item.title in self.fail_titles:
            raise self.fail_titles[item.title]
        if self.add_errors:
            raise self.add_errors.pop(0)
        self.next_id += 1
        self.library.append(LibraryEntry(self.role, item.external_ids, remote_id=self.next_id, title=item.title))
        return AddResult(remote_id=self.next_id, title=item.title, external_ids=item.external_ids)

    def ensure_tag(self, name: str) -> int:
        if self.tag_error is not None:
            raise self.tag_error
        return self.tags.setdefault(name, len(self.tags) + 1)

    def apply_tag(self, remote_id: int, tag_id: int) -> None:
        self.tag_calls.append((remote_id, tag_id))


@dataclass
class FakeFeed:
    items: list[WatchlistItem] = field(default_factory=list)
    error: Exception | None = None
    calls: int = 0

    def fetch(self) -> list[WatchlistItem]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.items)


def show(title: str, year: int | None = None, **ids: str) -> WatchlistItem:
    return WatchlistItem(title=title, year=year, external_ids=ids, kind=MediaKind.SHOW)


def movie(title: str, year: int | None = None, **ids: str) -> WatchlistItem:
    return WatchlistItem(title=title, year=year, external_ids=ids, kind=MediaKind.MOVIE)


@pytest.fixture()
def sonarr() -> FakeClient:
    return FakeClient("SONARR", ("tvdb", "tmdb", "imdb"))


@pytest.fixture()
def radarr() -> FakeClient:
    return FakeClient("RADARR", ("tmdb", "imdb"))


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def make_orchestrator(sonarr: FakeClient, radarr: FakeClient, sleeps: list[float]):
    def _make(items: list[WatchlistItem], *, feed: FakeFeed | None = None, clients: dict[str, Any] | None = None,
              max_attempts: int = 3, tags: tuple[str, ...] = ()) -> Orchestrator:
        ctx = SyncContext(
            feed=feed or FakeFeed(items),
            clients=clients if clients is not None else {"SONARR": sonarr, "RADARR": radarr},
            policy=RetryPolicy(max_attempts=max_attempts, backoff_base=1.0, jitter=0.0, sleep=sleeps.append),
            settings={
                "SONARR": DispatchSettings(monitoring="all", tags=tags),
                "RADARR": DispatchSettings(monitoring="movieOnly", tags=tags),
            },
        )
        return Orchestrator(ctx)

    return _make
