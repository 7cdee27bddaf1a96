# Watchlistarr test scripts
from __future__ import annotations

from conftest import FakeClient, ServiceFailure, movie, show

from wl_platform.orchestrator._snapshots import DuplicateCheckError, DuplicateIndex, build_indexes
from wl_platform.orchestrator._types import LibraryEntry


def _index(role: str, schemes: tuple[str, ...], *ids: dict[str, str]) -> DuplicateIndex:
    return DuplicateIndex.build(role, schemes, [LibraryEntry(role, x) for x in ids])


def test_index_keys_are_limited_to_role_schemes() -> None:
    idx = _index("RADARR", ("tmdb", "imdb"), {"tmdb": "550", "tvdb": "99"}, {"imdb": "tt0078748"})
    assert idx.keys == frozenset({"tmdb:550", "imdb:tt0078748"})
    assert idx.entries == 2


def test_contains_matches_any_shared_scheme() -> None:
    idx = _index("SONARR", ("tvdb", "tmdb", "imdb"), {"tvdb": "81189"})
    assert idx.contains(show("Breaking Bad", tvdb="81189", imdb="tt0903747"))
    assert show("Breaking Bad", tvdb="81189") in idx
    assert not idx.contains(show("The Wire", tvdb="79126"))


def test_item_without_role_schemes_is_not_duplicate() -> None:
    idx = _index("RADARR", ("tmdb", "imdb"), {"tmdb": "550"})
    bare = movie("Fight Club", 1999)
    tvdb_only = movie("Odd", tvdb="550")
    assert not idx.checkable(bare)
    assert not idx.contains(bare)
    assert not idx.contains(tvdb_only)


def test_build_indexes_reports_failed_role_and_keeps_the_other() -> None:
    sonarr = FakeClient("SONARR", ("tvdb", "tmdb", "imdb"), library=[LibraryEntry("SONARR", {"tvdb": "1"})])
    radarr = FakeClient("RADARR", ("tmdb", "imdb"), list_error=ServiceFailure("down", retryable=True, status=503))
    events: list[tuple[str, dict]] = []

    indexes, errors = build_indexes(
        {"SONARR": sonarr, "RADARR": radarr},
        emit=lambda ev, **kw: events.append((ev, kw)),
    )

    assert set(indexes) == {"SONARR"}
    assert indexes["SONARR"].keys == frozenset({"tvdb:1"})
    assert isinstance(errors["RADARR"], DuplicateCheckError)
    assert errors["RADARR"].status == 503
    assert {e for e, _ in events} == {"snapshot:done", "snapshot:error"}


def test_build_indexes_with_no_clients() -> None:
    assert build_indexes({}) == ({}, {})
