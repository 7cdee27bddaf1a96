# Watchlistarr test scripts
from __future__ import annotations

import json
from pathlib import Path

import pytest
import responses
from responses import matchers

import watchlistarr
from wl_platform.modules_registry import load_entry, manifests
from wl_platform.orchestrator._providers import build_clients

FEED_URL = "https://metadata.provider.plex.tv/library/sections/watchlist/all"
RADARR_URL = "http://radarr:7878/api/v3"

FEED = (
    '<MediaContainer size="2">'
    '<Video title="Heat" year="1995" type="movie"><Guid id="tmdb://949"/></Video>'
    '<Directory title="The Wire" type="show"><Guid id="tvdb://79126"/></Directory>'
    "</MediaContainer>"
)


def _write(config_base: Path, **radarr) -> Path:
    cfg = {
        "plex": {"token": "tok"},
        "radarr": {"base_url": "http://radarr:7878", "api_key": "rk", "tags": [], **radarr},
        "dispatch": {"pace_ms": 0, "jitter": 0},
    }
    p = config_base / "config.json"
    p.write_text(json.dumps(cfg), encoding="utf-8")
    return p


def test_invalid_config_exits_fatal(config_base: Path) -> None:
    assert watchlistarr.main(["--once"]) == watchlistarr.EXIT_FATAL


def test_unreadable_config_exits_fatal(config_base: Path) -> None:
    (config_base / "config.json").write_text("{", encoding="utf-8")
    assert watchlistarr.main(["--once"]) == watchlistarr.EXIT_FATAL


def test_parse_args_defaults() -> None:
    args = watchlistarr.parse_args([])
    assert (args.config, args.once, args.no_api, args.log_level) == (None, False, False, None)
    with pytest.raises(SystemExit):
        watchlistarr.parse_args(["--log-level", "chatty"])


def test_unreachable_service_fails_preflight(config_base: Path) -> None:
    _write(config_base)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, FEED_URL, body=FEED)
        rsps.add(responses.GET, f"{RADARR_URL}/system/status", status=401, json={"error": "Unauthorized"})
        assert watchlistarr.main(["--once", "--log-level", "silent"]) == watchlistarr.EXIT_FATAL


def test_once_adds_movie_and_skips_unserviced_show(config_base: Path) -> None:
    _write(config_base, root_folder="/movies")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, FEED_URL, body=FEED, match=[matchers.header_matcher({"X-Plex-Token": "tok"})])
        rsps.add(responses.GET, f"{RADARR_URL}/system/status", json={"appName": "Radarr", "version": "5.2"})
        rsps.add(responses.GET, f"{RADARR_URL}/movie", json=[])
        rsps.add(responses.GET, f"{RADARR_URL}/movie/lookup", json=[{"title": "Heat", "year": 1995, "tmdbId": 949}])
        rsps.add(responses.GET, f"{RADARR_URL}/qualityprofile", json=[{"id": 1, "name": "Any"}])
        rsps.add(responses.POST, f"{RADARR_URL}/movie", json={"id": 9, "title": "Heat", "tmdbId": 949}, status=201)

        assert watchlistarr.main(["--once", "--no-api", "--log-level", "silent"]) == watchlistarr.EXIT_OK
        posted = json.loads(rsps.calls[-1].request.body)

    assert posted["tmdbId"] == 949
    assert posted["rootFolderPath"] == "/movies"
    assert posted["addOptions"]["monitor"] == "movieOnly"


def test_registry_builds_only_configured_roles() -> None:
    clients = build_clients({"radarr": {"base_url": "http://r", "api_key": "k"}, "sonarr": {"base_url": ""}})
    assert list(clients) == ["RADARR"]
    assert load_entry("SERVICE", "sonarr").__name__ == "SONARRClient"
    assert load_entry("SERVICE", "plex") is None
    assert {m["name"] for m in manifests()} == {"PLEX", "SONARR", "RADARR"}
