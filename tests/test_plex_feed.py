# Watchlistarr test scripts
from __future__ import annotations

import pytest
import requests
import responses
from responses import matchers

from providers.sync._mod_base import FetchError
from providers.sync._mod_PLEX import PLEXConfig, PLEXFeed, get_manifest
from wl_platform.orchestrator._types import MediaKind

FEED_URL = "https://metadata.provider.plex.tv/library/sections/watchlist/all"

DOC = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<MediaContainer size="3">\n'
    '  <Video title="Heat" year="1995" type="movie"><Guid id="tmdb://949"/></Video>\n'
    '  <Video title="Broken" year="1995\n'
    '  <Directory title="The Wire" type="show"><Guid id="tvdb://79126"/></Directory>\n'
    "</MediaContainer>\n"
)


def test_default_url_and_config_from_cfg() -> None:
    cfg = PLEXConfig.from_cfg({"plex": {"token": " abc ", "timeout": 10}})
    assert cfg.token == "abc"
    assert cfg.url == FEED_URL
    assert cfg.timeout == 10.0
    assert PLEXConfig(watchlist_url="http://plex.local/wl").url == "http://plex.local/wl"


def test_fetch_sends_token_and_guid_flag_and_parses() -> None:
    feed = PLEXFeed(PLEXConfig(token="tok"))
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            FEED_URL,
            body=DOC,
            content_type="application/xml",
            match=[
                matchers.header_matcher({"X-Plex-Token": "tok"}),
                matchers.query_param_matcher({"includeGuids": "1"}),
            ],
        )
        items = feed.fetch()

    assert [(i.title, i.kind) for i in items] == [("Heat", MediaKind.MOVIE), ("The Wire", MediaKind.SHOW)]
    assert dict(items[0].external_ids) == {"tmdb": "949"}
    assert [s.reason for s in feed.last_skips] == ["unterminated element"]


def test_skipped_entries_are_logged(quiet_logs) -> None:
    feed = PLEXFeed(PLEXConfig(token="tok"))
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, FEED_URL, body=DOC)
        feed.fetch()

    out = quiet_logs.getvalue()
    assert "[PLEX:watchlist] WARN feed entry skipped" in out
    assert 'reason="unterminated element"' in out


def test_auth_failure_is_a_fetch_error() -> None:
    feed = PLEXFeed(PLEXConfig(token="expired"))
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, FEED_URL, body="Unauthorized", status=401)
        with pytest.raises(FetchError) as ei:
            feed.fetch()

    assert ei.value.status == 401
    assert ei.value.auth is True
    assert ei.value.role == "PLEX"


def test_connection_error_is_a_fetch_error() -> None:
    feed = PLEXFeed(PLEXConfig(token="tok"))
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, FEED_URL, body=requests.ConnectionError("dns"))
        with pytest.raises(FetchError) as ei:
            feed.fetch()

    assert ei.value.retryable
    assert ei.value.status is None
    assert not ei.value.auth


def test_manifest() -> None:
    m = get_manifest()
    assert m["name"] == "PLEX"
    assert m["type"] == "feed"
