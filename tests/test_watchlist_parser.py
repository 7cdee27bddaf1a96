# Watchlistarr test scripts
from __future__ import annotations

from providers.sync.plex._common import classify
from providers.sync.plex._watchlist import parse_watchlist, scan_entries
from wl_platform.orchestrator._types import MediaKind

PRETTY = """<?xml version="1.0" encoding="UTF-8"?>
<MediaContainer librarySectionID="watchlist" size="2">
  <Video
      ratingKey="5d776825880197001ec967c9"
      guid="plex://movie/5d776825880197001ec967c9"
      type="movie"
      title="Fight Club"
      year="1999">
    <Guid id="imdb://tt0137523"/>
    <Guid id="tmdb://550"/>
  </Video>
  <Directory ratingKey="5d9c086fe9d5a1001f4d5d7a" type="show" title="Breaking Bad" year="2008">
    <Guid id="tvdb://81189"/>
    <Guid id="imdb://tt0903747"/>
  </Directory>
</MediaContainer>
"""


def test_pretty_feed_yields_items_with_nested_guids() -> None:
    items, skips = parse_watchlist(PRETTY)
    assert skips == []
    assert [i.title for i in items] == ["Fight Club", "Breaking Bad"]
    fc, bb = items
    assert fc.kind is MediaKind.MOVIE and fc.year == 1999
    assert dict(fc.external_ids) == {"imdb": "tt0137523", "tmdb": "550"}
    assert fc.rating_key == "5d776825880197001ec967c9"
    assert fc.guid == "plex://movie/5d776825880197001ec967c9"
    assert bb.kind is MediaKind.SHOW
    assert dict(bb.external_ids) == {"tvdb": "81189", "imdb": "tt0903747"}


def test_minified_feed_parses_identically() -> None:
    minified = (
        '<?xml version="1.0" encoding="UTF-8"?><MediaContainer size="2">'
        '<Video ratingKey="5d776825880197001ec967c9" guid="plex://movie/5d776825880197001ec967c9" type="movie" '
        'title="Fight Club" year="1999"><Guid id="imdb://tt0137523"/><Guid id="tmdb://550"/></Video>'
        '<Directory ratingKey="5d9c086fe9d5a1001f4d5d7a" type="show" title="Breaking Bad" year="2008">'
        '<Guid id="tvdb://81189"/><Guid id="imdb://tt0903747"/></Directory></MediaContainer>'
    )
    assert "\n" not in minified
    assert parse_watchlist(minified)[0] == parse_watchlist(PRETTY)[0]


def test_self_closing_entries_and_direct_id_attributes() -> None:
    doc = (
        '<MediaContainer><Video title="Heat" year="1995" type="movie" tmdbId="949"/>'
        '<Directory title="The Wire" type="show" tvdbId="79126"/></MediaContainer>'
    )
    items, skips = parse_watchlist(doc)
    assert not skips
    assert [(i.title, dict(i.external_ids)) for i in items] == [
        ("Heat", {"tmdb": "949"}),
        ("The Wire", {"tvdb": "79126"}),
    ]


def test_quoted_gt_and_entities_in_attributes() -> None:
    doc = "<MediaContainer><Video title='Tom &amp; Jerry > Cats' year=\"1992\" type=\"movie\"/></MediaContainer>"
    items, _ = parse_watchlist(doc)
    assert items[0].title == "Tom & Jerry > Cats"
    assert items[0].year == 1992


def test_malformed_elements_are_skipped_and_the_rest_survive() -> None:
    doc = (
        "<MediaContainer>"
        '<Video title="Unclosed" year="2000" '
        '<Video title="Good One" type="movie" year="2001"/>'
        '<Video title="Bad Attrs" year=2002/>'
        '<Video year="2003" type="movie"/>'
        '<Directory title="Still Fine" type="show"><Guid id="tvdb://1"/></Directory>'
        "</MediaContainer>"
    )
    items, skips = parse_watchlist(doc)
    assert [i.title for i in items] == ["Good One", "Still Fine"]
    assert [s.reason for s in skips] == ["unterminated element", "malformed attributes", "missing title"]
    assert all(s.offset > 0 for s in skips)


def test_nested_non_guid_children_do_not_become_entries() -> None:
    doc = (
        '<MediaContainer><Video title="Alien" type="movie">'
        '<Media id="1"><Part file="/x.mkv"/></Media><Guid id="imdb://tt0078748"/>'
        "</Video></MediaContainer>"
    )
    entries, _ = scan_entries(doc)
    assert [e.tag for e in entries] == ["Video"]
    assert entries[0].guids == ["imdb://tt0078748"]


def test_unknown_and_contradicting_entries_are_unknown_kind() -> None:
    doc = (
        '<MediaContainer><Track title="A Song"/><Video title="Mislabeled" type="show"/>'
        '<Directory title="Also Mislabeled" type="movie"/></MediaContainer>'
    )
    items, skips = parse_watchlist(doc)
    assert not skips
    assert [i.kind for i in items] == [MediaKind.UNKNOWN] * 3


def test_empty_and_garbage_documents_yield_nothing() -> None:
    assert parse_watchlist("") == ([], [])
    assert parse_watchlist("not xml at all") == ([], [])
    assert parse_watchlist("<MediaContainer size=\"0\"/>") == ([], [])


def test_truncated_document_keeps_complete_entries() -> None:
    doc = '<MediaContainer><Video title="First" type="movie"/><Video title="Second" type="movie"><Guid id="tmdb://2"/>'
    items, _ = parse_watchlist(doc)
    assert [i.title for i in items] == ["First", "Second"]
    assert dict(items[1].external_ids) == {"tmdb": "2"}


def test_unclosed_entry_does_not_swallow_siblings() -> None:
    doc = (
        '<MediaContainer>'
        '<Video title="A" type="movie" ratingKey="1"><Guid id="tmdb://1"/>'
        '<Video title="B" type="movie" ratingKey="2"><Guid id="tmdb://2"/></Video>'
        '<Directory title="S" type="show" ratingKey="3"/>'
        '</MediaContainer>'
    )
    items, skips = parse_watchlist(doc)

    assert [i.title for i in items] == ["B", "S"]
    assert dict(items[0].external_ids) == {"tmdb": "2"}
    assert [s.reason for s in skips] == ["unclosed element"]
    assert skips[0].offset == doc.index('<Video title="A"')


def test_classify_uses_tag_and_checks_type() -> None:
    assert classify("Video", {}) is MediaKind.MOVIE
    assert classify("video", {"type": "movie"}) is MediaKind.MOVIE
    assert classify("Directory", {"type": "show"}) is MediaKind.SHOW
    assert classify("Directory", {"type": "episode"}) is MediaKind.UNKNOWN
    assert classify("Photo", {"type": "movie"}) is MediaKind.UNKNOWN
    assert classify("", {}) is MediaKind.UNKNOWN
