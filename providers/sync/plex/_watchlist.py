# /providers/sync/plex/_watchlist.py
# Plex watchlist feed: retrieval and element-boundary parsing

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import requests

from wl_platform.id_map import coalesce_ids, ids_from_attrs, ids_from_guid
from wl_platform.orchestrator._types import WatchlistItem

from .._mod_base import FetchError
from ._common import ENTRY_TAGS, classify, parse_int_or_none, plex_headers

CONTAINER_TAG = "MediaContainer"

_NAME_RE = re.compile(r"\s*([A-Za-z_][\w:.\-]*)")
_ATTR_RE = re.compile(r"\s*([A-Za-z_:][\w:.\-]*)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")


@dataclass
class RawEntry:
    tag: str
    attrs: Dict[str, str]
    offset: int
    guids: List[str] = field(default_factory=list)


@dataclass
class ParseSkip:
    offset: int
    reason: str
    snippet: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {"offset": self.offset, "reason": self.reason, "snippet": self.snippet}


# ── scanner ───────────────────────────────────────────────────────────────────

def _tag_end(text: str, start: int) -> int:
    """Index of the '>' closing the tag opened at `start`, honouring quoted values; -1 if none."""
    quote: Optional[str] = None
    i = start + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in ('"', "'"):
            quote = ch
        elif ch == ">":
            return i
        elif ch == "<":
            return -1
        i += 1
    return -1


def _parse_attrs(raw: str) -> Tuple[Dict[str, str], bool]:
    attrs: Dict[str, str] = {}
    pos = 0
    while True:
        m = _ATTR_RE.match(raw, pos)
        if not m:
            break
        val = m.group(2) if m.group(2) is not None else m.group(3)
        attrs[m.group(1)] = html.unescape(val or "")
        pos = m.end()
    return attrs, not raw[pos:].strip()


def _snippet(text: str, start: int, width: int = 80) -> str:
    return " ".join(text[start:start + width].split())


def scan_entries(text: str) -> Tuple[List[RawEntry], List[ParseSkip]]:
    """Split a feed document into entry elements by walking tag boundaries.

    Entries are the direct children of the root MediaContainer (or top-level
    elements when the document has no container). Nested <Guid id="..."/>
    children are collected onto their entry. Malformed tags are skipped and
    reported; scanning resumes at the next '<'. An entry left open when the
    next entry starts is dropped as unclosed.
    """
    entries: List[RawEntry] = []
    skips: List[ParseSkip] = []
    stack: List[str] = []
    current: Optional[RawEntry] = None
    current_depth = -1
    current_bad = False
    pos = 0
    n = len(text or "")

    def _entry_level() -> bool:
        return not stack or (len(stack) == 1 and stack[0] == CONTAINER_TAG)

    while pos < n:
        lt = text.find("<", pos)
        if lt < 0:
            break

        if text.startswith("<?", lt):
            end = text.find("?>", lt)
            pos = n if end < 0 else end + 2
            continue
        if text.startswith("<!--", lt):
            end = text.find("-->", lt)
            pos = n if end < 0 else end + 3
            continue
        if text.startswith("<!", lt):
            end = text.find(">", lt)
            pos = n if end < 0 else end + 1
            continue

        if text.startswith("</", lt):
            gt = text.find(">", lt)
            if gt < 0:
                break
            name = text[lt + 2:gt].strip()
            if name in stack:
                while stack:
                    if stack.pop() == name:
                        break
            if current is not None and len(stack) < current_depth:
                if not current_bad:
                    entries.append(current)
                current, current_depth, current_bad = None, -1, False
            pos = gt + 1
            continue

        gt = _tag_end(text, lt)
        if gt < 0:
            nxt = text.find("<", lt + 1)
            skips.append(ParseSkip(lt, "unterminated element", _snippet(text, lt)))
            pos = n if nxt < 0 else nxt
            continue

        raw = text[lt + 1:gt]
        self_closing = raw.rstrip().endswith("/")
        if self_closing:
            raw = raw.rstrip()[:-1]
        m = _NAME_RE.match(raw)
        if not m:
            skips.append(ParseSkip(lt, "invalid element name", _snippet(text, lt)))
            pos = gt + 1
            continue
        name = m.group(1)
        attrs, clean = _parse_attrs(raw[m.end():])

        if not stack and name == CONTAINER_TAG:
            if not self_closing:
                stack.append(name)
            pos = gt + 1
            continue

        # A new entry tag while one is still open: the open one was never closed.
        if current is not None and name.lower() in ENTRY_TAGS:
            if not current_bad:
                skips.append(ParseSkip(current.offset, "unclosed element", _snippet(text, current.offset)))
            del stack[current_depth - 1:]
            current, current_depth, current_bad = None, -1, False

        if current is None and _entry_level():
            entry = RawEntry(tag=name, attrs=attrs, offset=lt)
            bad = not clean
            if bad:
                skips.append(ParseSkip(lt, "malformed attributes", _snippet(text, lt)))
            if self_closing:
                if not bad:
                    entries.append(entry)
            else:
                stack.append(name)
                current, current_depth, current_bad = entry, len(stack), bad
            pos = gt + 1
            continue

        if current is not None and name.lower() == "guid" and attrs.get("id"):
            current.guids.append(attrs["id"])
        if not self_closing:
            stack.append(name)
        pos = gt + 1

    if current is not None and not current_bad:
        entries.append(current)
    return entries, skips


# ── entries -> items ──────────────────────────────────────────────────────────

def item_from_entry(entry: RawEntry) -> Optional[WatchlistItem]:
    a = entry.attrs
    title = (a.get("title") or "").strip()
    if not title:
        return None
    guid = (a.get("guid") or "").strip() or None
    from_guids: List[Mapping[str, str]] = [ids_from_guid(g) for g in [guid, *entry.guids] if g]
    ids = coalesce_ids(*from_guids, ids_from_attrs(a))
    return WatchlistItem(
        title=title,
        year=parse_int_or_none(a.get("year")),
        external_ids=ids,
        kind=classify(entry.tag, a),
        rating_key=(a.get("ratingKey") or "").strip() or None,
        guid=guid,
    )


def parse_watchlist(text: str) -> Tuple[List[WatchlistItem], List[ParseSkip]]:
    entries, skips = scan_entries(text or "")
    items: List[WatchlistItem] = []
    for e in entries:
        it = item_from_entry(e)
        if it is None:
            skips.append(ParseSkip(e.offset, "missing title", f"<{e.tag} ratingKey={e.attrs.get('ratingKey')}>"))
            continue
        items.append(it)
    skips.sort(key=lambda s: s.offset)
    return items, skips


# ── retrieval ─────────────────────────────────────────────────────────────────

def fetch_watchlist_text(
    session: requests.Session,
    url: str,
    token: str | None,
    *,
    timeout: float = 30.0,
    params: Mapping[str, Any] | None = None,
) -> str:
    """Single GET of the feed document; any transport or status failure is a FetchError."""
    try:
        resp = session.get(url, headers=plex_headers(token), params=dict(params or {}), timeout=timeout)
    except requests.RequestException as e:
        raise FetchError(f"watchlist fetch failed: {e.__class__.__name__}", role="PLEX", detail=str(e)) from e
    if not (200 <= resp.status_code < 300):
        raise FetchError(
            f"watchlist fetch failed: HTTP {resp.status_code}",
            role="PLEX",
            status=resp.status_code,
            detail=(resp.text or "")[:300],
        )
    return resp.text or ""
