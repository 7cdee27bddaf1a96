# /providers/sync/plex/_common.py
# Plex Module for common utilities
from __future__ import annotations

import os
import uuid
from typing import Any, Mapping

from wl_platform.orchestrator._types import MediaKind

__all__ = [
    "METADATA",
    "WATCHLIST_PATH",
    "ENTRY_TAGS",
    "CLIENT_ID",
    "plex_headers",
    "classify",
    "parse_int_or_none",
]

METADATA = "https://metadata.provider.plex.tv"
WATCHLIST_PATH = "/library/sections/watchlist/all"

CLIENT_ID = (
    os.environ.get("WL_PLEX_CID")
    or os.environ.get("PLEX_CLIENT_IDENTIFIER")
    or f"watchlistarr-{uuid.uuid4().hex[:8]}"
)

# Feed element tag -> kind, and the `type` attribute that must agree with it.
_KIND_BY_TAG: dict[str, tuple[MediaKind, str]] = {
    "video": (MediaKind.MOVIE, "movie"),
    "directory": (MediaKind.SHOW, "show"),
}
ENTRY_TAGS = frozenset(_KIND_BY_TAG)


def plex_headers(token: str | None, extra: Mapping[str, str] | None = None) -> dict[str, str]:
    headers: dict[str, str] = {
        "Accept": "application/xml",
        "X-Plex-Product": "Watchlistarr",
        "X-Plex-Version": "0.3.0",
        "X-Plex-Client-Identifier": CLIENT_ID,
    }
    if token:
        headers["X-Plex-Token"] = token
    if extra:
        headers.update({str(k): str(v) for k, v in extra.items()})
    return headers


def classify(tag: str, attrs: Mapping[str, Any]) -> MediaKind:
    """Kind of a feed entry from its tag; a contradicting `type` makes it UNKNOWN."""
    hit = _KIND_BY_TAG.get(str(tag or "").strip().lower())
    if hit is None:
        return MediaKind.UNKNOWN
    kind, expected = hit
    declared = str(attrs.get("type") or "").strip().lower()
    if declared and declared != expected:
        return MediaKind.UNKNOWN
    return kind


def parse_int_or_none(v: Any) -> int | None:
    if v is None:
        return None
    if isinstance(v, (int, float)):
        return int(v)
    s = str(v).strip()
    if not s.isdigit():
        return None
    return int(s)
