# /wl_platform/id_map.py
# Common external ID handling for watchlist items and Arr catalogs.
# - Normalize/clean IDs from Plex GUIDs, feed attributes and Arr payloads.
# - Produce "scheme:value" keys for duplicate detection.

from __future__ import annotations
import re
from typing import Any, Dict, Iterable, Mapping, Optional, Set, Tuple

# Schemes that identify the same title across Plex, Sonarr and Radarr.
ID_KEYS: Tuple[str, ...]       = ("imdb", "tmdb", "tvdb")
KEY_PRIORITY: Tuple[str, ...]  = ("tmdb", "tvdb", "imdb")

__all__ = [
    "ID_KEYS", "KEY_PRIORITY",
    "normalize_id", "ids_from_guid", "ids_from_attrs", "ids_from_arr",
    "coalesce_ids",
    "id_keys", "preferred_id_key",
]

# --- tiny utils ---------------------------------------------------------------

_CLEAN_SENTINELS = {"none", "null", "nan", "undefined", "unknown", "0", ""}

def _norm_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None

def normalize_id(key: str, val: Any) -> Optional[str]:
    """Normalize common provider IDs so we can compare apples with apples."""
    k = (key or "").lower().strip()
    s = _norm_str(val)
    if not s:
        return None
    if s.lower() in _CLEAN_SENTINELS:
        return None

    if k in ("tmdb", "tvdb"):
        digits = re.sub(r"\D+", "", s)
        if not digits or int(digits) == 0:
            return None
        return str(int(digits))

    if k == "imdb":
        s = s.lower()
        m = re.search(r"(tt\d+)", s)
        if m:
            return m.group(1)
        digits = re.sub(r"\D+", "", s)
        return f"tt{digits}" if digits else None

    return None

# --- Plex GUID to IDs ---------------------------------------------------------

# Accept the variants Plex returns in guid="..." and <Guid id="...">
_GUID_PATTERNS: Tuple[Tuple[re.Pattern, str], ...] = (
    # com.plexapp agents
    (re.compile(r"com\.plexapp\.agents\.imdb://(?P<imdb>tt\d+)", re.I), "imdb"),
    (re.compile(r"com\.plexapp\.agents\.themoviedb://(?P<tmdb>\d+)", re.I), "tmdb"),
    (re.compile(r"com\.plexapp\.agents\.thetvdb://(?P<tvdb>\d+)", re.I), "tvdb"),

    # generic schemes (permissive)
    (re.compile(r"(?<![\w.])imdb://(?:title/)?(?P<imdb>tt\d+)", re.I), "imdb"),
    (re.compile(r"(?<![\w.])tmdb://(?:(?:movie|show|tv)/)?(?P<tmdb>\d+)", re.I), "tmdb"),
    (re.compile(r"(?<![\w.])tvdb://(?:(?:series|show|tv)/)?(?P<tvdb>\d+)", re.I), "tvdb"),
)

def ids_from_guid(guid: Optional[str]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    g = _norm_str(guid)
    if not g:
        return out
    for rx, label in _GUID_PATTERNS:
        m = rx.search(g)
        if not m:
            continue
        norm = normalize_id(label, m.group(label))
        if norm and label not in out:
            out[label] = norm
    return out

# Direct attribute names seen on feed entries and in Arr payloads.
_ATTR_MAP = {
    "imdb": "imdb", "imdbid": "imdb", "imdb_id": "imdb",
    "tmdb": "tmdb", "tmdbid": "tmdb", "tmdb_id": "tmdb",
    "tvdb": "tvdb", "tvdbid": "tvdb", "tvdb_id": "tvdb",
}

def ids_from_attrs(attrs: Mapping[str, Any] | None) -> Dict[str, str]:
    out: Dict[str, str] = {}
    if not isinstance(attrs, Mapping):
        return out
    for k, v in attrs.items():
        dst = _ATTR_MAP.get(str(k).strip().lower())
        if not dst:
            continue
        n = normalize_id(dst, v)
        if n:
            out[dst] = n
    return out

def ids_from_arr(row: Mapping[str, Any] | None) -> Dict[str, str]:
    """IDs from a Sonarr series or Radarr movie record (tvdbId/tmdbId/imdbId)."""
    if not isinstance(row, Mapping):
        return {}
    return ids_from_attrs({k: row.get(k) for k in ("tvdbId", "tmdbId", "imdbId")})

# --- Collect / merge ----------------------------------------------------------

def coalesce_ids(*many: Mapping[str, Any]) -> Dict[str, str]:
    """Merge several 'ids' maps into one normalized dict; later maps win."""
    out: Dict[str, str] = {}
    for ids in many:
        if not isinstance(ids, Mapping):
            continue
        for k in ID_KEYS:
            n = normalize_id(k, ids.get(k))
            if n:
                out[k] = n
    return out

# --- Keys ---------------------------------------------------------------------

def id_keys(ids: Mapping[str, Any], schemes: Iterable[str] = ID_KEYS) -> Set[str]:
    """All 'scheme:value' keys for the given schemes (used by duplicate checks)."""
    out: Set[str] = set()
    for k in schemes:
        n = normalize_id(k, (ids or {}).get(k))
        if n:
            out.add(f"{k}:{n}")
    return out

def preferred_id_key(ids: Mapping[str, Any], schemes: Iterable[str] = KEY_PRIORITY) -> Optional[str]:
    """Return 'scheme:value' for the first scheme present (or None)."""
    for k in schemes:
        n = normalize_id(k, (ids or {}).get(k))
        if n:
            return f"{k}:{n}"
    return None
