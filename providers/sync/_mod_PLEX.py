# /providers/sync/_mod_PLEX.py
# Watchlistarr - Plex watchlist feed module
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

__VERSION__ = "0.3.0"
__all__ = ["get_manifest", "PLEXConfig", "PLEXFeed"]

from ._log import log
from ._mod_common import build_session, label_plex
from .plex._common import METADATA, WATCHLIST_PATH
from .plex._watchlist import ParseSkip, fetch_watchlist_text, parse_watchlist

from wl_platform.orchestrator._types import WatchlistItem


def get_manifest() -> Mapping[str, Any]:
    return {
        "name": "PLEX",
        "label": "Plex",
        "version": __VERSION__,
        "type": "feed",
        "features": {"watchlist": True},
        "requires": ["requests"],
        "capabilities": {"provides_ids": True, "id_schemes": ["imdb", "tmdb", "tvdb"]},
    }


@dataclass
class PLEXConfig:
    token: str | None = None
    watchlist_url: str | None = None
    timeout: float = 30.0
    include_guids: bool = True

    @property
    def url(self) -> str:
        return (self.watchlist_url or "").strip() or f"{METADATA}{WATCHLIST_PATH}"

    @classmethod
    def from_cfg(cls, cfg: Mapping[str, Any]) -> PLEXConfig:
        p = dict(cfg.get("plex") or {})
        return cls(
            token=(str(p.get("token") or "").strip() or None),
            watchlist_url=(str(p.get("watchlist_url") or "").strip() or None),
            timeout=float(p.get("timeout") or 30.0),
        )


class PLEXFeed:
    """Feed source: one GET of the watchlist document per call to fetch()."""

    def __init__(self, cfg: PLEXConfig, ctx: Any = None, *, session: Any = None):
        self.cfg = cfg
        self.session = session or build_session("PLEX", ctx, feature_label=label_plex)
        self.last_skips: list[ParseSkip] = []

    @property
    def url(self) -> str:
        return self.cfg.url

    def _params(self) -> dict[str, Any]:
        return {"includeGuids": 1} if self.cfg.include_guids else {}

    def fetch_text(self) -> str:
        return fetch_watchlist_text(self.session, self.url, self.cfg.token, timeout=self.cfg.timeout, params=self._params())

    def fetch(self) -> list[WatchlistItem]:
        text = self.fetch_text()
        items, skips = parse_watchlist(text)
        self.last_skips = skips
        for s in skips:
            log("PLEX", "watchlist", "warn", "feed entry skipped", **s.as_dict())
        log("PLEX", "watchlist", "debug", "feed parsed", items=len(items), skipped=len(skips), bytes=len(text))
        return items

    def ping(self) -> dict[str, Any]:
        items = self.fetch()
        return {"ok": True, "items": len(items)}
