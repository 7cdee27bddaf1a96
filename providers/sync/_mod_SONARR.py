# /providers/sync/_mod_SONARR.py
# Watchlistarr - Sonarr service module (episodic role)
from __future__ import annotations

from typing import Any, Mapping, Sequence

__VERSION__ = "0.3.0"
__all__ = ["get_manifest", "SONARRClient"]

from wl_platform.orchestrator._types import SONARR

from .arr._common import ArrClientBase, ArrConfig, base_payload


def get_manifest() -> Mapping[str, Any]:
    return {
        "name": SONARR,
        "label": "Sonarr",
        "version": __VERSION__,
        "type": "service",
        "accepts": "show",
        "requires": ["requests"],
        "capabilities": {"id_schemes": list(SONARRClient.id_schemes), "tags": True},
    }


class SONARRClient(ArrClientBase):
    role = SONARR
    id_schemes = ("tvdb", "tmdb", "imdb")
    resource = "series"
    editor_ids_key = "seriesIds"
    required_id = "tvdbId"
    lookup_schemes = ("tvdb", "tmdb", "imdb")

    @classmethod
    def from_cfg(cls, cfg: Mapping[str, Any], ctx: Any = None) -> SONARRClient:
        return cls(ArrConfig.from_section(cfg.get("sonarr") or {}, monitoring="all"), ctx)

    def build_payload(
        self,
        meta: Mapping[str, Any],
        *,
        profile_id: int,
        root: str,
        monitoring: str,
        tag_ids: Sequence[int],
    ) -> dict[str, Any]:
        body = base_payload(meta, profile_id=profile_id, root=root, tag_ids=tag_ids)
        body["tvdbId"] = int(meta["tvdbId"])
        body["seasonFolder"] = bool(self.cfg.season_folder)
        body["addOptions"] = {
            "monitor": monitoring or "all",
            "searchForMissingEpisodes": bool(self.cfg.search_on_add),
        }
        return body
