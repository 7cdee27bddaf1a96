# /providers/sync/_mod_RADARR.py
# Watchlistarr - Radarr service module (film role)
from __future__ import annotations

from typing import Any, Mapping, Sequence

__VERSION__ = "0.3.0"
__all__ = ["get_manifest", "RADARRClient"]

from wl_platform.orchestrator._types import RADARR

from .arr._common import ArrClientBase, ArrConfig, base_payload


def get_manifest() -> Mapping[str, Any]:
    return {
        "name": RADARR,
        "label": "Radarr",
        "version": __VERSION__,
        "type": "service",
        "accepts": "movie",
        "requires": ["requests"],
        "capabilities": {"id_schemes": list(RADARRClient.id_schemes), "tags": True},
    }


class RADARRClient(ArrClientBase):
    role = RADARR
    id_schemes = ("tmdb", "imdb")
    resource = "movie"
    editor_ids_key = "movieIds"
    required_id = "tmdbId"
    lookup_schemes = ("tmdb", "imdb")

    @classmethod
    def from_cfg(cls, cfg: Mapping[str, Any], ctx: Any = None) -> RADARRClient:
        return cls(ArrConfig.from_section(cfg.get("radarr") or {}, monitoring="movieOnly"), ctx)

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
        body["tmdbId"] = int(meta["tmdbId"])
        body["minimumAvailability"] = self.cfg.minimum_availability or "released"
        body["addOptions"] = {
            "monitor": monitoring or "movieOnly",
            "searchForMovie": bool(self.cfg.search_on_add),
        }
        return body
