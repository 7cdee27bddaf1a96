# wl_platform/orchestrator/_providers.py
# feed and service construction from config.
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..config_base import role_configured
from ..modules_registry import load_entry
from ._types import FeedSource, ServiceClient

# config section -> service role
ROLE_SECTIONS: Mapping[str, str] = {"sonarr": "SONARR", "radarr": "RADARR"}


def build_feed(cfg: Mapping[str, Any], ctx: Any = None) -> FeedSource:
    feed_cls = load_entry("FEED", "PLEX")
    if feed_cls is None:
        raise RuntimeError("feed module PLEX not available")
    from providers.sync._mod_PLEX import PLEXConfig

    return feed_cls(PLEXConfig.from_cfg(cfg), ctx)


def build_clients(cfg: Mapping[str, Any], ctx: Any = None) -> dict[str, ServiceClient]:
    """Clients for every configured role; unconfigured roles are left out."""
    out: dict[str, ServiceClient] = {}
    for section, role in ROLE_SECTIONS.items():
        if not role_configured(cfg, section):
            continue
        cls = load_entry("SERVICE", role)
        if cls is None:
            raise RuntimeError(f"service module {role} not available")
        out[role] = cls.from_cfg(cfg, ctx)
    return out
