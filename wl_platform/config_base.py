# wl_platform/config_base.py
from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping

# ------------------------------------------------------------
# Base dir resolution
# ------------------------------------------------------------
def CONFIG_BASE() -> Path:
    """
    Directory holding config.json.

    Priority:
      1) $CONFIG_BASE if set
      2) /config when running in the container image (/app exists)
      3) current working directory
    """
    env = os.getenv("CONFIG_BASE")
    if env:
        return Path(env)
    if Path("/app").exists() and Path("/config").is_dir():
        return Path("/config")
    return Path(".")


class ConfigError(RuntimeError):
    pass


# Default config structure
DEFAULT_CFG: Dict[str, Any] = {
    # --- Feed ----------------------------------------------------------------
    "plex": {
        "token": "",                                    # Plex account token, sent as X-Plex-Token.
        "watchlist_url": "",                            # Empty = metadata.provider.plex.tv watchlist.
        "timeout": 30,                                  # HTTP timeout (seconds).
    },

    # --- Services ------------------------------------------------------------
    "sonarr": {
        "enabled": True,
        "base_url": "",                                 # http(s)://host:8989
        "api_key": "",                                  # Settings > General > API Key
        "quality_profile": "",                          # Profile name; empty = first profile.
        "root_folder": "",                              # Path; empty = first root folder.
        "monitoring": "all",                            # addOptions.monitor
        "season_folder": True,
        "search_on_add": True,                          # searchForMissingEpisodes
        "tags": ["watchlistarr"],
        "timeout": 30,
    },
    "radarr": {
        "enabled": True,
        "base_url": "",                                 # http(s)://host:7878
        "api_key": "",
        "quality_profile": "",
        "root_folder": "",
        "monitoring": "movieOnly",                      # addOptions.monitor
        "minimum_availability": "released",
        "search_on_add": True,                          # searchForMovie
        "tags": ["watchlistarr"],
        "timeout": 30,
    },

    # --- Engine --------------------------------------------------------------
    "interval": {"seconds": 15},                        # Time between sync cycles.
    "dispatch": {
        "max_attempts": 3,                              # Total add attempts per item per cycle.
        "backoff_base": 1.0,                            # First retry delay (seconds), doubled per attempt.
        "backoff_max": 30.0,                            # Upper bound for any single delay.
        "jitter": 0.25,                                 # Up to +25% random spread.
        "concurrency": 1,                               # Parallel adds per service; 1 = sequential.
        "pace_ms": 100,                                 # Pause after each add.
    },

    # --- Runtime -------------------------------------------------------------
    "runtime": {
        "debug": False,
        "log_level": "info",                            # silent|error|warn|info|debug
        "log_json": "",                                 # Optional JSON-lines log file.
        "api": {"enabled": True, "host": "0.0.0.0", "port": 8787},
    },
}

ROLE_SECTIONS = ("sonarr", "radarr")

SONARR_MONITOR = {
    "all", "future", "missing", "existing", "recent", "pilot", "firstSeason",
    "lastSeason", "latestSeason", "monitorSpecials", "unmonitorSpecials", "none",
}
RADARR_MONITOR = {"movieOnly", "movieAndCollection", "none"}
RADARR_AVAILABILITY = {"announced", "inCinemas", "released"}

# camelCase keys from older config files
_ROLE_ALIASES: Dict[str, str] = {
    "baseUrl": "base_url",
    "baseurl": "base_url",
    "apikey": "api_key",
    "apiKey": "api_key",
    "qualityProfile": "quality_profile",
    "rootFolder": "root_folder",
    "seasonMonitoring": "monitoring",
    "seasonFolder": "season_folder",
    "minimumAvailability": "minimum_availability",
    "searchOnAdd": "search_on_add",
}
_PLEX_ALIASES: Dict[str, str] = {"watchlistUrl": "watchlist_url", "plexToken": "token"}


# ------------------------------------------------------------
# Helpers: paths, IO, merging, normalization
# ------------------------------------------------------------
def config_path(path: str | os.PathLike[str] | None = None) -> Path:
    if path:
        p = Path(path)
        return p / "config.json" if p.is_dir() else p
    return CONFIG_BASE() / "config.json"


def _read_json(p: Path) -> Dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, Mapping) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out


def _rename(sec: Mapping[str, Any], aliases: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in sec.items():
        dst = aliases.get(k, k)
        # canonical key wins over its alias
        if dst != k and dst in sec:
            continue
        out[dst] = v
    return out


def normalize_aliases(raw: Mapping[str, Any]) -> Dict[str, Any]:
    cfg = dict(raw or {})
    for name in ROLE_SECTIONS:
        if isinstance(cfg.get(name), Mapping):
            cfg[name] = _rename(cfg[name], _ROLE_ALIASES)
    if isinstance(cfg.get("plex"), Mapping):
        cfg["plex"] = _rename(cfg["plex"], _PLEX_ALIASES)
    iv = cfg.get("interval")
    if isinstance(iv, (int, float)) and not isinstance(iv, bool):
        cfg["interval"] = {"seconds": iv}
    for name in ROLE_SECTIONS:
        sec = cfg.get(name)
        if isinstance(sec, Mapping) and isinstance(sec.get("tags"), str):
            cfg[name] = dict(sec, tags=[t.strip() for t in sec["tags"].split(",") if t.strip()])
    return cfg


def role_configured(cfg: Mapping[str, Any], name: str) -> bool:
    sec = cfg.get(name) or {}
    if not isinstance(sec, Mapping) or not sec.get("enabled", True):
        return False
    return bool(str(sec.get("base_url") or "").strip() and str(sec.get("api_key") or "").strip())


def interval_seconds(cfg: Mapping[str, Any]) -> float:
    iv = cfg.get("interval") or {}
    try:
        return float(iv.get("seconds", 15))
    except (TypeError, ValueError, AttributeError):
        return 15.0


def _int_at_least(problems: List[str], where: str, v: Any, low: int) -> None:
    if isinstance(v, bool) or not isinstance(v, int) or v < low:
        problems.append(f"{where} must be an integer >= {low}")


def _num_at_least(problems: List[str], where: str, v: Any, low: float) -> None:
    if isinstance(v, bool) or not isinstance(v, (int, float)) or v < low:
        problems.append(f"{where} must be a number >= {low}")


def validate_config(cfg: Mapping[str, Any]) -> List[str]:
    """Every problem that would stop the service from starting; empty when usable."""
    problems: List[str] = []

    plex = cfg.get("plex") or {}
    if not str(plex.get("token") or "").strip():
        problems.append("plex.token is required")
    url = str(plex.get("watchlist_url") or "").strip()
    if url and not url.startswith(("http://", "https://")):
        problems.append("plex.watchlist_url must be an http(s) URL")

    configured = [n for n in ROLE_SECTIONS if role_configured(cfg, n)]
    if not configured:
        problems.append("at least one of sonarr or radarr needs base_url and api_key")

    for name in configured:
        sec = cfg[name]
        if not str(sec.get("base_url")).strip().startswith(("http://", "https://")):
            problems.append(f"{name}.base_url must be an http(s) URL")
        tags = sec.get("tags") or []
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            problems.append(f"{name}.tags must be a list of strings")
        _num_at_least(problems, f"{name}.timeout", sec.get("timeout", 30), 1)
    if "sonarr" in configured and cfg["sonarr"].get("monitoring", "all") not in SONARR_MONITOR:
        problems.append(f"sonarr.monitoring must be one of {sorted(SONARR_MONITOR)}")
    if "radarr" in configured:
        r = cfg["radarr"]
        if r.get("monitoring", "movieOnly") not in RADARR_MONITOR:
            problems.append(f"radarr.monitoring must be one of {sorted(RADARR_MONITOR)}")
        if r.get("minimum_availability", "released") not in RADARR_AVAILABILITY:
            problems.append(f"radarr.minimum_availability must be one of {sorted(RADARR_AVAILABILITY)}")

    _num_at_least(problems, "interval.seconds", (cfg.get("interval") or {}).get("seconds"), 1)

    d = cfg.get("dispatch") or {}
    _int_at_least(problems, "dispatch.max_attempts", d.get("max_attempts"), 1)
    _int_at_least(problems, "dispatch.concurrency", d.get("concurrency"), 1)
    _int_at_least(problems, "dispatch.pace_ms", d.get("pace_ms"), 0)
    _num_at_least(problems, "dispatch.backoff_base", d.get("backoff_base"), 0)
    _num_at_least(problems, "dispatch.backoff_max", d.get("backoff_max"), 0)
    _num_at_least(problems, "dispatch.jitter", d.get("jitter"), 0)

    api = ((cfg.get("runtime") or {}).get("api") or {})
    if api.get("enabled", True):
        port = api.get("port")
        if isinstance(port, bool) or not isinstance(port, int) or not (0 < port < 65536):
            problems.append("runtime.api.port must be between 1 and 65535")
    return problems


# ------------------------------------------------------------
# Public API
# ------------------------------------------------------------
def load_config(path: str | os.PathLike[str] | None = None) -> Dict[str, Any]:
    """
    Read config.json and merge it over DEFAULT_CFG. A missing file yields the defaults.
    """
    p = config_path(path)
    user_cfg: Dict[str, Any] = {}
    if p.exists():
        try:
            user_cfg = _read_json(p)
        except (OSError, ValueError) as e:
            raise ConfigError(f"cannot read {p}: {e}") from e
        if not isinstance(user_cfg, dict):
            raise ConfigError(f"{p}: top level must be an object")
    return _deep_merge(DEFAULT_CFG, normalize_aliases(user_cfg))
