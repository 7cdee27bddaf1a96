# wl_platform/modules_registry.py
from importlib import import_module
from types import ModuleType
from typing import Any, Optional

MODULES = {
    "FEED": {
        "_mod_PLEX":   "providers.sync._mod_PLEX",
    },
    "SERVICE": {
        "_mod_SONARR": "providers.sync._mod_SONARR",
        "_mod_RADARR": "providers.sync._mod_RADARR",
    },
}

# class exported by each module, keyed by module name
_ENTRY = {
    "_mod_PLEX":   "PLEXFeed",
    "_mod_SONARR": "SONARRClient",
    "_mod_RADARR": "RADARRClient",
}

def module_path(kind: str, name: str) -> Optional[str]:
    key = f"_mod_{(name or '').strip().upper()}"
    return MODULES.get(kind.upper(), {}).get(key)

def load_module(kind: str, name: str) -> Optional[ModuleType]:
    path = module_path(kind, name)
    if not path:
        return None
    return import_module(path)

def load_entry(kind: str, name: str) -> Optional[Any]:
    mod = load_module(kind, name)
    if mod is None:
        return None
    return getattr(mod, _ENTRY[f"_mod_{name.strip().upper()}"], None)

def manifests() -> list[dict]:
    out = []
    for kind, mods in MODULES.items():
        for key in mods:
            mod = load_module(kind, key[len("_mod_"):])
            fn = getattr(mod, "get_manifest", None)
            if callable(fn):
                out.append(dict(fn()))
    return out
