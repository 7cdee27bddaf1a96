# /providers/sync/arr/_common.py
# Arr v3 (Sonarr/Radarr) shared client: catalog, lookup, add, tags
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import requests

from wl_platform.id_map import ids_from_arr
from wl_platform.orchestrator._types import AddResult, LibraryEntry, WatchlistItem

from .._log import log, log_item
from .._mod_base import ServiceClientError, ServiceConfigError, ServiceParseError
from .._mod_common import build_session, json_body, label_arr, send

API_PREFIX = "/api/v3"


def _s(v: Any) -> str:
    return str(v if v is not None else "").strip()


@dataclass
class ArrConfig:
    base_url: str = ""
    api_key: str = ""
    enabled: bool = True
    quality_profile: str | None = None
    root_folder: str | None = None
    monitoring: str = "all"
    season_folder: bool = True
    minimum_availability: str = "released"
    search_on_add: bool = True
    tags: tuple[str, ...] = field(default_factory=tuple)
    timeout: float = 30.0

    @property
    def configured(self) -> bool:
        return bool(self.enabled and self.base_url and self.api_key)

    @classmethod
    def from_section(cls, sec: Mapping[str, Any], *, monitoring: str = "all") -> ArrConfig:
        tags = sec.get("tags") or ()
        if isinstance(tags, str):
            tags = [t for t in tags.split(",")]
        return cls(
            base_url=_s(sec.get("base_url")).rstrip("/"),
            api_key=_s(sec.get("api_key")),
            enabled=bool(sec.get("enabled", True)),
            quality_profile=_s(sec.get("quality_profile")) or None,
            root_folder=_s(sec.get("root_folder")) or None,
            monitoring=_s(sec.get("monitoring")) or monitoring,
            season_folder=bool(sec.get("season_folder", True)),
            minimum_availability=_s(sec.get("minimum_availability")) or "released",
            search_on_add=bool(sec.get("search_on_add", True)),
            tags=tuple(t for t in (_s(x) for x in tags) if t),
            timeout=float(sec.get("timeout") or 30.0),
        )


class ArrClientBase:
    """One Arr v3 instance. Subclasses set the resource names and build the add payload."""

    role: str = "ARR"
    id_schemes: tuple[str, ...] = ()
    resource: str = ""
    editor_ids_key: str = ""
    required_id: str = ""
    lookup_schemes: tuple[str, ...] = ()

    def __init__(self, cfg: ArrConfig, ctx: Any = None, *, session: requests.Session | None = None):
        self.cfg = cfg
        self.session = session or build_session(self.role, ctx, feature_label=label_arr)
        self.session.headers.update({"X-Api-Key": cfg.api_key, "Accept": "application/json"})
        self._tag_lock = threading.Lock()
        self._tags: dict[str, int] | None = None

    # ── plumbing ──

    def _url(self, path: str) -> str:
        return f"{self.cfg.base_url.rstrip('/')}{API_PREFIX}/{path.lstrip('/')}"

    def _call(self, method: str, path: str, what: str, **kw: Any) -> Any:
        resp = send(self.session, method, self._url(path), role=self.role, what=what, timeout=self.cfg.timeout, **kw)
        return json_body(resp, role=self.role, what=what)

    def _rows(self, path: str, what: str, **kw: Any) -> list[Mapping[str, Any]]:
        body = self._call("GET", path, what, **kw)
        if not isinstance(body, list):
            raise ServiceParseError(f"{what}: expected a list", role=self.role, detail=type(body).__name__)
        return [r for r in body if isinstance(r, Mapping)]

    # ── reads ──

    def ping(self) -> dict[str, Any]:
        body = self._call("GET", "system/status", "status")
        if not isinstance(body, Mapping):
            raise ServiceParseError("status: expected an object", role=self.role)
        return {"ok": True, "app": body.get("appName"), "version": body.get("version")}

    def list_existing(self) -> list[LibraryEntry]:
        out: list[LibraryEntry] = []
        for row in self._rows(self.resource, f"{self.resource} index"):
            out.append(
                LibraryEntry(
                    role=self.role,
                    external_ids=ids_from_arr(row),
                    remote_id=row.get("id") if isinstance(row.get("id"), int) else None,
                    title=_s(row.get("title")),
                )
            )
        log(self.role, "catalog", "debug", "library listed", count=len(out))
        return out

    def quality_profile_id(self, name: str | None = None) -> int:
        profiles = self._rows("qualityprofile", "quality profiles")
        label = _s(name if name is not None else self.cfg.quality_profile)
        want = label.lower()
        if want:
            for p in profiles:
                if _s(p.get("name")).lower() == want and isinstance(p.get("id"), int):
                    return int(p["id"])
            raise ServiceConfigError(f"quality profile {label!r} not found", role=self.role, detail=[p.get("name") for p in profiles])
        for p in profiles:
            if isinstance(p.get("id"), int):
                return int(p["id"])
        raise ServiceConfigError("no quality profiles available", role=self.role)

    def root_folder_path(self) -> str:
        if self.cfg.root_folder:
            return self.cfg.root_folder
        for f in self._rows("rootfolder", "root folders"):
            path = _s(f.get("path"))
            if path:
                return path
        raise ServiceConfigError("no root folders available", role=self.role)

    def lookup_terms(self, item: WatchlistItem) -> list[str]:
        ids = item.external_ids
        terms = [f"{k}:{ids[k]}" for k in self.lookup_schemes if ids.get(k)]
        text = f"{item.title} {item.year}" if item.year else item.title
        terms.append(text)
        return terms

    def lookup(self, item: WatchlistItem) -> Mapping[str, Any]:
        """Service metadata for an item: id terms first, then title and year."""
        for term in self.lookup_terms(item):
            rows = self._rows(f"{self.resource}/lookup", "lookup", params={"term": term})
            if not rows:
                continue
            mine = {f"{k}:{v}" for k, v in item.external_ids.items()}
            for r in rows:
                theirs = {f"{k}:{v}" for k, v in ids_from_arr(r).items()}
                if mine & theirs:
                    return r
            return rows[0]
        raise ServiceClientError(f"{item.label} not found in lookup", role=self.role, detail="lookup returned no results")

    # ── writes ──

    def build_payload(
        self,
        meta: Mapping[str, Any],
        *,
        profile_id: int,
        root: str,
        monitoring: str,
        tag_ids: Sequence[int],
    ) -> dict[str, Any]:
        raise NotImplementedError

    def _cached_tag_ids(self, names: Sequence[str]) -> list[int]:
        with self._tag_lock:
            cache = self._tags or {}
            return [cache[n.strip().lower()] for n in names if n.strip().lower() in cache]

    def add_item(
        self,
        item: WatchlistItem,
        *,
        profile: str | None,
        monitoring: str,
        tags: Sequence[str] = (),
    ) -> AddResult:
        meta = self.lookup(item)
        if isinstance(meta.get("id"), int) and meta["id"] > 0:
            raise ServiceClientError(
                f"{item.label} already in library",
                role=self.role,
                detail=f"{self.resource} already exists (id {meta['id']})",
            )
        if not meta.get(self.required_id):
            raise ServiceClientError(f"{item.label}: lookup has no {self.required_id}", role=self.role, detail=dict(meta))

        body = self.build_payload(
            meta,
            profile_id=self.quality_profile_id(profile),
            root=self.root_folder_path(),
            monitoring=monitoring or self.cfg.monitoring,
            tag_ids=self._cached_tag_ids(tags),
        )
        data = self._call("POST", self.resource, f"{self.resource} add", json=body)
        if not isinstance(data, Mapping):
            raise ServiceParseError(f"{self.resource} add: expected an object", role=self.role, detail=type(data).__name__)
        log_item(self.role, "catalog", "debug", "add accepted", item, remote_id=data.get("id"))
        return AddResult(
            remote_id=data.get("id") if isinstance(data.get("id"), int) else None,
            title=_s(data.get("title") or meta.get("title")),
            external_ids=ids_from_arr(data),
        )

    def ensure_tag(self, name: str) -> int:
        label = _s(name).lower()
        if not label:
            raise ServiceClientError("empty tag name", role=self.role)
        with self._tag_lock:
            if self._tags is None:
                self._tags = {
                    _s(t.get("label")).lower(): int(t["id"])
                    for t in self._rows("tag", "tags")
                    if isinstance(t.get("id"), int)
                }
            if label in self._tags:
                return self._tags[label]
            created = self._call("POST", "tag", "tag create", json={"label": label})
            if not isinstance(created, Mapping) or not isinstance(created.get("id"), int):
                raise ServiceParseError("tag create: missing id", role=self.role, detail=created)
            self._tags[label] = int(created["id"])
            log(self.role, "tags", "debug", "tag created", tag=label, id=created["id"])
            return self._tags[label]

    def apply_tag(self, remote_id: int, tag_id: int) -> None:
        body = {self.editor_ids_key: [int(remote_id)], "tags": [int(tag_id)], "applyTags": "add"}
        self._call("PUT", f"{self.resource}/editor", "tag apply", json=body)


def base_payload(
    meta: Mapping[str, Any],
    *,
    profile_id: int,
    root: str,
    tag_ids: Sequence[int],
) -> dict[str, Any]:
    """Lookup record with the fields every Arr add needs set on top."""
    body = {k: v for k, v in meta.items() if k not in ("id", "path", "added")}
    year = meta.get("year")
    body.update(
        {
            "title": _s(meta.get("title")),
            "year": int(year) if isinstance(year, int) else 0,
            "qualityProfileId": int(profile_id),
            "rootFolderPath": root,
            "monitored": True,
            "tags": [int(t) for t in tag_ids],
        }
    )
    return body
