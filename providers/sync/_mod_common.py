# /providers/sync/_mod_common.py
# Watchlistarr common provider module: sessions, response classification
from __future__ import annotations

import json
import os
from typing import Any, Callable, Mapping
from urllib.parse import urlparse

import requests

from ._mod_base import (
    ServiceAuthError,
    ServiceClientError,
    ServiceConfigError,
    ServiceError,
    ServiceNetworkError,
    ServiceParseError,
    ServiceRateLimited,
    ServiceServerError,
)

__VERSION__ = "0.3.0"
__all__ = [
    "HitSession",
    "make_emitter",
    "build_session",
    "parse_retry_after",
    "safe_json",
    "check_response",
    "send",
    "json_body",
    "label_arr",
    "label_plex",
]

EmitFn = Callable[[str, Mapping[str, Any]], None]
FeatureLabelFn = Callable[[str, str, Mapping[str, Any]], str]

USER_AGENT = "Watchlistarr/0.3.0"


def make_emitter(ctx: Any) -> EmitFn:
    emit_fn: Callable[..., Any] | None = None
    if hasattr(ctx, "emit") and callable(getattr(ctx, "emit")):
        emit_fn = getattr(ctx, "emit")
    elif callable(ctx):
        emit_fn = ctx

    def _emit(event: str, payload: Mapping[str, Any]) -> None:
        if not emit_fn:
            return
        emit_fn(event, **dict(payload))

    return _emit


def default_feature_label(
    provider: str,
    method: str,
    url: str,
    kw: Mapping[str, Any],
) -> str:
    p = urlparse(url)
    segs = [s for s in (p.path or "/").split("/") if s]
    head = "/".join(segs[:3]) or "unknown"
    return head.lower()


def label_arr(method: str, url: str, kw: Mapping[str, Any]) -> str:
    p = urlparse(url)
    segs = [s.lower() for s in (p.path or "/").split("/") if s]
    if segs[:2] == ["api", "v3"]:
        segs = segs[2:]
    m = method.upper()
    if not segs:
        return "unknown"
    if segs[0] in ("series", "movie"):
        if len(segs) >= 2 and segs[1] == "lookup":
            return "catalog:lookup"
        if len(segs) >= 2 and segs[1] == "editor":
            return "tags:apply"
        return "catalog:add" if m == "POST" else "catalog:index"
    if segs[0] == "tag":
        return "tags:create" if m == "POST" else "tags:index"
    if segs[0] == "qualityprofile":
        return "profiles"
    if segs[0] == "rootfolder":
        return "rootfolders"
    if segs[:2] == ["system", "status"]:
        return "system:status"
    return default_feature_label("ARR", method, url, kw)


def label_plex(method: str, url: str, kw: Mapping[str, Any]) -> str:
    p = urlparse(url)
    segs = [s for s in (p.path or "/").split("/") if s]
    if segs[:3] == ["library", "sections", "watchlist"]:
        return "watchlist:index"
    return default_feature_label("PLEX", method, url, kw)


class HitSession(requests.Session):
    def __init__(
        self,
        provider: str,
        emit: EmitFn,
        feature_label: FeatureLabelFn | None = None,
        emit_hits: bool | None = None,
    ):
        super().__init__()
        self._provider = provider
        self._emit = emit
        self._label = feature_label or (lambda m, u, kw: default_feature_label(provider, m, u, kw))
        self._emit_hits = bool(os.getenv("WL_API_HITS")) if emit_hits is None else bool(emit_hits)
        self.headers["User-Agent"] = USER_AGENT

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:  # type: ignore[override]
        try:
            return super().request(method, url, **kwargs)
        finally:
            if self._emit_hits:
                self._emit("api:hit", {"provider": self._provider, "feature": self._label(method.upper(), url, kwargs)})


def build_session(
    provider: str,
    ctx: Any = None,
    *,
    feature_label: FeatureLabelFn | None = None,
    emit_hits: bool | None = None,
) -> HitSession:
    return HitSession(provider, make_emitter(ctx), feature_label, emit_hits)


def parse_retry_after(h: Mapping[str, Any]) -> float | None:
    ra = h.get("Retry-After")
    if ra is None:
        return None
    try:
        return max(0.0, float(ra))
    except (TypeError, ValueError):
        return None


def safe_json(resp: requests.Response) -> Any:
    if not (resp.text or "").strip():
        return {}
    ctype = (resp.headers.get("Content-Type") or "").lower()
    if "json" in ctype:
        return resp.json()
    return json.loads(resp.text)


def _error_detail(resp: requests.Response) -> Any:
    try:
        return safe_json(resp)
    except ValueError:
        return (resp.text or "")[:500]


def check_response(resp: requests.Response, *, role: str, what: str) -> requests.Response:
    """Raise the matching ServiceError for a non-2xx response; return it otherwise."""
    code = int(resp.status_code)
    if 200 <= code < 300:
        return resp
    detail = _error_detail(resp)
    msg = f"{what} failed: HTTP {code}"
    if code in (401, 403):
        raise ServiceAuthError(msg, role=role, status=code, detail=detail)
    if code == 429:
        raise ServiceRateLimited(msg, role=role, status=code, detail=detail, retry_after=parse_retry_after(resp.headers))
    if 400 <= code < 500:
        raise ServiceClientError(msg, role=role, status=code, detail=detail)
    if code >= 500:
        raise ServiceServerError(msg, role=role, status=code, detail=detail)
    raise ServiceError(msg, role=role, status=code, detail=detail)


_UNSENDABLE = (
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidURL,
    requests.exceptions.InvalidHeader,
    requests.exceptions.URLRequired,
)


def send(
    session: requests.Session,
    method: str,
    url: str,
    *,
    role: str,
    what: str,
    timeout: float = 30.0,
    **kwargs: Any,
) -> requests.Response:
    """One HTTP call, no retries; transport failures become ServiceNetworkError.

    A request that can never be sent as built (malformed URL or header) is a ServiceConfigError.
    """
    try:
        resp = session.request(method, url, timeout=timeout, **kwargs)
    except (requests.ConnectionError, requests.Timeout) as e:
        raise ServiceNetworkError(f"{what} failed: {e.__class__.__name__}", role=role, detail=str(e)) from e
    except _UNSENDABLE as e:
        raise ServiceConfigError(f"{what} failed: {e.__class__.__name__}", role=role, detail=str(e)) from e
    except requests.RequestException as e:
        raise ServiceNetworkError(f"{what} failed: {e}", role=role, detail=str(e)) from e
    return check_response(resp, role=role, what=what)


def json_body(resp: requests.Response, *, role: str, what: str) -> Any:
    try:
        return safe_json(resp)
    except ValueError as e:
        raise ServiceParseError(f"{what}: invalid JSON body", role=role, status=resp.status_code, detail=str(e)) from e
