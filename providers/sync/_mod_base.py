# /providers/sync/_mod_base.py
# Watchlistarr base provider module: error taxonomy shared by the feed and Arr clients
from __future__ import annotations

from typing import Any


# Errors

class ModuleError(RuntimeError):
    """Root of every error raised by a provider module."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        role: str | None = None,
        status: int | None = None,
        detail: Any = None,
    ) -> None:
        super().__init__(message)
        self.role = role
        self.status = status
        self.detail = detail


class FetchError(ModuleError):
    """The watchlist feed could not be retrieved (network, timeout, non-2xx)."""

    retryable = True

    @property
    def auth(self) -> bool:
        return self.status in (401, 403)


class ServiceError(ModuleError):
    """A downstream service call failed."""


class ServiceNetworkError(ServiceError):
    retryable = True


class ServiceServerError(ServiceError):
    retryable = True


class ServiceRateLimited(ServiceError):
    retryable = True

    def __init__(self, message: str, *, retry_after: float | None = None, **kw: Any) -> None:
        super().__init__(message, **kw)
        self.retry_after = retry_after


class ServiceClientError(ServiceError):
    """4xx other than auth and rate limiting; the request itself is wrong."""

    @property
    def already_exists(self) -> bool:
        text = str(self.detail or "").lower()
        return "exists" in text and ("already" in text or "validator" in text)


class ServiceAuthError(ServiceClientError):
    pass


class ServiceParseError(ServiceError):
    pass


class ServiceConfigError(ServiceError):
    """Setup problem: missing quality profile or root folder, or an unusable base URL."""


__all__ = [
    "ModuleError",
    "FetchError",
    "ServiceError",
    "ServiceNetworkError",
    "ServiceServerError",
    "ServiceRateLimited",
    "ServiceClientError",
    "ServiceAuthError",
    "ServiceParseError",
    "ServiceConfigError",
]
