# wl_platform/orchestrator/_snapshots.py
# Per-cycle catalog snapshots of each service, used for duplicate checks.
from __future__ import annotations

from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable

from ..id_map import id_keys
from ._types import LibraryEntry, ServiceClient, WatchlistItem

__all__ = ["DuplicateIndex", "DuplicateCheckError", "build_index", "build_indexes"]


class DuplicateCheckError(RuntimeError):
    def __init__(self, role: str, cause: BaseException):
        super().__init__(f"{role}: catalog listing failed: {cause}")
        self.role = role
        self.cause = cause
        self.status = getattr(cause, "status", None)


@dataclass(frozen=True)
class DuplicateIndex:
    role: str
    schemes: tuple[str, ...]
    keys: frozenset[str]
    entries: int = 0

    @classmethod
    def build(cls, role: str, schemes: Iterable[str], rows: Iterable[LibraryEntry]) -> DuplicateIndex:
        sch = tuple(schemes)
        keys: set[str] = set()
        n = 0
        for row in rows:
            n += 1
            keys |= id_keys(row.external_ids, sch)
        return cls(role=role, schemes=sch, keys=frozenset(keys), entries=n)

    def item_keys(self, item: WatchlistItem) -> set[str]:
        return id_keys(item.external_ids, self.schemes)

    def checkable(self, item: WatchlistItem) -> bool:
        return bool(self.item_keys(item))

    def contains(self, item: WatchlistItem) -> bool:
        # no usable id for this role: never a duplicate
        return not self.keys.isdisjoint(self.item_keys(item))

    def __contains__(self, item: object) -> bool:
        return isinstance(item, WatchlistItem) and self.contains(item)

    def __len__(self) -> int:
        return len(self.keys)


def build_index(client: ServiceClient) -> DuplicateIndex:
    return DuplicateIndex.build(client.role, client.id_schemes, client.list_existing())


def build_indexes(
    clients: Mapping[str, ServiceClient],
    *,
    emit: Callable[..., Any] | None = None,
) -> tuple[dict[str, DuplicateIndex], dict[str, DuplicateCheckError]]:
    """List every role's catalog concurrently; a failed listing is reported, not raised."""
    indexes: dict[str, DuplicateIndex] = {}
    errors: dict[str, DuplicateCheckError] = {}
    if not clients:
        return indexes, errors

    with ThreadPoolExecutor(max_workers=len(clients), thread_name_prefix="wl-index") as ex:
        futs = {role: ex.submit(build_index, c) for role, c in clients.items()}
        for role, fut in futs.items():
            try:
                idx = fut.result()
            except Exception as e:
                errors[role] = DuplicateCheckError(role, e)
                if emit:
                    emit("snapshot:error", role=role, error=str(e), status=getattr(e, "status", None))
                continue
            indexes[role] = idx
            if emit:
                emit("snapshot:done", role=role, entries=idx.entries, keys=len(idx))
    return indexes, errors
