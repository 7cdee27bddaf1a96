# services/__init__.py
from __future__ import annotations

from . import scheduling
from .scheduling import SyncScheduler

__all__ = [
    "scheduling",
    "SyncScheduler",
]
