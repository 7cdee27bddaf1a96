# /api/__init__.py
# Watchlistarr - API app factory and router registration
from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from fastapi import FastAPI

from .syncAPI import router as sync_router

__all__ = ["sync_router", "register", "create_app"]


def register(app: FastAPI, scheduler: Any, *, services: Iterable[str] = ()) -> None:
    app.state.scheduler = scheduler
    app.state.services = tuple(services)
    app.include_router(sync_router)


def create_app(scheduler: Any, *, services: Iterable[str] = (), lifespan: Any = None) -> FastAPI:
    app = FastAPI(title="Watchlistarr", lifespan=lifespan)
    register(app, scheduler, services=services)
    return app
