# /api/syncAPI.py
# Watchlistarr - status and manual trigger endpoints
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from wl_platform.modules_registry import manifests

__all__ = ["router", "RunResponse", "LastCycle"]

router = APIRouter(prefix="/api", tags=["synchronization"])


class RunResponse(BaseModel):
    ok: bool
    skipped: Optional[str] = None


class LastCycle(BaseModel):
    summary: dict[str, Any]
    records: list[dict[str, Any]]


def _scheduler(request: Request) -> Any:
    sch = getattr(request.app.state, "scheduler", None)
    if sch is None:
        raise HTTPException(status_code=503, detail="scheduler not available")
    return sch


@router.get("/status")
def api_status(request: Request) -> dict[str, Any]:
    sch = _scheduler(request)
    st = sch.status()
    st["busy"] = bool(sch.busy())
    services = getattr(request.app.state, "services", None)
    if services is not None:
        st["services"] = list(services)
    st["modules"] = manifests()
    return st


@router.post("/sync/run", response_model=RunResponse)
def api_run_sync(request: Request) -> RunResponse:
    sch = _scheduler(request)
    if sch.stop_event.is_set():
        return RunResponse(ok=False, skipped="stopping")
    if not sch.trigger():
        return RunResponse(ok=False, skipped="busy")
    return RunResponse(ok=True)


@router.get("/sync/last", response_model=LastCycle)
def api_last_cycle(request: Request) -> LastCycle:
    last = _scheduler(request).last_result()
    if last is None:
        raise HTTPException(status_code=404, detail="no cycle has completed yet")
    return LastCycle(summary=last.summary(), records=[r.as_dict() for r in last.records])
