# watchlistarr.py
# Watchlistarr - Plex watchlist to Sonarr/Radarr, entry point
from __future__ import annotations

import argparse
import signal
import sys
import threading
from contextlib import asynccontextmanager
from typing import Any, Sequence

import uvicorn

from _logging import configure as configure_logging, log as _root_log
from wl_platform.config_base import (
    ConfigError,
    config_path,
    interval_seconds,
    load_config,
    validate_config,
)
from wl_platform.orchestrator import Orchestrator, SyncContext
from services.scheduling import SyncScheduler

__VERSION__ = "0.3.0"

EXIT_OK = 0
EXIT_FATAL = 1

log = _root_log.child("MAIN")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="watchlistarr", description="Send Plex watchlist items to Sonarr and Radarr.")
    p.add_argument("--config", metavar="PATH", help="config.json file or the directory holding it (default: $CONFIG_BASE)")
    p.add_argument("--log-level", choices=["silent", "error", "warn", "info", "debug"], help="override runtime.log_level")
    p.add_argument("--once", action="store_true", help="run a single sync cycle and exit")
    p.add_argument("--no-api", action="store_true", help="do not start the HTTP status API")
    p.add_argument("--version", action="version", version=f"%(prog)s {__VERSION__}")
    return p.parse_args(argv)


def preflight(ctx: SyncContext) -> list[str]:
    """Reach every configured endpoint once; anything that fails here is fatal."""
    problems: list[str] = []
    try:
        items = ctx.feed.fetch()
        log.info(f"watchlist reachable ({len(items)} item(s))")
    except Exception as e:
        kind = "rejected the token" if getattr(e, "auth", False) else "unreachable"
        problems.append(f"plex watchlist {kind}: {e}")
    for role, client in ctx.clients.items():
        try:
            info = client.ping()
            log.info(f"{role} reachable", extra={"app": info.get("app"), "version": info.get("version")})
        except Exception as e:
            problems.append(f"{role} {'rejected the API key' if getattr(e, 'status', None) in (401, 403) else 'unreachable'}: {e}")
    return problems


def build(cfg: dict[str, Any]) -> tuple[SyncContext, SyncScheduler]:
    debug = bool((cfg.get("runtime") or {}).get("debug"))
    progress = _root_log.child("EVENTS")
    ctx = SyncContext.from_config(cfg, on_progress=(lambda line: progress.debug(line)) if debug else None)
    scheduler = SyncScheduler(Orchestrator(ctx), interval=interval_seconds(cfg), log_fn=_root_log.child("SCHED"))
    return ctx, scheduler


def _serve_api(scheduler: SyncScheduler, cfg: dict[str, Any], services: Sequence[str]) -> None:
    from api import create_app

    rt = cfg.get("runtime") or {}
    api = rt.get("api") or {}

    @asynccontextmanager
    async def _lifespan(app: Any):
        scheduler.start()
        try:
            yield
        finally:
            scheduler.stop()

    app = create_app(scheduler, services=services, lifespan=_lifespan)
    host, port = str(api.get("host") or "0.0.0.0"), int(api.get("port") or 8787)
    log.info(f"status API on http://{host}:{port}/api/status")
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=("debug" if rt.get("debug") else "warning"),
        access_log=bool(rt.get("debug")),
    )


def _run_headless(scheduler: SyncScheduler) -> None:
    done = threading.Event()

    def _on_signal(signum: int, _frame: Any) -> None:
        log.info(f"received {signal.Signals(signum).name}; shutting down")
        done.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)
    scheduler.start()
    while not done.wait(timeout=1.0):
        pass
    scheduler.stop()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        log.error(str(e))
        return EXIT_FATAL

    rt = cfg.get("runtime") or {}
    configure_logging(
        level=args.log_level or rt.get("log_level") or "info",
        debug=bool(rt.get("debug")) and not args.log_level,
        json_path=(str(rt.get("log_json") or "").strip() or None),
    )
    log.info(f"Watchlistarr {__VERSION__} (config: {config_path(args.config)})")

    problems = validate_config(cfg)
    if problems:
        for p in problems:
            log.error(f"config: {p}")
        return EXIT_FATAL

    ctx, scheduler = build(cfg)
    for role in ("SONARR", "RADARR"):
        if role not in ctx.clients:
            log.warn(f"{role} not configured; its items will be skipped")

    problems = preflight(ctx)
    if problems:
        for p in problems:
            log.error(f"startup: {p}")
        return EXIT_FATAL

    if args.once:
        result = scheduler.run_once(source="once")
        return EXIT_OK if result is not None else EXIT_FATAL

    api_on = bool((rt.get("api") or {}).get("enabled", True)) and not args.no_api
    if api_on:
        _serve_api(scheduler, cfg, list(ctx.clients))
    else:
        _run_headless(scheduler)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
