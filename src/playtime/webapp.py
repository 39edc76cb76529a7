"""FastAPI application that feeds activity signals into the playtime engine."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict

from .config import TrackerSettings
from .engine import PlaytimeEngine
from .errors import LedgerError, NoHistoryError, TrackerClosedError
from .paths import resolve_db_path
from .reporting import format_duration, sort_totals

logger = logging.getLogger(__name__)


class ActivityStarted(BaseModel):
    identity: str
    activity: str

    model_config = ConfigDict(extra="forbid")


class ActivityEnded(BaseModel):
    identity: str

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    engine: Optional[PlaytimeEngine] = None,
) -> FastAPI:
    """Instantiate the FastAPI application.

    The engine is opened on startup unless one is passed in, and is always
    closed on shutdown so live sessions are snapshotted before exit.
    """
    resolved_settings = settings or (engine.settings if engine else TrackerSettings())
    resolved_db_path = engine.store_path if engine else resolve_db_path(db_path)

    app = FastAPI(title="Playtime", version="0.1.0")
    app.state.db_path = resolved_db_path
    app.state.engine = engine

    @app.on_event("startup")
    async def _startup() -> None:
        if app.state.engine is None:
            app.state.engine = PlaytimeEngine.open(resolved_db_path, resolved_settings)
        app.state.engine.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        running: Optional[PlaytimeEngine] = app.state.engine
        if running is None:
            return
        try:
            running.close()
        except Exception:
            logger.exception("Failed to close playtime store %s", resolved_db_path)

    @app.get("/api/status")
    def status_endpoint(request: Request) -> Dict[str, Any]:
        running = _engine(request)
        interval = resolved_settings.snapshot_interval
        return {
            "running": running.is_running(),
            "database_path": str(request.app.state.db_path),
            "live_sessions": len(running.live_sessions()),
            "snapshot_seconds": interval.total_seconds() if interval else None,
            "max_concurrent_merges": resolved_settings.max_concurrent_merges,
        }

    @app.post("/api/activity/started", status_code=status.HTTP_202_ACCEPTED)
    def activity_started(payload: ActivityStarted, request: Request) -> Dict[str, Any]:
        running = _engine(request)
        try:
            running.activity_started(payload.identity, payload.activity)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except TrackerClosedError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {"identity": payload.identity, "activity": payload.activity}

    @app.post("/api/activity/ended", status_code=status.HTTP_202_ACCEPTED)
    def activity_ended(payload: ActivityEnded, request: Request) -> Dict[str, Any]:
        running = _engine(request)
        try:
            queued = running.activity_ended(payload.identity)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"identity": payload.identity, "queued": queued}

    @app.get("/api/totals/{identity}")
    def totals(identity: str, request: Request) -> Dict[str, Any]:
        running = _engine(request)
        try:
            played = running.totals_for(identity)
        except NoHistoryError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except LedgerError as exc:
            logger.exception("Failed to read playtime for %s", identity)
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        live = running.current_session(identity)
        return {
            "identity": identity,
            "totals": [
                {
                    "activity": activity,
                    "nanoseconds": nanoseconds,
                    "duration": format_duration(nanoseconds),
                }
                for activity, nanoseconds in sort_totals(played)
            ],
            # Not yet in the ledger; callers add it for a running figure.
            "live": (
                {
                    "activity": live.activity,
                    "nanoseconds": live.elapsed_ns,
                    "duration": format_duration(live.elapsed_ns),
                }
                if live
                else None
            ),
        }

    @app.get("/api/sessions")
    def sessions(request: Request) -> Dict[str, Any]:
        running = _engine(request)
        return {
            "sessions": [
                {
                    "identity": session.identity,
                    "activity": session.activity,
                    "started_at": session.started_at.isoformat(),
                }
                for session in sorted(
                    running.live_sessions(), key=lambda item: item.identity
                )
            ]
        }

    @app.post("/api/snapshot")
    def snapshot(request: Request) -> Dict[str, Any]:
        running = _engine(request)
        try:
            saved = running.snapshot()
        except LedgerError as exc:
            logger.exception("Snapshot requested over HTTP failed")
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return {"saved": saved}

    return app


def _engine(request: Request) -> PlaytimeEngine:
    running: Optional[PlaytimeEngine] = request.app.state.engine
    if running is None or not running.is_running():
        raise HTTPException(status_code=503, detail="Playtime engine is not running")
    return running
