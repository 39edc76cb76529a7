"""Helpers to serve the playtime HTTP adapter."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import uvicorn

from .config import TrackerSettings
from .paths import resolve_db_path
from .webapp import create_app


def run_server(
    *,
    host: str = "127.0.0.1",
    port: int = 8766,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    log_level: str = "info",
) -> None:
    """Serve the adapter until SIGINT/SIGTERM.

    uvicorn turns termination signals into the application's shutdown event,
    which snapshots live sessions and closes the store.
    """
    app = create_app(
        db_path=resolve_db_path(db_path),
        settings=settings or TrackerSettings(),
    )
    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)
