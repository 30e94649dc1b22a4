"""Serve the local API with the tracker running in the background."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import uvicorn

from .config import TrackerSettings
from .paths import get_db_path
from .webapp import create_app


def run_service(
    *,
    host: str = "127.0.0.1",
    port: int = 8085,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    log_level: str = "info",
) -> None:
    """Start uvicorn; the app's startup hook launches sampling and processing."""
    app = create_app(
        db_path=get_db_path(db_path),
        settings=settings or TrackerSettings(),
    )
    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)
