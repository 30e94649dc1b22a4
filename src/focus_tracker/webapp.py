"""FastAPI application exposing the session and rule stores locally."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .config import TrackerSettings
from .db import to_unix
from .errors import StoreError
from .paths import get_db_path
from .runtime import TrackerRuntime
from .stores import SessionStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ClassificationFields(BaseModel):
    user_defined_name: str
    is_helpful: bool = True
    goal_context: str = ""

    model_config = ConfigDict(extra="forbid")


class ClassifyPayload(ClassificationFields):
    app_name: str
    window_title: str


class SessionIdentifier(BaseModel):
    app_name: str
    window_title: str

    model_config = ConfigDict(extra="forbid")


class BatchClassifyPayload(ClassificationFields):
    sessions: List[SessionIdentifier]


class ReclassifyPayload(ClassificationFields):
    session_id: int


class RulePayload(ClassificationFields):
    app_name: str
    window_title_contains: str = ""
    priority: int = 0


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    runtime: Optional[TrackerRuntime] = None,
    start_tracking: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    owns_runtime = runtime is None
    if runtime is None:
        runtime = TrackerRuntime(get_db_path(db_path), settings or TrackerSettings())

    app = FastAPI(title="Focus Tracker", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.runtime = runtime

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        if start_tracking:
            runtime.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        if owns_runtime:
            runtime.close()
        else:
            runtime.stop()

    app.include_router(_build_router(), prefix="/api/v0")
    return app


def _sessions(request: Request) -> SessionStore:
    return request.app.state.runtime.sessions


def _require_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise HTTPException(status_code=400, detail="user_defined_name is required")
    return cleaned


def _build_router() -> APIRouter:
    router = APIRouter()

    @router.get("/status")
    def status(request: Request) -> Dict[str, Any]:
        return request.app.state.runtime.status()

    @router.get("/unclassified-sessions")
    def unclassified(request: Request) -> List[Dict[str, Any]]:
        return [
            {
                "app_name": item.app_name,
                "window_title": item.window_title,
                "duration_seconds": item.total_duration_seconds,
            }
            for item in _run(_sessions(request).unclassified)
        ]

    @router.post("/classify")
    def classify(payload: ClassifyPayload, request: Request) -> Dict[str, Any]:
        name = _require_name(payload.user_defined_name)
        updated = _run(
            _sessions(request).classify,
            [(payload.app_name, payload.window_title)],
            name,
            is_helpful=payload.is_helpful,
            goal_context=payload.goal_context,
        )
        return {"status": "success", "updated": updated}

    @router.post("/classify-batch")
    def classify_batch(payload: BatchClassifyPayload, request: Request) -> Dict[str, Any]:
        name = _require_name(payload.user_defined_name)
        updated = _run(
            _sessions(request).classify,
            [(item.app_name, item.window_title) for item in payload.sessions],
            name,
            is_helpful=payload.is_helpful,
            goal_context=payload.goal_context,
        )
        return {"status": "success", "updated": updated}

    @router.post("/reclassify")
    def reclassify(payload: ReclassifyPayload, request: Request) -> Dict[str, Any]:
        name = _require_name(payload.user_defined_name)
        _run(
            _sessions(request).reclassify,
            payload.session_id,
            name,
            is_helpful=payload.is_helpful,
            goal_context=payload.goal_context,
        )
        return {"status": "success"}

    @router.delete("/sessions/{session_id}")
    def delete_session(session_id: int, request: Request) -> Dict[str, Any]:
        _run(_sessions(request).delete, session_id)
        return {"status": "success"}

    @router.get("/classifications")
    def classifications(request: Request) -> List[Dict[str, Any]]:
        return [
            {
                "id": item.id,
                "user_defined_name": item.user_defined_name,
                "is_helpful": item.is_helpful,
                "goal_context": item.goal_context,
            }
            for item in _run(_sessions(request).classifications)
        ]

    @router.get("/today-summary")
    def today_summary(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format. Defaults to today.",
        ),
    ) -> List[Dict[str, Any]]:
        day = _parse_date(date)
        return [
            {
                "user_defined_name": item.user_defined_name,
                "total_duration_seconds": item.total_duration_seconds,
            }
            for item in _run(_sessions(request).summary_for_day, day)
        ]

    @router.get("/rules")
    def list_rules(request: Request) -> List[Dict[str, Any]]:
        return [
            {
                "id": rule.id,
                "app_name": rule.app_name,
                "window_title_contains": rule.window_title_contains,
                "user_defined_name": rule.user_defined_name,
                "priority": rule.priority,
            }
            for rule in _run(_sessions(request).list_rules)
        ]

    @router.post("/rules", status_code=201)
    def create_rule(payload: RulePayload, request: Request) -> Dict[str, Any]:
        name = _require_name(payload.user_defined_name)
        app_name = payload.app_name.strip()
        if not app_name:
            raise HTTPException(status_code=400, detail="app_name is required")
        rule_id = _run(
            _sessions(request).create_rule,
            app_name,
            payload.window_title_contains,
            name,
            is_helpful=payload.is_helpful,
            goal_context=payload.goal_context,
            priority=payload.priority,
        )
        return {"status": "success", "id": rule_id}

    @router.delete("/rules/{rule_id}")
    def delete_rule(rule_id: int, request: Request) -> Dict[str, Any]:
        _run(_sessions(request).delete_rule, rule_id)
        return {"status": "success"}

    @router.get("/recent-activity")
    def recent_activity(
        request: Request, limit: int = Query(default=50, ge=1, le=500)
    ) -> List[Dict[str, Any]]:
        return [
            {
                "session_id": item.session_id,
                "app_name": item.app_name,
                "window_title": item.window_title,
                "user_defined_name": item.user_defined_name,
                "start_time": to_unix(item.start_time),
                "is_auto": item.is_auto,
            }
            for item in _run(_sessions(request).recent_classified, limit)
        ]

    return router


def _run(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    try:
        return func(*args, **kwargs)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreError as exc:
        logger.exception("Store operation failed.")
        raise HTTPException(status_code=500, detail="database error") from exc


def _parse_date(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc
