from __future__ import annotations

import pytest

from focus_tracker.rules import RuleMatcher
from focus_tracker.segmentation import SegmentationEngine
from focus_tracker.stores import Database, EventStore, SessionStore


@pytest.fixture
def database(tmp_path):
    db = Database.open(tmp_path / "focus.sqlite3")
    yield db
    db.close()


@pytest.fixture
def event_store(database) -> EventStore:
    return EventStore(database)


@pytest.fixture
def session_store(database) -> SessionStore:
    return SessionStore(database)


@pytest.fixture
def engine(event_store, session_store) -> SegmentationEngine:
    return SegmentationEngine(event_store, session_store, RuleMatcher(session_store))
