from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from focus_tracker.db import to_unix
from focus_tracker.errors import StoreError
from focus_tracker.models import Session
from focus_tracker.runtime import TrackerRuntime
from focus_tracker.webapp import create_app

from .helpers import FakeSource, append_all, at, raw


@pytest.fixture
def runtime(tmp_path):
    rt = TrackerRuntime(tmp_path / "api.sqlite3", source=FakeSource())
    yield rt
    rt.close()


@pytest.fixture
def client(runtime):
    app = create_app(runtime=runtime, start_tracking=False)
    with TestClient(app) as test_client:
        yield test_client


def _save(runtime, start, end, app="Editor", title="a.go"):
    return runtime.sessions.save(
        Session(app_name=app, window_title=title, start_time=at(start), end_time=at(end))
    )


def test_status_reports_idle_runtime(client, runtime):
    append_all(runtime.events, [raw(0)])

    body = client.get("/api/v0/status").json()

    assert body["tracking"] is False
    assert body["processor_paused"] is False
    assert body["pending_samples"] == 1


def test_classify_flow(client, runtime):
    _save(runtime, 0, 60)
    _save(runtime, 100, 130, title="b.go")

    unclassified = client.get("/api/v0/unclassified-sessions").json()
    assert unclassified == [
        {"app_name": "Editor", "window_title": "a.go", "duration_seconds": 60},
        {"app_name": "Editor", "window_title": "b.go", "duration_seconds": 30},
    ]

    response = client.post(
        "/api/v0/classify",
        json={
            "app_name": "Editor",
            "window_title": "a.go",
            "user_defined_name": "Coding",
            "is_helpful": True,
            "goal_context": "Work",
        },
    )
    assert response.status_code == 200
    assert response.json() == {"status": "success", "updated": 1}

    names = [c["user_defined_name"] for c in client.get("/api/v0/classifications").json()]
    assert names == ["Coding"]
    assert len(client.get("/api/v0/unclassified-sessions").json()) == 1


def test_classify_batch(client, runtime):
    _save(runtime, 0, 60)
    _save(runtime, 100, 130, title="b.go")

    response = client.post(
        "/api/v0/classify-batch",
        json={
            "sessions": [
                {"app_name": "Editor", "window_title": "a.go"},
                {"app_name": "Editor", "window_title": "b.go"},
            ],
            "user_defined_name": "Coding",
        },
    )

    assert response.json()["updated"] == 2
    assert client.get("/api/v0/unclassified-sessions").json() == []


def test_blank_name_and_unknown_fields_are_rejected(client):
    blank = client.post(
        "/api/v0/classify",
        json={"app_name": "Editor", "window_title": "a.go", "user_defined_name": "  "},
    )
    assert blank.status_code == 400

    extra = client.post(
        "/api/v0/classify",
        json={
            "app_name": "Editor",
            "window_title": "a.go",
            "user_defined_name": "Coding",
            "colour": "red",
        },
    )
    assert extra.status_code == 422


def test_reclassify_and_delete_session(client, runtime):
    session_id = _save(runtime, 0, 60)

    ok = client.post(
        "/api/v0/reclassify",
        json={"session_id": session_id, "user_defined_name": "Reading"},
    )
    assert ok.status_code == 200

    recent = client.get("/api/v0/recent-activity").json()
    assert recent == [
        {
            "session_id": session_id,
            "app_name": "Editor",
            "window_title": "a.go",
            "user_defined_name": "Reading",
            "start_time": to_unix(at(0)),
            "is_auto": False,
        }
    ]

    assert client.delete(f"/api/v0/sessions/{session_id}").status_code == 200
    assert client.delete(f"/api/v0/sessions/{session_id}").status_code == 404
    missing = client.post(
        "/api/v0/reclassify", json={"session_id": 12345, "user_defined_name": "Reading"}
    )
    assert missing.status_code == 404


def test_rules_endpoints_and_auto_classification(client, runtime):
    created = client.post(
        "/api/v0/rules",
        json={"app_name": "Editor", "window_title_contains": ".go", "user_defined_name": "Coding", "priority": 2},
    )
    assert created.status_code == 201
    rule_id = created.json()["id"]

    rules = client.get("/api/v0/rules").json()
    assert rules == [
        {
            "id": rule_id,
            "app_name": "Editor",
            "window_title_contains": ".go",
            "user_defined_name": "Coding",
            "priority": 2,
        }
    ]

    append_all(runtime.events, [raw(0), raw(20)])
    runtime.processor.run_once()

    recent = client.get("/api/v0/recent-activity").json()
    assert [(r["user_defined_name"], r["is_auto"]) for r in recent] == [("Coding", True)]

    assert client.delete(f"/api/v0/rules/{rule_id}").status_code == 200
    assert client.delete(f"/api/v0/rules/{rule_id}").status_code == 404
    assert client.get("/api/v0/rules").json() == []


def test_rule_requires_app_name(client):
    response = client.post(
        "/api/v0/rules", json={"app_name": " ", "user_defined_name": "Coding"}
    )
    assert response.status_code == 400


def test_today_summary_for_explicit_date(client, runtime):
    coding = runtime.sessions.find_or_create_classification("Coding")
    runtime.sessions.save(
        Session(
            app_name="Editor",
            window_title="a.go",
            start_time=at(0),
            end_time=at(90),
            classification_id=coding,
        )
    )

    body = client.get("/api/v0/today-summary", params={"date": at(0).strftime("%Y-%m-%d")}).json()
    assert body == [{"user_defined_name": "Coding", "total_duration_seconds": 90}]
    assert client.get("/api/v0/today-summary", params={"date": "06/05/2024"}).status_code == 400


def test_app_closes_the_runtime_it_built(tmp_path):
    app = create_app(db_path=tmp_path / "owned.sqlite3", start_tracking=False)
    with TestClient(app) as test_client:
        assert test_client.get("/api/v0/status").status_code == 200

    with pytest.raises(StoreError):
        app.state.runtime.events.pending_count()


def test_app_leaves_a_supplied_runtime_open(runtime):
    app = create_app(runtime=runtime, start_tracking=False)
    with TestClient(app):
        pass

    assert runtime.events.pending_count() == 0
