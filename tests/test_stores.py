from __future__ import annotations

import sqlite3

import pytest

from focus_tracker import db
from focus_tracker.errors import StoreError
from focus_tracker.models import Session

from .helpers import all_sessions, append_all, at, raw


def _session(start, end, app="Editor", title="a.go", classification_id=None):
    return Session(
        app_name=app,
        window_title=title,
        start_time=at(start),
        end_time=at(end),
        classification_id=classification_id,
    )


def test_event_store_orders_by_time_then_insertion(event_store):
    ids = append_all(event_store, [raw(20), raw(5, title="b"), raw(5, title="c")])

    listed = event_store.list_ordered_by_time()

    assert [row_id for row_id, _ in listed] == [ids[1], ids[2], ids[0]]
    assert [sample.window_title for _, sample in listed] == ["b", "c", "a.go"]
    assert all(sample.id == row_id for row_id, sample in listed)


def test_delete_by_ids_removes_only_requested_rows(event_store):
    ids = append_all(event_store, [raw(t) for t in range(5)])

    assert event_store.delete_by_ids(ids[:3]) == 3
    assert event_store.delete_by_ids([]) == 0
    assert [row_id for row_id, _ in event_store.list_ordered_by_time()] == ids[3:]


def test_delete_handles_more_ids_than_one_statement_allows(event_store):
    ids = append_all(event_store, [raw(t) for t in range(1200)])
    assert event_store.delete_by_ids(ids) == 1200
    assert event_store.pending_count() == 0


def test_save_assigns_id_and_duration(session_store, database):
    session = _session(0, 42)
    session_id = session_store.save(session)

    assert session.id == session_id
    stored = session_store.get(session_id)
    assert stored.duration_seconds == 42
    assert stored.start_time == at(0)
    assert all_sessions(database)[0]["duration_seconds"] == 42


def test_find_or_create_classification_is_idempotent(session_store):
    first = session_store.find_or_create_classification("Work", goal_context="Work")
    second = session_store.find_or_create_classification("Work", is_helpful=False)

    assert first == second
    (classification,) = session_store.classifications()
    assert classification.is_helpful is True
    assert classification.goal_context == "Work"


def test_classify_updates_only_unclassified_matching_sessions(session_store):
    other = session_store.find_or_create_classification("Other")
    session_store.save(_session(0, 10))
    session_store.save(_session(20, 30))
    session_store.save(_session(40, 50, title="b.go"))
    session_store.save(_session(60, 70, classification_id=other))

    updated = session_store.classify([("Editor", "a.go")], "Coding")

    assert updated == 2
    assert [(u.window_title, u.total_duration_seconds) for u in session_store.unclassified()] == [
        ("b.go", 10)
    ]


def test_batch_classify_with_no_identities_creates_nothing(session_store):
    assert session_store.classify([], "Coding") == 0
    assert session_store.classifications() == []


def test_classify_is_atomic(session_store, database, monkeypatch):
    session_store.save(_session(0, 10))

    def boom(*args, **kwargs):
        raise sqlite3.OperationalError("simulated failure")

    monkeypatch.setattr(db, "classify_unclassified_sessions", boom)

    with pytest.raises(StoreError):
        session_store.classify([("Editor", "a.go")], "Coding")

    assert session_store.classifications() == []
    assert all_sessions(database)[0]["classification_id"] is None


def test_reclassify_and_delete_unknown_session_raise_lookup_error(session_store):
    with pytest.raises(LookupError):
        session_store.reclassify(999, "Work")
    with pytest.raises(LookupError):
        session_store.delete(999)
    # The failed reclassify rolled back its classification insert.
    assert session_store.classifications() == []


def test_reclassify_marks_session_as_manual(session_store):
    auto = session_store.find_or_create_classification("Auto")
    session = _session(0, 10, classification_id=auto)
    session.auto_classified = True
    session_id = session_store.save(session)

    session_store.reclassify(session_id, "Manual")

    (recent,) = session_store.recent_classified()
    assert recent.user_defined_name == "Manual"
    assert recent.is_auto is False


def test_rules_crud(session_store):
    first = session_store.create_rule("Editor", "", "Coding")
    second = session_store.create_rule("Browser", "docs", "Reading", priority=3)

    rules = session_store.list_rules()
    assert [(r.id, r.user_defined_name, r.priority) for r in rules] == [
        (second, "Reading", 3),
        (first, "Coding", 0),
    ]
    assert [r.id for r in session_store.rules_for_app("Browser")] == [second]

    session_store.delete_rule(first)
    assert [r.id for r in session_store.list_rules()] == [second]
    with pytest.raises(LookupError):
        session_store.delete_rule(first)


def test_summary_for_day_groups_by_classification(session_store):
    coding = session_store.find_or_create_classification("Coding")
    reading = session_store.find_or_create_classification("Reading")
    session_store.save(_session(0, 100, classification_id=coding))
    session_store.save(_session(200, 250, classification_id=coding))
    session_store.save(_session(300, 320, classification_id=reading))
    session_store.save(_session(400, 900))
    session_store.save(_session(90000, 90100, classification_id=reading))

    summary = session_store.summary_for_day(at(0))

    assert [(s.user_defined_name, s.total_duration_seconds) for s in summary] == [
        ("Coding", 150),
        ("Reading", 20),
    ]


def test_recent_classified_is_newest_first(session_store):
    coding = session_store.find_or_create_classification("Coding")
    first = session_store.save(_session(0, 10, classification_id=coding))
    second = session_store.save(_session(20, 30, classification_id=coding))
    session_store.save(_session(40, 50))

    assert [r.session_id for r in session_store.recent_classified()] == [second, first]
    assert [r.session_id for r in session_store.recent_classified(limit=1)] == [second]


def test_store_errors_are_wrapped(database, session_store):
    with database.connection() as conn:
        conn.execute("DROP TABLE classification_rules")
    with pytest.raises(StoreError):
        session_store.rules_for_app("Editor")
