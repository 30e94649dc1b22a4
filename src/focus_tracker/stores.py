"""Thread-safe event and session stores backed by one SQLite connection."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional, Protocol, Sequence

from . import db
from .errors import MalformedRowError, StoreError
from .models import (
    Classification,
    ClassificationRule,
    RawSample,
    RecentActivity,
    RuleInfo,
    Session,
    SummaryItem,
    UnclassifiedActivity,
)

logger = logging.getLogger(__name__)


class EventStoreProtocol(Protocol):
    def append(self, sample: RawSample) -> int: ...

    def list_ordered_by_time(self) -> list[tuple[object, RawSample | MalformedRowError]]: ...

    def delete_by_ids(self, ids: Sequence[int]) -> int: ...


class SessionStoreProtocol(Protocol):
    def save(self, session: Session) -> int: ...

    def rules_for_app(self, app_name: str) -> list[ClassificationRule]: ...


class Database:
    """A shared connection plus the lock that serializes access to it."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()

    @classmethod
    def open(cls, path: Path) -> "Database":
        try:
            conn = db.open_database(path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StoreError(f"could not open database at {path}: {exc}") from exc
        return cls(conn)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as exc:
                raise StoreError(str(exc)) from exc

    @contextmanager
    def atomic(self) -> Iterator[sqlite3.Connection]:
        with self.connection() as conn, db.transaction(conn):
            yield conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class EventStore:
    """Append-only log of raw samples awaiting segmentation."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def append(self, sample: RawSample) -> int:
        with self._db.connection() as conn:
            return db.insert_raw_sample(conn, sample)

    def list_ordered_by_time(self) -> list[tuple[object, RawSample | MalformedRowError]]:
        """Return ``(row id, sample)`` pairs; unreadable rows carry the error instead."""
        with self._db.connection() as conn:
            rows = db.fetch_raw_sample_rows(conn)
        results: list[tuple[object, RawSample | MalformedRowError]] = []
        for row in rows:
            try:
                results.append((row["id"], db.row_to_raw_sample(row)))
            except MalformedRowError as exc:
                results.append((row["id"], exc))
        return results

    def delete_by_ids(self, ids: Sequence[int]) -> int:
        if not ids:
            return 0
        with self._db.atomic() as conn:
            return db.delete_raw_samples(conn, ids)

    def pending_count(self) -> int:
        with self._db.connection() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM raw_events").fetchone()[0])


class SessionStore:
    """Finished sessions, classifications and the rules that assign them."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def save(self, session: Session) -> int:
        with self._db.connection() as conn:
            session_id = db.insert_session(conn, session)
        session.id = session_id
        return session_id

    def get(self, session_id: int) -> Optional[Session]:
        with self._db.connection() as conn:
            row = db.fetch_session(conn, session_id)
        return db.row_to_session(row) if row is not None else None

    def rules_for_app(self, app_name: str) -> list[ClassificationRule]:
        with self._db.connection() as conn:
            return db.fetch_rules_for_app(conn, app_name)

    def find_or_create_classification(
        self, name: str, *, is_helpful: bool = True, goal_context: str = ""
    ) -> int:
        with self._db.atomic() as conn:
            return db.find_or_create_classification(
                conn, name, is_helpful=is_helpful, goal_context=goal_context
            )

    def classify(
        self,
        identities: Iterable[tuple[str, str]],
        name: str,
        *,
        is_helpful: bool = True,
        goal_context: str = "",
    ) -> int:
        """Label all unclassified sessions with the given identities; returns rows updated."""
        pairs = list(identities)
        if not pairs:
            return 0
        with self._db.atomic() as conn:
            classification_id = db.find_or_create_classification(
                conn, name, is_helpful=is_helpful, goal_context=goal_context
            )
            updated = db.classify_unclassified_sessions(conn, pairs, classification_id)
        logger.info("Classified %d session(s) as %r.", updated, name)
        return updated

    def reclassify(
        self,
        session_id: int,
        name: str,
        *,
        is_helpful: bool = True,
        goal_context: str = "",
    ) -> None:
        with self._db.atomic() as conn:
            classification_id = db.find_or_create_classification(
                conn, name, is_helpful=is_helpful, goal_context=goal_context
            )
            db.set_session_classification(conn, session_id, classification_id)

    def delete(self, session_id: int) -> None:
        with self._db.connection() as conn:
            db.delete_session(conn, session_id)

    def create_rule(
        self,
        app_name: str,
        window_title_contains: str,
        name: str,
        *,
        is_helpful: bool = True,
        goal_context: str = "",
        priority: int = 0,
    ) -> int:
        with self._db.atomic() as conn:
            classification_id = db.find_or_create_classification(
                conn, name, is_helpful=is_helpful, goal_context=goal_context
            )
            return db.insert_rule(
                conn, app_name, window_title_contains, classification_id, priority
            )

    def delete_rule(self, rule_id: int) -> None:
        with self._db.connection() as conn:
            db.delete_rule(conn, rule_id)

    def list_rules(self) -> list[RuleInfo]:
        with self._db.connection() as conn:
            rows = db.fetch_rule_infos(conn)
        return [
            RuleInfo(
                id=row["id"],
                app_name=row["app_name"],
                window_title_contains=row["window_title_contains"],
                user_defined_name=row["user_defined_name"],
                priority=row["priority"],
            )
            for row in rows
        ]

    def classifications(self) -> list[Classification]:
        with self._db.connection() as conn:
            rows = db.fetch_classifications(conn)
        return [
            Classification(
                id=row["id"],
                user_defined_name=row["user_defined_name"],
                is_helpful=bool(row["is_helpful"]),
                goal_context=row["goal_context"],
            )
            for row in rows
        ]

    def unclassified(self) -> list[UnclassifiedActivity]:
        with self._db.connection() as conn:
            rows = db.fetch_unclassified_activities(conn)
        return [
            UnclassifiedActivity(
                app_name=row["app_name"],
                window_title=row["window_title"],
                total_duration_seconds=int(row["total_duration"] or 0),
            )
            for row in rows
        ]

    def summary_for_day(self, day: datetime) -> list[SummaryItem]:
        with self._db.connection() as conn:
            rows = db.fetch_summary_for_day(conn, day)
        return [
            SummaryItem(
                user_defined_name=row["user_defined_name"],
                total_duration_seconds=int(row["total_duration"]),
            )
            for row in rows
        ]

    def recent_classified(self, limit: int = 50) -> list[RecentActivity]:
        with self._db.connection() as conn:
            rows = db.fetch_recent_classified(conn, limit)
        return [
            RecentActivity(
                session_id=row["id"],
                app_name=row["app_name"],
                window_title=row["window_title"],
                user_defined_name=row["user_defined_name"],
                start_time=db.from_unix(row["start_time"]),
                is_auto=bool(row["auto_classified"]),
            )
            for row in rows
        ]
