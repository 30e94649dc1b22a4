"""SQLite database layer for raw samples, sessions and classifications."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from .errors import MalformedRowError
from .models import ClassificationRule, RawSample, Session

# Keeps IN (...) lists under SQLite's default host parameter limit.
_DELETE_CHUNK = 500


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    path = Path(path)
    if str(path) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the enclosed statements atomically; roll back on any error."""
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS raw_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp INTEGER NOT NULL,
            app_name TEXT NOT NULL,
            window_title TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_raw_events_timestamp
            ON raw_events(timestamp, id);

        CREATE TABLE IF NOT EXISTS classifications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_defined_name TEXT NOT NULL UNIQUE,
            is_helpful INTEGER NOT NULL,
            goal_context TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS activity_sessions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            app_name TEXT NOT NULL,
            window_title TEXT NOT NULL,
            start_time INTEGER NOT NULL,
            end_time INTEGER NOT NULL,
            duration_seconds INTEGER NOT NULL,
            classification_id INTEGER,
            auto_classified INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY(classification_id) REFERENCES classifications(id)
        );

        CREATE INDEX IF NOT EXISTS idx_sessions_start_time
            ON activity_sessions(start_time);

        CREATE TABLE IF NOT EXISTS classification_rules (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            app_name TEXT NOT NULL,
            window_title_contains TEXT NOT NULL,
            classification_id INTEGER NOT NULL,
            priority INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY(classification_id) REFERENCES classifications(id) ON DELETE CASCADE
        );
        """
    )


def to_unix(value: datetime) -> int:
    return int(value.timestamp())


def from_unix(value: int) -> datetime:
    """Convert stored seconds to an aware local datetime; differences are elapsed time."""
    return datetime.fromtimestamp(value, tz=timezone.utc).astimezone()


def local_now() -> datetime:
    return datetime.now(tz=timezone.utc).astimezone()


# --- raw samples -----------------------------------------------------------


def insert_raw_sample(conn: sqlite3.Connection, sample: RawSample) -> int:
    cur = conn.execute(
        "INSERT INTO raw_events (timestamp, app_name, window_title) VALUES (?, ?, ?)",
        (to_unix(sample.timestamp), sample.app_name, sample.window_title),
    )
    return int(cur.lastrowid)


def fetch_raw_sample_rows(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    """Return every pending raw sample, oldest first; equal timestamps keep insertion order."""
    return list(
        conn.execute(
            """
            SELECT id, timestamp, app_name, window_title
            FROM raw_events
            ORDER BY timestamp ASC, id ASC;
            """
        )
    )


def row_to_raw_sample(row: sqlite3.Row) -> RawSample:
    row_id = row["id"]
    ts = row["timestamp"]
    app_name = row["app_name"]
    window_title = row["window_title"]
    if not isinstance(row_id, int):
        raise MalformedRowError(row_id, "id is not an integer")
    if not isinstance(ts, int):
        raise MalformedRowError(row_id, f"timestamp {ts!r} is not an integer")
    if not isinstance(app_name, str) or not isinstance(window_title, str):
        raise MalformedRowError(row_id, "app_name and window_title must be text")
    try:
        timestamp = from_unix(ts)
    except (OverflowError, OSError, ValueError) as exc:
        raise MalformedRowError(row_id, f"timestamp {ts!r} out of range") from exc
    return RawSample(
        id=row_id, timestamp=timestamp, app_name=app_name, window_title=window_title
    )


def delete_raw_samples(conn: sqlite3.Connection, ids: Sequence[int]) -> int:
    deleted = 0
    for offset in range(0, len(ids), _DELETE_CHUNK):
        chunk = list(ids[offset : offset + _DELETE_CHUNK])
        placeholders = ", ".join("?" for _ in chunk)
        cur = conn.execute(
            f"DELETE FROM raw_events WHERE id IN ({placeholders})", chunk
        )
        deleted += cur.rowcount
    return deleted


# --- sessions --------------------------------------------------------------


def insert_session(conn: sqlite3.Connection, session: Session) -> int:
    cur = conn.execute(
        """
        INSERT INTO activity_sessions (
            app_name,
            window_title,
            start_time,
            end_time,
            duration_seconds,
            classification_id,
            auto_classified
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            session.app_name,
            session.window_title,
            to_unix(session.start_time),
            to_unix(session.end_time),
            session.duration_seconds,
            session.classification_id,
            1 if session.auto_classified else 0,
        ),
    )
    return int(cur.lastrowid)


def fetch_session(conn: sqlite3.Connection, session_id: int) -> sqlite3.Row | None:
    return conn.execute(
        """
        SELECT id, app_name, window_title, start_time, end_time,
               duration_seconds, classification_id, auto_classified
        FROM activity_sessions
        WHERE id = ?
        """,
        (session_id,),
    ).fetchone()


def row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        id=row["id"],
        app_name=row["app_name"],
        window_title=row["window_title"],
        start_time=from_unix(row["start_time"]),
        end_time=from_unix(row["end_time"]),
        classification_id=row["classification_id"],
        auto_classified=bool(row["auto_classified"]),
    )


def classify_unclassified_sessions(
    conn: sqlite3.Connection,
    identities: Iterable[tuple[str, str]],
    classification_id: int,
) -> int:
    """Label every still-unclassified session matching one of the identities."""
    pairs = list(identities)
    if not pairs:
        return 0
    clauses = " OR ".join("(app_name = ? AND window_title = ?)" for _ in pairs)
    params: list[object] = [classification_id]
    for app_name, window_title in pairs:
        params.extend((app_name, window_title))
    cur = conn.execute(
        f"""
        UPDATE activity_sessions
        SET classification_id = ?, auto_classified = 0
        WHERE classification_id IS NULL AND ({clauses})
        """,
        params,
    )
    return cur.rowcount


def set_session_classification(
    conn: sqlite3.Connection, session_id: int, classification_id: int
) -> None:
    cur = conn.execute(
        """
        UPDATE activity_sessions
        SET classification_id = ?, auto_classified = 0
        WHERE id = ?
        """,
        (classification_id, session_id),
    )
    if cur.rowcount == 0:
        raise LookupError(f"No session found for id={session_id}")


def delete_session(conn: sqlite3.Connection, session_id: int) -> None:
    cur = conn.execute("DELETE FROM activity_sessions WHERE id = ?", (session_id,))
    if cur.rowcount == 0:
        raise LookupError(f"No session found for id={session_id}")


# --- classifications and rules --------------------------------------------


def find_or_create_classification(
    conn: sqlite3.Connection,
    user_defined_name: str,
    *,
    is_helpful: bool,
    goal_context: str,
) -> int:
    row = conn.execute(
        "SELECT id FROM classifications WHERE user_defined_name = ?",
        (user_defined_name,),
    ).fetchone()
    if row is not None:
        return int(row["id"])
    cur = conn.execute(
        """
        INSERT INTO classifications (user_defined_name, is_helpful, goal_context)
        VALUES (?, ?, ?)
        """,
        (user_defined_name, 1 if is_helpful else 0, goal_context),
    )
    return int(cur.lastrowid)


def fetch_classifications(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            """
            SELECT id, user_defined_name, is_helpful, goal_context
            FROM classifications
            ORDER BY user_defined_name COLLATE NOCASE;
            """
        )
    )


def insert_rule(
    conn: sqlite3.Connection,
    app_name: str,
    window_title_contains: str,
    classification_id: int,
    priority: int = 0,
) -> int:
    cur = conn.execute(
        """
        INSERT INTO classification_rules (
            app_name, window_title_contains, classification_id, priority
        ) VALUES (?, ?, ?, ?)
        """,
        (app_name, window_title_contains, classification_id, priority),
    )
    return int(cur.lastrowid)


def fetch_rules_for_app(conn: sqlite3.Connection, app_name: str) -> list[ClassificationRule]:
    rows = conn.execute(
        """
        SELECT id, app_name, window_title_contains, classification_id, priority
        FROM classification_rules
        WHERE app_name = ?
        ORDER BY priority DESC, id DESC;
        """,
        (app_name,),
    )
    return [
        ClassificationRule(
            id=row["id"],
            app_name=row["app_name"],
            window_title_contains=row["window_title_contains"],
            classification_id=row["classification_id"],
            priority=row["priority"],
        )
        for row in rows
    ]


def fetch_rule_infos(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            """
            SELECT r.id, r.app_name, r.window_title_contains, r.priority,
                   c.user_defined_name
            FROM classification_rules r
            JOIN classifications c ON r.classification_id = c.id
            ORDER BY r.id DESC;
            """
        )
    )


def delete_rule(conn: sqlite3.Connection, rule_id: int) -> None:
    cur = conn.execute("DELETE FROM classification_rules WHERE id = ?", (rule_id,))
    if cur.rowcount == 0:
        raise LookupError(f"No rule found for id={rule_id}")


# --- reporting --------------------------------------------------------------


def fetch_unclassified_activities(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    """Distinct unlabeled (app, title) pairs with their accumulated time."""
    return list(
        conn.execute(
            """
            SELECT app_name, window_title, SUM(duration_seconds) AS total_duration
            FROM activity_sessions
            WHERE classification_id IS NULL
            GROUP BY app_name, window_title
            ORDER BY total_duration DESC;
            """
        )
    )


def fetch_summary_for_day(conn: sqlite3.Connection, day: datetime) -> list[sqlite3.Row]:
    """Return total classified seconds per classification for a local day."""
    # Local midnights taken from the calendar date so DST days keep their real length.
    start = datetime(day.year, day.month, day.day)
    end = start + timedelta(days=1)
    return list(
        conn.execute(
            """
            SELECT c.user_defined_name, SUM(s.duration_seconds) AS total_duration
            FROM activity_sessions s
            JOIN classifications c ON s.classification_id = c.id
            WHERE s.start_time >= ? AND s.start_time < ?
            GROUP BY c.user_defined_name
            HAVING total_duration > 0
            ORDER BY total_duration DESC;
            """,
            (to_unix(start), to_unix(end)),
        )
    )


def fetch_recent_classified(conn: sqlite3.Connection, limit: int = 50) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            """
            SELECT s.id, s.app_name, s.window_title, s.start_time,
                   s.auto_classified, c.user_defined_name
            FROM activity_sessions s
            JOIN classifications c ON s.classification_id = c.id
            ORDER BY s.start_time DESC, s.id DESC
            LIMIT ?;
            """,
            (limit,),
        )
    )
