from __future__ import annotations

from collections import deque
from datetime import datetime, timedelta
from typing import Iterable, Optional, Union

from focus_tracker.activity import ActivitySource
from focus_tracker.models import ActivitySample, PowerState, RawSample
from focus_tracker.stores import Database, EventStore

BASE_TIME = datetime(2024, 5, 6, 9, 0, 0).astimezone()


def at(seconds: float) -> datetime:
    return BASE_TIME + timedelta(seconds=seconds)


def raw(
    seconds: float,
    app: str = "Editor",
    title: str = "a.go",
    sample_id: Optional[int] = None,
) -> RawSample:
    return RawSample(timestamp=at(seconds), app_name=app, window_title=title, id=sample_id)


class FakeSource(ActivitySource):
    """Replays scripted samples or exceptions, then repeats the last entry."""

    def __init__(self, script: Iterable[Union[ActivitySample, Exception]] = ()) -> None:
        self.script = deque(script) or deque([ActivitySample("Editor", "a.go")])
        self.calls = 0
        self.power: Optional[PowerState] = PowerState()
        self.power_calls = 0

    def sample(self) -> ActivitySample:
        self.calls += 1
        item = self.script.popleft() if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return item

    def power_state(self) -> Optional[PowerState]:
        self.power_calls += 1
        return self.power


def append_all(store: EventStore, samples: Iterable[RawSample]) -> list[int]:
    return [store.append(sample) for sample in samples]


def all_sessions(database: Database) -> list[dict]:
    with database.connection() as conn:
        rows = conn.execute(
            "SELECT app_name, window_title, start_time, end_time, duration_seconds, "
            "classification_id, auto_classified FROM activity_sessions ORDER BY start_time, id"
        ).fetchall()
    return [dict(row) for row in rows]
