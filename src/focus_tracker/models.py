"""Domain models for samples, sessions and classifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True, slots=True)
class ActivitySample:
    """What the activity source reports for the focused window."""

    app_name: str
    window_title: str


@dataclass(frozen=True, slots=True)
class RawSample:
    """A single point-in-time observation stored in the event log."""

    timestamp: datetime
    app_name: str
    window_title: str
    id: Optional[int] = None

    @property
    def identity(self) -> tuple[str, str]:
        return self.app_name, self.window_title


@dataclass(slots=True)
class Session:
    """A contiguous block of time spent on a single activity."""

    app_name: str
    window_title: str
    start_time: datetime
    end_time: datetime
    classification_id: Optional[int] = None
    auto_classified: bool = False
    id: Optional[int] = None

    @property
    def duration_seconds(self) -> int:
        return int((self.end_time - self.start_time).total_seconds())


@dataclass(frozen=True, slots=True)
class Classification:
    id: int
    user_defined_name: str
    is_helpful: bool
    goal_context: str


@dataclass(frozen=True, slots=True)
class ClassificationRule:
    """Sessions whose app matches and whose title contains the text get the label."""

    id: int
    app_name: str
    window_title_contains: str
    classification_id: int
    priority: int = 0

    def matches(self, app_name: str, window_title: str) -> bool:
        return self.app_name == app_name and self.window_title_contains in window_title


@dataclass(frozen=True, slots=True)
class PowerState:
    is_sleeping: bool = False
    is_locked: bool = False
    is_display_sleeping: bool = False
    is_idle: bool = False
    observed_at: datetime = field(default_factory=datetime.now)

    def pause_reason(self) -> Optional[str]:
        """Return why sampling should stop, or ``None`` when it may continue."""
        if self.is_sleeping:
            return "System is sleeping"
        if self.is_locked:
            return "Screen is locked"
        if self.is_display_sleeping:
            return "Display is sleeping"
        if self.is_idle:
            return "System is idle"
        return None


@dataclass(frozen=True, slots=True)
class SummaryItem:
    user_defined_name: str
    total_duration_seconds: int


@dataclass(frozen=True, slots=True)
class UnclassifiedActivity:
    app_name: str
    window_title: str
    total_duration_seconds: int


@dataclass(frozen=True, slots=True)
class RecentActivity:
    session_id: int
    app_name: str
    window_title: str
    user_defined_name: str
    start_time: datetime
    is_auto: bool


@dataclass(frozen=True, slots=True)
class RuleInfo:
    id: int
    app_name: str
    window_title_contains: str
    user_defined_name: str
    priority: int
