"""Configuration models and helpers for the focus tracker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the sampling and processing loops."""

    active_interval: timedelta = timedelta(seconds=5)
    paused_interval: timedelta = timedelta(seconds=30)
    processing_interval: timedelta = timedelta(minutes=1)
    gap_threshold: timedelta = timedelta(seconds=30)
    min_session_duration: timedelta = timedelta(seconds=5)
    idle_threshold: timedelta = timedelta(minutes=5)
    power_log_interval: timedelta = timedelta(minutes=5)

    @classmethod
    def from_intervals(
        cls,
        sample_seconds: float,
        paused_seconds: float | None = None,
        processing_seconds: float = 60.0,
        idle_minutes: float = 5.0,
    ) -> "TrackerSettings":
        paused = paused_seconds if paused_seconds is not None else max(sample_seconds * 6, 30.0)
        return cls(
            active_interval=timedelta(seconds=sample_seconds),
            paused_interval=timedelta(seconds=paused),
            processing_interval=timedelta(seconds=processing_seconds),
            idle_threshold=timedelta(minutes=idle_minutes),
        )
