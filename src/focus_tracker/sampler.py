"""Adaptive sampling loop: fast polling while active, slow while paused."""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

from .activity import ActivitySource
from .config import TrackerSettings
from .db import local_now
from .errors import PowerStateUnavailable, StoreError, TransientError
from .models import RawSample
from .stores import EventStoreProtocol

logger = logging.getLogger(__name__)


class PauseTarget(Protocol):
    def pause(self) -> None: ...

    def resume(self) -> None: ...


class SamplingMode(enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"


@dataclass(frozen=True, slots=True)
class SamplerState:
    mode: SamplingMode
    interval: timedelta


class AdaptiveSampler:
    """Polls the activity source and appends samples to the event store.

    The sampler owns its ``SamplerState``; only ``step`` replaces it. Other
    components observe it through ``mode`` and ``interval``.
    """

    def __init__(
        self,
        source: ActivitySource,
        events: EventStoreProtocol,
        target: PauseTarget,
        settings: Optional[TrackerSettings] = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._source = source
        self._events = events
        self._target = target
        self.settings = settings or TrackerSettings()
        self._clock = clock
        self._state = SamplerState(SamplingMode.ACTIVE, self.settings.active_interval)
        self._last_power_log: Optional[datetime] = None
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def mode(self) -> SamplingMode:
        return self._state.mode

    @property
    def interval(self) -> timedelta:
        return self._state.interval

    def step(self) -> SamplerState:
        """Poll once, record the sample and apply any mode transition."""
        now = self._clock()
        try:
            activity = self._source.sample()
        except PowerStateUnavailable as exc:
            self._enter_paused(exc.reason)
            return self._state
        except TransientError as exc:
            logger.warning("Error getting activity: %s", exc)
            return self._state
        except Exception:
            logger.exception("Unexpected error getting activity.")
            return self._state

        if self._state.mode is SamplingMode.PAUSED:
            self._enter_active()

        if activity.app_name:
            sample = RawSample(
                timestamp=now,
                app_name=activity.app_name,
                window_title=activity.window_title,
            )
            try:
                self._events.append(sample)
            except StoreError:
                logger.exception("Error inserting raw event.")
            else:
                logger.debug("Logged raw event: %s - %s", sample.app_name, sample.window_title)

        self._maybe_log_power_state(now)
        return self._state

    def _enter_paused(self, reason: str) -> None:
        if self._state.mode is SamplingMode.PAUSED:
            return
        interval = self.settings.paused_interval
        logger.info("Tracking paused: %s", reason)
        logger.info(
            "Switching to battery conservation mode (polling every %ss)",
            interval.total_seconds(),
        )
        self._state = SamplerState(SamplingMode.PAUSED, interval)
        self._target.pause()

    def _enter_active(self) -> None:
        interval = self.settings.active_interval
        logger.info("Tracking resumed - system is active")
        logger.info(
            "Switching back to active tracking mode (polling every %ss)",
            interval.total_seconds(),
        )
        self._state = SamplerState(SamplingMode.ACTIVE, interval)
        self._target.resume()

    def _maybe_log_power_state(self, now: datetime) -> None:
        if (
            self._last_power_log is not None
            and now - self._last_power_log < self.settings.power_log_interval
        ):
            return
        try:
            state = self._source.power_state()
        except Exception:
            logger.debug("Power state query failed.", exc_info=True)
            return
        if state is None:
            return
        logger.info(
            "Power state - sleeping: %s, locked: %s, display sleep: %s, idle: %s",
            state.is_sleeping,
            state.is_locked,
            state.is_display_sleeping,
            state.is_idle,
        )
        self._last_power_log = now

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                name="focus-sampler",
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
        logger.info("Sampler started. Tracking activity...")

    def stop(self, timeout: float = 10.0) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        thread.join(timeout=timeout)
        logger.info("Sampler stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def _run_loop(self, stop_event: threading.Event) -> None:
        # One wait per cycle, so a new interval replaces the old one outright.
        while not stop_event.is_set():
            state = self.step()
            if stop_event.wait(state.interval.total_seconds()):
                break
