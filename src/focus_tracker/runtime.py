"""Wire the stores, engine and both loops into one runnable unit."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from .activity import ActivitySource, create_activity_source
from .config import TrackerSettings
from .processor import Processor
from .rules import RuleMatcher
from .sampler import AdaptiveSampler
from .segmentation import SegmentationEngine
from .stores import Database, EventStore, SessionStore

logger = logging.getLogger(__name__)


class TrackerRuntime:
    """Owns the database handle and the sampler/processor background threads."""

    def __init__(
        self,
        db_path: Path,
        settings: Optional[TrackerSettings] = None,
        source: Optional[ActivitySource] = None,
    ) -> None:
        self.db_path = Path(db_path)
        self.settings = settings or TrackerSettings()
        self.database = Database.open(self.db_path)
        self.events = EventStore(self.database)
        self.sessions = SessionStore(self.database)
        self.engine = SegmentationEngine(
            self.events,
            self.sessions,
            RuleMatcher(self.sessions),
            gap_threshold=self.settings.gap_threshold,
            min_duration=self.settings.min_session_duration,
        )
        self.processor = Processor(self.engine, self.settings.processing_interval)
        self._source = source
        self._sampler: Optional[AdaptiveSampler] = None
        self._lock = threading.Lock()

    @property
    def sampler(self) -> Optional[AdaptiveSampler]:
        return self._sampler

    def start(self) -> None:
        with self._lock:
            if self._sampler is None:
                source = self._source or create_activity_source(self.settings.idle_threshold)
                self._sampler = AdaptiveSampler(
                    source, self.events, self.processor, self.settings
                )
            self._sampler.start()
            self.processor.start()
        logger.info("Tracker running; writing to %s", self.db_path)

    def stop(self) -> None:
        with self._lock:
            if self._sampler is not None:
                self._sampler.stop()
            self.processor.stop()

    def close(self) -> None:
        self.stop()
        self.database.close()

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._sampler and self._sampler.is_running())

    def status(self) -> Dict[str, Any]:
        sampler = self._sampler
        return {
            "tracking": self.is_running(),
            "sampling_mode": sampler.mode.value if sampler else None,
            "sampling_seconds": sampler.interval.total_seconds() if sampler else None,
            "processor_running": self.processor.is_running(),
            "processor_paused": self.processor.is_paused,
            "pending_samples": self.events.pending_count(),
            "database_path": str(self.db_path),
        }
