"""Periodic aggregation of raw samples into sessions."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Optional

from .errors import TrackerError
from .segmentation import PassResult, SegmentationEngine
from .signals import PauseMailbox

logger = logging.getLogger(__name__)


class Processor:
    """Runs the segmentation engine on a fixed period unless paused."""

    def __init__(
        self,
        engine: SegmentationEngine,
        interval: timedelta = timedelta(minutes=1),
        mailbox: Optional[PauseMailbox] = None,
    ) -> None:
        self._engine = engine
        self.interval = interval
        self._mailbox = mailbox or PauseMailbox()
        self._paused = False
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def is_paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        self._mailbox.post(True)

    def resume(self) -> None:
        self._mailbox.post(False)

    def apply_signals(self) -> None:
        """Apply the latest pause/resume request; redundant requests are ignored."""
        requested = self._mailbox.take()
        if requested is None or requested == self._paused:
            return
        self._paused = requested
        if requested:
            logger.info("Processor paused - system inactive")
        else:
            logger.info("Processor resumed - system active")

    def tick(self) -> Optional[PassResult]:
        """Handle one period: apply signals, then run a pass unless paused."""
        self.apply_signals()
        if self._paused:
            return None
        return self.run_once()

    def run_once(self) -> Optional[PassResult]:
        logger.debug("Processor running...")
        try:
            return self._engine.run_pass()
        except TrackerError:
            logger.exception("Error processing raw events; retrying next tick.")
        except Exception:  # pragma: no cover - keeps the loop alive
            logger.exception("Unexpected error processing raw events.")
        return None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                name="focus-processor",
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
        logger.info("Processor started (every %ss).", self.interval.total_seconds())

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
        logger.info("Processor stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def _run_loop(self, stop_event: threading.Event) -> None:
        interval = self.interval.total_seconds()
        while not stop_event.wait(interval):
            self.tick()
