"""Single-slot, coalescing pause/resume mailbox shared by the two loops."""

from __future__ import annotations

import threading
from typing import Optional


class PauseMailbox:
    """Holds only the most recently requested state; posting never blocks."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Optional[bool] = None

    def post(self, paused: bool) -> bool:
        """Request a state; returns ``False`` when it was already pending."""
        with self._lock:
            if self._pending is paused:
                return False
            self._pending = paused
            return True

    def take(self) -> Optional[bool]:
        with self._lock:
            pending, self._pending = self._pending, None
            return pending
