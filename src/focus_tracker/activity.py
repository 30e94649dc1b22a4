"""Activity sources: report the focused application and window."""

from __future__ import annotations

import ctypes
import logging
import sys
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

import psutil

from .errors import PowerStateUnavailable, TransientError
from .models import ActivitySample, PowerState

logger = logging.getLogger(__name__)


class ActivitySource(ABC):
    """Platform-independent view of what the user is looking at."""

    @abstractmethod
    def sample(self) -> ActivitySample:
        """Return the focused app and window.

        Raises ``PowerStateUnavailable`` when the machine is asleep, locked or
        idle, and ``TransientError`` for any other failure.
        """

    @abstractmethod
    def power_state(self) -> Optional[PowerState]:
        """Best-effort power snapshot; ``None`` when it cannot be determined."""


class WindowsActivitySource(ActivitySource):
    """Reads the foreground window through user32 and its process via psutil."""

    def __init__(self, idle_threshold: timedelta = timedelta(minutes=5)) -> None:
        from ctypes import wintypes

        class LASTINPUTINFO(ctypes.Structure):
            _fields_ = [("cbSize", wintypes.UINT), ("dwTime", wintypes.DWORD)]

        self._wintypes = wintypes
        self._last_input_info = LASTINPUTINFO
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
        self._kernel32.GetTickCount64.restype = ctypes.c_ulonglong
        self.idle_threshold = idle_threshold

    def sample(self) -> ActivitySample:
        state = self.power_state()
        reason = state.pause_reason() if state else None
        if reason:
            raise PowerStateUnavailable(reason)

        hwnd = self._user32.GetForegroundWindow()
        if not hwnd:
            # Lock screen and secure desktop have no foreground window.
            raise PowerStateUnavailable("Screen is locked")

        length = self._user32.GetWindowTextLengthW(hwnd)
        buffer = ctypes.create_unicode_buffer(length + 1)
        self._user32.GetWindowTextW(hwnd, buffer, length + 1)
        window_title = buffer.value.strip()

        pid = self._wintypes.DWORD()
        self._user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        if not pid.value:
            raise TransientError("foreground window has no owning process")
        try:
            app_name = psutil.Process(pid.value).name()
        except (psutil.Error, ProcessLookupError) as exc:
            raise TransientError(f"could not resolve process {pid.value}: {exc}") from exc
        return ActivitySample(app_name=app_name, window_title=window_title)

    def power_state(self) -> Optional[PowerState]:
        try:
            idle_ms = self._milliseconds_since_input()
        except OSError:
            logger.debug("Failed to query idle state.", exc_info=True)
            return None
        return PowerState(
            is_idle=idle_ms >= self.idle_threshold.total_seconds() * 1000,
            observed_at=datetime.now(),
        )

    def _milliseconds_since_input(self) -> int:
        last_input = self._last_input_info()
        last_input.cbSize = ctypes.sizeof(last_input)
        if not self._user32.GetLastInputInfo(ctypes.byref(last_input)):
            raise ctypes.WinError()  # type: ignore[attr-defined]
        return int(self._kernel32.GetTickCount64() - last_input.dwTime)


def create_activity_source(idle_threshold: timedelta = timedelta(minutes=5)) -> ActivitySource:
    """Return the activity source for the running platform."""
    if sys.platform == "win32":
        return WindowsActivitySource(idle_threshold=idle_threshold)
    raise TransientError(f"no activity source available for platform {sys.platform!r}")
