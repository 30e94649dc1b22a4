"""Exception types raised by the tracker core."""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for recoverable tracker failures."""


class PowerStateUnavailable(TrackerError):
    """Sampling is impossible because the machine is asleep, locked or idle."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"tracking paused: {reason}")
        self.reason = reason


class TransientError(TrackerError):
    """The activity source failed for a reason unrelated to power state."""


class StoreError(TrackerError):
    """A database operation failed."""


class MalformedRowError(StoreError):
    """A stored row could not be converted into a domain object."""

    def __init__(self, row_id: object, detail: str) -> None:
        super().__init__(f"malformed row id={row_id!r}: {detail}")
        self.row_id = row_id
