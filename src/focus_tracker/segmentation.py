"""Fold the raw sample backlog into finished sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Iterator, Optional

from .errors import MalformedRowError, StoreError
from .models import RawSample, Session
from .rules import RuleMatcher
from .stores import EventStoreProtocol, SessionStoreProtocol

logger = logging.getLogger(__name__)

DEFAULT_GAP_THRESHOLD = timedelta(seconds=30)
DEFAULT_MIN_DURATION = timedelta(seconds=5)


@dataclass(slots=True)
class ClosedRun:
    """A run of same-identity samples and whether it is long enough to keep."""

    session: Session
    sample_ids: list[int]
    persist: bool


@dataclass(slots=True)
class _OpenRun:
    app_name: str
    window_title: str
    start_time: datetime
    last_time: datetime
    sample_ids: list[int] = field(default_factory=list)

    def close(self, min_duration: timedelta) -> ClosedRun:
        session = Session(
            app_name=self.app_name,
            window_title=self.window_title,
            start_time=self.start_time,
            end_time=self.last_time,
        )
        return ClosedRun(
            session=session,
            sample_ids=self.sample_ids,
            persist=session.duration_seconds > min_duration.total_seconds(),
        )


def fold_samples(
    samples: Iterable[RawSample],
    *,
    gap_threshold: timedelta = DEFAULT_GAP_THRESHOLD,
    min_duration: timedelta = DEFAULT_MIN_DURATION,
) -> Iterator[ClosedRun]:
    """Yield one closed run per identity change or gap, in time order.

    ``samples`` must already be sorted by timestamp. The trailing run is closed
    at the last sample's timestamp.
    """
    current: Optional[_OpenRun] = None
    for sample in samples:
        if current is not None and (
            (current.app_name, current.window_title) != sample.identity
            or sample.timestamp - current.last_time > gap_threshold
        ):
            yield current.close(min_duration)
            current = None
        if current is None:
            current = _OpenRun(
                app_name=sample.app_name,
                window_title=sample.window_title,
                start_time=sample.timestamp,
                last_time=sample.timestamp,
            )
        current.last_time = sample.timestamp
        if sample.id is not None:
            current.sample_ids.append(sample.id)
    if current is not None:
        yield current.close(min_duration)


@dataclass(slots=True)
class PassResult:
    scanned: int = 0
    sessions: list[Session] = field(default_factory=list)
    dropped: int = 0
    skipped: int = 0
    deleted: int = 0


class SegmentationEngine:
    """Turns every pending raw sample into sessions and clears the backlog."""

    def __init__(
        self,
        events: EventStoreProtocol,
        sessions: SessionStoreProtocol,
        matcher: Optional[RuleMatcher] = None,
        *,
        gap_threshold: timedelta = DEFAULT_GAP_THRESHOLD,
        min_duration: timedelta = DEFAULT_MIN_DURATION,
    ) -> None:
        self._events = events
        self._sessions = sessions
        self._matcher = matcher if matcher is not None else RuleMatcher(sessions)
        self.gap_threshold = gap_threshold
        self.min_duration = min_duration

    def run_pass(self) -> PassResult:
        """Process the current backlog once.

        Only rows returned by the initial scan are deleted, so samples appended
        while the pass runs wait for the next one. If saving a session fails,
        the samples of runs settled before the failure are deleted, the rest
        are kept for retry, and the ``StoreError`` is re-raised.
        """
        entries = self._events.list_ordered_by_time()
        result = PassResult(scanned=len(entries))
        samples: list[RawSample] = []
        settled: list[int] = []

        for row_id, item in entries:
            if isinstance(item, MalformedRowError):
                logger.warning("Skipping unreadable raw sample: %s", item)
                result.skipped += 1
                if isinstance(row_id, int):
                    settled.append(row_id)
                continue
            samples.append(item)

        try:
            for run in fold_samples(
                samples,
                gap_threshold=self.gap_threshold,
                min_duration=self.min_duration,
            ):
                if run.persist:
                    self._persist(run.session)
                    result.sessions.append(run.session)
                else:
                    result.dropped += 1
                    logger.debug(
                        "Dropped %ds session for %s - %s.",
                        run.session.duration_seconds,
                        run.session.app_name,
                        run.session.window_title,
                    )
                settled.extend(run.sample_ids)
        except StoreError:
            logger.warning(
                "Session save failed; keeping %d unsettled sample(s) for the next pass.",
                len(samples) + result.skipped - len(settled),
            )
            try:
                self._events.delete_by_ids(settled)
            except StoreError:
                logger.exception("Failed to clear settled samples after the save failure.")
            raise

        result.deleted = self._events.delete_by_ids(settled)
        if result.scanned:
            logger.info(
                "Processed %d sample(s): %d session(s) saved, %d dropped, %d skipped.",
                result.scanned,
                len(result.sessions),
                result.dropped,
                result.skipped,
            )
        return result

    def _persist(self, session: Session) -> None:
        classification_id = self._matcher.match(session.app_name, session.window_title)
        if classification_id is not None:
            session.classification_id = classification_id
            session.auto_classified = True
            logger.info("Automatically classified session for %r using a rule.", session.app_name)
        self._sessions.save(session)
