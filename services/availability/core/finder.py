"""
Free slot search over a busy timeline.

Walks the search window day by day, clips each day to the work-hour envelope
and yields the maximal gaps between busy intervals that are long enough for
the requested meeting.
"""

from datetime import date, datetime, timedelta
from typing import Iterator, List, Tuple

from services.availability.core.normalizer import localize, resolve_timezone
from services.availability.core.timeline import BusyTimeline
from services.availability.exceptions import InvalidConstraints
from services.availability.schemas import FreeSlot, Interval, SearchConstraints
from services.common.logging_config import get_logger

logger = get_logger(__name__)

SATURDAY = 5


def validate_constraints(constraints: SearchConstraints) -> None:
    """
    Reject constraints that can never produce a slot.

    Raises:
        InvalidConstraints: If the daily bounds are empty or inverted, the
            window ends before it starts, the minimum duration is not
            positive, the minimum duration exceeds the daily bounds, or the
            reference timezone is unknown
    """
    daily = constraints.daily
    window = constraints.window

    if daily.min >= daily.max:
        raise InvalidConstraints(
            f"Daily minimum time {daily.min.isoformat()} must be before "
            f"maximum time {daily.max.isoformat()}",
            field="daily",
        )
    if window.start > window.end:
        raise InvalidConstraints(
            f"Search window start {window.start.isoformat()} is after "
            f"end {window.end.isoformat()}",
            field="window",
        )
    if constraints.min_duration <= timedelta(0):
        raise InvalidConstraints(
            "Minimum duration must be positive",
            field="min_duration",
            value=constraints.min_duration,
        )
    if constraints.min_duration > daily.span:
        raise InvalidConstraints(
            f"Minimum duration {constraints.min_duration} does not fit between "
            f"{daily.min.isoformat()} and {daily.max.isoformat()}",
            field="min_duration",
            value=constraints.min_duration,
        )
    resolve_timezone(constraints.time_zone)


class FreeSlotSearch:
    """
    Lazy, restartable sequence of free slots in chronological order.

    Every iteration walks the timeline from scratch, so iterating twice
    yields identical slots. Busy intervals are visited with a single cursor
    shared across days.
    """

    def __init__(self, timeline: BusyTimeline, constraints: SearchConstraints):
        validate_constraints(constraints)
        self.timeline = timeline
        self.constraints = constraints
        self._tz = resolve_timezone(constraints.time_zone)
        logger.debug(
            "Prepared free slot search",
            window_start=constraints.window.start.isoformat(),
            window_end=constraints.window.end.isoformat(),
            busy_intervals=len(timeline),
            include_weekends=constraints.include_weekends,
        )

    def __iter__(self) -> Iterator[FreeSlot]:
        return self._walk()

    def __repr__(self) -> str:
        return (
            f"FreeSlotSearch(window={self.constraints.window!r}, "
            f"busy={len(self.timeline)})"
        )

    def days(self) -> Iterator[date]:
        """Days of the window that are searched, honouring the weekend policy."""
        for day in self.constraints.window.days():
            if day.weekday() >= SATURDAY and not self.constraints.include_weekends:
                continue
            yield day

    def envelope(self, day: date) -> Tuple[datetime, datetime]:
        """The UTC bounds of the work hours on ``day``."""
        daily = self.constraints.daily
        return (
            localize(datetime.combine(day, daily.min), self._tz),
            localize(datetime.combine(day, daily.max), self._tz),
        )

    def _walk(self) -> Iterator[FreeSlot]:
        busy = self.timeline.intervals
        cursor = 0
        for day in self.days():
            day_start, day_end = self.envelope(day)
            if day_end <= day_start:
                # Work hours swallowed by a DST transition
                continue

            while cursor < len(busy) and busy[cursor].end <= day_start:
                cursor += 1

            free_from = day_start
            index = cursor
            while index < len(busy) and busy[index].start < day_end:
                interval = busy[index]
                if interval.start > free_from:
                    yield from self._candidate(free_from, interval.start)
                free_from = max(free_from, interval.end)
                index += 1

            if free_from < day_end:
                yield from self._candidate(free_from, day_end)

    def _candidate(self, start: datetime, end: datetime) -> Iterator[FreeSlot]:
        if end - start >= self.constraints.min_duration:
            yield FreeSlot(start=start, end=end)


def find_slots(
    timeline: BusyTimeline, constraints: SearchConstraints
) -> FreeSlotSearch:
    """
    Search ``timeline`` for free slots that satisfy ``constraints``.

    Slots are maximal gaps within each searched day's work hours and are at
    least ``constraints.min_duration`` long. They are never split into
    meeting-sized pieces; see :func:`split_slot` for that.

    Raises:
        InvalidConstraints: If the constraints are unsatisfiable
    """
    return FreeSlotSearch(timeline, constraints)


def split_slot(slot: Interval, duration: timedelta) -> List[FreeSlot]:
    """
    Cut a slot into consecutive ``duration``-long pieces from its start.

    A trailing remainder shorter than ``duration`` is discarded.

    Raises:
        InvalidConstraints: If ``duration`` is not positive
    """
    if duration <= timedelta(0):
        raise InvalidConstraints(
            "Slot duration must be positive", field="duration", value=duration
        )
    pieces = []
    start = slot.start
    while start + duration <= slot.end:
        pieces.append(FreeSlot(start=start, end=start + duration))
        start += duration
    return pieces
