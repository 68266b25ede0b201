"""
Busy timeline construction.

Combines normalized intervals from every selected calendar into one sorted,
non-overlapping sequence of busy time.
"""

from bisect import bisect_right
from typing import Iterable, Iterator, List, Sequence, Tuple

from services.availability.schemas import Interval


class BusyTimeline:
    """
    Sorted, non-overlapping busy intervals.

    Adjacent intervals never touch: for neighbours ``a`` and ``b``,
    ``a.end < b.start``. Build one with :func:`merge`.
    """

    __slots__ = ("_intervals", "_starts")

    def __init__(self, intervals: Sequence[Interval] = ()):
        self._intervals: Tuple[Interval, ...] = tuple(intervals)
        self._starts = [interval.start for interval in self._intervals]
        for previous, current in zip(self._intervals, self._intervals[1:]):
            if not previous.end < current.start:
                raise ValueError(
                    "busy timeline intervals must be sorted and separated, "
                    f"got {previous.end.isoformat()} >= {current.start.isoformat()}"
                )

    @property
    def intervals(self) -> Tuple[Interval, ...]:
        return self._intervals

    def __iter__(self) -> Iterator[Interval]:
        return iter(self._intervals)

    def __len__(self) -> int:
        return len(self._intervals)

    def __getitem__(self, index: int) -> Interval:
        return self._intervals[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BusyTimeline):
            return NotImplemented
        return self._intervals == other._intervals

    def __repr__(self) -> str:
        return f"BusyTimeline({list(self._intervals)!r})"

    def overlapping(self, window: Interval) -> List[Interval]:
        """Return the busy intervals that intersect ``window``."""
        # Intervals are disjoint and sorted, so ends are sorted too.
        index = max(bisect_right(self._starts, window.start) - 1, 0)
        result = []
        for interval in self._intervals[index:]:
            if interval.start >= window.end:
                break
            if interval.overlaps(window):
                result.append(interval)
        return result

    def is_free(self, window: Interval) -> bool:
        return not self.overlapping(window)


def merge(intervals: Iterable[Interval]) -> BusyTimeline:
    """
    Merge intervals into a busy timeline with a single sweep.

    Intervals are sorted by start, ties by end. Overlapping and touching
    intervals collapse into one. Merging an already merged timeline returns
    an equal timeline.
    """
    ordered = sorted(intervals, key=lambda interval: (interval.start, interval.end))
    if not ordered:
        return BusyTimeline()

    merged: List[Interval] = []
    current = ordered[0]
    for interval in ordered[1:]:
        if interval.start <= current.end:
            if interval.end > current.end:
                current = Interval(start=current.start, end=interval.end)
        else:
            merged.append(current)
            current = interval
    merged.append(current)
    return BusyTimeline(merged)
