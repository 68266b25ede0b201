"""
Unit tests for the free slot search.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from services.availability.core.finder import (
    FreeSlotSearch,
    find_slots,
    split_slot,
    validate_constraints,
)
from services.availability.core.timeline import BusyTimeline, merge
from services.availability.exceptions import InvalidConstraints
from services.availability.schemas import (
    DailyBounds,
    FreeSlot,
    Interval,
    SearchConstraints,
    SearchWindow,
)

MONDAY = date(2024, 1, 8)


def at(hour: int, minute: int = 0, day: int = 8, month: int = 1) -> datetime:
    return datetime(2024, month, day, hour, minute, tzinfo=timezone.utc)


def busy(*spans) -> BusyTimeline:
    return merge(Interval(start=start, end=end) for start, end in spans)


def free(start: datetime, end: datetime) -> FreeSlot:
    return FreeSlot(start=start, end=end)


def make_constraints(
    start: date = MONDAY,
    end: date = MONDAY,
    min_time: time = time(9),
    max_time: time = time(17),
    duration: timedelta = timedelta(minutes=30),
    include_weekends: bool = False,
    time_zone: str = "UTC",
) -> SearchConstraints:
    return SearchConstraints(
        window=SearchWindow(start=start, end=end),
        daily=DailyBounds(min=min_time, max=max_time),
        include_weekends=include_weekends,
        min_duration=duration,
        time_zone=time_zone,
    )


class TestFindSlots:
    """Tests for the gap walk over a busy timeline."""

    def test_free_day_is_one_slot(self):
        slots = list(find_slots(BusyTimeline(), make_constraints()))
        assert slots == [free(at(9), at(17))]

    def test_busy_start_of_day(self):
        """A morning meeting leaves the rest of the day free."""
        slots = list(find_slots(busy((at(9), at(10))), make_constraints()))
        assert slots == [free(at(10), at(17))]

    def test_adjacent_busy_intervals(self):
        timeline = busy((at(9), at(10)), (at(10), at(11)))
        assert len(timeline) == 1
        assert list(find_slots(timeline, make_constraints())) == [
            free(at(11), at(17))
        ]

    def test_fully_busy_day(self):
        timeline = busy((at(9), at(17)))
        assert list(find_slots(timeline, make_constraints())) == []

    def test_busy_time_outside_work_hours_is_ignored(self):
        timeline = busy((at(6), at(8)), (at(18), at(20)))
        assert list(find_slots(timeline, make_constraints())) == [
            free(at(9), at(17))
        ]

    def test_gaps_between_meetings(self):
        timeline = busy((at(10), at(11)), (at(12), at(13)))
        assert list(find_slots(timeline, make_constraints())) == [
            free(at(9), at(10)),
            free(at(11), at(12)),
            free(at(13), at(17)),
        ]

    def test_short_gaps_are_dropped(self):
        timeline = busy((at(9, 15), at(12)), (at(12, 20), at(16, 45)))
        assert list(find_slots(timeline, make_constraints())) == []

    def test_exact_minimum_duration_is_kept(self):
        timeline = busy((at(9), at(12)), (at(12, 30), at(17)))
        assert list(find_slots(timeline, make_constraints())) == [
            free(at(12), at(12, 30))
        ]

    def test_busy_interval_spanning_days(self):
        timeline = busy((at(16), at(10, day=9)))
        constraints = make_constraints(end=date(2024, 1, 9))
        assert list(find_slots(timeline, constraints)) == [
            free(at(9), at(16)),
            free(at(10, day=9), at(17, day=9)),
        ]

    def test_slots_are_ordered_and_disjoint(self):
        timeline = busy(
            (at(11), at(12)), (at(14), at(15)), (at(10, day=9), at(11, day=9))
        )
        constraints = make_constraints(end=date(2024, 1, 10))
        slots = list(find_slots(timeline, constraints))
        for previous, current in zip(slots, slots[1:]):
            assert previous.end <= current.start
        for slot in slots:
            assert timeline.is_free(slot)
            assert slot.duration >= constraints.min_duration

    def test_search_is_restartable(self):
        """Iterating the same search twice yields the same slots."""
        search = find_slots(busy((at(12), at(13))), make_constraints())
        assert isinstance(search, FreeSlotSearch)
        assert list(search) == list(search)


class TestWeekends:
    """Tests for the weekend policy."""

    def test_saturday_busy_sunday_free_weekends_excluded(self):
        timeline = busy((at(9, day=13), at(17, day=13)))
        constraints = make_constraints(start=date(2024, 1, 13), end=date(2024, 1, 14))
        assert list(find_slots(timeline, constraints)) == []

    def test_weekends_excluded(self):
        constraints = make_constraints(start=date(2024, 1, 12), end=date(2024, 1, 15))
        slots = list(find_slots(BusyTimeline(), constraints))
        assert [slot.start.date() for slot in slots] == [
            date(2024, 1, 12),
            date(2024, 1, 15),
        ]

    def test_weekends_included(self):
        constraints = make_constraints(
            start=date(2024, 1, 12), end=date(2024, 1, 15), include_weekends=True
        )
        slots = list(find_slots(BusyTimeline(), constraints))
        assert len(slots) == 4
        assert slots[1] == free(at(9, day=13), at(17, day=13))


class TestTimezones:
    """Tests for work hours interpreted in a reference zone."""

    def test_work_hours_in_reference_zone(self):
        constraints = make_constraints(time_zone="America/New_York")
        assert list(find_slots(BusyTimeline(), constraints)) == [
            free(at(14), at(22))
        ]

    def test_envelope_follows_daylight_saving(self):
        """New York moves to EDT on 2024-03-10; work hours shift by an hour."""
        constraints = make_constraints(
            start=date(2024, 3, 8),
            end=date(2024, 3, 11),
            time_zone="America/New_York",
        )
        slots = list(find_slots(BusyTimeline(), constraints))
        assert slots == [
            free(at(14, day=8, month=3), at(22, day=8, month=3)),
            free(at(13, day=11, month=3), at(21, day=11, month=3)),
        ]

    def test_envelope_bounds(self):
        search = FreeSlotSearch(
            BusyTimeline(), make_constraints(time_zone="Europe/Berlin")
        )
        assert search.envelope(MONDAY) == (at(8), at(16))


class TestValidateConstraints:
    """Tests for rejecting unsatisfiable constraints before any search."""

    def test_valid_constraints(self):
        validate_constraints(make_constraints())

    def test_min_not_before_max(self):
        with pytest.raises(InvalidConstraints) as exc_info:
            validate_constraints(make_constraints(min_time=time(17), max_time=time(9)))
        assert exc_info.value.field == "daily"

    def test_equal_min_and_max(self):
        with pytest.raises(InvalidConstraints):
            validate_constraints(make_constraints(min_time=time(9), max_time=time(9)))

    def test_window_end_before_start(self):
        with pytest.raises(InvalidConstraints) as exc_info:
            validate_constraints(make_constraints(end=date(2024, 1, 7)))
        assert exc_info.value.field == "window"

    def test_non_positive_duration(self):
        with pytest.raises(InvalidConstraints):
            validate_constraints(make_constraints(duration=timedelta(0)))

    def test_duration_longer_than_work_hours(self):
        with pytest.raises(InvalidConstraints) as exc_info:
            validate_constraints(make_constraints(duration=timedelta(hours=9)))
        assert exc_info.value.field == "min_duration"

    def test_unknown_timezone(self):
        with pytest.raises(InvalidConstraints):
            validate_constraints(make_constraints(time_zone="Mars/Olympus_Mons"))

    def test_find_slots_validates_eagerly(self):
        with pytest.raises(InvalidConstraints):
            find_slots(BusyTimeline(), make_constraints(duration=timedelta(0)))


class TestSplitSlot:
    """Tests for cutting slots into meeting-sized pieces."""

    def test_pieces_from_start(self):
        pieces = split_slot(free(at(10), at(11, 10)), timedelta(minutes=30))
        assert pieces == [free(at(10), at(10, 30)), free(at(10, 30), at(11))]

    def test_slot_shorter_than_duration(self):
        assert split_slot(free(at(10), at(10, 20)), timedelta(minutes=30)) == []

    def test_non_positive_duration(self):
        with pytest.raises(InvalidConstraints):
            split_slot(free(at(10), at(11)), timedelta(0))
