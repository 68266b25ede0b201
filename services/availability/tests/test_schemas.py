"""
Unit tests for availability schemas and models.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest
from pydantic import ValidationError

from services.availability.models import CalendarRef
from services.availability.schemas import (
    AvailabilityResult,
    DailyBounds,
    FetchWarning,
    FreeSlot,
    Interval,
    SearchWindow,
)

BERLIN_WINTER = timezone(timedelta(hours=1))


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, 8, hour, minute, tzinfo=timezone.utc)


class TestInterval:
    """Tests for the Interval schema."""

    def test_bounds_are_stored_in_utc(self):
        interval = Interval(
            start=datetime(2024, 1, 8, 10, tzinfo=BERLIN_WINTER),
            end=datetime(2024, 1, 8, 11, tzinfo=BERLIN_WINTER),
        )
        assert interval.start == at(9)
        assert interval.start.tzinfo == timezone.utc
        assert interval.duration == timedelta(hours=1)

    def test_naive_bounds_are_rejected(self):
        with pytest.raises(ValidationError, match="timezone-aware"):
            Interval(start=datetime(2024, 1, 8, 9), end=at(10))

    @pytest.mark.parametrize("end_hour", [9, 8])
    def test_end_must_follow_start(self, end_hour):
        with pytest.raises(ValidationError, match="end must be after start"):
            Interval(start=at(9), end=at(end_hour))

    def test_half_open_overlap(self):
        morning = Interval(start=at(9), end=at(10))
        assert not morning.overlaps(Interval(start=at(10), end=at(11)))
        assert morning.overlaps(Interval(start=at(9, 59), end=at(11)))

    def test_contains(self):
        slot = FreeSlot(start=at(9), end=at(12))
        assert slot.contains(Interval(start=at(9), end=at(12)))
        assert slot.contains(Interval(start=at(10), end=at(10, 30)))
        assert not slot.contains(Interval(start=at(11, 45), end=at(12, 15)))

    def test_intervals_are_immutable(self):
        interval = Interval(start=at(9), end=at(10))
        with pytest.raises(ValidationError):
            interval.start = at(8)


class TestSearchTypes:
    """Tests for the search window and daily bounds."""

    def test_window_days_inclusive(self):
        window = SearchWindow(start=date(2024, 1, 8), end=date(2024, 1, 10))
        assert window.days() == [
            date(2024, 1, 8),
            date(2024, 1, 9),
            date(2024, 1, 10),
        ]

    def test_inverted_window_has_no_days(self):
        window = SearchWindow(start=date(2024, 1, 10), end=date(2024, 1, 8))
        assert window.days() == []

    def test_daily_span(self):
        assert DailyBounds(min=time(9), max=time(17, 30)).span == timedelta(
            hours=8, minutes=30
        )


class TestCalendarRef:
    """Tests for the CalendarRef model."""

    def test_str_and_hash(self):
        ref = CalendarRef(account_id="alice", calendar_id="primary")
        assert str(ref) == "alice/primary"
        assert {ref, CalendarRef(account_id="alice", calendar_id="primary")} == {ref}

    def test_empty_ids_rejected(self):
        with pytest.raises(ValidationError):
            CalendarRef(account_id="", calendar_id="primary")


class TestAvailabilityResult:
    """Tests for the AvailabilityResult model."""

    def test_partial_when_warnings_present(self):
        warning = FetchWarning(
            account_id="bob", calendar_id="work", message="Timed out after 30.0s"
        )
        assert AvailabilityResult(warnings=[warning]).is_partial is True
        assert AvailabilityResult().is_partial is False
