"""
Unit tests for event normalization.

Covers conversion of source events to UTC intervals and the mapping of raw
Google Calendar and Microsoft Graph payloads.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
import pytz

from services.availability.core.normalizer import (
    ceil_minute,
    floor_minute,
    localize,
    normalize,
    normalize_event,
    normalize_google_event,
    normalize_microsoft_event,
    resolve_timezone,
)
from services.availability.exceptions import InvalidConstraints
from services.availability.schemas import Interval

UTC = pytz.utc
NEW_YORK = pytz.timezone("America/New_York")


def at(hour: int, minute: int = 0, second: int = 0, day: int = 8) -> datetime:
    return datetime(2024, 1, day, hour, minute, second, tzinfo=timezone.utc)


class TestTimeHelpers:
    """Tests for zone resolution and minute rounding."""

    def test_resolve_known_zone(self):
        assert resolve_timezone("America/New_York").zone == "America/New_York"

    def test_resolve_passes_through_tzinfo(self):
        assert resolve_timezone(NEW_YORK) is NEW_YORK

    def test_resolve_unknown_zone(self):
        with pytest.raises(InvalidConstraints) as exc_info:
            resolve_timezone("Nowhere/Special")
        assert exc_info.value.field == "time_zone"

    def test_localize_returns_utc(self):
        result = localize(datetime(2024, 1, 8, 9, 0), NEW_YORK)
        assert result == at(14)
        assert result.tzinfo == timezone.utc

    def test_localize_ambiguous_time_uses_standard_time(self):
        """01:30 happens twice on 2024-11-03 in New York."""
        result = localize(datetime(2024, 11, 3, 1, 30), NEW_YORK)
        assert result == datetime(2024, 11, 3, 6, 30, tzinfo=timezone.utc)

    def test_localize_nonexistent_time_shifts_forward(self):
        """02:30 does not exist on 2024-03-10 in New York."""
        result = localize(datetime(2024, 3, 10, 2, 30), NEW_YORK)
        assert result == datetime(2024, 3, 10, 7, 30, tzinfo=timezone.utc)

    def test_minute_rounding(self):
        assert floor_minute(at(9, 0, 59)) == at(9)
        assert ceil_minute(at(9, 0, 1)) == at(9, 1)
        assert ceil_minute(at(9)) == at(9)


class TestNormalizeEvent:
    """Tests for converting one source event to a UTC interval."""

    def test_aware_timed_event(self, make_event):
        event = make_event(at(9), at(10))
        assert normalize_event(event, UTC) == Interval(start=at(9), end=at(10))

    def test_offset_is_converted_to_utc(self, make_event):
        offset = timezone(timedelta(hours=-5))
        event = make_event(
            datetime(2024, 1, 8, 9, tzinfo=offset),
            datetime(2024, 1, 8, 10, tzinfo=offset),
        )
        assert normalize_event(event, UTC) == Interval(start=at(14), end=at(15))

    def test_naive_times_use_event_zone(self, make_event):
        event = make_event(
            datetime(2024, 1, 8, 9),
            datetime(2024, 1, 8, 10),
            time_zone="America/New_York",
        )
        assert normalize_event(event, UTC) == Interval(start=at(14), end=at(15))

    def test_naive_times_without_zone_use_reference(self, make_event):
        event = make_event(datetime(2024, 1, 8, 9), datetime(2024, 1, 8, 10))
        assert normalize_event(event, NEW_YORK) == Interval(start=at(14), end=at(15))

    def test_unknown_event_zone_falls_back_to_reference(self, make_event):
        event = make_event(
            datetime(2024, 1, 8, 9),
            datetime(2024, 1, 8, 10),
            time_zone="Pacific Standard Time",
        )
        assert normalize_event(event, UTC) == Interval(start=at(9), end=at(10))

    def test_all_day_event_spans_local_midnights(self, make_event):
        event = make_event(date(2024, 1, 8), date(2024, 1, 9), all_day=True)
        assert normalize_event(event, NEW_YORK) == Interval(
            start=at(5), end=at(5, day=9)
        )

    def test_all_day_event_without_end_lasts_one_day(self, make_event):
        event = make_event(date(2024, 1, 8), None, all_day=True)
        assert normalize_event(event, UTC) == Interval(start=at(0), end=at(0, day=9))

    def test_multi_day_all_day_event(self, make_event):
        event = make_event(date(2024, 1, 8), date(2024, 1, 10), all_day=True)
        interval = normalize_event(event, UTC)
        assert interval.duration == timedelta(days=2)

    def test_all_day_flag_with_datetimes_uses_dates(self, make_event):
        event = make_event(at(15), at(15, day=9), all_day=True)
        assert normalize_event(event, UTC) == Interval(start=at(0), end=at(0, day=9))

    def test_zero_length_event_is_dropped(self, make_event):
        assert normalize_event(make_event(at(9), at(9)), UTC) is None

    def test_negative_length_event_is_dropped(self, make_event):
        assert normalize_event(make_event(at(10), at(9)), UTC) is None

    def test_timed_event_without_end_is_dropped(self, make_event):
        assert normalize_event(make_event(at(9), None), UTC) is None

    def test_partial_minutes_widen_busy_time(self, make_event):
        event = make_event(at(9, 0, 30), at(9, 59, 10))
        assert normalize_event(event, UTC) == Interval(start=at(9), end=at(10))

    def test_sub_minute_event_blocks_a_minute(self, make_event):
        event = make_event(at(9, 0, 10), at(9, 0, 50))
        assert normalize_event(event, UTC) == Interval(start=at(9), end=at(9, 1))


class TestNormalize:
    """Tests for normalizing many events at once."""

    def test_drops_empty_events_and_keeps_duplicates(self, make_event):
        events = [
            make_event(at(9), at(10)),
            make_event(at(9), at(10), calendar_id="team"),
            make_event(at(11), at(11)),
        ]
        intervals = normalize(events, "UTC")
        assert intervals == [
            Interval(start=at(9), end=at(10)),
            Interval(start=at(9), end=at(10)),
        ]

    def test_unknown_reference_zone(self, make_event):
        with pytest.raises(InvalidConstraints):
            normalize([make_event(at(9), at(10))], "Not/AZone")

    def test_empty_input(self):
        assert normalize([], "UTC") == []


class TestGoogleEventMapping:
    """Tests for mapping Google Calendar API events."""

    def test_timed_event(self):
        raw = {
            "id": "g1",
            "summary": "Standup",
            "start": {
                "dateTime": "2024-01-08T09:00:00-05:00",
                "timeZone": "America/New_York",
            },
            "end": {
                "dateTime": "2024-01-08T09:15:00-05:00",
                "timeZone": "America/New_York",
            },
        }
        event = normalize_google_event(raw, "alice", "primary")
        assert event.event_id == "g1"
        assert event.title == "Standup"
        assert event.all_day is False
        assert event.time_zone == "America/New_York"
        assert normalize_event(event, UTC) == Interval(start=at(14), end=at(14, 15))

    def test_all_day_event(self):
        raw = {
            "id": "g2",
            "start": {"date": "2024-01-08"},
            "end": {"date": "2024-01-09"},
        }
        event = normalize_google_event(raw, "alice", "primary")
        assert event.all_day is True
        assert event.start == date(2024, 1, 8)
        assert event.end == date(2024, 1, 9)

    def test_cancelled_event_is_skipped(self):
        raw = {
            "id": "g3",
            "status": "cancelled",
            "start": {"dateTime": "2024-01-08T09:00:00Z"},
            "end": {"dateTime": "2024-01-08T10:00:00Z"},
        }
        assert normalize_google_event(raw, "alice", "primary") is None

    def test_transparent_event_is_skipped(self):
        raw = {
            "id": "g4",
            "transparency": "transparent",
            "start": {"dateTime": "2024-01-08T09:00:00Z"},
            "end": {"dateTime": "2024-01-08T10:00:00Z"},
        }
        assert normalize_google_event(raw, "alice", "primary") is None

    def test_declined_by_owner_is_skipped(self):
        raw = {
            "id": "g5",
            "start": {"dateTime": "2024-01-08T09:00:00Z"},
            "end": {"dateTime": "2024-01-08T10:00:00Z"},
            "attendees": [
                {
                    "email": "alice@example.com",
                    "self": True,
                    "responseStatus": "declined",
                }
            ],
        }
        assert normalize_google_event(raw, "alice", "primary") is None

    def test_declined_by_someone_else_still_blocks(self):
        raw = {
            "id": "g6",
            "start": {"dateTime": "2024-01-08T09:00:00Z"},
            "end": {"dateTime": "2024-01-08T10:00:00Z"},
            "attendees": [
                {"email": "bob@example.com", "responseStatus": "declined"},
                {
                    "email": "alice@example.com",
                    "self": True,
                    "responseStatus": "accepted",
                },
            ],
        }
        assert normalize_google_event(raw, "alice", "primary") is not None

    def test_missing_time_raises(self):
        with pytest.raises(ValueError):
            normalize_google_event({"id": "g7", "start": {}}, "alice", "primary")


class TestMicrosoftEventMapping:
    """Tests for mapping Microsoft Graph events."""

    def test_timed_event_with_graph_precision(self):
        raw = {
            "id": "m1",
            "subject": "Sync",
            "start": {"dateTime": "2024-01-08T14:00:00.0000000", "timeZone": "UTC"},
            "end": {"dateTime": "2024-01-08T14:30:00.0000000", "timeZone": "UTC"},
            "showAs": "busy",
        }
        event = normalize_microsoft_event(raw, "bob", "cal-1")
        assert event.title == "Sync"
        assert event.start == datetime(2024, 1, 8, 14, 0)
        assert event.time_zone == "UTC"
        assert normalize_event(event, NEW_YORK) == Interval(
            start=at(14), end=at(14, 30)
        )

    def test_all_day_event_is_reduced_to_dates(self):
        raw = {
            "id": "m2",
            "isAllDay": True,
            "start": {"dateTime": "2024-01-08T00:00:00.0000000", "timeZone": "UTC"},
            "end": {"dateTime": "2024-01-09T00:00:00.0000000", "timeZone": "UTC"},
        }
        event = normalize_microsoft_event(raw, "bob", "cal-1")
        assert event.all_day is True
        assert event.start == date(2024, 1, 8)
        assert event.end == date(2024, 1, 9)

    @pytest.mark.parametrize(
        "extra",
        [
            {"isCancelled": True},
            {"showAs": "free"},
            {"showAs": "workingElsewhere"},
            {"responseStatus": {"response": "declined"}},
        ],
    )
    def test_non_blocking_events_are_skipped(self, extra):
        raw = {
            "id": "m3",
            "start": {"dateTime": "2024-01-08T14:00:00", "timeZone": "UTC"},
            "end": {"dateTime": "2024-01-08T15:00:00", "timeZone": "UTC"},
            **extra,
        }
        assert normalize_microsoft_event(raw, "bob", "cal-1") is None

    def test_tentative_event_blocks_time(self):
        raw = {
            "id": "m4",
            "showAs": "tentative",
            "start": {"dateTime": "2024-01-08T14:00:00", "timeZone": "UTC"},
            "end": {"dateTime": "2024-01-08T15:00:00", "timeZone": "UTC"},
        }
        assert normalize_microsoft_event(raw, "bob", "cal-1") is not None

    def test_missing_time_raises(self):
        raw = {"id": "m5", "start": {"timeZone": "UTC"}, "end": {}}
        with pytest.raises(ValueError, match="Invalid Microsoft event time"):
            normalize_microsoft_event(raw, "bob", "cal-1")
