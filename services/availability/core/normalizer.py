"""
Event normalization for the availability engine.

Converts provider events into canonical UTC ``[start, end)`` intervals, and
maps raw Google Calendar and Microsoft Graph payloads into ``SourceEvent``s.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import pytz
from dateutil.parser import isoparse
from pytz.tzinfo import BaseTzInfo

from services.availability.exceptions import InvalidConstraints
from services.availability.schemas import Interval, SourceEvent
from services.common.logging_config import get_logger

logger = get_logger(__name__)

TimezoneLike = Union[str, BaseTzInfo]

# Google "transparency" / Graph "showAs" values that do not block time
_GOOGLE_FREE_TRANSPARENCY = "transparent"
_MICROSOFT_FREE_SHOW_AS = ("free", "workingElsewhere")


def resolve_timezone(tz: TimezoneLike) -> BaseTzInfo:
    """
    Resolve an IANA zone name to a pytz timezone.

    Raises:
        InvalidConstraints: If the zone is unknown to the tz database
    """
    if isinstance(tz, str):
        try:
            return pytz.timezone(tz)
        except pytz.UnknownTimeZoneError:
            raise InvalidConstraints(
                f"Unknown timezone: {tz}", field="time_zone", value=tz
            )
    return tz


def localize(naive: datetime, tz: BaseTzInfo) -> datetime:
    """
    Attach ``tz`` to a naive wall-clock time and return the UTC instant.

    Nonexistent local times (spring-forward gap) shift forward by the gap;
    ambiguous times (fall-back overlap) resolve to standard time.
    """
    local = tz.normalize(tz.localize(naive, is_dst=False))
    return local.astimezone(timezone.utc)


def local_midnight(day: date, tz: BaseTzInfo) -> datetime:
    return localize(datetime.combine(day, time.min), tz)


def floor_minute(dt: datetime) -> datetime:
    return dt.replace(second=0, microsecond=0)


def ceil_minute(dt: datetime) -> datetime:
    floored = floor_minute(dt)
    if floored == dt:
        return dt
    return floored + timedelta(minutes=1)


def _as_date(value: Union[datetime, date]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _event_timezone(event: SourceEvent, reference_tz: BaseTzInfo) -> BaseTzInfo:
    if not event.time_zone:
        return reference_tz
    try:
        return pytz.timezone(event.time_zone)
    except pytz.UnknownTimeZoneError:
        logger.warning(
            "Unknown event timezone, using reference timezone",
            event_id=event.event_id,
            time_zone=event.time_zone,
            calendar_id=event.calendar_id,
        )
        return reference_tz


def _to_utc(value: Union[datetime, date], tz: BaseTzInfo) -> datetime:
    if not isinstance(value, datetime):
        return local_midnight(value, tz)
    if value.tzinfo is None or value.utcoffset() is None:
        return localize(value, tz)
    return value.astimezone(timezone.utc)


def normalize_event(
    event: SourceEvent, reference_tz: BaseTzInfo
) -> Optional[Interval]:
    """
    Convert one event to a UTC interval, or None when it occupies no time.

    All-day events span local midnight of their start date to local midnight
    of their end date (the next day when no end is given) in the reference
    zone. Busy time is widened to whole minutes: start floored, end ceiled.
    """
    if event.all_day or not isinstance(event.start, datetime):
        start_day = _as_date(event.start)
        end_day = (
            _as_date(event.end)
            if event.end is not None
            else start_day + timedelta(days=1)
        )
        start = local_midnight(start_day, reference_tz)
        end = local_midnight(end_day, reference_tz)
    else:
        if event.end is None:
            logger.warning(
                "Dropping timed event without an end",
                event_id=event.event_id,
                calendar_id=event.calendar_id,
            )
            return None
        event_tz = _event_timezone(event, reference_tz)
        start = _to_utc(event.start, event_tz)
        end = _to_utc(event.end, event_tz)

    start = floor_minute(start)
    end = ceil_minute(end)
    if end <= start:
        logger.warning(
            "Dropping zero or negative length event",
            event_id=event.event_id,
            calendar_id=event.calendar_id,
            start=start.isoformat(),
            end=end.isoformat(),
        )
        return None
    return Interval(start=start, end=end)


def normalize(
    events: Iterable[SourceEvent], reference_tz: TimezoneLike
) -> List[Interval]:
    """
    Normalize events from any number of calendars into UTC busy intervals.

    Events are not de-duplicated across calendars and the output order is
    unspecified; merging takes care of both.

    Raises:
        InvalidConstraints: If ``reference_tz`` is not a known zone
    """
    tz = resolve_timezone(reference_tz)
    intervals = []
    dropped = 0
    for event in events:
        interval = normalize_event(event, tz)
        if interval is None:
            dropped += 1
            continue
        intervals.append(interval)
    if dropped:
        logger.debug("Normalized events", kept=len(intervals), dropped=dropped)
    return intervals


def _parse_event_datetime(value: str) -> datetime:
    # Graph sends 7 fractional digits; isoparse truncates to microseconds
    return isoparse(value)


def _parse_google_datetime(
    dt_data: Dict[str, Any],
) -> Tuple[Union[datetime, date], bool, Optional[str]]:
    """Parse a Google Calendar start/end object into (value, all_day, zone)."""
    date_str = dt_data.get("date")
    if date_str:
        return date.fromisoformat(date_str), True, dt_data.get("timeZone")

    datetime_str = dt_data.get("dateTime")
    if datetime_str:
        return _parse_event_datetime(datetime_str), False, dt_data.get("timeZone")

    raise ValueError(f"Google event time has neither date nor dateTime: {dt_data}")


def normalize_google_event(
    raw_data: Dict[str, Any], account_id: str, calendar_id: str
) -> Optional[SourceEvent]:
    """
    Convert a raw Google Calendar API event into a SourceEvent.

    Returns None for events that do not block time: cancelled events,
    events marked as free (transparent), and events the calendar owner
    declined.

    Raises:
        ValueError: If the start or end time cannot be parsed
    """
    if raw_data.get("status") == "cancelled":
        return None
    if raw_data.get("transparency") == _GOOGLE_FREE_TRANSPARENCY:
        return None
    for attendee in raw_data.get("attendees", []):
        if attendee.get("self") and attendee.get("responseStatus") == "declined":
            return None

    try:
        start, all_day, start_tz = _parse_google_datetime(raw_data.get("start", {}))
        end, _, end_tz = _parse_google_datetime(raw_data.get("end", {}))
    except ValueError as e:
        logger.error(
            "Failed to normalize Google Calendar event",
            event_id=raw_data.get("id"),
            calendar_id=calendar_id,
            error=str(e),
        )
        raise

    return SourceEvent(
        account_id=account_id,
        calendar_id=calendar_id,
        event_id=raw_data.get("id"),
        title=raw_data.get("summary"),
        start=start,
        end=end,
        all_day=all_day,
        time_zone=start_tz or end_tz,
    )


def normalize_microsoft_event(
    raw_data: Dict[str, Any], account_id: str, calendar_id: str
) -> Optional[SourceEvent]:
    """
    Convert a raw Microsoft Graph event into a SourceEvent.

    Graph reports naive wall-clock times with a separate ``timeZone`` field.
    All-day events are reduced to their dates so they land on local midnight
    of the reference zone.

    Raises:
        ValueError: If the start or end time cannot be parsed
    """
    if raw_data.get("isCancelled"):
        return None
    if raw_data.get("showAs") in _MICROSOFT_FREE_SHOW_AS:
        return None
    if (raw_data.get("responseStatus") or {}).get("response") == "declined":
        return None

    start_data = raw_data.get("start") or {}
    end_data = raw_data.get("end") or {}
    try:
        start: Union[datetime, date] = _parse_event_datetime(start_data["dateTime"])
        end: Union[datetime, date] = _parse_event_datetime(end_data["dateTime"])
    except (KeyError, ValueError) as e:
        logger.error(
            "Failed to normalize Microsoft Graph event",
            event_id=raw_data.get("id"),
            calendar_id=calendar_id,
            error=str(e),
        )
        raise ValueError(f"Invalid Microsoft event time: {e}") from e

    all_day = bool(raw_data.get("isAllDay"))
    if all_day:
        start = _as_date(start)
        end = _as_date(end)

    return SourceEvent(
        account_id=account_id,
        calendar_id=calendar_id,
        event_id=raw_data.get("id"),
        title=raw_data.get("subject"),
        start=start,
        end=end,
        all_day=all_day,
        time_zone=start_data.get("timeZone"),
    )
