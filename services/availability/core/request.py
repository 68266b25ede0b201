"""
CLI-facing search configuration.

Parses the shorthand formats users type (``MM/DD/YYYY`` dates, ``9:00am``
times, ``1w``/``30m`` durations) and fills in configured defaults to build
``SearchConstraints``.
"""

import math
import re
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator

from services.availability.core.settings import Settings, get_settings
from services.availability.exceptions import InvalidConstraints
from services.availability.schemas import (
    DailyBounds,
    SearchConstraints,
    SearchWindow,
)

DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([wdhm])\s*$", re.IGNORECASE)

DURATION_UNITS = {
    "w": timedelta(weeks=1),
    "d": timedelta(days=1),
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
}

TIME_FORMATS = ("%I:%M%p", "%I%p", "%H:%M")
DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d")


def parse_duration(
    value: Union[str, timedelta], field: str = "duration"
) -> timedelta:
    """
    Parse a ``<int>[wdhm]`` shorthand such as ``1w`` or ``30m``.

    Raises:
        InvalidConstraints: If the value does not match the shorthand
    """
    if isinstance(value, timedelta):
        return value
    match = DURATION_PATTERN.match(value)
    if not match:
        raise InvalidConstraints(
            f"Invalid {field} '{value}', expected <int>(w|d|h|m)",
            field=field,
            value=value,
        )
    amount, unit = match.groups()
    return int(amount) * DURATION_UNITS[unit.lower()]


def parse_time_of_day(value: Union[str, time], field: str = "time") -> time:
    """
    Parse a time of day such as ``9:00am``, ``5pm`` or ``17:00``.

    Raises:
        InvalidConstraints: If no supported format matches
    """
    if isinstance(value, time):
        return value
    text = value.strip().replace(" ", "").upper()
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise InvalidConstraints(
        f"Invalid {field} '{value}', expected a time like 9:00am",
        field=field,
        value=value,
    )


def parse_date(value: Union[str, date], field: str = "date") -> date:
    """
    Parse a date in ``MM/DD/YYYY`` form (ISO ``YYYY-MM-DD`` is accepted too).

    Raises:
        InvalidConstraints: If no supported format matches
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    raise InvalidConstraints(
        f"Invalid {field} '{value}', expected MM/DD/YYYY",
        field=field,
        value=value,
    )


def window_days(window: timedelta) -> int:
    """Number of calendar days a window covers, at least one."""
    return max(1, math.ceil(window / timedelta(days=1)))


class AvailabilityRequest(BaseModel):
    """
    Search options as given on the command line.

    Unset fields fall back to the configured defaults when the constraints
    are built. String shorthands are parsed at construction.
    """

    start: Optional[date] = Field(None, description="First day to search")
    end: Optional[date] = Field(None, description="Last day to search")
    min: Optional[time] = Field(None, description="Earliest time of day")
    max: Optional[time] = Field(None, description="Latest time of day")
    window: Optional[timedelta] = Field(
        None, description="Search window length when no end is given"
    )
    duration: Optional[timedelta] = Field(None, description="Minimum slot length")
    include_weekends: bool = False
    create_hold_event: bool = False
    hold_name: Optional[str] = Field(None, description="Name for the hold event")

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_dates(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_date(v)
        return v

    @field_validator("min", "max", mode="before")
    @classmethod
    def parse_times(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_time_of_day(v)
        return v

    @field_validator("window", "duration", mode="before")
    @classmethod
    def parse_durations(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_duration(v)
        return v

    def to_constraints(
        self, today: date, settings: Optional[Settings] = None
    ) -> SearchConstraints:
        """
        Build search constraints, filling unset options from settings.

        The window starts at ``start`` (default ``today``) and, without an
        explicit ``end``, covers ``window`` rounded up to whole days.
        """
        settings = settings or get_settings()
        start = self.start or today
        if self.end is not None:
            end = self.end
        else:
            window = self.window
            if window is None:
                window = parse_duration(settings.DEFAULT_WINDOW, "window")
            end = start + timedelta(days=window_days(window) - 1)

        daily_min = self.min
        if daily_min is None:
            daily_min = parse_time_of_day(settings.DEFAULT_MIN_TIME, "min")
        daily_max = self.max
        if daily_max is None:
            daily_max = parse_time_of_day(settings.DEFAULT_MAX_TIME, "max")
        duration = self.duration
        if duration is None:
            duration = parse_duration(settings.DEFAULT_DURATION, "duration")

        return SearchConstraints(
            window=SearchWindow(start=start, end=end),
            daily=DailyBounds(min=daily_min, max=daily_max),
            include_weekends=self.include_weekends,
            min_duration=duration,
            time_zone=settings.REFERENCE_TIMEZONE,
        )
