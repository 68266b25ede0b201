from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from services.availability.models import CalendarRef, Provider
from services.common.errors import ErrorResponse


class Interval(BaseModel):
    """Half-open ``[start, end)`` span between two UTC instants."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def validate_timezone_aware(cls, v: datetime) -> datetime:
        """Require an aware datetime and store it in UTC."""
        if v.tzinfo is None or v.utcoffset() is None:
            raise ValueError("interval bounds must be timezone-aware")
        return v.astimezone(timezone.utc)

    @model_validator(mode="after")
    def validate_end_after_start(self) -> "Interval":
        if self.end <= self.start:
            raise ValueError("interval end must be after start")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end


class FreeSlot(Interval):
    """A maximal free gap inside one day's work-hour envelope."""


class SourceEvent(BaseModel):
    """
    A calendar event as reported by a provider adapter.

    Timed events carry datetimes, which may be naive when the provider reports
    the zone separately in ``time_zone``. All-day events carry dates.
    """

    model_config = ConfigDict(frozen=True)

    account_id: str
    calendar_id: str
    event_id: Optional[str] = None
    title: Optional[str] = None
    start: Union[datetime, date]
    end: Optional[Union[datetime, date]] = None
    all_day: bool = False
    time_zone: Optional[str] = Field(
        None, description="IANA zone for naive start/end values"
    )

    @property
    def calendar(self) -> CalendarRef:
        return CalendarRef(account_id=self.account_id, calendar_id=self.calendar_id)


class SearchWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    def days(self) -> List[date]:
        """Every calendar date from start to end, inclusive."""
        return [
            self.start + timedelta(days=offset)
            for offset in range((self.end - self.start).days + 1)
        ]


class DailyBounds(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: time
    max: time

    @property
    def span(self) -> timedelta:
        return datetime.combine(date.min, self.max) - datetime.combine(
            date.min, self.min
        )


class SearchConstraints(BaseModel):
    model_config = ConfigDict(frozen=True)

    window: SearchWindow
    daily: DailyBounds
    include_weekends: bool = False
    min_duration: timedelta
    time_zone: str = Field(
        "UTC", description="Reference zone for days and work hours"
    )


class FetchWarning(BaseModel):
    """A calendar whose events could not be fetched."""

    account_id: str
    calendar_id: str
    provider: Optional[Provider] = None
    message: str
    code: Optional[str] = None


class ReservationRecord(BaseModel):
    event_id: str
    account_id: str
    calendar_id: str
    slot: Interval
    title: str
    warnings: List[FetchWarning] = []


class AvailabilityResult(BaseModel):
    slots: List[FreeSlot] = []
    warnings: List[FetchWarning] = []
    reservation: Optional[ReservationRecord] = None
    reservation_error: Optional[ErrorResponse] = None

    @property
    def is_partial(self) -> bool:
        return bool(self.warnings)
