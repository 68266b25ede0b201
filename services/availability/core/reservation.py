"""
Hold reservation with a best-effort race guard.

Before writing the hold event, the chosen slot's day is fetched again and
searched from scratch. The write only happens if the slot is still free.
A calendar change between the re-check and the write can still slip through.
"""

from datetime import timedelta
from typing import List, Mapping, Optional, Sequence

from services.availability.core.fetcher import EventFetcher
from services.availability.core.finder import find_slots, validate_constraints
from services.availability.core.normalizer import (
    local_midnight,
    normalize,
    resolve_timezone,
)
from services.availability.core.settings import Settings
from services.availability.core.timeline import merge
from services.availability.exceptions import (
    NoDataAvailable,
    ProviderWriteError,
    ReservationError,
    ReservationRejected,
    SlotNoLongerAvailable,
)
from services.availability.models import CalendarRef
from services.availability.providers.base import CalendarProvider
from services.availability.schemas import (
    Interval,
    ReservationRecord,
    SearchConstraints,
    SearchWindow,
)
from services.common.logging_config import get_logger

logger = get_logger(__name__)


class HoldReservation:
    """Reserves a free slot by creating a busy event on one calendar."""

    def __init__(
        self,
        providers: Mapping[str, CalendarProvider],
        fetcher: EventFetcher,
        settings: Settings,
    ):
        self.providers = providers
        self.fetcher = fetcher
        self.settings = settings

    def hold_title(self, name: Optional[str] = None) -> str:
        prefix = self.settings.HOLD_TITLE_PREFIX
        return f"{prefix}{name or self.settings.DEFAULT_HOLD_NAME}"

    async def reserve(
        self,
        chosen: Interval,
        calendars: Sequence[CalendarRef],
        hold_calendar: CalendarRef,
        constraints: SearchConstraints,
        name: Optional[str] = None,
    ) -> ReservationRecord:
        """
        Re-check ``chosen`` against fresh data and create a hold event for it.

        Args:
            chosen: The slot to reserve, usually a piece of a found free slot
            calendars: Calendars whose busy time must not overlap the hold
            hold_calendar: Calendar on which the hold event is created
            constraints: The constraints the slot was found under
            name: Hold name, appended to the configured title prefix

        Returns:
            ReservationRecord for the created event

        Raises:
            SlotNoLongerAvailable: If busy time now overlaps ``chosen`` or it
                does not fit the daily bounds
            ReservationRejected: If the provider fails to create the event
            NoDataAvailable: If none of ``calendars`` could be re-fetched
            InvalidConstraints: If ``constraints`` themselves are invalid
        """
        validate_constraints(constraints)
        if chosen.duration > constraints.daily.span:
            raise SlotNoLongerAvailable(
                f"Slot {chosen.start.isoformat()} - {chosen.end.isoformat()} "
                "is longer than the daily bounds allow",
                details={
                    "start": chosen.start.isoformat(),
                    "end": chosen.end.isoformat(),
                    "daily_span_minutes": int(
                        constraints.daily.span.total_seconds() // 60
                    ),
                },
            )

        tz = resolve_timezone(constraints.time_zone)
        day = chosen.start.astimezone(tz).date()
        day_constraints = constraints.model_copy(
            update={
                "window": SearchWindow(start=day, end=day),
                "min_duration": chosen.duration,
            }
        )

        outcome = await self.fetcher.fetch(
            calendars,
            local_midnight(day, tz),
            local_midnight(day + timedelta(days=1), tz),
            timeout=self.settings.HOLD_FETCH_TIMEOUT_SECONDS,
        )
        outcome.require_data()

        # A fresh timeline, independent of the one behind the caller's slots
        timeline = merge(normalize(outcome.all_events, tz))
        slots = find_slots(timeline, day_constraints)
        if not any(slot.contains(chosen) for slot in slots):
            logger.info(
                "Chosen slot is no longer free",
                start=chosen.start.isoformat(),
                end=chosen.end.isoformat(),
            )
            raise SlotNoLongerAvailable(
                f"Slot {chosen.start.isoformat()} - {chosen.end.isoformat()} "
                "is no longer available",
                details={
                    "start": chosen.start.isoformat(),
                    "end": chosen.end.isoformat(),
                    "conflicts": [
                        {"start": b.start.isoformat(), "end": b.end.isoformat()}
                        for b in timeline.overlapping(chosen)
                    ],
                },
            )

        title = self.hold_title(name)
        try:
            provider = self.providers.get(hold_calendar.account_id)
            if provider is None:
                raise ProviderWriteError(
                    f"No provider configured for account {hold_calendar.account_id}",
                    details={"calendar_id": hold_calendar.calendar_id},
                )
            event_id = await provider.create_event(
                hold_calendar.calendar_id, chosen, title
            )
        except ProviderWriteError as e:
            logger.error(
                f"Hold event rejected: {e.message}",
                account_id=hold_calendar.account_id,
                calendar_id=hold_calendar.calendar_id,
            )
            raise ReservationRejected(
                f"Could not create hold event: {e.message}", e
            ) from e

        logger.info(
            "Created hold event",
            event_id=event_id,
            account_id=hold_calendar.account_id,
            calendar_id=hold_calendar.calendar_id,
            start=chosen.start.isoformat(),
            end=chosen.end.isoformat(),
        )
        return ReservationRecord(
            event_id=event_id,
            account_id=hold_calendar.account_id,
            calendar_id=hold_calendar.calendar_id,
            slot=Interval(start=chosen.start, end=chosen.end),
            title=title,
            warnings=outcome.warnings,
        )

    async def reserve_many(
        self,
        chosen: Sequence[Interval],
        calendars: Sequence[CalendarRef],
        hold_calendar: CalendarRef,
        constraints: SearchConstraints,
        name: Optional[str] = None,
    ) -> List[ReservationRecord]:
        """
        Reserve several chosen slots, one hold event per merged window.

        Overlapping and adjacent choices are merged first, so picking two
        touching pieces of one free slot yields a single hold. Windows are
        reserved in start order. The first failure stops the batch; the IDs of
        holds already created are added to the error's details.
        """
        windows = merge(chosen).intervals
        records: List[ReservationRecord] = []
        for window in windows:
            try:
                record = await self.reserve(
                    window, calendars, hold_calendar, constraints, name=name
                )
            except (ReservationError, NoDataAvailable) as e:
                if records:
                    logger.warning(
                        "Hold batch stopped after partial success",
                        created=len(records),
                        remaining=len(windows) - len(records),
                    )
                    e.details["created_event_ids"] = [r.event_id for r in records]
                raise
            records.append(record)
        return records
