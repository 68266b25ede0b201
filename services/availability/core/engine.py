"""
Availability engine facade.

Runs the full pipeline for one invocation: validate constraints, fetch the
selected calendars concurrently, normalize, merge, search for free slots,
and optionally reserve one of them with a hold event.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from services.availability.core.fetcher import EventFetcher
from services.availability.core.finder import (
    find_slots,
    split_slot,
    validate_constraints,
)
from services.availability.core.normalizer import (
    ceil_minute,
    local_midnight,
    normalize,
    resolve_timezone,
)
from services.availability.core.request import AvailabilityRequest
from services.availability.core.reservation import HoldReservation
from services.availability.core.settings import Settings, get_settings
from services.availability.core.timeline import merge
from services.availability.exceptions import (
    InvalidConstraints,
    NoDataAvailable,
    ReservationError,
)
from services.availability.models import CalendarRef
from services.availability.providers.base import CalendarProvider
from services.availability.schemas import (
    AvailabilityResult,
    FreeSlot,
    Interval,
    ReservationRecord,
    SearchConstraints,
)
from services.common.logging_config import (
    bind_invocation,
    ensure_invocation,
    get_logger,
    setup_service_logging,
)

logger = get_logger(__name__)

SlotChooser = Callable[[Sequence[FreeSlot], timedelta], Optional[Interval]]


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Set up structured logging from the service settings."""
    settings = settings or get_settings()
    setup_service_logging(
        service_name=settings.SERVICE_NAME,
        log_level=settings.LOG_LEVEL,
        log_format=settings.LOG_FORMAT,
    )


def first_available(
    slots: Sequence[FreeSlot], duration: timedelta
) -> Optional[Interval]:
    """Pick the earliest meeting-sized piece of the earliest slot."""
    for slot in slots:
        pieces = split_slot(slot, duration)
        if pieces:
            return pieces[0]
    return None


def clip_slots(
    slots: Sequence[FreeSlot], not_before: datetime, min_duration: timedelta
) -> List[FreeSlot]:
    """
    Drop the part of each slot before ``not_before``.

    The cut is rounded up to the next whole minute. Slots left shorter than
    ``min_duration`` are removed.
    """
    cutoff = ceil_minute(not_before.astimezone(timezone.utc))
    clipped = []
    for slot in slots:
        start = max(slot.start, cutoff)
        if slot.end - start >= min_duration:
            clipped.append(
                slot if start == slot.start else FreeSlot(start=start, end=slot.end)
            )
    return clipped


class AvailabilityEngine:
    """
    Finds common free time across calendars and reserves holds.

    Providers are injected keyed by account ID, so the engine never touches
    credentials or selection state and runs without network access in tests.
    """

    def __init__(
        self,
        providers: Mapping[str, CalendarProvider],
        settings: Optional[Settings] = None,
        fetcher: Optional[EventFetcher] = None,
    ):
        self.providers = providers
        self.settings = settings or get_settings()
        self.fetcher = fetcher or EventFetcher(
            providers, max_concurrency=self.settings.MAX_CONCURRENT_REQUESTS
        )
        self.reservation = HoldReservation(providers, self.fetcher, self.settings)

    @staticmethod
    def fetch_range(constraints: SearchConstraints) -> Tuple[datetime, datetime]:
        """UTC range from local midnight of the first day to the end of the last."""
        tz = resolve_timezone(constraints.time_zone)
        return (
            local_midnight(constraints.window.start, tz),
            local_midnight(constraints.window.end + timedelta(days=1), tz),
        )

    async def find_availability(
        self,
        calendars: Sequence[CalendarRef],
        constraints: SearchConstraints,
        not_before: Optional[datetime] = None,
    ) -> AvailabilityResult:
        """
        Find free slots common to every fetched calendar.

        Args:
            calendars: Calendars to consider busy time from
            constraints: Window, work hours, weekend policy and duration
            not_before: Optional instant before which no slot may start

        Returns:
            AvailabilityResult with ordered slots and a warning per calendar
            that could not be fetched

        Raises:
            InvalidConstraints: Before any fetch, if the constraints are bad
            NoDataAvailable: If not a single calendar could be fetched
        """
        validate_constraints(constraints)
        with ensure_invocation():
            return await self._search(calendars, constraints, not_before)

    async def _search(
        self,
        calendars: Sequence[CalendarRef],
        constraints: SearchConstraints,
        not_before: Optional[datetime],
    ) -> AvailabilityResult:
        start, end = self.fetch_range(constraints)
        logger.info(
            "Searching availability",
            calendars=len(calendars),
            window_start=constraints.window.start.isoformat(),
            window_end=constraints.window.end.isoformat(),
            min_duration=str(constraints.min_duration),
        )
        outcome = await self.fetcher.fetch(
            calendars, start, end, timeout=self.settings.FETCH_TIMEOUT_SECONDS
        )
        outcome.require_data()

        timeline = merge(normalize(outcome.all_events, constraints.time_zone))
        slots = list(find_slots(timeline, constraints))
        if not_before is not None:
            slots = clip_slots(slots, not_before, constraints.min_duration)

        logger.info(
            "Found free slots",
            slots=len(slots),
            busy_intervals=len(timeline),
            partial=bool(outcome.warnings),
        )
        return AvailabilityResult(slots=slots, warnings=outcome.warnings)

    async def reserve(
        self,
        chosen: Interval,
        calendars: Sequence[CalendarRef],
        hold_calendar: CalendarRef,
        constraints: SearchConstraints,
        name: Optional[str] = None,
    ) -> ReservationRecord:
        """Reserve ``chosen`` with a hold event; see HoldReservation.reserve."""
        with ensure_invocation():
            return await self.reservation.reserve(
                chosen, calendars, hold_calendar, constraints, name=name
            )

    async def reserve_many(
        self,
        chosen: Sequence[Interval],
        calendars: Sequence[CalendarRef],
        hold_calendar: CalendarRef,
        constraints: SearchConstraints,
        name: Optional[str] = None,
    ) -> List[ReservationRecord]:
        """Hold several chosen slots; see HoldReservation.reserve_many."""
        with ensure_invocation():
            return await self.reservation.reserve_many(
                chosen, calendars, hold_calendar, constraints, name=name
            )

    async def run(
        self,
        calendars: Sequence[CalendarRef],
        request: AvailabilityRequest,
        hold_calendar: Optional[CalendarRef] = None,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
        choose: Optional[SlotChooser] = None,
    ) -> AvailabilityResult:
        """
        Search availability for a request, then hold a slot if asked.

        Each call is one invocation with its own ID, unbound again on return.
        Slots on the current day are clipped to start no earlier than ``now``.
        Reservation failures are reported on the result rather than raised,
        since the slots already found stay valid.
        """
        with bind_invocation():
            return await self._run(
                calendars, request, hold_calendar, today, now, choose
            )

    async def _run(
        self,
        calendars: Sequence[CalendarRef],
        request: AvailabilityRequest,
        hold_calendar: Optional[CalendarRef],
        today: Optional[date],
        now: Optional[datetime],
        choose: Optional[SlotChooser],
    ) -> AvailabilityResult:
        if request.create_hold_event and hold_calendar is None:
            raise InvalidConstraints(
                "A hold calendar is required to create a hold event",
                field="hold_calendar",
            )

        tz = resolve_timezone(self.settings.REFERENCE_TIMEZONE)
        now = now or datetime.now(timezone.utc)
        today = today or now.astimezone(tz).date()
        constraints = request.to_constraints(today, self.settings)
        not_before = now if constraints.window.start <= today else None

        result = await self.find_availability(
            calendars, constraints, not_before=not_before
        )
        if not request.create_hold_event or hold_calendar is None:
            return result

        chosen = (choose or first_available)(result.slots, constraints.min_duration)
        if chosen is None:
            logger.info("No free slot to hold")
            return result

        try:
            record = await self.reserve(
                chosen, calendars, hold_calendar, constraints, name=request.hold_name
            )
        except (ReservationError, NoDataAvailable) as e:
            logger.warning(f"Hold reservation failed: {e.message}")
            return result.model_copy(
                update={"reservation_error": e.to_error_response()}
            )
        return result.model_copy(update={"reservation": record})
