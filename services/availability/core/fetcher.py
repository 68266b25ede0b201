"""
Concurrent event fetching across selected calendars.

One task per calendar runs under a shared deadline. Calendars that fail or
time out become warnings; the remaining calendars still count.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence

from services.availability.exceptions import NoDataAvailable
from services.availability.models import CalendarRef, Provider
from services.availability.providers.base import CalendarProvider
from services.availability.schemas import FetchWarning, SourceEvent
from services.common.errors import ErrorCode, ServiceException
from services.common.logging_config import bind_account, get_logger

logger = get_logger(__name__)


@dataclass
class FetchOutcome:
    """Events per successfully fetched calendar, plus a warning per failure."""

    events: Dict[CalendarRef, List[SourceEvent]] = field(default_factory=dict)
    warnings: List[FetchWarning] = field(default_factory=list)

    @property
    def all_events(self) -> List[SourceEvent]:
        return [event for events in self.events.values() for event in events]

    def require_data(self) -> None:
        """
        Raises:
            NoDataAvailable: If not a single calendar was fetched
        """
        if not self.events:
            raise NoDataAvailable(
                "No calendar could be fetched",
                details={
                    "failed_calendars": [
                        f"{w.account_id}/{w.calendar_id}" for w in self.warnings
                    ]
                },
            )


class EventFetcher:
    """
    Fetches events for many calendars concurrently.

    Providers are looked up by account ID. Concurrency is capped per
    provider kind, since throttling limits apply per provider.
    """

    def __init__(
        self,
        providers: Mapping[str, CalendarProvider],
        max_concurrency: int = 4,
    ):
        self.providers = providers
        self.max_concurrency = max_concurrency

    async def fetch(
        self,
        calendars: Sequence[CalendarRef],
        start: datetime,
        end: datetime,
        timeout: Optional[float] = None,
    ) -> FetchOutcome:
        """
        Fetch events intersecting ``[start, end)`` from every calendar.

        Args:
            calendars: Calendars to query
            start: Range start (aware)
            end: Range end (aware)
            timeout: Shared deadline in seconds for all calendars

        Returns:
            FetchOutcome with the events of each calendar that succeeded and
            one warning per calendar that failed or timed out
        """
        outcome = FetchOutcome()
        calendars = list(dict.fromkeys(calendars))
        if not calendars:
            return outcome

        semaphores: Dict[Provider, asyncio.Semaphore] = {}
        tasks: Dict[asyncio.Task, CalendarRef] = {}

        for calendar in calendars:
            provider = self.providers.get(calendar.account_id)
            if provider is None:
                outcome.warnings.append(
                    FetchWarning(
                        account_id=calendar.account_id,
                        calendar_id=calendar.calendar_id,
                        message=(
                            f"No provider configured for account {calendar.account_id}"
                        ),
                        code=ErrorCode.PROVIDER_UNAVAILABLE.value,
                    )
                )
                continue
            semaphore = semaphores.setdefault(
                provider.provider, asyncio.Semaphore(self.max_concurrency)
            )
            task = asyncio.create_task(
                self._fetch_one(provider, semaphore, calendar, start, end)
            )
            tasks[task] = calendar

        if not tasks:
            self._log_failures(outcome)
            return outcome

        _, pending = await asyncio.wait(list(tasks), timeout=timeout)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        # Preserve selection order in the outcome
        for task, calendar in tasks.items():
            provider = self.providers[calendar.account_id]
            if task in pending:
                outcome.warnings.append(
                    FetchWarning(
                        account_id=calendar.account_id,
                        calendar_id=calendar.calendar_id,
                        provider=provider.provider,
                        message=f"Timed out after {timeout}s",
                        code=ErrorCode.PROVIDER_TIMEOUT.value,
                    )
                )
                continue

            exc = task.exception()
            if exc is None:
                outcome.events[calendar] = task.result()
            elif isinstance(exc, ServiceException):
                outcome.warnings.append(
                    FetchWarning(
                        account_id=calendar.account_id,
                        calendar_id=calendar.calendar_id,
                        provider=provider.provider,
                        message=exc.message,
                        code=exc.error_code.value if exc.error_code else None,
                    )
                )
            else:
                logger.error(
                    "Unexpected error fetching calendar",
                    account_id=calendar.account_id,
                    calendar_id=calendar.calendar_id,
                    exc_info=exc,
                )
                outcome.warnings.append(
                    FetchWarning(
                        account_id=calendar.account_id,
                        calendar_id=calendar.calendar_id,
                        provider=provider.provider,
                        message=f"{type(exc).__name__}: {exc}",
                        code=ErrorCode.PROVIDER_ERROR.value,
                    )
                )

        self._log_failures(outcome)
        logger.info(
            "Fetched calendars",
            succeeded=len(outcome.events),
            failed=len(outcome.warnings),
            events=sum(len(events) for events in outcome.events.values()),
        )
        return outcome

    async def _fetch_one(
        self,
        provider: CalendarProvider,
        semaphore: asyncio.Semaphore,
        calendar: CalendarRef,
        start: datetime,
        end: datetime,
    ) -> List[SourceEvent]:
        with bind_account(calendar.account_id):
            async with semaphore:
                return await provider.list_events(calendar.calendar_id, start, end)

    @staticmethod
    def _log_failures(outcome: FetchOutcome) -> None:
        for warning in outcome.warnings:
            logger.warning(
                f"Calendar fetch failed: {warning.message}",
                account_id=warning.account_id,
                calendar_id=warning.calendar_id,
                code=warning.code,
            )
