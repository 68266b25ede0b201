from datetime import datetime, timezone
from typing import List

from services.availability.core.clients.google import GoogleAPIClient
from services.availability.core.normalizer import normalize_google_event
from services.availability.exceptions import ProviderFetchError, ProviderWriteError
from services.availability.models import Provider
from services.availability.providers.base import (
    CalendarProvider,
    rewrap_provider_error,
)
from services.availability.schemas import Interval, SourceEvent
from services.common.errors import ProviderError
from services.common.logging_config import get_logger

logger = get_logger(__name__)


def _rfc3339(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class GoogleCalendarProvider(CalendarProvider):
    """Calendar provider backed by the Google Calendar API."""

    provider = Provider.GOOGLE

    def __init__(self, account_id: str, access_token: str, timeout: float = 30.0):
        super().__init__(account_id)
        self.access_token = access_token
        self.timeout = timeout

    def _client(self) -> GoogleAPIClient:
        return GoogleAPIClient(self.access_token, self.account_id, timeout=self.timeout)

    async def list_events(
        self, calendar_id: str, start: datetime, end: datetime
    ) -> List[SourceEvent]:
        try:
            async with self._client() as client:
                raw_events = await client.get_all_events(
                    calendar_id, time_min=_rfc3339(start), time_max=_rfc3339(end)
                )
        except ProviderError as e:
            raise rewrap_provider_error(ProviderFetchError, e, calendar_id) from e

        events = []
        for raw_event in raw_events:
            try:
                event = normalize_google_event(raw_event, self.account_id, calendar_id)
            except ValueError as e:
                raise ProviderFetchError(
                    f"Unreadable event in Google calendar {calendar_id}: {e}",
                    provider=self.provider.value,
                    details={
                        "calendar_id": calendar_id,
                        "event_id": raw_event.get("id"),
                    },
                ) from e
            if event is not None:
                events.append(event)

        logger.debug(
            "Fetched Google Calendar events",
            account_id=self.account_id,
            calendar_id=calendar_id,
            raw_count=len(raw_events),
            busy_count=len(events),
        )
        return events

    async def create_event(
        self, calendar_id: str, interval: Interval, title: str
    ) -> str:
        event_data = {
            "summary": title,
            "start": {"dateTime": interval.start.isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": interval.end.isoformat(), "timeZone": "UTC"},
            "transparency": "opaque",
        }
        try:
            async with self._client() as client:
                created = await client.create_event(calendar_id, event_data)
        except ProviderError as e:
            raise rewrap_provider_error(ProviderWriteError, e, calendar_id) from e
        except ValueError as e:
            raise ProviderWriteError(
                f"Unreadable Google Calendar create response: {e}",
                provider=self.provider.value,
                details={"calendar_id": calendar_id},
            ) from e

        event_id = created.get("id") if isinstance(created, dict) else None
        if not event_id:
            raise ProviderWriteError(
                "Google Calendar did not return an event ID",
                provider=self.provider.value,
                details={"calendar_id": calendar_id},
            )
        return event_id
