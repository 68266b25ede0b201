from datetime import datetime, timezone
from typing import List

from services.availability.core.clients.microsoft import MicrosoftAPIClient
from services.availability.core.normalizer import normalize_microsoft_event
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


def _graph_datetime(value: datetime) -> str:
    """Format an instant as the naive UTC wall-clock time Graph expects."""
    return value.astimezone(timezone.utc).replace(tzinfo=None).isoformat()


class MicrosoftGraphProvider(CalendarProvider):
    """Calendar provider backed by Microsoft Graph (Outlook calendars)."""

    provider = Provider.MICROSOFT

    def __init__(self, account_id: str, access_token: str, timeout: float = 30.0):
        super().__init__(account_id)
        self.access_token = access_token
        self.timeout = timeout

    def _client(self) -> MicrosoftAPIClient:
        return MicrosoftAPIClient(
            self.access_token, self.account_id, timeout=self.timeout
        )

    async def list_events(
        self, calendar_id: str, start: datetime, end: datetime
    ) -> List[SourceEvent]:
        try:
            async with self._client() as client:
                raw_events = await client.get_all_events(
                    calendar_id, _graph_datetime(start), _graph_datetime(end)
                )
        except ProviderError as e:
            raise rewrap_provider_error(ProviderFetchError, e, calendar_id) from e

        events = []
        for raw_event in raw_events:
            try:
                event = normalize_microsoft_event(
                    raw_event, self.account_id, calendar_id
                )
            except ValueError as e:
                raise ProviderFetchError(
                    f"Unreadable event in Microsoft calendar {calendar_id}: {e}",
                    provider=self.provider.value,
                    details={
                        "calendar_id": calendar_id,
                        "event_id": raw_event.get("id"),
                    },
                ) from e
            if event is not None:
                events.append(event)

        logger.debug(
            "Fetched Microsoft Graph events",
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
            "subject": title,
            "start": {"dateTime": _graph_datetime(interval.start), "timeZone": "UTC"},
            "end": {"dateTime": _graph_datetime(interval.end), "timeZone": "UTC"},
            "showAs": "busy",
        }
        try:
            async with self._client() as client:
                created = await client.create_event(event_data, calendar_id=calendar_id)
        except ProviderError as e:
            raise rewrap_provider_error(ProviderWriteError, e, calendar_id) from e
        except ValueError as e:
            raise ProviderWriteError(
                f"Unreadable Microsoft Graph create response: {e}",
                provider=self.provider.value,
                details={"calendar_id": calendar_id},
            ) from e

        event_id = created.get("id") if isinstance(created, dict) else None
        if not event_id:
            raise ProviderWriteError(
                "Microsoft Graph did not return an event ID",
                provider=self.provider.value,
                details={"calendar_id": calendar_id},
            )
        return event_id
