from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Type, TypeVar

from services.availability.models import Provider
from services.availability.schemas import Interval, SourceEvent
from services.common.errors import ErrorCode, ProviderError

ProviderErrorT = TypeVar("ProviderErrorT", bound=ProviderError)


class CalendarProvider(ABC):
    """
    Capability interface for one account on one calendar provider.

    The engine depends only on this interface. Each provider implements it
    once; the engine receives instances keyed by account ID.
    """

    provider: Provider

    def __init__(self, account_id: str):
        self.account_id = account_id

    @abstractmethod
    async def list_events(
        self, calendar_id: str, start: datetime, end: datetime
    ) -> List[SourceEvent]:
        """
        Fetch the events of one calendar that intersect ``[start, end)``.

        Recurring events are returned as concrete occurrences.

        Raises:
            ProviderFetchError: For any failure talking to the provider or
                reading its response
        """

    @abstractmethod
    async def create_event(
        self, calendar_id: str, interval: Interval, title: str
    ) -> str:
        """
        Create a busy event covering exactly ``interval``.

        Returns:
            The provider's ID for the created event

        Raises:
            ProviderWriteError: If the provider refuses or fails the write
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(account_id={self.account_id!r})"


def rewrap_provider_error(
    error_cls: Type[ProviderErrorT], exc: ProviderError, calendar_id: str
) -> ProviderErrorT:
    """Convert a client ProviderError into a fetch or write error for a calendar."""
    details = {**exc.details, "calendar_id": calendar_id}
    return error_cls(
        message=exc.message,
        provider=exc.provider,
        details=details,
        code=exc.error_code or ErrorCode.PROVIDER_ERROR,
        status_code=exc.status_code,
        response_body=exc.response_body,
        retry_after=exc.retry_after,
    )
