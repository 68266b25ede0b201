"""
Test configuration and fixtures for the availability engine tests.

Calendar providers are replaced with in-memory fakes, so the engine runs
without credentials or network access.
"""

import asyncio
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple, Union

import pytest

from services.availability.core.settings import Settings, reset_settings
from services.availability.models import Provider
from services.availability.providers.base import CalendarProvider
from services.availability.schemas import Interval, SourceEvent


class FakeProvider(CalendarProvider):
    """In-memory provider that records every call made to it."""

    def __init__(
        self,
        account_id: str,
        events: Optional[Dict[str, List[SourceEvent]]] = None,
        provider: Provider = Provider.GOOGLE,
        error: Optional[Exception] = None,
        write_error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        super().__init__(account_id)
        self.provider = provider
        self.events = events or {}
        self.error = error
        self.write_error = write_error
        self.delay = delay
        self.list_calls: List[Tuple[str, datetime, datetime]] = []
        self.created: List[Tuple[str, Interval, str]] = []

    async def list_events(
        self, calendar_id: str, start: datetime, end: datetime
    ) -> List[SourceEvent]:
        self.list_calls.append((calendar_id, start, end))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.events.get(calendar_id, []))

    async def create_event(
        self, calendar_id: str, interval: Interval, title: str
    ) -> str:
        if self.write_error is not None:
            raise self.write_error
        self.created.append((calendar_id, interval, title))
        return f"hold-{len(self.created)}"


@pytest.fixture(autouse=True)
def clean_settings():
    """Drop the cached global settings around every test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    """Settings with short deadlines and no .env file."""
    return Settings(
        _env_file=None,
        REFERENCE_TIMEZONE="UTC",
        FETCH_TIMEOUT_SECONDS=1.0,
        HOLD_FETCH_TIMEOUT_SECONDS=1.0,
    )


@pytest.fixture
def make_event():
    """Factory for source events on a default account and calendar."""

    def _make(
        start: Union[datetime, date],
        end: Optional[Union[datetime, date]],
        account_id: str = "alice",
        calendar_id: str = "primary",
        **kwargs,
    ) -> SourceEvent:
        return SourceEvent(
            account_id=account_id,
            calendar_id=calendar_id,
            start=start,
            end=end,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_provider():
    """Factory for FakeProvider instances."""

    def _make(account_id: str = "alice", **kwargs) -> FakeProvider:
        return FakeProvider(account_id, **kwargs)

    return _make
