from typing import Any, Dict, List, Optional
from urllib.parse import quote

from services.availability.core.clients.base import BaseAPIClient
from services.availability.models import Provider


class GoogleAPIClient(BaseAPIClient):
    """
    Google Calendar API client.

    Handles authentication with an OAuth2 access token and exposes the
    calendar endpoints the availability engine needs.
    """

    def __init__(self, access_token: str, account_id: str, timeout: float = 30.0):
        super().__init__(access_token, account_id, Provider.GOOGLE, timeout=timeout)

    def _get_default_headers(self) -> Dict[str, str]:
        """Get default headers for Google API requests"""
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "AvailabilityEngine/1.0",
        }

    def _get_base_url(self) -> str:
        """Get base URL for Google APIs"""
        return "https://www.googleapis.com"

    @staticmethod
    def _calendar_path(calendar_id: str) -> str:
        return f"/calendar/v3/calendars/{quote(calendar_id, safe='')}/events"

    async def get_events(
        self,
        calendar_id: str = "primary",
        time_min: Optional[str] = None,
        time_max: Optional[str] = None,
        max_results: int = 250,
        page_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Get one page of calendar events, with recurring events expanded.

        Args:
            calendar_id: Calendar ID (default: primary)
            time_min: RFC3339 timestamp for earliest event end
            time_max: RFC3339 timestamp for latest event start
            max_results: Maximum number of events to return
            page_token: Token for pagination

        Returns:
            Dictionary containing events list and pagination info
        """
        params: Dict[str, Any] = {
            "maxResults": max_results,
            "singleEvents": True,
            "orderBy": "startTime",
        }
        if time_min:
            params["timeMin"] = time_min
        if time_max:
            params["timeMax"] = time_max
        if page_token:
            params["pageToken"] = page_token

        response = await self.get(self._calendar_path(calendar_id), params=params)
        return response.json()

    async def get_all_events(
        self, calendar_id: str, time_min: str, time_max: str
    ) -> List[Dict[str, Any]]:
        """Get every event in the range, following nextPageToken."""
        events: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        while True:
            page = await self.get_events(
                calendar_id, time_min=time_min, time_max=time_max, page_token=page_token
            )
            events.extend(page.get("items", []))
            page_token = page.get("nextPageToken")
            if not page_token:
                return events

    async def create_event(
        self, calendar_id: str, event_data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Create a calendar event.

        Args:
            calendar_id: Calendar ID to create event in
            event_data: Event data in Google Calendar API format

        Returns:
            Dictionary containing created event details
        """
        response = await self.post(
            self._calendar_path(calendar_id), json_data=event_data
        )
        return response.json()
