from typing import Any, Dict, List, Optional
from urllib.parse import quote

from services.availability.core.clients.base import BaseAPIClient
from services.availability.models import Provider

# Ask Graph to report every event time in UTC
PREFER_UTC = 'outlook.timezone="UTC"'


class MicrosoftAPIClient(BaseAPIClient):
    """
    Microsoft Graph API client for Outlook calendars.

    Handles authentication with an OAuth2 access token and exposes the
    calendar endpoints the availability engine needs.
    """

    def __init__(self, access_token: str, account_id: str, timeout: float = 30.0):
        super().__init__(
            access_token, account_id, Provider.MICROSOFT, timeout=timeout
        )

    def _get_default_headers(self) -> Dict[str, str]:
        """Get default headers for Microsoft Graph API requests"""
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "AvailabilityEngine/1.0",
            "Prefer": PREFER_UTC,
        }

    def _get_base_url(self) -> str:
        """Get base URL for Microsoft Graph API"""
        return "https://graph.microsoft.com/v1.0"

    @staticmethod
    def _calendar_path(calendar_id: str) -> str:
        return f"/me/calendars/{quote(calendar_id, safe='')}"

    async def get_calendar_view(
        self,
        calendar_id: str,
        start_time: str,
        end_time: str,
        top: int = 250,
        next_link: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Get one page of the calendar view, with recurring events expanded.

        Args:
            calendar_id: Calendar ID
            start_time: ISO 8601 timestamp for earliest event time
            end_time: ISO 8601 timestamp for latest event time
            top: Maximum number of events per page
            next_link: Absolute @odata.nextLink from the previous page

        Returns:
            Dictionary containing the events and the next page link
        """
        if next_link:
            # The link already carries every query parameter
            response = await self.get(next_link)
            return response.json()

        params: Dict[str, Any] = {
            "startDateTime": start_time,
            "endDateTime": end_time,
            "$top": top,
            "$orderby": "start/dateTime",
        }
        response = await self.get(
            f"{self._calendar_path(calendar_id)}/calendarView", params=params
        )
        return response.json()

    async def get_all_events(
        self, calendar_id: str, start_time: str, end_time: str
    ) -> List[Dict[str, Any]]:
        """Get every event in the range, following @odata.nextLink."""
        events: List[Dict[str, Any]] = []
        next_link: Optional[str] = None
        while True:
            page = await self.get_calendar_view(
                calendar_id, start_time, end_time, next_link=next_link
            )
            events.extend(page.get("value", []))
            next_link = page.get("@odata.nextLink")
            if not next_link:
                return events

    async def create_event(
        self, event_data: Dict[str, Any], calendar_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a calendar event.

        Args:
            event_data: Event data in Microsoft Graph API format
            calendar_id: Calendar ID (if None, uses primary calendar)

        Returns:
            Dictionary containing created event details
        """
        endpoint = (
            f"{self._calendar_path(calendar_id)}/events"
            if calendar_id
            else "/me/events"
        )
        response = await self.post(endpoint, json_data=event_data)
        return response.json()
