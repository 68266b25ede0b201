from services.availability.providers.base import CalendarProvider
from services.availability.providers.factory import create_provider
from services.availability.providers.google_calendar import GoogleCalendarProvider
from services.availability.providers.microsoft_graph import MicrosoftGraphProvider

__all__ = [
    "CalendarProvider",
    "GoogleCalendarProvider",
    "MicrosoftGraphProvider",
    "create_provider",
]
