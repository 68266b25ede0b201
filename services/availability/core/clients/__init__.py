from services.availability.core.clients.base import BaseAPIClient
from services.availability.core.clients.google import GoogleAPIClient
from services.availability.core.clients.microsoft import MicrosoftAPIClient

__all__ = ["BaseAPIClient", "GoogleAPIClient", "MicrosoftAPIClient"]
