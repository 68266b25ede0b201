"""
Provider factory for the availability engine.

Builds the provider-specific adapter for one account from an access token
supplied by the credential collaborator, using the configured HTTP timeout.
"""

from typing import Optional, Union

from services.availability.core.settings import Settings, get_settings
from services.availability.models import Provider
from services.availability.providers.base import CalendarProvider
from services.availability.providers.google_calendar import GoogleCalendarProvider
from services.availability.providers.microsoft_graph import MicrosoftGraphProvider
from services.common.logging_config import get_logger

logger = get_logger(__name__)


def create_provider(
    account_id: str,
    provider: Union[str, Provider],
    access_token: str,
    settings: Optional[Settings] = None,
) -> CalendarProvider:
    """
    Create a calendar provider adapter for an account.

    Args:
        account_id: Account the provider reads and writes on behalf of
        provider: Provider name ('google', 'microsoft') or Provider enum
        access_token: OAuth access token for the account
        settings: Settings to read the HTTP timeout from

    Returns:
        Provider adapter for the account

    Raises:
        ValueError: If the provider is not supported
    """
    if isinstance(provider, str):
        try:
            provider = Provider(provider.lower())
        except ValueError:
            raise ValueError(
                f"Invalid provider: {provider}. Must be 'google' or 'microsoft'"
            )

    timeout = (settings or get_settings()).HTTP_TIMEOUT_SECONDS
    adapter: CalendarProvider
    if provider == Provider.GOOGLE:
        adapter = GoogleCalendarProvider(account_id, access_token, timeout=timeout)
    elif provider == Provider.MICROSOFT:
        adapter = MicrosoftGraphProvider(account_id, access_token, timeout=timeout)
    else:
        raise ValueError(f"Unsupported provider: {provider}")

    logger.debug(f"Created {provider.value} provider", account_id=account_id)
    return adapter
