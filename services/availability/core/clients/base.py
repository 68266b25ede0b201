"""
Base API client for calendar provider integrations.

Provides common functionality for HTTP requests, error handling,
and authentication across the Google and Microsoft APIs.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from services.availability.models import Provider
from services.common.errors import ErrorCode, ProviderError
from services.common.logging_config import current_invocation_id, get_logger

logger = get_logger(__name__)


class BaseAPIClient(ABC):
    """
    Base API client class shared by the provider-specific clients.

    Features:
    - httpx.AsyncClient lifecycle via async context manager
    - Authentication header management
    - Mapping of HTTP, timeout and transport failures to ProviderError
    - Invocation ID propagation for log correlation
    """

    def __init__(
        self,
        access_token: str,
        account_id: str,
        provider: Provider,
        timeout: float = 30.0,
    ):
        """
        Initialize the base API client.

        Args:
            access_token: OAuth access token for the provider
            account_id: Account the token belongs to, for logging
            provider: Provider enum (google, microsoft)
            timeout: Per-request timeout in seconds
        """
        self.access_token = access_token
        self.account_id = account_id
        self.provider = provider
        self.timeout = timeout
        self.http_client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "BaseAPIClient":
        self.http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers=self._get_default_headers(),
        )
        logger.debug(
            f"Initialized {self.provider.value} API client",
            account_id=self.account_id,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.http_client:
            await self.http_client.aclose()
            self.http_client = None

    @abstractmethod
    def _get_default_headers(self) -> Dict[str, str]:
        """Get default headers for API requests. Must be implemented by subclasses."""

    @abstractmethod
    def _get_base_url(self) -> str:
        """Get base URL for the provider API. Must be implemented by subclasses."""

    def _parse_microsoft_error(
        self, response_text: str, status_code: int
    ) -> tuple[str, ErrorCode]:
        """
        Parse Microsoft Graph error responses into a message and error code.

        Returns:
            Tuple of (user-friendly error message, provider-specific error code)
        """
        try:
            error = json.loads(response_text).get("error", {})
            error_code = error.get("code", "")
            error_message = error.get("message", "")
        except (json.JSONDecodeError, AttributeError):
            error_code = ""
            error_message = f"HTTP {status_code}"

        if status_code == 401:
            if "expired" in error_message.lower() or "TokenExpired" in error_code:
                return (
                    "Microsoft token has expired. Please refresh your authentication.",
                    ErrorCode.MICROSOFT_TOKEN_EXPIRED,
                )
            return (
                f"Microsoft authentication failed: {error_message}",
                ErrorCode.MICROSOFT_AUTH_FAILED,
            )
        elif status_code == 403:
            if "InsufficientPermissions" in error_code:
                return (
                    "Insufficient Microsoft permissions. Please grant calendar scopes.",
                    ErrorCode.MICROSOFT_INSUFFICIENT_PERMISSIONS,
                )
            return (
                f"Microsoft access denied: {error_message}",
                ErrorCode.MICROSOFT_ACCESS_DENIED,
            )
        elif status_code == 404:
            return (
                f"Microsoft calendar not found: {error_message}",
                ErrorCode.MICROSOFT_NOT_FOUND,
            )
        elif status_code == 429:
            return (
                "Microsoft API rate limit exceeded. Please try again later.",
                ErrorCode.MICROSOFT_RATE_LIMITED,
            )
        elif status_code >= 500:
            return (
                f"Microsoft service error: {error_message}",
                ErrorCode.MICROSOFT_SERVICE_ERROR,
            )
        return (
            f"Microsoft API error ({error_code or status_code}): {error_message}",
            ErrorCode.MICROSOFT_API_ERROR,
        )

    def _parse_google_error(
        self, response_text: str, status_code: int
    ) -> tuple[str, ErrorCode]:
        """
        Parse Google API error responses into a message and error code.

        Returns:
            Tuple of (user-friendly error message, provider-specific error code)
        """
        try:
            error = json.loads(response_text).get("error", {})
            if isinstance(error, dict):
                error_message = error.get("message", "")
                reasons = [e.get("reason", "") for e in error.get("errors", [])]
            else:
                # Some Google endpoints return the error as a string
                error_message = str(error)
                reasons = []
        except (json.JSONDecodeError, AttributeError):
            error_message = f"HTTP {status_code}"
            reasons = []

        if status_code == 401:
            if "expired" in error_message.lower():
                return (
                    "Google token has expired. Please refresh your authentication.",
                    ErrorCode.GOOGLE_TOKEN_EXPIRED,
                )
            return (
                "Google authentication failed. Please refresh your Google token.",
                ErrorCode.GOOGLE_AUTH_FAILED,
            )
        elif status_code == 403:
            if "quotaExceeded" in reasons or "rateLimitExceeded" in reasons:
                return (
                    "Google API quota exceeded. Please try again later.",
                    ErrorCode.GOOGLE_QUOTA_EXCEEDED,
                )
            if "insufficient authentication scopes" in error_message.lower():
                return (
                    "Insufficient Google permissions. "
                    "Please re-authenticate with calendar scopes.",
                    ErrorCode.GOOGLE_INSUFFICIENT_SCOPES,
                )
            if "insufficientPermissions" in reasons:
                return (
                    "Google account lacks permission for this calendar: "
                    f"{error_message}",
                    ErrorCode.GOOGLE_INSUFFICIENT_PERMISSIONS,
                )
            return (
                f"Google access denied: {error_message}",
                ErrorCode.GOOGLE_ACCESS_DENIED,
            )
        elif status_code == 404:
            return (
                f"Google calendar not found: {error_message}",
                ErrorCode.GOOGLE_NOT_FOUND,
            )
        elif status_code == 429:
            return (
                "Google API rate limit exceeded. Please try again later.",
                ErrorCode.GOOGLE_RATE_LIMITED,
            )
        elif status_code >= 500:
            return (
                f"Google service error: {error_message}",
                ErrorCode.GOOGLE_SERVICE_ERROR,
            )
        return f"Google API error: {error_message}", ErrorCode.GOOGLE_API_ERROR

    def _parse_error(self, response: httpx.Response) -> tuple[str, ErrorCode]:
        if self.provider == Provider.MICROSOFT:
            return self._parse_microsoft_error(response.text, response.status_code)
        return self._parse_google_error(response.text, response.status_code)

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """
        Make an HTTP request with logging and error handling.

        Args:
            method: HTTP method (GET, POST, ...)
            endpoint: API path, or an absolute URL such as a paging link
            params: Query parameters
            json_data: JSON payload
            headers: Additional headers

        Returns:
            httpx.Response object

        Raises:
            ProviderError: For HTTP errors, timeouts and transport failures
        """
        if not self.http_client:
            raise RuntimeError(
                "HTTP client not initialized. Use async context manager."
            )

        if endpoint.startswith("http"):
            url = endpoint
        else:
            url = f"{self._get_base_url()}{endpoint}"
        request_id = current_invocation_id()
        request_headers = {"X-Request-ID": request_id}
        if headers:
            request_headers.update(headers)

        start_time = time.time()
        try:
            response = await self.http_client.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                headers=request_headers,
            )
            response_time_ms = int((time.time() - start_time) * 1000)
            logger.debug(
                f"{method.upper()} {endpoint} -> {response.status_code}",
                provider=self.provider.value,
                account_id=self.account_id,
                response_time_ms=response_time_ms,
            )
            response.raise_for_status()
            return response

        except httpx.TimeoutException:
            response_time_ms = int((time.time() - start_time) * 1000)
            logger.error(
                f"Timeout calling {self.provider.value}",
                endpoint=endpoint,
                account_id=self.account_id,
                timeout_ms=response_time_ms,
            )
            raise ProviderError(
                message=f"Request timeout after {response_time_ms}ms",
                provider=self.provider.value,
                code=ErrorCode.PROVIDER_TIMEOUT,
                details={
                    "endpoint": endpoint,
                    "method": method.upper(),
                    "timeout_ms": response_time_ms,
                },
            )

        except httpx.HTTPStatusError as e:
            user_friendly_error, provider_code = self._parse_error(e.response)
            logger.error(
                f"HTTP error: {user_friendly_error}",
                endpoint=endpoint,
                account_id=self.account_id,
                provider=self.provider.value,
                status_code=e.response.status_code,
            )

            retry_after = None
            retry_after_header = e.response.headers.get("Retry-After")
            if e.response.status_code == 429 and retry_after_header:
                try:
                    retry_after = int(retry_after_header)
                except ValueError:
                    retry_after = None

            raise ProviderError(
                message=user_friendly_error,
                provider=self.provider.value,
                status_code=e.response.status_code,
                response_body=e.response.text,
                retry_after=retry_after,
                code=provider_code,
                details={"endpoint": endpoint, "method": method.upper()},
            )

        except httpx.RequestError as e:
            logger.error(
                f"Request error calling {self.provider.value}: {e}",
                endpoint=endpoint,
                account_id=self.account_id,
            )
            raise ProviderError(
                message=f"Request failed: {e}",
                provider=self.provider.value,
                code=ErrorCode.PROVIDER_UNAVAILABLE,
                details={
                    "endpoint": endpoint,
                    "method": method.upper(),
                    "error_type": type(e).__name__,
                },
            )

    async def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Make a GET request"""
        return await self._make_request("GET", endpoint, params=params, headers=headers)

    async def post(
        self,
        endpoint: str,
        json_data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Make a POST request"""
        return await self._make_request(
            "POST", endpoint, json_data=json_data, headers=headers
        )
