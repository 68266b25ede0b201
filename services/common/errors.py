"""
Shared error classes and utilities for the availability services.

Provides:
- Base exception class carrying structured error context
- Common subclasses (Validation, Service, Provider)
- Shared error response model
- Utility to convert exceptions to error responses

Common Usage Patterns:
=====================

>>> from services.common.errors import ProviderError, ErrorCode
>>>
>>> error = ProviderError(
...     message="Google API quota exceeded",
...     provider="google",
...     code=ErrorCode.GOOGLE_QUOTA_EXCEEDED,
...     retry_after=3600,
... )
>>> error.to_error_response().type
'provider_error'

Error Code Taxonomy:
===================
- VALIDATION_* / INVALID_* : Input validation errors
- NO_DATA_AVAILABLE : Every calendar fetch failed
- SLOT_* / RESERVATION_* : Hold reservation failures
- PROVIDER_* : External provider integration errors
- GOOGLE_* : Google API specific errors
- MICROSOFT_* : Microsoft API specific errors
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel

from services.common.logging_config import current_invocation_id


class ErrorCode(str, Enum):
    """
    Standardized error codes for the availability services.

    Provider-specific codes follow the pattern {PROVIDER}_{SPECIFIC_ERROR}.
    """

    # General errors
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_CONSTRAINTS = "INVALID_CONSTRAINTS"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Service errors
    SERVICE_ERROR = "SERVICE_ERROR"
    NO_DATA_AVAILABLE = "NO_DATA_AVAILABLE"

    # Reservation errors
    SLOT_NO_LONGER_AVAILABLE = "SLOT_NO_LONGER_AVAILABLE"
    RESERVATION_REJECTED = "RESERVATION_REJECTED"

    # Provider errors
    PROVIDER_ERROR = "PROVIDER_ERROR"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"

    # Google API errors
    GOOGLE_AUTH_FAILED = "GOOGLE_AUTH_FAILED"
    GOOGLE_TOKEN_EXPIRED = "GOOGLE_TOKEN_EXPIRED"
    GOOGLE_INSUFFICIENT_SCOPES = "GOOGLE_INSUFFICIENT_SCOPES"
    GOOGLE_INSUFFICIENT_PERMISSIONS = "GOOGLE_INSUFFICIENT_PERMISSIONS"
    GOOGLE_ACCESS_DENIED = "GOOGLE_ACCESS_DENIED"
    GOOGLE_NOT_FOUND = "GOOGLE_NOT_FOUND"
    GOOGLE_QUOTA_EXCEEDED = "GOOGLE_QUOTA_EXCEEDED"
    GOOGLE_RATE_LIMITED = "GOOGLE_RATE_LIMITED"
    GOOGLE_SERVICE_ERROR = "GOOGLE_SERVICE_ERROR"
    GOOGLE_API_ERROR = "GOOGLE_API_ERROR"

    # Microsoft Graph errors
    MICROSOFT_TOKEN_EXPIRED = "MICROSOFT_TOKEN_EXPIRED"
    MICROSOFT_AUTH_FAILED = "MICROSOFT_AUTH_FAILED"
    MICROSOFT_ACCESS_DENIED = "MICROSOFT_ACCESS_DENIED"
    MICROSOFT_INSUFFICIENT_PERMISSIONS = "MICROSOFT_INSUFFICIENT_PERMISSIONS"
    MICROSOFT_NOT_FOUND = "MICROSOFT_NOT_FOUND"
    MICROSOFT_RATE_LIMITED = "MICROSOFT_RATE_LIMITED"
    MICROSOFT_SERVICE_ERROR = "MICROSOFT_SERVICE_ERROR"
    MICROSOFT_API_ERROR = "MICROSOFT_API_ERROR"


class ErrorResponse(BaseModel):
    """
    Standardized error response model.

    Attributes:
        type: Error type categorization (e.g., "validation_error")
        message: Human-readable error message
        details: Optional dictionary containing additional error context
        timestamp: ISO 8601 timestamp of when the error occurred
        request_id: Identifier of the invocation that produced the error
    """

    type: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: str
    request_id: str


class ServiceException(Exception):
    """
    Base exception class for all availability service errors.

    Generates a timestamp and picks up the current invocation ID so the error
    can be correlated with the log lines that preceded it.

    Args:
        message: The error message
        details: Optional dictionary with additional error context
        error_type: Error category string (defaults to "internal_error")
        error_code: Specific error code from ErrorCode enum
        request_id: Optional request ID (taken from context if not provided)
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_type: str = "internal_error",
        error_code: Optional[ErrorCode] = None,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        self.error_type = error_type
        self.error_code = error_code
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.request_id = request_id or current_invocation_id()
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """Convert exception to an ErrorResponse, adding the error code to details."""
        details = {
            **self.details,
            **({"code": self.error_code.value} if self.error_code else {}),
        }
        return ErrorResponse(
            type=self.error_type,
            message=self.message,
            details=details if details else None,
            timestamp=self.timestamp,
            request_id=self.request_id,
        )


class ValidationError(ServiceException):
    """
    Exception for input validation errors.

    Args:
        message: Human-readable description of the validation failure
        field: Optional field name that failed validation
        value: Optional invalid value that was provided
        details: Optional additional validation context
        code: Specific error code (defaults to VALIDATION_FAILED)
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ):
        validation_details = details or {}
        if field:
            validation_details["field"] = field
        if value is not None:
            validation_details["value"] = str(value)
        super().__init__(
            message=message,
            details=validation_details,
            error_type="validation_error",
            error_code=code,
        )
        self.field = field
        self.value = value


class ServiceError(ServiceException):
    """Exception for internal service failures."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.SERVICE_ERROR,
    ):
        super().__init__(
            message=message,
            details=details,
            error_type="service_error",
            error_code=code,
        )


class ProviderError(ServiceException):
    """
    Exception for external provider integration errors.

    Attributes:
        provider: Name of the external provider (google, microsoft)
        status_code: HTTP status returned by the provider, if any
        response_body: Raw response body from the provider (for debugging)
        retry_after: Seconds to wait before retrying (from rate limit headers)
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.PROVIDER_ERROR,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        provider_details = details or {}
        if provider:
            provider_details["provider"] = provider
        if status_code is not None:
            provider_details["status_code"] = status_code
        if response_body:
            provider_details["response_body"] = response_body
        if retry_after is not None:
            provider_details["retry_after"] = retry_after
        super().__init__(
            message=message,
            details=provider_details,
            error_type="provider_error",
            error_code=code,
        )
        self.provider = provider
        self.status_code = status_code
        self.response_body = response_body
        self.retry_after = retry_after


def exception_to_response(exc: Exception) -> ErrorResponse:
    """
    Convert any exception to a standardized ErrorResponse.

    ServiceException subclasses use their own to_error_response(). Anything
    else becomes an "internal_error" that records only the exception type.
    """
    if isinstance(exc, ServiceException):
        return exc.to_error_response()
    return ErrorResponse(
        type="internal_error",
        message=str(exc),
        details={
            "error_type": type(exc).__name__,
            "code": ErrorCode.INTERNAL_ERROR.value,
        },
        timestamp=datetime.now(timezone.utc).isoformat(),
        request_id=current_invocation_id(),
    )
