"""Custom exceptions for the availability engine."""

from typing import Any, Dict, Optional

from services.common.errors import (
    ErrorCode,
    ProviderError,
    ServiceError,
    ServiceException,
    ValidationError,
)


class InvalidConstraints(ValidationError):
    """Raised when search constraints can never produce a slot, before any fetch."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            field=field,
            value=value,
            details=details,
            code=ErrorCode.INVALID_CONSTRAINTS,
        )


class ProviderFetchError(ProviderError):
    """Raised by a provider adapter when listing one calendar's events fails."""


class ProviderWriteError(ProviderError):
    """Raised by a provider adapter when creating an event fails."""


class NoDataAvailable(ServiceError):
    """Raised when not a single selected calendar could be fetched."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details, code=ErrorCode.NO_DATA_AVAILABLE)


class ReservationError(ServiceException):
    """Base class for failures of the hold reservation step."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[ErrorCode] = None,
    ):
        super().__init__(
            message=message,
            details=details,
            error_type="reservation_error",
            error_code=error_code,
        )


class SlotNoLongerAvailable(ReservationError):
    """Raised when the re-check finds the chosen slot overlapped by busy time."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message, details=details, error_code=ErrorCode.SLOT_NO_LONGER_AVAILABLE
        )


class ReservationRejected(ReservationError):
    """Raised when the provider refuses to create the hold event."""

    def __init__(self, message: str, provider_error: ProviderWriteError):
        super().__init__(
            message,
            details={"provider_error": provider_error.to_error_response().model_dump()},
            error_code=ErrorCode.RESERVATION_REJECTED,
        )
        self.provider_error = provider_error
