"""
Common utilities shared by the availability services.
"""

from services.common.errors import (
    ErrorCode,
    ErrorResponse,
    ProviderError,
    ServiceException,
    ValidationError,
    exception_to_response,
)
from services.common.logging_config import get_logger, setup_service_logging

__all__ = [
    "ErrorCode",
    "ErrorResponse",
    "ProviderError",
    "ServiceException",
    "ValidationError",
    "exception_to_response",
    "get_logger",
    "setup_service_logging",
]
