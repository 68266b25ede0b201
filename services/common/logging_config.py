"""
Centralized logging configuration for the availability services.

This module provides consistent logging setup including:
- Structured logging with JSON or enhanced text output
- Invocation ID tracking across concurrent provider calls
- Service context extraction from logger names

Usage:
    from services.common.logging_config import setup_service_logging

    setup_service_logging(
        service_name="availability",
        log_level="INFO",
        log_format="text"
    )
"""

import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

import structlog

# Context variables for invocation-specific data
invocation_id_var: ContextVar[str] = ContextVar(
    "invocation_id", default="uninitialized"
)
account_id_var: ContextVar[str] = ContextVar("account_id", default="anonymous")


@contextmanager
def bind_invocation(invocation_id: Optional[str] = None) -> Iterator[str]:
    """Bind an invocation ID for the duration of a block."""
    invocation_id = invocation_id or str(uuid.uuid4())
    token = invocation_id_var.set(invocation_id)
    try:
        yield invocation_id
    finally:
        invocation_id_var.reset(token)


@contextmanager
def bind_account(account_id: str) -> Iterator[str]:
    """Bind the account being served for the duration of a block."""
    token = account_id_var.set(account_id)
    try:
        yield account_id
    finally:
        account_id_var.reset(token)


@contextmanager
def ensure_invocation() -> Iterator[str]:
    """Reuse the bound invocation ID, or bind a fresh one for the block."""
    invocation_id = invocation_id_var.get()
    if invocation_id != "uninitialized":
        yield invocation_id
        return
    with bind_invocation() as invocation_id:
        yield invocation_id


def current_invocation_id() -> str:
    """Return the bound invocation ID, or a fresh one outside an invocation."""
    invocation_id = invocation_id_var.get()
    if invocation_id and invocation_id != "uninitialized":
        return invocation_id
    return str(uuid.uuid4())


class InvocationContextFilter(logging.Filter):
    """Add invocation context from contextvars to stdlib log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.invocation_id = invocation_id_var.get()
        record.account_id = account_id_var.get()
        if not hasattr(record, "service_name"):
            record.service_name = getattr(record, "service", "unknown")
        return True


def add_invocation_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Add invocation and account ID to all log entries."""
    invocation_id = invocation_id_var.get()
    account_id = account_id_var.get()
    if invocation_id and invocation_id != "uninitialized":
        event_dict["invocation_id"] = invocation_id
    if account_id and account_id != "anonymous":
        event_dict.setdefault("account_id", account_id)
    return event_dict


def add_service_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Add service name to all log entries."""
    logger_name = event_dict.get("logger", "")
    if logger_name.startswith("services."):
        # "services.availability.core.finder" -> "availability"
        service_parts = logger_name.split(".")
        if len(service_parts) >= 2:
            event_dict["service"] = service_parts[1]
    return event_dict


class EnhancedTextRenderer:
    """Custom text renderer for readable output during development."""

    _reserved_keys = (
        "timestamp",
        "level",
        "logger",
        "event",
        "service",
        "invocation_id",
        "account_id",
    )

    def __init__(self, service_name: str):
        self.service_name = service_name

    def __call__(
        self,
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> str:
        """Render log entry as enhanced text format."""
        timestamp = event_dict.get("timestamp", "")
        level = event_dict.get("level", "INFO").upper()
        logger_name = event_dict.get("logger", "")
        message = event_dict.get("event", "")
        service = event_dict.get("service", self.service_name)

        # Last 4 chars of the invocation ID are enough to correlate lines
        invocation_id = event_dict.get("invocation_id", "")
        if invocation_id and invocation_id != "uninitialized":
            invocation_suffix = (
                f"[{invocation_id[-4:]}]"
                if len(invocation_id) >= 4
                else f"[{invocation_id}]"
            )
        else:
            invocation_suffix = ""

        account_info = ""
        account_id = event_dict.get("account_id", "")
        if account_id and account_id != "anonymous":
            account_info = f" | Account: {account_id}"

        clean_logger_name = logger_name
        if logger_name.startswith("services."):
            clean_logger_name = logger_name[len("services.") :]

        parts = [
            timestamp,
            f"[{service}]",
            f"[{level}]",
            invocation_suffix,
            clean_logger_name,
            f"- {message}{account_info}",
        ]

        extra_context = []
        for key, value in event_dict.items():
            if key in self._reserved_keys:
                continue
            if isinstance(value, (str, int, float, bool)):
                extra_context.append(f"{key}={value}")
            else:
                extra_context.append(f"{key}={str(value)[:150]}")

        if extra_context:
            parts.append(f"| {', '.join(extra_context)}")

        return " ".join(filter(None, parts))


def setup_service_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> None:
    """
    Set up logging configuration for a service.

    Args:
        service_name: Name of the service (e.g., "availability")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Format type ("json" or "text")
    """
    processors: list = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_invocation_context,
        add_service_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(EnhancedTextRenderer(service_name))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # structlog already rendered the line
    formatter = logging.Formatter("%(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(InvocationContextFilter())

    old_factory = logging.getLogRecordFactory()

    def record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
        record = old_factory(*args, **kwargs)
        record.service_name = service_name
        return record

    logging.setLogRecordFactory(record_factory)

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        handlers=[handler],
        force=True,
    )

    # Silence verbose third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    get_logger(__name__).info(
        f"Logging configured for {service_name}",
        log_level=log_level,
        log_format=log_format,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
