import pytz
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Availability engine settings and configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Service configuration
    SERVICE_NAME: str = Field(default="availability", description="Service name")

    # Logging configuration
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="text", description="Log format (json or text)")

    # Time handling
    REFERENCE_TIMEZONE: str = Field(
        default="UTC",
        description="IANA zone in which days and work hours are interpreted",
    )

    # Fetching
    FETCH_TIMEOUT_SECONDS: float = Field(
        default=30.0, gt=0, description="Deadline for fetching all calendars"
    )
    HOLD_FETCH_TIMEOUT_SECONDS: float = Field(
        default=10.0, gt=0, description="Deadline for the reservation re-check"
    )
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=30.0, gt=0, description="Timeout for a single provider request"
    )
    MAX_CONCURRENT_REQUESTS: int = Field(
        default=4,
        ge=1,
        description="Concurrent calendar fetches allowed per provider",
    )

    # Hold events
    HOLD_TITLE_PREFIX: str = Field(
        default="HOLD - ", description="Prefix for hold event titles"
    )
    DEFAULT_HOLD_NAME: str = Field(
        default="Hold", description="Hold event name when none is given"
    )

    # Search defaults
    DEFAULT_MIN_TIME: str = Field(
        default="9:00am", description="Earliest available time of day"
    )
    DEFAULT_MAX_TIME: str = Field(
        default="5:00pm", description="Latest available time of day"
    )
    DEFAULT_DURATION: str = Field(
        default="30m", description="Minimum slot duration shorthand"
    )
    DEFAULT_WINDOW: str = Field(
        default="1w", description="Search window shorthand when no end is given"
    )

    @field_validator("REFERENCE_TIMEZONE")
    @classmethod
    def validate_reference_timezone(cls, v: str) -> str:
        """Validate that the reference zone is known to the tz database."""
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be one of: json, text")
        return v.lower()


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
