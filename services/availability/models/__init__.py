from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Provider(str, Enum):
    GOOGLE = "google"
    MICROSOFT = "microsoft"


class CalendarRef(BaseModel):
    """One resolved (account, calendar) pair from the calendar selection."""

    model_config = ConfigDict(frozen=True)

    account_id: str = Field(..., min_length=1, description="Account identifier")
    calendar_id: str = Field(..., min_length=1, description="Provider calendar ID")

    def __str__(self) -> str:
        return f"{self.account_id}/{self.calendar_id}"
