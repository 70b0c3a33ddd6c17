"""Pydantic schemas for meetings."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _to_utc(value: datetime | None) -> datetime | None:
    # Naive times are taken as UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class MeetingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    start_time: datetime
    end_time: datetime
    company_id: int | None = None  # defaults to the organizer's company
    participant_ids: list[int] = []

    normalize_times = field_validator("start_time", "end_time")(_to_utc)

    @model_validator(mode="after")
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class MeetingUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    participant_ids: list[int] | None = None

    normalize_times = field_validator("start_time", "end_time")(_to_utc)


class ParticipantAdd(BaseModel):
    user_ids: list[int] = Field(..., min_length=1)


class MeetingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None
    start_time: datetime
    end_time: datetime
    organizer_id: int
    company_id: int
    participant_ids: list[int]
    zoom_meeting_id: str | None = None
    zoom_join_url: str | None = None
    zoom_password: str | None = None
    provider_sync_status: str
    provider_sync_error: str | None = None
    created_at: datetime


class MeetingWriteResponse(MeetingRead):
    """Create/update response with a soft warning when provider sync is pending."""
    warning: str | None = None
