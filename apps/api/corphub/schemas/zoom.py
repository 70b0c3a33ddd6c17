"""Request models for the provider (Zoom) proxy and team chat endpoints."""

from typing import Any

from pydantic import BaseModel, Field, model_validator


class ZoomMeetingCreate(BaseModel):
    topic: str = "New Meeting"
    start_time: str | None = None
    duration: int = Field(60, ge=1)
    password: str | None = None


class ZoomMeetingUpdate(BaseModel):
    topic: str | None = None
    start_time: str | None = None
    duration: int | None = Field(None, ge=1)
    password: str | None = None


class ZoomChatSend(BaseModel):
    to_contact: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class ChannelCreate(BaseModel):
    name: str = Field(..., min_length=1)
    # 1=IM, 2=private group, 3=public channel, 4=cross organization
    type: int = Field(3, ge=1, le=4)
    members: list[dict[str, str]] = []


class ChannelUpdate(BaseModel):
    name: str | None = None
    settings: dict[str, Any] | None = None


class ChannelMembersAdd(BaseModel):
    members: list[dict[str, str]] = Field(..., min_length=1)


class ChatDestination(BaseModel):
    """Exactly where a team chat message goes; at least one target is required."""
    to_jid: str | None = None
    to_contact: str | None = None
    to_channel: str | None = None

    @model_validator(mode="after")
    def check_destination(self):
        if not (self.to_jid or self.to_contact or self.to_channel):
            raise ValueError(
                "Message destination (to_jid, to_contact, or to_channel) is required"
            )
        return self

    def as_params(self) -> dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v}


class ChatMessageSend(ChatDestination):
    message: str = Field(..., min_length=1)
    file_ids: list[str] | None = None


class ChatMessageEdit(ChatDestination):
    message: str = Field(..., min_length=1)
