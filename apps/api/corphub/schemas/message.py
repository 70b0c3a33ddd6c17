"""Pydantic schemas for direct messages."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from corphub.db.enums import MessageType


class MessageCreate(BaseModel):
    """Request to send a message. The sender is always the caller."""
    receiver_id: int = Field(..., alias="receiverId")
    type: MessageType = MessageType.TEXT
    content: str = Field(..., min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class MessageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    receiver_id: int
    type: MessageType
    content: str
    is_read: bool
    created_at: datetime


class ConversationSummary(BaseModel):
    """One thread in the conversation list."""
    partner_id: int
    last_message: MessageRead
    unread_count: int
