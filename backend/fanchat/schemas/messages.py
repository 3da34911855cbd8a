"""Schemas related to fan chat messages."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from fanchat.models import FanMessage, MessageType


class MessageRead(BaseModel):
    """Serialized message as a given viewer may see it.

    ``content`` is ``None`` when the message was deleted or hidden by a
    moderator and the viewer is not allowed to see moderated content.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    chat_id: int
    sender_id: int | None
    sender_name: str
    content: str | None
    type: MessageType
    timestamp: datetime
    edited_at: datetime | None = None
    is_deleted: bool = False
    is_moderated: bool = False
    moderation_reason: str | None = None
    original_content: str | None = None
    reported_by: list[int] = Field(default_factory=list)

    @classmethod
    def from_message(cls, message: FanMessage, *, reveal: bool = False) -> "MessageRead":
        hidden = not message.is_visible and not reveal
        return cls(
            id=message.id,
            chat_id=message.chat_id,
            sender_id=message.sender_id,
            sender_name=message.sender_name,
            content=None if hidden else message.content,
            type=message.type,
            timestamp=message.timestamp,
            edited_at=message.edited_at,
            is_deleted=message.is_deleted,
            is_moderated=message.is_moderated,
            moderation_reason=message.moderation_reason if reveal else None,
            original_content=message.original_content if reveal else None,
            reported_by=message.reported_by if reveal else [],
        )


class MessageCreate(BaseModel):
    """Payload for posting a message into a chat."""

    content: str = Field(..., description="Message text; trimmed before validation")
    type: MessageType = Field(default=MessageType.TEXT)


class MessageUpdate(BaseModel):
    """Payload for editing one's own message."""

    content: str

