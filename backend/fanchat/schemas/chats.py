"""Schemas for chat creation and listing."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, constr

from fanchat.models import ChatType, FanChat, MessageType


class LastMessageRead(BaseModel):
    """Denormalized summary of the latest message in a chat."""

    id: int
    content: str | None
    sender_id: int | None
    sender_name: str | None
    timestamp: datetime
    type: MessageType


class ChatRead(BaseModel):
    """Representation of a chat returned from the API."""

    id: int
    group_id: int
    type: ChatType
    name: str | None = None
    description: str | None = None
    created_by_id: int | None = None
    participants: list[int] = Field(default_factory=list)
    moderator_ids: list[int] = Field(default_factory=list)
    is_read_only_for_fans: bool = False
    is_active: bool = True
    is_deleted: bool = False
    created_at: datetime
    updated_at: datetime
    last_message: LastMessageRead | None = None

    @classmethod
    def from_chat(cls, chat: FanChat) -> "ChatRead":
        last_message = None
        if chat.last_message_id is not None and chat.last_message_at is not None:
            last_message = LastMessageRead(
                id=chat.last_message_id,
                content=chat.last_message_content,
                sender_id=chat.last_message_sender_id,
                sender_name=chat.last_message_sender_name,
                timestamp=chat.last_message_at,
                type=chat.last_message_type or MessageType.TEXT,
            )
        return cls(
            id=chat.id,
            group_id=chat.group_id,
            type=chat.type,
            name=chat.name,
            description=chat.description,
            created_by_id=chat.created_by_id,
            participants=sorted(chat.participant_ids),
            moderator_ids=sorted(chat.moderator_ids),
            is_read_only_for_fans=chat.is_read_only_for_fans,
            is_active=chat.is_active,
            is_deleted=chat.is_deleted,
            created_at=chat.created_at,
            updated_at=chat.updated_at,
            last_message=last_message,
        )


class ThemedChatCreate(BaseModel):
    """Payload for creating a moderator-run themed chat."""

    name: constr(strip_whitespace=True, min_length=1, max_length=128)
    description: constr(strip_whitespace=True, max_length=1000) | None = None


class MixedChatCreate(ThemedChatCreate):
    """Payload for a joint band-and-fans chat with explicit participants."""

    participant_ids: list[int] = Field(default_factory=list)


class PrivateChatCreate(BaseModel):
    """Payload for opening a private chat with another fan."""

    target_user_id: int


class ChatStatusUpdate(BaseModel):
    """Enable or disable a chat."""

    is_active: bool
