"""Schemas for moderation actions, history and restrictions."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from fanchat.models import ModerationAction


class ModerationActionRequest(BaseModel):
    """Payload for recording a moderation action in a chat."""

    action: ModerationAction
    reason: str = Field(..., description="Why the action was taken; must not be blank")
    target_user_id: int | None = None
    message_id: int | None = None
    duration_seconds: int | None = Field(default=None, gt=0)


class ModerationLogRead(BaseModel):
    """Serialized ledger entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    chat_id: int
    action: ModerationAction
    moderator_id: int | None
    moderator_name: str
    target_user_id: int | None = None
    target_user_name: str | None = None
    message_id: int | None = None
    reason: str
    timestamp: datetime
    duration_seconds: int | None = None
    is_automatic: bool = False


class RestrictionRead(BaseModel):
    """Effective restriction of a user in a chat."""

    model_config = ConfigDict(from_attributes=True)

    chat_id: int
    user_id: int
    is_banned: bool
    banned_until: datetime | None = None
    is_muted: bool
    muted_until: datetime | None = None
    warning_count: int


class ModerationStats(BaseModel):
    """Number of ledger entries per action for a chat."""

    chat_id: int
    counts: dict[ModerationAction, int] = Field(default_factory=dict)
