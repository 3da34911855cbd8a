"""Schemas for message reports."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from fanchat.models import ReportOutcome, ReportReason, ReportStatus


class ReportCreate(BaseModel):
    """Payload for reporting a message."""

    message_id: int
    reason: ReportReason
    description: str | None = Field(default=None, max_length=1000)


class ReportRead(BaseModel):
    """Serialized report."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    chat_id: int
    message_id: int
    reported_user_id: int | None
    reporter_id: int
    reason: ReportReason
    description: str | None = None
    status: ReportStatus
    timestamp: datetime
    reviewed_by_id: int | None = None
    reviewed_at: datetime | None = None
    outcome: ReportOutcome | None = None


class ReportResolve(BaseModel):
    """Moderator decision on a pending report."""

    status: ReportStatus = ReportStatus.RESOLVED
    outcome: ReportOutcome | None = None
