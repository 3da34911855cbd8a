"""Database models package."""

from .base import Base, UTCDateTime, utcnow
from .chat import (
    ChatRule,
    FanChat,
    FanChatModerator,
    FanChatParticipant,
    FanChatReport,
    FanGroup,
    FanMessage,
    GroupMember,
    ModerationLogEntry,
    RulesAcceptance,
    User,
)
from .enums import (
    MESSAGE_ACTIONS,
    TIMED_ACTIONS,
    USER_ACTIONS,
    ChatType,
    GroupRole,
    MessageType,
    ModerationAction,
    ReportOutcome,
    ReportReason,
    ReportStatus,
    RuleSeverity,
)

__all__ = [
    "Base",
    "UTCDateTime",
    "utcnow",
    "User",
    "FanGroup",
    "GroupMember",
    "FanChat",
    "FanChatParticipant",
    "FanChatModerator",
    "FanMessage",
    "ModerationLogEntry",
    "FanChatReport",
    "ChatRule",
    "RulesAcceptance",
    "ChatType",
    "GroupRole",
    "MessageType",
    "ModerationAction",
    "ReportOutcome",
    "ReportReason",
    "ReportStatus",
    "RuleSeverity",
    "USER_ACTIONS",
    "MESSAGE_ACTIONS",
    "TIMED_ACTIONS",
]
