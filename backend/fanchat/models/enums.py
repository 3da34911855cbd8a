from __future__ import annotations

from enum import Enum


class ChatType(str, Enum):
    """Kinds of fan chats inside a fan group."""

    GENERAL = "general"
    PRIVATE = "private"
    THEMED = "themed"
    ANNOUNCEMENT = "announcement"
    MIXED = "mixed"


class MessageType(str, Enum):
    """Origin of a chat message."""

    TEXT = "text"
    SYSTEM = "system"
    ANNOUNCEMENT = "announcement"
    WARNING = "warning"


class ModerationAction(str, Enum):
    """Actions recorded in the moderation ledger."""

    DELETE_MESSAGE = "delete_message"
    HIDE_MESSAGE = "hide_message"
    SHOW_MESSAGE = "show_message"
    WARN_USER = "warn_user"
    TEMP_BAN_USER = "temp_ban_user"
    BAN_USER = "ban_user"
    UNBAN_USER = "unban_user"
    MUTE_USER = "mute_user"
    UNMUTE_USER = "unmute_user"
    HISTORY_CLEARED = "history_cleared"


USER_ACTIONS: frozenset[ModerationAction] = frozenset(
    {
        ModerationAction.WARN_USER,
        ModerationAction.TEMP_BAN_USER,
        ModerationAction.BAN_USER,
        ModerationAction.UNBAN_USER,
        ModerationAction.MUTE_USER,
        ModerationAction.UNMUTE_USER,
    }
)

MESSAGE_ACTIONS: frozenset[ModerationAction] = frozenset(
    {
        ModerationAction.DELETE_MESSAGE,
        ModerationAction.HIDE_MESSAGE,
        ModerationAction.SHOW_MESSAGE,
    }
)

TIMED_ACTIONS: frozenset[ModerationAction] = frozenset(
    {ModerationAction.TEMP_BAN_USER, ModerationAction.MUTE_USER}
)


class ReportReason(str, Enum):
    """Reasons a fan can give when reporting a message."""

    SPAM = "spam"
    HARASSMENT = "harassment"
    OFFENSIVE = "offensive"
    INAPPROPRIATE = "inappropriate"
    OTHER = "other"


class ReportStatus(str, Enum):
    """Lifecycle states for a report."""

    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ReportOutcome(str, Enum):
    """What the reviewing moderator decided to do."""

    WARNING = "warning"
    MESSAGE_HIDDEN = "messageHidden"
    TEMPORARY_BAN = "temporaryBan"
    PERMANENT_BAN = "permanentBan"
    NO_ACTION = "noAction"


class GroupRole(str, Enum):
    """Roles a user can have inside a fan group."""

    ADMIN = "admin"
    MEMBER = "member"
    FAN = "fan"


class RuleSeverity(str, Enum):
    """How strongly a chat rule is enforced."""

    INFO = "info"
    WARNING = "warning"
    SERIOUS = "serious"
