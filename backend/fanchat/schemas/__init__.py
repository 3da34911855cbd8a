"""Pydantic schemas for API payloads."""

from .auth import LoginRequest, Token, UserCreate, UserRead
from .chats import (
    ChatRead,
    ChatStatusUpdate,
    LastMessageRead,
    MixedChatCreate,
    PrivateChatCreate,
    ThemedChatCreate,
)
from .messages import MessageCreate, MessageRead, MessageUpdate
from .moderation import ModerationActionRequest, ModerationLogRead, ModerationStats, RestrictionRead
from .reports import ReportCreate, ReportRead, ReportResolve
from .rules import ChatRuleCreate, ChatRuleRead, RulesBookRead

__all__ = [
    "LoginRequest",
    "Token",
    "UserCreate",
    "UserRead",
    "ChatRead",
    "ChatStatusUpdate",
    "LastMessageRead",
    "MixedChatCreate",
    "PrivateChatCreate",
    "ThemedChatCreate",
    "MessageCreate",
    "MessageRead",
    "MessageUpdate",
    "ModerationActionRequest",
    "ModerationLogRead",
    "ModerationStats",
    "RestrictionRead",
    "ReportCreate",
    "ReportRead",
    "ReportResolve",
    "ChatRuleCreate",
    "ChatRuleRead",
    "RulesBookRead",
]
