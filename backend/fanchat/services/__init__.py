"""Fan chat services wired together per database session."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from fanchat.config import Settings
from fanchat.core.clock import Clock, system_clock

from .directory import ChatDirectory
from .events import ChatEventHub, ChatSubscription, chat_event_hub
from .groups import DatabaseGroupPermissions, GroupPermissions
from .ledger import ModerationLedger, ModerationRecord
from .membership import ChatMembershipPolicy, WriteDecision
from .messages import MessageStore
from .notifications import (
    ChatNotification,
    NotificationDispatcher,
    NullNotificationDispatcher,
    WebhookNotificationDispatcher,
    build_notification_dispatcher,
)
from .reports import ReportQueue
from .restrictions import RestrictionEngine, RestrictionState, fold_restrictions
from .rules import RulesBook


@dataclass
class FanChatServices:
    """Explicitly constructed service graph sharing one session and clock."""

    permissions: GroupPermissions
    restrictions: RestrictionEngine
    policy: ChatMembershipPolicy
    ledger: ModerationLedger
    messages: MessageStore
    directory: ChatDirectory
    reports: ReportQueue
    rules: RulesBook


def build_services(
    db: Session,
    settings: Settings,
    *,
    clock: Clock = system_clock,
    permissions: GroupPermissions | None = None,
    notifier: NotificationDispatcher | None = None,
    events: ChatEventHub | None = None,
) -> FanChatServices:
    permissions = permissions or DatabaseGroupPermissions(db)
    restrictions = RestrictionEngine(db, clock=clock)
    policy = ChatMembershipPolicy(
        db,
        permissions,
        restrictions,
        require_rules_acceptance=settings.require_rules_acceptance,
    )
    ledger = ModerationLedger(
        db, permissions, restrictions, settings=settings, clock=clock, events=events
    )
    messages = MessageStore(
        db,
        policy,
        ledger,
        permissions,
        settings=settings,
        clock=clock,
        notifier=notifier,
        events=events,
    )
    return FanChatServices(
        permissions=permissions,
        restrictions=restrictions,
        policy=policy,
        ledger=ledger,
        messages=messages,
        directory=ChatDirectory(db, permissions, policy, clock=clock, events=events),
        reports=ReportQueue(db, policy, permissions, clock=clock),
        rules=RulesBook(db, permissions, clock=clock),
    )


__all__ = [
    "FanChatServices",
    "build_services",
    "ChatDirectory",
    "ChatEventHub",
    "ChatSubscription",
    "chat_event_hub",
    "DatabaseGroupPermissions",
    "GroupPermissions",
    "ModerationLedger",
    "ModerationRecord",
    "ChatMembershipPolicy",
    "WriteDecision",
    "MessageStore",
    "ChatNotification",
    "NotificationDispatcher",
    "NullNotificationDispatcher",
    "WebhookNotificationDispatcher",
    "build_notification_dispatcher",
    "ReportQueue",
    "RestrictionEngine",
    "RestrictionState",
    "fold_restrictions",
    "RulesBook",
]
