"""Ordered per-chat message log with edit and soft-delete support."""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fanchat.config import Settings
from fanchat.core.clock import Clock, system_clock
from fanchat.core.errors import (
    NotFoundError,
    PermissionDenied,
    RateLimitedError,
    ValidationError,
)
from fanchat.models import FanChat, FanMessage, MessageType, ModerationAction, User
from fanchat.monitoring.metrics import messages_appended_total, writes_denied_total
from fanchat.schemas import MessageRead
from fanchat.services.events import ChatEventHub, ChatSubscription
from fanchat.services.groups import GroupPermissions
from fanchat.services.ledger import ModerationLedger, ModerationRecord
from fanchat.services.membership import ChatMembershipPolicy
from fanchat.services.notifications import (
    ChatNotification,
    NotificationDispatcher,
    NullNotificationDispatcher,
)

logger = logging.getLogger(__name__)


class MessageStore:
    """Appends, edits and deletes fan chat messages.

    Ordering is always the server timestamp from the injected clock, with
    the row id breaking ties, so clients cannot reorder history.
    """

    def __init__(
        self,
        db: Session,
        policy: ChatMembershipPolicy,
        ledger: ModerationLedger,
        permissions: GroupPermissions,
        *,
        settings: Settings,
        clock: Clock = system_clock,
        notifier: NotificationDispatcher | None = None,
        events: ChatEventHub | None = None,
    ) -> None:
        self.db = db
        self.policy = policy
        self.ledger = ledger
        self.permissions = permissions
        self.settings = settings
        self.clock = clock
        self.notifier = notifier or NullNotificationDispatcher()
        self.events = events

    # -- helpers -------------------------------------------------------------

    def _get_chat(self, chat_id: int) -> FanChat:
        chat = self.db.get(FanChat, chat_id)
        if chat is None:
            raise NotFoundError("Chat not found")
        return chat

    def get(self, message_id: int) -> FanMessage:
        message = self.db.get(FanMessage, message_id)
        if message is None:
            raise NotFoundError("Message not found")
        return message

    def _clean_content(self, content: str | None) -> str:
        cleaned = (content or "").strip()
        if not cleaned:
            raise ValidationError("Message content cannot be empty")
        limit = self.settings.chat_message_max_length
        if len(cleaned) > limit:
            raise ValidationError(f"Message content exceeds {limit} characters")
        return cleaned

    def _check_spam(self, chat: FanChat, sender_id: int) -> None:
        limit = self.settings.spam_max_messages
        if limit <= 0:
            return
        since = self.clock.now() - timedelta(seconds=self.settings.spam_window_seconds)
        stmt = select(func.count(FanMessage.id)).where(
            FanMessage.chat_id == chat.id,
            FanMessage.sender_id == sender_id,
            FanMessage.timestamp > since,
        )
        recent = self.db.execute(stmt).scalar_one()
        if recent >= limit:
            writes_denied_total.inc(reason="rate_limited")
            raise RateLimitedError("You are sending messages too quickly, please slow down")

    def _publish(self, chat_id: int, event_type: str, message: FanMessage) -> None:
        if self.events is None:
            return
        self.events.publish(
            chat_id,
            {"type": event_type, "message": MessageRead.from_message(message).model_dump(mode="json")},
        )

    # -- writes --------------------------------------------------------------

    def append(
        self,
        chat_id: int,
        sender_id: int,
        content: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> FanMessage:
        chat = self._get_chat(chat_id)
        sender = self.db.get(User, sender_id)
        if sender is None:
            raise NotFoundError("User not found")

        cleaned = self._clean_content(content)
        message_type = MessageType(message_type)
        is_moderator = self.permissions.is_moderator(sender_id, chat)
        if message_type != MessageType.TEXT and not is_moderator:
            writes_denied_total.inc(reason="message_type")
            raise PermissionDenied("Only moderators can post this type of message")

        decision = self.policy.check_write(sender_id, chat)
        if not decision.allowed:
            writes_denied_total.inc(reason=decision.code)
            raise PermissionDenied(decision.reason)
        if not is_moderator:
            self._check_spam(chat, sender_id)

        message = FanMessage(
            chat_id=chat.id,
            sender_id=sender.id,
            sender_name=sender.name,
            content=cleaned,
            type=message_type,
            timestamp=self.clock.now(),
        )
        self.db.add(message)
        self.db.flush()
        chat.record_last_message(message)
        self.db.commit()
        self.db.refresh(message)

        messages_appended_total.inc(chat_type=chat.type.value, message_type=message_type.value)
        logger.debug("Message %s appended to chat %s by %s", message.id, chat.id, sender.id)

        if message_type != MessageType.SYSTEM:
            self.notifier.dispatch(
                ChatNotification(
                    chat_id=chat.id,
                    sender_id=sender.id,
                    content=message.content,
                    chat_type=chat.type,
                )
            )
        self._publish(chat.id, "message", message)
        return message

    def edit(self, message_id: int, new_content: str, actor_id: int) -> FanMessage:
        """Rewrite a message; only its sender may, and only inside the edit window."""

        message = self.get(message_id)
        if message.sender_id != actor_id:
            raise PermissionDenied("Only the author can edit this message")
        if message.is_deleted or message.is_moderated:
            raise PermissionDenied("This message was removed and can no longer be edited")

        now = self.clock.now()
        window = timedelta(seconds=self.settings.message_edit_window_seconds)
        if now - message.timestamp > window:
            raise PermissionDenied("The edit window for this message has expired")

        chat = message.chat
        decision = self.policy.check_write(actor_id, chat)
        if not decision.allowed:
            writes_denied_total.inc(reason=decision.code)
            raise PermissionDenied(decision.reason)

        cleaned = self._clean_content(new_content)
        if message.original_content is None:
            message.original_content = message.content
        message.content = cleaned
        message.edited_at = now
        chat.sync_last_message(message)
        self.db.commit()
        self.db.refresh(message)
        self._publish(chat.id, "message_edited", message)
        return message

    def soft_delete(self, message_id: int, actor_id: int, reason: str | None = None) -> FanMessage:
        """Hide a message while keeping it for audit.

        Authors delete their own messages directly. A moderator deleting
        someone else's message goes through the moderation ledger, which
        requires a reason. Deleting an already deleted message is a no-op.
        """

        message = self.get(message_id)
        chat = message.chat
        is_author = message.sender_id is not None and message.sender_id == actor_id
        if not is_author and not self.permissions.is_moderator(actor_id, chat):
            raise PermissionDenied("You cannot delete this message")
        if message.is_deleted:
            return message

        if not is_author:
            self.ledger.record(
                ModerationRecord(
                    chat_id=chat.id,
                    action=ModerationAction.DELETE_MESSAGE,
                    moderator_id=actor_id,
                    reason=reason or "",
                    message_id=message.id,
                )
            )
            self.db.refresh(message)
            return message

        message.is_deleted = True
        message.deleted_at = self.clock.now()
        message.deleted_by_id = actor_id
        chat.sync_last_message(message)
        self.db.commit()
        self.db.refresh(message)
        logger.info("Message %s deleted by its author %s", message.id, actor_id)
        self._publish(chat.id, "message", message)
        return message

    # -- reads ---------------------------------------------------------------

    def list_ordered(self, chat_id: int, *, limit: int | None = None) -> list[FanMessage]:
        """Messages of the chat in server-timestamp order, oldest first.

        With *limit* only the newest ``limit`` messages are returned, still
        oldest first.
        """

        if limit is None:
            stmt = (
                select(FanMessage)
                .where(FanMessage.chat_id == chat_id)
                .order_by(FanMessage.timestamp.asc(), FanMessage.id.asc())
            )
            return list(self.db.execute(stmt).scalars())

        stmt = (
            select(FanMessage)
            .where(FanMessage.chat_id == chat_id)
            .order_by(FanMessage.timestamp.desc(), FanMessage.id.desc())
            .limit(limit)
        )
        messages = list(self.db.execute(stmt).scalars())
        messages.reverse()
        return messages

    def list_for_viewer(
        self, chat_id: int, viewer_id: int, *, limit: int | None = None
    ) -> list[MessageRead]:
        chat = self._get_chat(chat_id)
        if not self.policy.can_read(viewer_id, chat):
            raise PermissionDenied("You cannot read this chat")

        if limit is None:
            limit = self.settings.chat_history_default_limit
        limit = max(1, min(limit, self.settings.chat_history_max_limit))
        reveal = self.permissions.is_moderator(viewer_id, chat)
        return [
            MessageRead.from_message(message, reveal=reveal)
            for message in self.list_ordered(chat.id, limit=limit)
        ]

    def stream(self, chat_id: int, viewer_id: int) -> ChatSubscription:
        """Open a live stream of chat events; must run inside the event loop."""

        if self.events is None:
            raise RuntimeError("Live chat streaming is not configured")
        chat = self._get_chat(chat_id)
        if not self.policy.can_read(viewer_id, chat):
            raise PermissionDenied("You cannot read this chat")
        return self.events.subscribe(chat.id)
