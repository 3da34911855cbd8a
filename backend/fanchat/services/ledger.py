"""Append-only moderation ledger.

The ledger is the single source of truth for sanctions. Restriction state is
never stored; :class:`~fanchat.services.restrictions.RestrictionEngine`
re-derives it from these rows, so recording an entry is all it takes for the
next membership check to see it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fanchat.config import Settings
from fanchat.core.clock import Clock, system_clock
from fanchat.core.errors import NotFoundError, PermissionDenied, ValidationError
from fanchat.models import (
    MESSAGE_ACTIONS,
    TIMED_ACTIONS,
    USER_ACTIONS,
    FanChat,
    FanMessage,
    MessageType,
    ModerationAction,
    ModerationLogEntry,
    User,
)
from fanchat.monitoring.metrics import moderation_actions_total
from fanchat.schemas import MessageRead, ModerationLogRead
from fanchat.services.events import ChatEventHub
from fanchat.services.groups import GroupPermissions
from fanchat.services.restrictions import RestrictionEngine

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ModerationRecord:
    """A moderation action requested by ``moderator_id``."""

    chat_id: int
    action: ModerationAction
    moderator_id: int
    reason: str
    target_user_id: int | None = None
    message_id: int | None = None
    duration_seconds: int | None = None


def format_duration(seconds: int) -> str:
    if seconds % 86400 == 0:
        days = seconds // 86400
        return f"{days} day{'s' if days != 1 else ''}"
    if seconds % 3600 == 0:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours != 1 else ''}"
    minutes = max(seconds // 60, 1)
    return f"{minutes} minute{'s' if minutes != 1 else ''}"


class ModerationLedger:
    def __init__(
        self,
        db: Session,
        permissions: GroupPermissions,
        restrictions: RestrictionEngine,
        *,
        settings: Settings,
        clock: Clock = system_clock,
        events: ChatEventHub | None = None,
    ) -> None:
        self.db = db
        self.permissions = permissions
        self.restrictions = restrictions
        self.settings = settings
        self.clock = clock
        self.events = events

    # -- lookups -------------------------------------------------------------

    def _get_chat(self, chat_id: int) -> FanChat:
        chat = self.db.get(FanChat, chat_id)
        if chat is None or chat.is_deleted:
            raise NotFoundError("Chat not found")
        return chat

    def _get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    # -- recording -----------------------------------------------------------

    def record(self, record: ModerationRecord) -> int:
        """Validate and append one entry; returns the new entry id.

        Raises ``ValidationError`` for a blank reason or missing target,
        ``PermissionDenied`` when the actor is not a moderator of the chat
        right now, and ``NotFoundError`` for unknown chats, users or messages.
        """

        action = ModerationAction(record.action)
        reason = (record.reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required for moderation actions")
        if action == ModerationAction.HISTORY_CLEARED:
            raise ValidationError("History can only be cleared through the clear operation")

        chat = self._get_chat(record.chat_id)
        if not self.permissions.is_moderator(record.moderator_id, chat):
            raise PermissionDenied("Only chat moderators can perform moderation actions")
        moderator = self._get_user(record.moderator_id)
        now = self.clock.now()

        entry = ModerationLogEntry(
            chat_id=chat.id,
            action=action,
            moderator_id=moderator.id,
            moderator_name=moderator.name,
            reason=reason,
            timestamp=now,
        )
        touched: list[FanMessage] = []

        if action in MESSAGE_ACTIONS:
            message = self._apply_message_action(chat, action, record.message_id, moderator, reason)
            touched.append(message)
            entry.message_id = message.id
            entry.target_user_id = message.sender_id
            entry.target_user_name = message.sender_name
        elif action in USER_ACTIONS:
            if record.target_user_id is None:
                raise ValidationError("A target user is required for this action")
            if record.target_user_id == moderator.id:
                raise ValidationError("Moderators cannot sanction themselves")
            target = self._get_user(record.target_user_id)
            entry.target_user_id = target.id
            entry.target_user_name = target.name
            entry.message_id = record.message_id
            if action in TIMED_ACTIONS:
                entry.duration_seconds = self._resolve_duration(action, record.duration_seconds)

        self.db.add(entry)
        self.db.flush()
        entries = [entry]

        if action == ModerationAction.WARN_USER:
            escalation = self._maybe_escalate(chat, entry)
            if escalation is not None:
                entries.append(escalation)

        if self.settings.moderation_announcements_enabled:
            for item in entries:
                if item.action in USER_ACTIONS:
                    touched.append(self._announce(chat, item))

        self.db.commit()

        for item in entries:
            moderation_actions_total.inc(action=item.action.value, automatic=str(item.is_automatic).lower())
            logger.info(
                "Moderation %s in chat %s by %s on user %s: %s",
                item.action.value,
                chat.id,
                item.moderator_id,
                item.target_user_id,
                item.reason,
            )
        self._publish(chat.id, entries, touched)
        return entry.id

    def _resolve_duration(self, action: ModerationAction, duration: int | None) -> int:
        if duration is None:
            if action == ModerationAction.TEMP_BAN_USER:
                return self.settings.default_temp_ban_seconds
            return self.settings.default_mute_seconds
        if duration <= 0:
            raise ValidationError("Duration must be a positive number of seconds")
        return int(duration)

    def _apply_message_action(
        self,
        chat: FanChat,
        action: ModerationAction,
        message_id: int | None,
        moderator: User,
        reason: str,
    ) -> FanMessage:
        if message_id is None:
            raise ValidationError("A message is required for this action")
        message = self.db.get(FanMessage, message_id)
        if message is None or message.chat_id != chat.id:
            raise NotFoundError("Message not found")

        now = self.clock.now()
        if action == ModerationAction.DELETE_MESSAGE:
            if not message.is_deleted:
                message.is_deleted = True
                message.deleted_at = now
                message.deleted_by_id = moderator.id
                message.moderation_reason = reason
        elif action == ModerationAction.HIDE_MESSAGE:
            message.is_moderated = True
            message.moderated_by_id = moderator.id
            message.moderated_at = now
            message.moderation_reason = reason
        elif action == ModerationAction.SHOW_MESSAGE:
            message.is_moderated = False
            message.moderated_by_id = None
            message.moderated_at = None
            message.moderation_reason = None
        chat.sync_last_message(message)
        return message

    def _maybe_escalate(self, chat: FanChat, warning: ModerationLogEntry) -> ModerationLogEntry | None:
        threshold = self.settings.warning_ban_threshold
        if threshold <= 0 or warning.target_user_id is None:
            return None
        state = self.restrictions.effective_restriction(chat.id, warning.target_user_id)
        if state.is_banned or state.active_warnings < threshold:
            return None

        escalation = ModerationLogEntry(
            chat_id=chat.id,
            action=ModerationAction.TEMP_BAN_USER,
            moderator_id=warning.moderator_id,
            moderator_name=warning.moderator_name,
            target_user_id=warning.target_user_id,
            target_user_name=warning.target_user_name,
            reason=f"Exceeded maximum warnings ({threshold})",
            timestamp=warning.timestamp,
            duration_seconds=self.settings.auto_ban_duration_seconds,
            is_automatic=True,
        )
        self.db.add(escalation)
        self.db.flush()
        return escalation

    def _announce(self, chat: FanChat, entry: ModerationLogEntry) -> FanMessage:
        target = entry.target_user_name or "User"
        action = entry.action
        message_type = MessageType.SYSTEM
        if action == ModerationAction.WARN_USER:
            message_type = MessageType.WARNING
            state = self.restrictions.effective_restriction(chat.id, entry.target_user_id)
            content = (
                f"{target} has been warned by a moderator. Reason: {entry.reason} "
                f"(Warning {state.warning_count}/{self.settings.warning_ban_threshold})"
            )
        elif action == ModerationAction.BAN_USER:
            content = f"{target} has been banned from this chat. Reason: {entry.reason}"
        elif action == ModerationAction.TEMP_BAN_USER:
            content = (
                f"{target} has been temporarily banned from this chat for "
                f"{format_duration(entry.duration_seconds or 0)}. Reason: {entry.reason}"
            )
        elif action == ModerationAction.MUTE_USER:
            content = f"{target} has been muted for {format_duration(entry.duration_seconds or 0)}. Reason: {entry.reason}"
        elif action == ModerationAction.UNBAN_USER:
            content = f"{target} has been unbanned from this chat. Reason: {entry.reason}"
        else:
            content = f"{target} has been unmuted. Reason: {entry.reason}"

        message = FanMessage(
            chat_id=chat.id,
            sender_id=entry.moderator_id,
            sender_name=entry.moderator_name,
            content=content,
            type=message_type,
            timestamp=entry.timestamp,
        )
        self.db.add(message)
        self.db.flush()
        chat.record_last_message(message)
        return message

    def _publish(
        self, chat_id: int, entries: list[ModerationLogEntry], messages: list[FanMessage]
    ) -> None:
        if self.events is None:
            return
        for message in messages:
            self.events.publish(
                chat_id,
                {"type": "message", "message": MessageRead.from_message(message).model_dump(mode="json")},
            )
        for entry in entries:
            payload: dict[str, Any] = {
                "type": "moderation",
                "entry": ModerationLogRead.model_validate(entry).model_dump(mode="json"),
            }
            self.events.publish(chat_id, payload)
            if entry.action in USER_ACTIONS:
                self.events.publish(
                    chat_id,
                    {"type": "restriction_changed", "chat_id": chat_id, "user_id": entry.target_user_id},
                )

    # -- reading -------------------------------------------------------------

    def get(self, entry_id: int) -> ModerationLogEntry:
        entry = self.db.get(ModerationLogEntry, entry_id)
        if entry is None:
            raise NotFoundError("Moderation entry not found")
        return entry

    def history_for(self, chat_id: int, *, limit: int | None = None) -> list[ModerationLogEntry]:
        """Entries for *chat_id*, newest first."""

        stmt = (
            select(ModerationLogEntry)
            .where(ModerationLogEntry.chat_id == chat_id)
            .order_by(ModerationLogEntry.timestamp.desc(), ModerationLogEntry.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars())

    def stats(self, chat_id: int) -> dict[ModerationAction, int]:
        stmt = (
            select(ModerationLogEntry.action, func.count(ModerationLogEntry.id))
            .where(ModerationLogEntry.chat_id == chat_id)
            .group_by(ModerationLogEntry.action)
        )
        return {ModerationAction(action): count for action, count in self.db.execute(stmt)}

    # -- administration ------------------------------------------------------

    def clear(self, chat_id: int, actor_id: int) -> int:
        """Delete every entry of the chat; main-app administrators only.

        This also erases the sanctions derived from those entries. The delete
        and the ``history_cleared`` marker are committed together or not at
        all. Returns the number of removed entries.
        """

        chat = self.db.get(FanChat, chat_id)
        if chat is None:
            raise NotFoundError("Chat not found")
        if not self.permissions.is_main_app_admin(actor_id):
            raise PermissionDenied("Only main app administrators can clear moderation history")
        admin = self._get_user(actor_id)

        try:
            result = self.db.execute(
                delete(ModerationLogEntry).where(ModerationLogEntry.chat_id == chat.id)
            )
            marker = ModerationLogEntry(
                chat_id=chat.id,
                action=ModerationAction.HISTORY_CLEARED,
                moderator_id=admin.id,
                moderator_name=admin.name,
                reason="Moderation history cleared",
                timestamp=self.clock.now(),
            )
            self.db.add(marker)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Clearing moderation history of chat %s failed", chat.id)
            raise

        removed = result.rowcount or 0
        moderation_actions_total.inc(action=ModerationAction.HISTORY_CLEARED.value, automatic="false")
        logger.warning(
            "Moderation history of chat %s cleared by admin %s (%s entries removed)",
            chat.id,
            admin.id,
            removed,
        )
        self._publish(chat.id, [marker], [])
        return removed
