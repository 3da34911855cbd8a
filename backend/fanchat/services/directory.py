"""Creation, lookup and lifecycle of fan chats."""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fanchat.core.clock import Clock, system_clock
from fanchat.core.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from fanchat.models import (
    ChatType,
    FanChat,
    FanChatModerator,
    FanChatParticipant,
    FanGroup,
    FanMessage,
    User,
)
from fanchat.services.events import ChatEventHub
from fanchat.services.groups import GroupPermissions
from fanchat.services.membership import ChatMembershipPolicy

logger = logging.getLogger(__name__)

GENERAL_CHAT_NAME = "General chat"
ANNOUNCEMENT_CHAT_NAME = "Announcements"


def private_pair_key(first_user_id: int, second_user_id: int) -> str:
    low, high = sorted((first_user_id, second_user_id))
    return f"{low}:{high}"


class ChatDirectory:
    def __init__(
        self,
        db: Session,
        permissions: GroupPermissions,
        policy: ChatMembershipPolicy,
        *,
        clock: Clock = system_clock,
        events: ChatEventHub | None = None,
    ) -> None:
        self.db = db
        self.permissions = permissions
        self.policy = policy
        self.clock = clock
        self.events = events

    # -- lookups -------------------------------------------------------------

    def _get_group(self, group_id: int) -> FanGroup:
        group = self.db.get(FanGroup, group_id)
        if group is None:
            raise NotFoundError("Fan group not found")
        return group

    def _get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _require_member(self, user_id: int, group_id: int) -> None:
        if not self.permissions.is_group_member(user_id, group_id):
            raise PermissionDenied("You are not a member of this fan group")

    def _find_singleton(self, group_id: int, chat_type: ChatType) -> FanChat | None:
        stmt = (
            select(FanChat)
            .where(
                FanChat.group_id == group_id,
                FanChat.type == chat_type,
                FanChat.is_deleted.is_(False),
            )
            .order_by(FanChat.id.asc())
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def _find_private(self, group_id: int, pair_key: str) -> FanChat | None:
        stmt = select(FanChat).where(FanChat.group_id == group_id, FanChat.pair_key == pair_key)
        return self.db.execute(stmt).scalar_one_or_none()

    def get(self, chat_id: int, viewer_id: int | None = None) -> FanChat:
        chat = self.db.get(FanChat, chat_id)
        if chat is None or chat.is_deleted:
            raise NotFoundError("Chat not found")
        if viewer_id is not None and not self.policy.can_read(viewer_id, chat):
            raise PermissionDenied("You cannot read this chat")
        return chat

    def list_visible(self, group_id: int, user_id: int) -> list[FanChat]:
        """Chats of the group the user can read, most recently active first."""

        self._get_group(group_id)
        stmt = (
            select(FanChat)
            .where(FanChat.group_id == group_id, FanChat.is_deleted.is_(False))
            .order_by(FanChat.updated_at.desc(), FanChat.id.desc())
        )
        return [chat for chat in self.db.execute(stmt).scalars() if self.policy.can_read(user_id, chat)]

    # -- creation ------------------------------------------------------------

    def _create(self, chat: FanChat, *, moderator_ids: tuple[int, ...] = (), participants: tuple[User, ...] = ()) -> FanChat:
        now = self.clock.now()
        chat.created_at = now
        chat.updated_at = now
        for user in participants:
            chat.participants.append(FanChatParticipant(user_id=user.id, display_name=user.name))
        for moderator_id in moderator_ids:
            chat.moderators.append(FanChatModerator(user_id=moderator_id, added_by_id=chat.created_by_id))
        self.db.add(chat)
        self.db.commit()
        self.db.refresh(chat)
        logger.info("Created %s chat %s in group %s", chat.type.value, chat.id, chat.group_id)
        return chat

    def create_general(self, group_id: int, actor_id: int) -> FanChat:
        """Return the group's general chat, creating it on first use."""

        self._get_group(group_id)
        self._require_member(actor_id, group_id)
        existing = self._find_singleton(group_id, ChatType.GENERAL)
        if existing is not None:
            return existing
        return self._create(
            FanChat(
                group_id=group_id,
                type=ChatType.GENERAL,
                name=GENERAL_CHAT_NAME,
                created_by_id=actor_id,
            )
        )

    def create_announcement(self, group_id: int, actor_id: int) -> FanChat:
        self._get_group(group_id)
        if not self.permissions.is_group_admin(actor_id, group_id):
            raise PermissionDenied("Only group administrators can create the announcement chat")
        existing = self._find_singleton(group_id, ChatType.ANNOUNCEMENT)
        if existing is not None:
            return existing
        return self._create(
            FanChat(
                group_id=group_id,
                type=ChatType.ANNOUNCEMENT,
                name=ANNOUNCEMENT_CHAT_NAME,
                created_by_id=actor_id,
                is_read_only_for_fans=True,
            )
        )

    def create_themed(
        self, group_id: int, actor_id: int, name: str, description: str | None = None
    ) -> FanChat:
        self._get_group(group_id)
        if not self.permissions.can_create_themed_chats(actor_id, group_id):
            raise PermissionDenied("Only moderators and administrators can create themed chats")
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("Chat name cannot be empty")
        return self._create(
            FanChat(
                group_id=group_id,
                type=ChatType.THEMED,
                name=cleaned,
                description=description,
                created_by_id=actor_id,
            ),
            moderator_ids=(actor_id,),
        )

    def create_mixed(
        self,
        group_id: int,
        actor_id: int,
        name: str,
        description: str | None = None,
        participant_ids: list[int] | None = None,
    ) -> FanChat:
        """Joint chat between band staff and selected fans."""

        self._get_group(group_id)
        if not self.permissions.can_create_themed_chats(actor_id, group_id):
            raise PermissionDenied("Only moderators and administrators can create mixed chats")
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("Chat name cannot be empty")

        members: list[User] = []
        for user_id in dict.fromkeys([actor_id, *(participant_ids or [])]):
            user = self._get_user(user_id)
            if not self.permissions.is_group_member(user.id, group_id):
                raise ValidationError(f"User {user.id} is not a member of this fan group")
            members.append(user)

        return self._create(
            FanChat(
                group_id=group_id,
                type=ChatType.MIXED,
                name=cleaned,
                description=description,
                created_by_id=actor_id,
            ),
            moderator_ids=(actor_id,),
            participants=tuple(members),
        )

    def create_private(self, group_id: int, actor_id: int, target_user_id: int) -> FanChat:
        """Open (or reopen) the private chat between two fans.

        One private chat exists per unordered pair; a concurrent duplicate
        insert loses on the unique pair key and resolves to the winner.
        """

        self._get_group(group_id)
        if actor_id == target_user_id:
            raise ValidationError("You cannot open a private chat with yourself")
        self._require_member(actor_id, group_id)
        actor = self._get_user(actor_id)
        target = self._get_user(target_user_id)
        if not self.permissions.is_group_member(target.id, group_id):
            raise ValidationError("The other user is not a member of this fan group")

        pair_key = private_pair_key(actor.id, target.id)
        existing = self._find_private(group_id, pair_key)
        if existing is not None:
            return existing

        try:
            return self._create(
                FanChat(
                    group_id=group_id,
                    type=ChatType.PRIVATE,
                    created_by_id=actor.id,
                    pair_key=pair_key,
                ),
                participants=(actor, target),
            )
        except IntegrityError:
            self.db.rollback()
            existing = self._find_private(group_id, pair_key)
            if existing is None:
                raise ConflictError("Private chat could not be created, please retry")
            logger.info("Private chat %s already created concurrently", existing.id)
            return existing

    # -- lifecycle -----------------------------------------------------------

    def _can_delete(self, actor_id: int, chat: FanChat) -> bool:
        if chat.type == ChatType.PRIVATE:
            return actor_id in chat.participant_ids
        if chat.type in (ChatType.THEMED, ChatType.MIXED):
            return self.permissions.is_moderator(actor_id, chat)
        return self.permissions.is_main_app_admin(actor_id)

    def delete_chat(self, chat_id: int, actor_id: int) -> None:
        """Soft-delete the chat and every message in it."""

        chat = self.get(chat_id)
        if not self._can_delete(actor_id, chat):
            raise PermissionDenied("You are not allowed to delete this chat")

        now = self.clock.now()
        self.db.execute(
            update(FanMessage)
            .where(FanMessage.chat_id == chat.id, FanMessage.is_deleted.is_(False))
            .values(is_deleted=True, deleted_at=now, deleted_by_id=actor_id)
        )
        chat.is_deleted = True
        # frees the pair so the two users can start over
        chat.pair_key = None
        chat.last_message_content = None
        chat.updated_at = now
        self.db.commit()
        logger.info("Chat %s deleted by %s", chat.id, actor_id)
        if self.events is not None:
            self.events.publish(chat.id, {"type": "chat_deleted", "chat_id": chat.id})

    def set_active(self, chat_id: int, actor_id: int, is_active: bool) -> FanChat:
        chat = self.get(chat_id)
        if not self.permissions.is_moderator(actor_id, chat):
            raise PermissionDenied("Only moderators can change the chat status")
        chat.is_active = is_active
        chat.updated_at = self.clock.now()
        self.db.commit()
        self.db.refresh(chat)
        logger.info("Chat %s %s by %s", chat.id, "enabled" if is_active else "disabled", actor_id)
        if self.events is not None:
            self.events.publish(chat.id, {"type": "chat_status", "chat_id": chat.id, "is_active": is_active})
        return chat

    def add_moderator(self, chat_id: int, actor_id: int, user_id: int) -> FanChat:
        chat = self.get(chat_id)
        if not self.permissions.is_group_admin(actor_id, chat.group_id):
            raise PermissionDenied("Only group administrators can manage chat moderators")
        if chat.type == ChatType.PRIVATE:
            raise ValidationError("Private chats have no moderators")
        user = self._get_user(user_id)
        if user.id in chat.moderator_ids:
            return chat
        chat.moderators.append(FanChatModerator(user_id=user.id, added_by_id=actor_id))
        self.db.commit()
        self.db.refresh(chat)
        logger.info("User %s made moderator of chat %s by %s", user.id, chat.id, actor_id)
        return chat

    def remove_moderator(self, chat_id: int, actor_id: int, user_id: int) -> FanChat:
        chat = self.get(chat_id)
        if not self.permissions.is_group_admin(actor_id, chat.group_id):
            raise PermissionDenied("Only group administrators can manage chat moderators")
        for moderator in list(chat.moderators):
            if moderator.user_id == user_id:
                chat.moderators.remove(moderator)
        self.db.commit()
        self.db.refresh(chat)
        logger.info("User %s removed from moderators of chat %s by %s", user_id, chat.id, actor_id)
        return chat
