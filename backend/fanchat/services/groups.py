"""Group and role lookups the chat services depend on."""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from fanchat.models import ChatType, FanChat, GroupMember, GroupRole, User


class GroupPermissions(Protocol):
    """Externally resolved role predicates."""

    def is_main_app_admin(self, user_id: int) -> bool: ...

    def is_group_member(self, user_id: int, group_id: int) -> bool: ...

    def is_group_admin(self, user_id: int, group_id: int) -> bool: ...

    def is_moderator(self, user_id: int, chat: FanChat) -> bool: ...

    def can_create_themed_chats(self, user_id: int, group_id: int) -> bool: ...


class DatabaseGroupPermissions:
    """Resolves roles from the ``users`` and ``group_members`` tables.

    Every call hits the database so a revoked role takes effect on the
    very next check.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _membership(self, user_id: int, group_id: int) -> GroupMember | None:
        stmt = select(GroupMember).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def is_main_app_admin(self, user_id: int) -> bool:
        user = self.db.get(User, user_id)
        return bool(user is not None and user.is_main_app_admin)

    def is_group_member(self, user_id: int, group_id: int) -> bool:
        return self._membership(user_id, group_id) is not None or self.is_main_app_admin(user_id)

    def is_group_admin(self, user_id: int, group_id: int) -> bool:
        if self.is_main_app_admin(user_id):
            return True
        membership = self._membership(user_id, group_id)
        return membership is not None and membership.role == GroupRole.ADMIN

    def is_moderator(self, user_id: int, chat: FanChat) -> bool:
        if user_id in chat.moderator_ids:
            return True
        if chat.type in (ChatType.THEMED, ChatType.MIXED) and chat.created_by_id == user_id:
            return True
        if self.is_main_app_admin(user_id):
            return True
        membership = self._membership(user_id, chat.group_id)
        if membership is None:
            return False
        return membership.role == GroupRole.ADMIN or membership.is_fan_chat_moderator

    def can_create_themed_chats(self, user_id: int, group_id: int) -> bool:
        if self.is_main_app_admin(user_id):
            return True
        membership = self._membership(user_id, group_id)
        if membership is None:
            return False
        return membership.role == GroupRole.ADMIN or membership.is_fan_chat_moderator
