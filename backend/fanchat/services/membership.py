"""Read/write gating for fan chats."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from fanchat.models import ChatType, FanChat, FanGroup, RulesAcceptance
from fanchat.services.groups import GroupPermissions
from fanchat.services.restrictions import RestrictionEngine

PUBLIC_CHAT_TYPES: frozenset[ChatType] = frozenset(
    {ChatType.GENERAL, ChatType.THEMED, ChatType.ANNOUNCEMENT}
)


@dataclass(frozen=True, slots=True)
class WriteDecision:
    allowed: bool
    reason: str = ""
    code: str = "ok"


class ChatMembershipPolicy:
    """Pure predicates over current chat, role and restriction state."""

    def __init__(
        self,
        db: Session,
        permissions: GroupPermissions,
        restrictions: RestrictionEngine,
        *,
        require_rules_acceptance: bool = False,
    ) -> None:
        self.db = db
        self.permissions = permissions
        self.restrictions = restrictions
        self.require_rules_acceptance = require_rules_acceptance

    def _is_base_member(self, user_id: int, chat: FanChat) -> bool:
        if chat.type == ChatType.PRIVATE:
            # group roles never open a private chat to non-participants
            return user_id in chat.participant_ids
        if user_id in chat.participant_ids:
            return True
        if self.permissions.is_moderator(user_id, chat):
            return True
        return chat.type in PUBLIC_CHAT_TYPES and self.permissions.is_group_member(
            user_id, chat.group_id
        )

    def _has_accepted_rules(self, user_id: int, group_id: int) -> bool:
        # an acceptance only counts for the rules version it was given for
        stmt = (
            select(RulesAcceptance.id)
            .join(FanGroup, FanGroup.id == RulesAcceptance.group_id)
            .where(
                RulesAcceptance.group_id == group_id,
                RulesAcceptance.user_id == user_id,
                RulesAcceptance.rules_version == FanGroup.rules_version,
            )
        )
        return self.db.execute(stmt).first() is not None

    def can_read(self, user_id: int, chat: FanChat) -> bool:
        if chat.is_deleted:
            return False
        if self.restrictions.effective_restriction(chat.id, user_id).is_banned:
            return False
        return self._is_base_member(user_id, chat)

    def check_write(self, user_id: int, chat: FanChat) -> WriteDecision:
        if chat.is_deleted:
            return WriteDecision(False, "Chat has been deleted", "deleted")

        is_moderator = self.permissions.is_moderator(user_id, chat)
        if (chat.type == ChatType.ANNOUNCEMENT or chat.is_read_only_for_fans) and not is_moderator:
            return WriteDecision(False, "Only moderators can post in this chat", "read_only")
        if chat.type == ChatType.PRIVATE and user_id not in chat.participant_ids:
            return WriteDecision(False, "Not a participant of this private chat", "not_participant")

        state = self.restrictions.effective_restriction(chat.id, user_id)
        if state.is_banned:
            return WriteDecision(False, "You are banned from this chat", "banned")
        if state.is_muted:
            return WriteDecision(False, "You are muted in this chat", "muted")

        if not chat.is_active and not is_moderator:
            return WriteDecision(False, "Chat is currently disabled", "inactive")
        if (
            self.require_rules_acceptance
            and chat.type != ChatType.PRIVATE
            and not is_moderator
            and not self._has_accepted_rules(user_id, chat.group_id)
        ):
            return WriteDecision(False, "Accept the chat rules before posting", "rules_not_accepted")

        if not self._is_base_member(user_id, chat):
            return WriteDecision(False, "Not a member of this chat", "not_member")
        return WriteDecision(True)

    def can_write(self, user_id: int, chat: FanChat) -> bool:
        return self.check_write(user_id, chat).allowed
