"""Per-group chat rule book and fans' acceptance of it."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fanchat.core.clock import Clock, system_clock
from fanchat.core.errors import NotFoundError, PermissionDenied, ValidationError
from fanchat.models import ChatRule, FanGroup, RuleSeverity, RulesAcceptance
from fanchat.services.groups import GroupPermissions

logger = logging.getLogger(__name__)

DEFAULT_RULES: tuple[dict[str, object], ...] = (
    {
        "title": "Be Respectful",
        "description": "Treat all fans and band members with respect. No harassment, bullying, or offensive language.",
        "icon": "heart.fill",
        "severity": RuleSeverity.SERIOUS,
    },
    {
        "title": "Stay On Topic",
        "description": "Keep discussions related to the band and music. Off-topic conversations should be moved to private chats.",
        "icon": "target",
        "severity": RuleSeverity.INFO,
    },
    {
        "title": "No Spam or Flooding",
        "description": "Don't send repetitive messages or flood the chat. Give others a chance to participate.",
        "icon": "exclamationmark.triangle.fill",
        "severity": RuleSeverity.WARNING,
    },
    {
        "title": "Text Only",
        "description": "Fan chats support text messages only. No images, links, or other media are allowed.",
        "icon": "text.bubble.fill",
        "severity": RuleSeverity.INFO,
    },
    {
        "title": "Report Issues",
        "description": "If you see inappropriate behavior, use the report function. Don't engage in arguments.",
        "icon": "flag.fill",
        "severity": RuleSeverity.INFO,
    },
)


class RulesBook:
    """Reads and edits a group's rules; every edit bumps the rules version.

    Acceptances are stored with the version they were given for, so a
    changed rule book has to be accepted again.
    """

    def __init__(self, db: Session, permissions: GroupPermissions, *, clock: Clock = system_clock) -> None:
        self.db = db
        self.permissions = permissions
        self.clock = clock

    def _get_group(self, group_id: int) -> FanGroup:
        group = self.db.get(FanGroup, group_id)
        if group is None:
            raise NotFoundError("Fan group not found")
        return group

    def _require_admin(self, actor_id: int, group_id: int) -> None:
        if not self.permissions.is_group_admin(actor_id, group_id):
            raise PermissionDenied("Only group administrators can edit chat rules")

    def rules_for(self, group_id: int) -> list[ChatRule]:
        """Rules in display order; seeds the defaults the first time."""

        group = self._get_group(group_id)
        stmt = (
            select(ChatRule)
            .where(ChatRule.group_id == group.id)
            .order_by(ChatRule.position.asc(), ChatRule.id.asc())
        )
        rules = list(self.db.execute(stmt).scalars())
        if rules:
            return rules

        now = self.clock.now()
        for position, template in enumerate(DEFAULT_RULES):
            self.db.add(ChatRule(group_id=group.id, position=position, created_at=now, **template))
        self.db.commit()
        logger.info("Seeded default chat rules for group %s", group.id)
        return list(self.db.execute(stmt).scalars())

    def version(self, group_id: int) -> int:
        return self._get_group(group_id).rules_version

    def add_rule(
        self,
        group_id: int,
        actor_id: int,
        title: str,
        description: str,
        *,
        icon: str | None = None,
        severity: RuleSeverity = RuleSeverity.INFO,
    ) -> ChatRule:
        group = self._get_group(group_id)
        self._require_admin(actor_id, group.id)
        title = (title or "").strip()
        description = (description or "").strip()
        if not title or not description:
            raise ValidationError("A rule needs a title and a description")

        self.rules_for(group.id)
        last_position = self.db.execute(
            select(func.max(ChatRule.position)).where(ChatRule.group_id == group.id)
        ).scalar_one()
        rule = ChatRule(
            group_id=group.id,
            title=title,
            description=description,
            icon=icon,
            severity=RuleSeverity(severity),
            position=(last_position if last_position is not None else -1) + 1,
            created_at=self.clock.now(),
        )
        self.db.add(rule)
        group.rules_version += 1
        self.db.commit()
        self.db.refresh(rule)
        logger.info("Rule %s added to group %s by %s", rule.id, group.id, actor_id)
        return rule

    def remove_rule(self, group_id: int, actor_id: int, rule_id: int) -> None:
        group = self._get_group(group_id)
        self._require_admin(actor_id, group.id)
        rule = self.db.get(ChatRule, rule_id)
        if rule is None or rule.group_id != group.id:
            raise NotFoundError("Rule not found")
        self.db.delete(rule)
        group.rules_version += 1
        self.db.commit()
        logger.info("Rule %s removed from group %s by %s", rule_id, group.id, actor_id)

    def acceptance_for(self, group_id: int, user_id: int) -> RulesAcceptance | None:
        stmt = select(RulesAcceptance).where(
            RulesAcceptance.group_id == group_id,
            RulesAcceptance.user_id == user_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def has_accepted(self, group_id: int, user_id: int) -> bool:
        acceptance = self.acceptance_for(group_id, user_id)
        return acceptance is not None and acceptance.rules_version == self.version(group_id)

    def accept(self, group_id: int, user_id: int) -> RulesAcceptance:
        group = self._get_group(group_id)
        if not self.permissions.is_group_member(user_id, group.id):
            raise PermissionDenied("You are not a member of this fan group")

        acceptance = self.acceptance_for(group.id, user_id)
        if acceptance is None:
            acceptance = RulesAcceptance(group_id=group.id, user_id=user_id)
            self.db.add(acceptance)
        acceptance.rules_version = group.rules_version
        acceptance.accepted_at = self.clock.now()
        try:
            self.db.commit()
        except IntegrityError:
            # accepted concurrently; keep the stored row
            self.db.rollback()
            acceptance = self.acceptance_for(group.id, user_id)
        logger.info("User %s accepted rules v%s of group %s", user_id, group.rules_version, group.id)
        return acceptance
