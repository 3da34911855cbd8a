"""Queue of user-submitted message reports awaiting moderator review.

Reports are advisory: nothing here sanctions anyone. Moderators read the
queue and act through the moderation ledger themselves.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fanchat.core.clock import Clock, system_clock
from fanchat.core.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from fanchat.models import (
    FanChat,
    FanChatReport,
    FanMessage,
    MessageType,
    ReportOutcome,
    ReportReason,
    ReportStatus,
)
from fanchat.monitoring.metrics import reports_submitted_total
from fanchat.services.groups import GroupPermissions
from fanchat.services.membership import ChatMembershipPolicy

logger = logging.getLogger(__name__)

REVIEW_STATUSES = frozenset({ReportStatus.REVIEWED, ReportStatus.RESOLVED, ReportStatus.DISMISSED})


class ReportQueue:
    def __init__(
        self,
        db: Session,
        policy: ChatMembershipPolicy,
        permissions: GroupPermissions,
        *,
        clock: Clock = system_clock,
    ) -> None:
        self.db = db
        self.policy = policy
        self.permissions = permissions
        self.clock = clock

    def get(self, report_id: int) -> FanChatReport:
        report = self.db.get(FanChatReport, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        return report

    def _already_reported(self, message_id: int, reporter_id: int) -> bool:
        stmt = select(FanChatReport.id).where(
            FanChatReport.message_id == message_id,
            FanChatReport.reporter_id == reporter_id,
        )
        return self.db.execute(stmt).first() is not None

    def submit(
        self,
        reporter_id: int,
        message_id: int,
        reason: ReportReason,
        description: str | None = None,
    ) -> int:
        """File a report against a message and return its id."""

        message = self.db.get(FanMessage, message_id)
        if message is None or message.is_deleted:
            raise NotFoundError("Message not found")
        chat = message.chat
        if chat.is_deleted or not self.policy.can_read(reporter_id, chat):
            raise PermissionDenied("You cannot read this chat")
        if message.type != MessageType.TEXT:
            raise ValidationError("Only regular messages can be reported")
        if message.sender_id == reporter_id:
            raise ValidationError("You cannot report your own message")
        if self._already_reported(message.id, reporter_id):
            raise ConflictError("You have already reported this message")

        report = FanChatReport(
            chat_id=chat.id,
            message_id=message.id,
            reported_user_id=message.sender_id,
            reporter_id=reporter_id,
            reason=ReportReason(reason),
            description=(description or "").strip() or None,
            status=ReportStatus.PENDING,
            timestamp=self.clock.now(),
        )
        self.db.add(report)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("You have already reported this message")

        reports_submitted_total.inc(reason=report.reason.value)
        logger.info(
            "User %s reported message %s in chat %s (%s)",
            reporter_id,
            message.id,
            chat.id,
            report.reason.value,
        )
        return report.id

    def list_pending(self, group_id: int, actor_id: int | None = None) -> list[FanChatReport]:
        """Pending reports of the group, oldest first.

        With *actor_id* the list is narrowed to chats that user moderates.
        """

        stmt = (
            select(FanChatReport)
            .join(FanChat, FanChat.id == FanChatReport.chat_id)
            .where(FanChat.group_id == group_id, FanChatReport.status == ReportStatus.PENDING)
            .order_by(FanChatReport.timestamp.asc(), FanChatReport.id.asc())
        )
        reports = list(self.db.execute(stmt).scalars())
        if actor_id is None:
            return reports

        allowed: dict[int, bool] = {}
        visible = []
        for report in reports:
            if report.chat_id not in allowed:
                chat = self.db.get(FanChat, report.chat_id)
                allowed[report.chat_id] = self.permissions.is_moderator(actor_id, chat)
            if allowed[report.chat_id]:
                visible.append(report)
        return visible

    def resolve(
        self,
        report_id: int,
        actor_id: int,
        outcome: ReportOutcome | None = None,
        *,
        status: ReportStatus = ReportStatus.RESOLVED,
    ) -> FanChatReport:
        report = self.get(report_id)
        chat = self.db.get(FanChat, report.chat_id)
        if chat is None or not self.permissions.is_moderator(actor_id, chat):
            raise PermissionDenied("Only chat moderators can review reports")
        status = ReportStatus(status)
        if status not in REVIEW_STATUSES:
            raise ValidationError("A report can only be marked reviewed, resolved or dismissed")
        if report.status != ReportStatus.PENDING:
            raise ConflictError("This report has already been reviewed")

        if outcome is None and status == ReportStatus.DISMISSED:
            outcome = ReportOutcome.NO_ACTION
        report.status = status
        report.outcome = outcome
        report.reviewed_by_id = actor_id
        report.reviewed_at = self.clock.now()
        self.db.commit()
        self.db.refresh(report)
        logger.info(
            "Report %s marked %s by %s (outcome %s)",
            report.id,
            status.value,
            actor_id,
            outcome.value if outcome else None,
        )
        return report
