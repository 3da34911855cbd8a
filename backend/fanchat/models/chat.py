from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fanchat.models.base import Base, UTCDateTime, utcnow
from fanchat.models.enums import (
    ChatType,
    GroupRole,
    MessageType,
    ModerationAction,
    ReportOutcome,
    ReportReason,
    ReportStatus,
    RuleSeverity,
)


def _values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class User(Base):
    """Application user (band member, admin or fan)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    login: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(128))
    is_main_app_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    memberships: Mapped[list["GroupMember"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def name(self) -> str:
        return self.display_name or self.login


class FanGroup(Base):
    """Fan club of one band; the scope every chat lives in."""

    __tablename__ = "fan_groups"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    rules_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    members: Mapped[list["GroupMember"]] = relationship(
        back_populates="group", cascade="all, delete-orphan"
    )
    chats: Mapped[list["FanChat"]] = relationship(
        back_populates="group", cascade="all, delete-orphan"
    )
    rules: Mapped[list["ChatRule"]] = relationship(
        back_populates="group", cascade="all, delete-orphan", order_by="ChatRule.position"
    )


class GroupMember(Base):
    """Link table between fan group and user with role."""

    __tablename__ = "group_members"
    __table_args__ = (UniqueConstraint("group_id", "user_id", name="uq_group_member"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("fan_groups.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[GroupRole] = mapped_column(
        SAEnum(GroupRole, name="group_role", values_callable=_values),
        default=GroupRole.FAN,
        nullable=False,
    )
    nickname: Mapped[str | None] = mapped_column(String(64))
    is_fan_chat_moderator: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    group: Mapped[FanGroup] = relationship(back_populates="members")
    user: Mapped[User] = relationship(back_populates="memberships")


class FanChat(Base):
    """Chat inside a fan group."""

    __tablename__ = "fan_chats"
    __table_args__ = (
        UniqueConstraint("group_id", "pair_key", name="uq_fan_chat_private_pair"),
        Index("ix_fan_chats_group_updated", "group_id", "updated_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("fan_groups.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[ChatType] = mapped_column(
        SAEnum(ChatType, name="fan_chat_type", values_callable=_values),
        nullable=False,
    )
    name: Mapped[str | None] = mapped_column(String(128))
    description: Mapped[str | None] = mapped_column(Text)
    created_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    # "<low id>:<high id>" for private chats, NULL otherwise
    pair_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_read_only_for_fans: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    last_message_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_message_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_message_sender_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_message_sender_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_message_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_message_type: Mapped[MessageType | None] = mapped_column(
        SAEnum(MessageType, name="fan_message_type", values_callable=_values),
        nullable=True,
    )

    group: Mapped[FanGroup] = relationship(back_populates="chats")
    participants: Mapped[list["FanChatParticipant"]] = relationship(
        back_populates="chat", cascade="all, delete-orphan"
    )
    moderators: Mapped[list["FanChatModerator"]] = relationship(
        back_populates="chat", cascade="all, delete-orphan"
    )
    messages: Mapped[list["FanMessage"]] = relationship(
        back_populates="chat", cascade="all, delete-orphan"
    )

    @property
    def participant_ids(self) -> set[int]:
        return {participant.user_id for participant in self.participants}

    @property
    def moderator_ids(self) -> set[int]:
        return {moderator.user_id for moderator in self.moderators}

    @property
    def is_private(self) -> bool:
        return self.type == ChatType.PRIVATE

    def record_last_message(self, message: "FanMessage") -> None:
        """Refresh the listing summary; *message* must already have an id."""

        self.last_message_id = message.id
        self.last_message_content = message.content
        self.last_message_sender_id = message.sender_id
        self.last_message_sender_name = message.sender_name
        self.last_message_at = message.timestamp
        self.last_message_type = message.type
        self.updated_at = message.timestamp

    def sync_last_message(self, message: "FanMessage") -> None:
        """Keep the summary from leaking content that is no longer visible."""

        if self.last_message_id != message.id:
            return
        self.last_message_content = message.content if message.is_visible else None


class FanChatParticipant(Base):
    """Explicit member of a private or mixed chat."""

    __tablename__ = "fan_chat_participants"
    __table_args__ = (UniqueConstraint("chat_id", "user_id", name="uq_fan_chat_participant"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    chat_id: Mapped[int] = mapped_column(ForeignKey("fan_chats.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(128))
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    chat: Mapped[FanChat] = relationship(back_populates="participants")


class FanChatModerator(Base):
    """Chat-level moderator assignment."""

    __tablename__ = "fan_chat_moderators"
    __table_args__ = (UniqueConstraint("chat_id", "user_id", name="uq_fan_chat_moderator"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    chat_id: Mapped[int] = mapped_column(ForeignKey("fan_chats.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    added_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    added_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    chat: Mapped[FanChat] = relationship(back_populates="moderators")


class FanMessage(Base):
    """Message posted into a fan chat."""

    __tablename__ = "fan_messages"
    __table_args__ = (Index("ix_fan_messages_chat_timestamp", "chat_id", "timestamp", "id"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    chat_id: Mapped[int] = mapped_column(ForeignKey("fan_chats.id", ondelete="CASCADE"), nullable=False)
    sender_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    sender_name: Mapped[str] = mapped_column(String(128), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    original_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[MessageType] = mapped_column(
        SAEnum(MessageType, name="fan_message_type", values_callable=_values),
        default=MessageType.TEXT,
        nullable=False,
    )
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    edited_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    deleted_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    is_moderated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    moderated_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    moderated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    moderation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    chat: Mapped[FanChat] = relationship(back_populates="messages")
    reports: Mapped[list["FanChatReport"]] = relationship(
        back_populates="message", cascade="all, delete-orphan"
    )

    @property
    def is_visible(self) -> bool:
        return not self.is_deleted and not self.is_moderated

    @property
    def reported_by(self) -> list[int]:
        return [report.reporter_id for report in self.reports]


class ModerationLogEntry(Base):
    """Append-only record of a moderation action."""

    __tablename__ = "moderation_log"
    __table_args__ = (
        Index("ix_moderation_log_chat_target", "chat_id", "target_user_id", "timestamp", "id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    chat_id: Mapped[int] = mapped_column(ForeignKey("fan_chats.id", ondelete="CASCADE"), nullable=False)
    action: Mapped[ModerationAction] = mapped_column(
        SAEnum(ModerationAction, name="moderation_action", values_callable=_values),
        nullable=False,
    )
    moderator_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    moderator_name: Mapped[str] = mapped_column(String(128), nullable=False)
    target_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    target_user_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    message_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_automatic: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class FanChatReport(Base):
    """User-submitted report awaiting moderator review."""

    __tablename__ = "fan_chat_reports"
    __table_args__ = (
        UniqueConstraint("message_id", "reporter_id", name="uq_fan_chat_report_reporter"),
        Index("ix_fan_chat_reports_status", "status", "timestamp"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    chat_id: Mapped[int] = mapped_column(ForeignKey("fan_chats.id", ondelete="CASCADE"), nullable=False)
    message_id: Mapped[int] = mapped_column(
        ForeignKey("fan_messages.id", ondelete="CASCADE"), nullable=False
    )
    reported_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reporter_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reason: Mapped[ReportReason] = mapped_column(
        SAEnum(ReportReason, name="report_reason", values_callable=_values),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ReportStatus] = mapped_column(
        SAEnum(ReportStatus, name="report_status", values_callable=_values),
        default=ReportStatus.PENDING,
        nullable=False,
    )
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    reviewed_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    outcome: Mapped[ReportOutcome | None] = mapped_column(
        SAEnum(ReportOutcome, name="report_outcome", values_callable=_values),
        nullable=True,
    )

    message: Mapped[FanMessage] = relationship(back_populates="reports")


class ChatRule(Base):
    """Single entry of a fan group's chat rule book."""

    __tablename__ = "chat_rules"

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("fan_groups.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str | None] = mapped_column(String(64))
    severity: Mapped[RuleSeverity] = mapped_column(
        SAEnum(RuleSeverity, name="rule_severity", values_callable=_values),
        default=RuleSeverity.INFO,
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    group: Mapped[FanGroup] = relationship(back_populates="rules")


class RulesAcceptance(Base):
    """Records that a user accepted a fan group's chat rules."""

    __tablename__ = "chat_rules_acceptances"
    __table_args__ = (UniqueConstraint("group_id", "user_id", name="uq_rules_acceptance"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("fan_groups.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rules_version: Mapped[int] = mapped_column(Integer, nullable=False)
    accepted_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
