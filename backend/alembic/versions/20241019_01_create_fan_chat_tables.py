"""create fan chat tables

Revision ID: 20241019_01
Revises:
Create Date: 2024-10-19 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20241019_01"
down_revision = None
branch_labels = None
depends_on = None


GROUP_ROLE = sa.Enum("admin", "member", "fan", name="group_role")
CHAT_TYPE = sa.Enum("general", "private", "themed", "announcement", "mixed", name="fan_chat_type")
MESSAGE_TYPE = sa.Enum("text", "system", "announcement", "warning", name="fan_message_type")
MODERATION_ACTION = sa.Enum(
    "delete_message",
    "hide_message",
    "show_message",
    "warn_user",
    "temp_ban_user",
    "ban_user",
    "unban_user",
    "mute_user",
    "unmute_user",
    "history_cleared",
    name="moderation_action",
)
REPORT_REASON = sa.Enum("spam", "harassment", "offensive", "inappropriate", "other", name="report_reason")
REPORT_STATUS = sa.Enum("pending", "reviewed", "resolved", "dismissed", name="report_status")
REPORT_OUTCOME = sa.Enum(
    "warning", "messageHidden", "temporaryBan", "permanentBan", "noAction", name="report_outcome"
)
RULE_SEVERITY = sa.Enum("info", "warning", "serious", name="rule_severity")


def _timestamp(name: str, *, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.DateTime(), nullable=True)
    return sa.Column(name, sa.DateTime(), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("login", sa.String(length=64), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=True),
        sa.Column("is_main_app_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "fan_groups",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("rules_version", sa.Integer(), nullable=False, server_default="1"),
        _timestamp("created_at"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "group_members",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("fan_groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", GROUP_ROLE, nullable=False, server_default="fan"),
        sa.Column("nickname", sa.String(length=64), nullable=True),
        sa.Column("is_fan_chat_moderator", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("joined_at"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_member"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "fan_chats",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("fan_groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", CHAT_TYPE, nullable=False),
        sa.Column("name", sa.String(length=128), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("pair_key", sa.String(length=64), nullable=True),
        sa.Column("is_read_only_for_fans", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("last_message_id", sa.Integer(), nullable=True),
        sa.Column("last_message_content", sa.Text(), nullable=True),
        sa.Column("last_message_sender_id", sa.Integer(), nullable=True),
        sa.Column("last_message_sender_name", sa.String(length=128), nullable=True),
        _timestamp("last_message_at", nullable=True),
        sa.Column("last_message_type", MESSAGE_TYPE, nullable=True),
        sa.UniqueConstraint("group_id", "pair_key", name="uq_fan_chat_private_pair"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_fan_chats_group_updated", "fan_chats", ["group_id", "updated_at"])

    op.create_table(
        "fan_chat_participants",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("chat_id", sa.Integer(), sa.ForeignKey("fan_chats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=True),
        _timestamp("joined_at"),
        sa.UniqueConstraint("chat_id", "user_id", name="uq_fan_chat_participant"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "fan_chat_moderators",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("chat_id", sa.Integer(), sa.ForeignKey("fan_chats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("added_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _timestamp("added_at"),
        sa.UniqueConstraint("chat_id", "user_id", name="uq_fan_chat_moderator"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "fan_messages",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("chat_id", sa.Integer(), sa.ForeignKey("fan_chats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("sender_name", sa.String(length=128), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("original_content", sa.Text(), nullable=True),
        sa.Column("type", MESSAGE_TYPE, nullable=False, server_default="text"),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        _timestamp("edited_at", nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("deleted_at", nullable=True),
        sa.Column("deleted_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_moderated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("moderated_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _timestamp("moderated_at", nullable=True),
        sa.Column("moderation_reason", sa.Text(), nullable=True),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_fan_messages_chat_timestamp", "fan_messages", ["chat_id", "timestamp", "id"])

    op.create_table(
        "moderation_log",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("chat_id", sa.Integer(), sa.ForeignKey("fan_chats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("action", MODERATION_ACTION, nullable=False),
        sa.Column("moderator_id", sa.Integer(), nullable=True),
        sa.Column("moderator_name", sa.String(length=128), nullable=False),
        sa.Column("target_user_id", sa.Integer(), nullable=True),
        sa.Column("target_user_name", sa.String(length=128), nullable=True),
        sa.Column("message_id", sa.Integer(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("is_automatic", sa.Boolean(), nullable=False, server_default=sa.false()),
        mysql_charset="utf8mb4",
    )
    op.create_index(
        "ix_moderation_log_chat_target",
        "moderation_log",
        ["chat_id", "target_user_id", "timestamp", "id"],
    )

    op.create_table(
        "fan_chat_reports",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("chat_id", sa.Integer(), sa.ForeignKey("fan_chats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("message_id", sa.Integer(), sa.ForeignKey("fan_messages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reported_user_id", sa.Integer(), nullable=True),
        sa.Column("reporter_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reason", REPORT_REASON, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", REPORT_STATUS, nullable=False, server_default="pending"),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("reviewed_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _timestamp("reviewed_at", nullable=True),
        sa.Column("outcome", REPORT_OUTCOME, nullable=True),
        sa.UniqueConstraint("message_id", "reporter_id", name="uq_fan_chat_report_reporter"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_fan_chat_reports_status", "fan_chat_reports", ["status", "timestamp"])

    op.create_table(
        "chat_rules",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("fan_groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("icon", sa.String(length=64), nullable=True),
        sa.Column("severity", RULE_SEVERITY, nullable=False, server_default="info"),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "chat_rules_acceptances",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("fan_groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rules_version", sa.Integer(), nullable=False),
        sa.Column("accepted_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("group_id", "user_id", name="uq_rules_acceptance"),
        mysql_charset="utf8mb4",
    )


def downgrade() -> None:
    op.drop_table("chat_rules_acceptances")
    op.drop_table("chat_rules")
    op.drop_index("ix_fan_chat_reports_status", table_name="fan_chat_reports")
    op.drop_table("fan_chat_reports")
    op.drop_index("ix_moderation_log_chat_target", table_name="moderation_log")
    op.drop_table("moderation_log")
    op.drop_index("ix_fan_messages_chat_timestamp", table_name="fan_messages")
    op.drop_table("fan_messages")
    op.drop_table("fan_chat_moderators")
    op.drop_table("fan_chat_participants")
    op.drop_index("ix_fan_chats_group_updated", table_name="fan_chats")
    op.drop_table("fan_chats")
    op.drop_table("group_members")
    op.drop_table("fan_groups")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (
        RULE_SEVERITY,
        REPORT_OUTCOME,
        REPORT_STATUS,
        REPORT_REASON,
        MODERATION_ACTION,
        MESSAGE_TYPE,
        CHAT_TYPE,
        GROUP_ROLE,
    ):
        enum.drop(bind, checkfirst=True)
