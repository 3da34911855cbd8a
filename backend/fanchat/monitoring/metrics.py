"""Metric definitions for chat traffic and moderation."""

from __future__ import annotations

from .registry import registry


messages_appended_total = registry.counter(
    "fanchat_messages_appended_total",
    "Messages appended to fan chats.",
    label_names=("chat_type", "message_type"),
)

writes_denied_total = registry.counter(
    "fanchat_writes_denied_total",
    "Append attempts rejected by the membership policy or rate limit.",
    label_names=("reason",),
)

moderation_actions_total = registry.counter(
    "fanchat_moderation_actions_total",
    "Moderation ledger entries recorded.",
    label_names=("action", "automatic"),
)

reports_submitted_total = registry.counter(
    "fanchat_reports_submitted_total",
    "Message reports submitted by fans.",
    label_names=("reason",),
)

notification_failures_total = registry.counter(
    "fanchat_notification_failures_total",
    "Chat notifications the push dispatcher did not accept.",
)

live_subscribers = registry.gauge(
    "fanchat_live_subscribers",
    "Open live chat streams served by this process.",
)
