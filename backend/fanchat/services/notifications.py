"""Hand-off of chat notifications to the external push dispatcher."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Protocol

import httpx

from fanchat.config import Settings
from fanchat.models import ChatType
from fanchat.monitoring.metrics import notification_failures_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChatNotification:
    chat_id: int
    sender_id: int
    content: str
    chat_type: ChatType

    def as_payload(self) -> dict[str, object]:
        payload = asdict(self)
        payload["chat_type"] = self.chat_type.value
        return payload


class NotificationDispatcher(Protocol):
    def dispatch(self, notification: ChatNotification) -> None:
        """Forward *notification*; must not raise on delivery failures."""


class NullNotificationDispatcher:
    """Used when push notifications are disabled."""

    def dispatch(self, notification: ChatNotification) -> None:
        logger.debug("Push notifications disabled; dropping event for chat %s", notification.chat_id)


class WebhookNotificationDispatcher:
    """Posts notifications as JSON to the push dispatcher's webhook.

    Delivery retries belong to the dispatcher; a failed POST is logged and
    counted, never propagated into the message append that triggered it.
    """

    def __init__(self, url: str, *, timeout: float = 5.0, client: httpx.Client | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client

    def dispatch(self, notification: ChatNotification) -> None:
        payload = notification.as_payload()
        try:
            if self._client is not None:
                response = self._client.post(self.url, json=payload)
                response.raise_for_status()
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.url, json=payload)
                    response.raise_for_status()
        except httpx.HTTPError as exc:
            notification_failures_total.inc()
            logger.warning(
                "Push dispatcher rejected notification for chat %s: %s",
                notification.chat_id,
                exc,
            )


def build_notification_dispatcher(settings: Settings) -> NotificationDispatcher:
    if settings.push_notifications_enabled and settings.notification_webhook_url:
        return WebhookNotificationDispatcher(
            str(settings.notification_webhook_url),
            timeout=settings.notification_timeout_seconds,
        )
    return NullNotificationDispatcher()
