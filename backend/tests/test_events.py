from __future__ import annotations

import json
import logging

import anyio
import httpx
import pytest

from fanchat.config import Settings
from fanchat.core.errors import PermissionDenied
from fanchat.models import ChatType, ModerationAction
from fanchat.monitoring.metrics import live_subscribers, notification_failures_total
from fanchat.services import (
    ChatEventHub,
    ChatNotification,
    ModerationRecord,
    NullNotificationDispatcher,
    WebhookNotificationDispatcher,
    build_notification_dispatcher,
    build_services,
)


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.anyio("asyncio")
async def test_stream_receives_appended_messages(services, world):
    chat = services.directory.create_general(world.group.id, world.fan_a.id)

    async with services.messages.stream(chat.id, world.fan_b.id) as subscription:
        services.messages.append(chat.id, world.fan_a.id, "soundcheck at six")
        with anyio.fail_after(1):
            event = await subscription.__anext__()

    assert event["type"] == "message"
    assert event["message"]["content"] == "soundcheck at six"
    assert event["message"]["sender_id"] == world.fan_a.id


@pytest.mark.anyio("asyncio")
async def test_stream_carries_moderation_and_restriction_events(services, world):
    chat = services.directory.create_general(world.group.id, world.fan_a.id)

    async with services.messages.stream(chat.id, world.moderator.id) as subscription:
        services.ledger.record(
            ModerationRecord(
                chat_id=chat.id,
                action=ModerationAction.MUTE_USER,
                moderator_id=world.moderator.id,
                reason="flooding",
                target_user_id=world.fan_a.id,
                duration_seconds=600,
            )
        )
        received = []
        with anyio.fail_after(1):
            for _ in range(3):
                received.append(await subscription.__anext__())

    assert [event["type"] for event in received] == ["message", "moderation", "restriction_changed"]
    assert received[1]["entry"]["action"] == "mute_user"
    assert received[2]["user_id"] == world.fan_a.id


@pytest.mark.anyio("asyncio")
async def test_stream_requires_read_access(services, world):
    private = services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)

    with pytest.raises(PermissionDenied):
        services.messages.stream(private.id, world.fan_c.id)


@pytest.mark.anyio("asyncio")
async def test_closing_subscription_ends_iteration(event_hub):
    subscription = event_hub.subscribe(7)
    assert event_hub.subscriber_count(7) == 1
    assert live_subscribers.value() == 1

    subscription.close()
    subscription.close()

    assert [event async for event in subscription] == []
    assert event_hub.subscriber_count(7) == 0
    assert live_subscribers.value() == 0


@pytest.mark.anyio("asyncio")
async def test_publish_only_reaches_subscribers_of_that_chat():
    hub = ChatEventHub()

    async with hub.subscribe(1) as first, hub.subscribe(2) as second:
        hub.publish(1, {"type": "ping"})
        with anyio.fail_after(1):
            assert await first.__anext__() == {"type": "ping"}
        second.close()
        assert [event async for event in second] == []


def test_stream_without_hub_is_not_configured(db_session, settings, clock, world):
    services = build_services(db_session, settings, clock=clock)
    chat = services.directory.create_general(world.group.id, world.fan_a.id)

    with pytest.raises(RuntimeError):
        services.messages.stream(chat.id, world.fan_a.id)


def _notification() -> ChatNotification:
    return ChatNotification(chat_id=5, sender_id=9, content="hey", chat_type=ChatType.GENERAL)


def test_webhook_dispatcher_posts_json():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, str(request.url), json.loads(request.content)))
        return httpx.Response(202)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    WebhookNotificationDispatcher("https://push.example.com/hook", client=client).dispatch(_notification())

    assert seen == [
        (
            "POST",
            "https://push.example.com/hook",
            {"chat_id": 5, "sender_id": 9, "content": "hey", "chat_type": "general"},
        )
    ]
    assert notification_failures_total.value() == 0


def test_webhook_failure_is_logged_not_raised(caplog):
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
    dispatcher = WebhookNotificationDispatcher("https://push.example.com/hook", client=client)

    with caplog.at_level(logging.WARNING):
        dispatcher.dispatch(_notification())

    assert notification_failures_total.value() == 1
    assert any("rejected notification for chat 5" in record.getMessage() for record in caplog.records)


def test_failed_notification_does_not_fail_append(db_session, settings, clock, world, event_hub):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("dispatcher down", request=request)

    notifier = WebhookNotificationDispatcher(
        "https://push.example.com/hook",
        client=httpx.Client(transport=httpx.MockTransport(refuse)),
    )
    services = build_services(db_session, settings, clock=clock, notifier=notifier, events=event_hub)
    chat = services.directory.create_general(world.group.id, world.fan_a.id)

    message = services.messages.append(chat.id, world.fan_a.id, "still delivered")

    assert message.id is not None
    assert notification_failures_total.value() == 1


def test_dispatcher_selection():
    disabled = Settings(_env_file=None, DATABASE_URL="sqlite://")
    assert isinstance(build_notification_dispatcher(disabled), NullNotificationDispatcher)

    enabled = Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        push_notifications_enabled=True,
        notification_webhook_url="https://push.example.com/hook",
    )
    dispatcher = build_notification_dispatcher(enabled)
    assert isinstance(dispatcher, WebhookNotificationDispatcher)
    assert dispatcher.url == "https://push.example.com/hook"
