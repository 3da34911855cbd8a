from __future__ import annotations

import pytest

from fanchat.core.errors import (
    NotFoundError,
    PermissionDenied,
    RateLimitedError,
    ValidationError,
)
from fanchat.models import ChatType, MessageType, ModerationAction
from fanchat.monitoring.metrics import messages_appended_total, writes_denied_total
from fanchat.services import ModerationRecord


@pytest.fixture()
def private_chat(services, world):
    return services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)


@pytest.fixture()
def general_chat(services, world):
    return services.directory.create_general(world.group.id, world.fan_a.id)


def test_private_chat_scenario(services, world, private_chat):
    services.messages.append(private_chat.id, world.fan_a.id, "hello")

    messages = services.messages.list_ordered(private_chat.id)
    assert len(messages) == 1
    assert messages[0].content == "hello"
    assert messages[0].sender_id == world.fan_a.id

    with pytest.raises(PermissionDenied):
        services.messages.append(private_chat.id, world.fan_c.id, "let me in")
    assert writes_denied_total.value(reason="not_participant") == 1


def test_append_validates_content(services, world, general_chat, settings):
    with pytest.raises(ValidationError):
        services.messages.append(general_chat.id, world.fan_a.id, "   ")
    with pytest.raises(ValidationError):
        services.messages.append(
            general_chat.id, world.fan_a.id, "x" * (settings.chat_message_max_length + 1)
        )

    message = services.messages.append(
        general_chat.id, world.fan_a.id, "  " + "x" * settings.chat_message_max_length + "  "
    )
    assert len(message.content) == settings.chat_message_max_length


def test_append_unknown_chat(services, world):
    with pytest.raises(NotFoundError):
        services.messages.append(9999, world.fan_a.id, "hi")


def test_messages_are_ordered_by_server_time_then_insertion(services, world, general_chat, clock):
    first = services.messages.append(general_chat.id, world.fan_a.id, "first")
    second = services.messages.append(general_chat.id, world.fan_b.id, "second")
    clock.advance(seconds=5)
    third = services.messages.append(general_chat.id, world.fan_a.id, "third")

    ordered = services.messages.list_ordered(general_chat.id)
    assert [message.id for message in ordered] == [first.id, second.id, third.id]
    assert ordered[0].timestamp == ordered[1].timestamp
    assert ordered[2].timestamp == clock.now()

    latest = services.messages.list_ordered(general_chat.id, limit=2)
    assert [message.id for message in latest] == [second.id, third.id]


def test_append_updates_last_message_and_metrics(services, world, general_chat):
    message = services.messages.append(general_chat.id, world.fan_a.id, "latest news")

    assert general_chat.last_message_id == message.id
    assert general_chat.last_message_content == "latest news"
    assert general_chat.last_message_sender_name == world.fan_a.name
    assert messages_appended_total.value(chat_type="general", message_type="text") == 1


def test_only_moderators_post_special_message_types(services, world, general_chat):
    with pytest.raises(PermissionDenied):
        services.messages.append(general_chat.id, world.fan_a.id, "fake", MessageType.ANNOUNCEMENT)

    message = services.messages.append(
        general_chat.id, world.moderator.id, "Tour dates are out", MessageType.ANNOUNCEMENT
    )
    assert message.type == MessageType.ANNOUNCEMENT


def test_notifications_for_non_system_messages(services, world, general_chat, notifier):
    services.messages.append(general_chat.id, world.fan_a.id, "hi all")
    services.messages.append(general_chat.id, world.moderator.id, "maintenance", MessageType.SYSTEM)

    assert len(notifier.sent) == 1
    notification = notifier.sent[0]
    assert notification.chat_id == general_chat.id
    assert notification.sender_id == world.fan_a.id
    assert notification.content == "hi all"
    assert notification.chat_type == ChatType.GENERAL


def test_spam_protection(services, world, general_chat, settings, clock):
    for index in range(settings.spam_max_messages):
        services.messages.append(general_chat.id, world.fan_a.id, f"message {index}")

    with pytest.raises(RateLimitedError):
        services.messages.append(general_chat.id, world.fan_a.id, "one too many")
    assert writes_denied_total.value(reason="rate_limited") == 1

    # other senders and moderators are unaffected
    services.messages.append(general_chat.id, world.fan_b.id, "still fine")
    services.messages.append(general_chat.id, world.moderator.id, "calm down")

    clock.advance(seconds=settings.spam_window_seconds)
    services.messages.append(general_chat.id, world.fan_a.id, "back again")


def test_edit_by_sender_within_window(services, world, private_chat, clock):
    message = services.messages.append(private_chat.id, world.fan_a.id, "helo")
    clock.advance(minutes=5)

    edited = services.messages.edit(message.id, "hello", world.fan_a.id)
    assert edited.content == "hello"
    assert edited.original_content == "helo"
    assert edited.edited_at == clock.now()

    again = services.messages.edit(message.id, "hello!", world.fan_a.id)
    assert again.original_content == "helo"


def test_edit_rules(services, world, general_chat, clock, settings):
    message = services.messages.append(general_chat.id, world.fan_a.id, "original")

    with pytest.raises(PermissionDenied):
        services.messages.edit(message.id, "hijacked", world.fan_b.id)
    # moderators delete, they never rewrite
    with pytest.raises(PermissionDenied):
        services.messages.edit(message.id, "rewritten", world.moderator.id)
    with pytest.raises(ValidationError):
        services.messages.edit(message.id, "  ", world.fan_a.id)

    clock.advance(seconds=settings.message_edit_window_seconds + 1)
    with pytest.raises(PermissionDenied):
        services.messages.edit(message.id, "too late", world.fan_a.id)


def test_edit_never_resurrects_deleted_message(services, world, general_chat):
    message = services.messages.append(general_chat.id, world.fan_a.id, "oops")
    services.messages.soft_delete(message.id, world.fan_a.id)

    with pytest.raises(PermissionDenied):
        services.messages.edit(message.id, "back", world.fan_a.id)
    assert services.messages.get(message.id).is_deleted


def test_soft_delete_is_idempotent(services, world, general_chat):
    message = services.messages.append(general_chat.id, world.fan_a.id, "regret")

    first = services.messages.soft_delete(message.id, world.fan_a.id)
    deleted_at = first.deleted_at
    second = services.messages.soft_delete(message.id, world.fan_a.id)

    assert second.is_deleted
    assert second.deleted_at == deleted_at
    assert len(services.messages.list_ordered(general_chat.id)) == 1


def test_soft_delete_permissions(services, world, general_chat):
    message = services.messages.append(general_chat.id, world.fan_a.id, "mine")

    with pytest.raises(PermissionDenied):
        services.messages.soft_delete(message.id, world.fan_b.id)
    with pytest.raises(NotFoundError):
        services.messages.soft_delete(12345, world.fan_a.id)


def test_moderator_delete_goes_through_ledger(services, world, general_chat):
    message = services.messages.append(general_chat.id, world.fan_a.id, "buy cheap tickets here")

    with pytest.raises(ValidationError):
        services.messages.soft_delete(message.id, world.moderator.id)

    deleted = services.messages.soft_delete(message.id, world.moderator.id, "spam")
    assert deleted.is_deleted
    assert deleted.deleted_by_id == world.moderator.id

    history = services.ledger.history_for(general_chat.id)
    assert [entry.action for entry in history] == [ModerationAction.DELETE_MESSAGE]
    assert history[0].message_id == message.id
    assert history[0].target_user_id == world.fan_a.id


def test_deleted_message_scenario(services, world, general_chat):
    message = services.messages.append(general_chat.id, world.fan_a.id, "rude words")
    services.ledger.record(
        ModerationRecord(
            chat_id=general_chat.id,
            action=ModerationAction.DELETE_MESSAGE,
            moderator_id=world.moderator.id,
            reason="spam",
            message_id=message.id,
        )
    )

    stored = services.messages.list_ordered(general_chat.id)
    assert [item.id for item in stored] == [message.id]
    assert stored[0].is_deleted
    assert stored[0].content == "rude words"

    fan_view = services.messages.list_for_viewer(general_chat.id, world.fan_b.id)
    assert fan_view[0].is_deleted
    assert fan_view[0].content is None

    moderator_view = services.messages.list_for_viewer(general_chat.id, world.moderator.id)
    assert moderator_view[0].content == "rude words"
    assert moderator_view[0].moderation_reason == "spam"

    assert services.ledger.history_for(general_chat.id)[0].reason == "spam"
    assert general_chat.last_message_content is None


def test_list_for_viewer_requires_read_access(services, world, private_chat, settings):
    with pytest.raises(PermissionDenied):
        services.messages.list_for_viewer(private_chat.id, world.fan_c.id)

    for index in range(3):
        services.messages.append(private_chat.id, world.fan_a.id, f"m{index}")
    view = services.messages.list_for_viewer(private_chat.id, world.fan_b.id, limit=2)
    assert [item.content for item in view] == ["m1", "m2"]
