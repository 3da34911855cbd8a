from __future__ import annotations

import pytest
from sqlalchemy import select

from fanchat.core.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from fanchat.models import ChatType, FanChat, FanMessage
from fanchat.services.directory import ChatDirectory, private_pair_key


def test_private_pair_key_is_order_independent():
    assert private_pair_key(7, 3) == private_pair_key(3, 7) == "3:7"


def test_private_chat_is_unique_per_pair(db_session, services, world):
    first = services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)
    second = services.directory.create_private(world.group.id, world.fan_b.id, world.fan_a.id)

    assert first.id == second.id
    assert first.type == ChatType.PRIVATE
    assert first.participant_ids == {world.fan_a.id, world.fan_b.id}
    chats = db_session.execute(select(FanChat).where(FanChat.type == ChatType.PRIVATE)).scalars().all()
    assert len(chats) == 1


def test_private_chat_validation(services, world):
    with pytest.raises(ValidationError):
        services.directory.create_private(world.group.id, world.fan_a.id, world.fan_a.id)
    with pytest.raises(ValidationError):
        services.directory.create_private(world.group.id, world.fan_a.id, world.outsider.id)
    with pytest.raises(PermissionDenied):
        services.directory.create_private(world.group.id, world.outsider.id, world.fan_a.id)
    with pytest.raises(NotFoundError):
        services.directory.create_private(9999, world.fan_a.id, world.fan_b.id)


def test_concurrent_private_creation_resolves_to_existing_chat(services, world, monkeypatch):
    winner = services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)

    original = ChatDirectory._find_private
    calls = []

    def stale_lookup(self, group_id, pair_key):
        calls.append(pair_key)
        if len(calls) == 1:
            # the other request has not committed yet when we look
            return None
        return original(self, group_id, pair_key)

    monkeypatch.setattr(ChatDirectory, "_find_private", stale_lookup)
    loser = services.directory.create_private(world.group.id, world.fan_b.id, world.fan_a.id)

    assert loser.id == winner.id
    assert len(calls) == 2


def test_concurrent_private_creation_without_winner_is_a_conflict(services, world, monkeypatch):
    services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)
    monkeypatch.setattr(ChatDirectory, "_find_private", lambda self, group_id, pair_key: None)

    with pytest.raises(ConflictError):
        services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)


def test_deleted_private_chat_frees_the_pair(services, world):
    first = services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)
    services.directory.delete_chat(first.id, world.fan_b.id)

    second = services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)
    assert second.id != first.id
    assert not second.is_deleted


def test_general_chat_is_created_once(services, world):
    first = services.directory.create_general(world.group.id, world.fan_a.id)
    second = services.directory.create_general(world.group.id, world.fan_b.id)

    assert first.id == second.id
    assert first.name == "General chat"
    with pytest.raises(PermissionDenied):
        services.directory.create_general(world.group.id, world.outsider.id)


def test_announcement_chat_needs_group_admin(services, world):
    with pytest.raises(PermissionDenied):
        services.directory.create_announcement(world.group.id, world.moderator.id)

    chat = services.directory.create_announcement(world.group.id, world.admin.id)
    assert chat.is_read_only_for_fans
    assert chat.name == "Announcements"
    assert services.directory.create_announcement(world.group.id, world.main_admin.id).id == chat.id


def test_themed_chat_creation(services, world):
    with pytest.raises(PermissionDenied):
        services.directory.create_themed(world.group.id, world.fan_a.id, "Bootlegs")
    with pytest.raises(ValidationError):
        services.directory.create_themed(world.group.id, world.moderator.id, "   ")

    chat = services.directory.create_themed(
        world.group.id, world.moderator.id, "  Tour 2025  ", "Plans and meetups"
    )
    assert chat.type == ChatType.THEMED
    assert chat.name == "Tour 2025"
    assert chat.description == "Plans and meetups"
    assert chat.moderator_ids == {world.moderator.id}


def test_mixed_chat_participants(services, world):
    with pytest.raises(ValidationError):
        services.directory.create_mixed(
            world.group.id, world.admin.id, "Q&A", participant_ids=[world.fan_a.id, world.outsider.id]
        )

    chat = services.directory.create_mixed(
        world.group.id, world.admin.id, "Q&A", participant_ids=[world.fan_a.id, world.fan_a.id]
    )
    assert chat.type == ChatType.MIXED
    assert chat.participant_ids == {world.admin.id, world.fan_a.id}
    assert services.policy.can_read(world.fan_a.id, chat)


def test_get_hides_deleted_and_unreadable_chats(services, world):
    private = services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)

    assert services.directory.get(private.id, world.fan_a.id).id == private.id
    with pytest.raises(PermissionDenied):
        services.directory.get(private.id, world.fan_c.id)

    services.directory.delete_chat(private.id, world.fan_a.id)
    with pytest.raises(NotFoundError):
        services.directory.get(private.id)


def test_list_visible_filters_and_orders_by_activity(services, world, clock):
    general = services.directory.create_general(world.group.id, world.fan_a.id)
    clock.advance(seconds=1)
    private = services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)
    clock.advance(seconds=1)
    themed = services.directory.create_themed(world.group.id, world.moderator.id, "Merch")
    clock.advance(seconds=1)
    services.messages.append(general.id, world.fan_c.id, "bump")

    assert [chat.id for chat in services.directory.list_visible(world.group.id, world.fan_a.id)] == [
        general.id,
        themed.id,
        private.id,
    ]
    assert [chat.id for chat in services.directory.list_visible(world.group.id, world.fan_c.id)] == [
        general.id,
        themed.id,
    ]
    assert services.directory.list_visible(world.group.id, world.outsider.id) == []


def test_delete_rights_depend_on_chat_type(services, world):
    general = services.directory.create_general(world.group.id, world.fan_a.id)
    themed = services.directory.create_themed(world.group.id, world.moderator.id, "Lyrics")
    private = services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)

    with pytest.raises(PermissionDenied):
        services.directory.delete_chat(private.id, world.moderator.id)
    with pytest.raises(PermissionDenied):
        services.directory.delete_chat(themed.id, world.fan_a.id)
    with pytest.raises(PermissionDenied):
        services.directory.delete_chat(general.id, world.admin.id)

    services.directory.delete_chat(themed.id, world.moderator.id)
    services.directory.delete_chat(general.id, world.main_admin.id)
    assert themed.is_deleted
    assert general.is_deleted


def test_delete_cascades_to_messages(db_session, services, world, event_hub, monkeypatch):
    chat = services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)
    services.messages.append(chat.id, world.fan_a.id, "one")
    services.messages.append(chat.id, world.fan_b.id, "two")

    published = []
    monkeypatch.setattr(event_hub, "publish", lambda chat_id, payload: published.append(payload))
    services.directory.delete_chat(chat.id, world.fan_a.id)

    db_session.expire_all()
    messages = db_session.execute(select(FanMessage).where(FanMessage.chat_id == chat.id)).scalars().all()
    assert len(messages) == 2
    assert all(message.is_deleted for message in messages)
    assert all(message.deleted_by_id == world.fan_a.id for message in messages)
    assert chat.last_message_content is None
    assert published == [{"type": "chat_deleted", "chat_id": chat.id}]


def test_set_active_requires_moderator(services, world):
    chat = services.directory.create_themed(world.group.id, world.moderator.id, "Covers")

    with pytest.raises(PermissionDenied):
        services.directory.set_active(chat.id, world.fan_a.id, False)

    updated = services.directory.set_active(chat.id, world.moderator.id, False)
    assert not updated.is_active
    assert services.directory.set_active(chat.id, world.admin.id, True).is_active


def test_moderator_management(services, world):
    chat = services.directory.create_themed(world.group.id, world.moderator.id, "Vinyl")
    private = services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)

    with pytest.raises(PermissionDenied):
        services.directory.add_moderator(chat.id, world.moderator.id, world.fan_a.id)
    with pytest.raises(ValidationError):
        services.directory.add_moderator(private.id, world.admin.id, world.fan_a.id)

    services.directory.add_moderator(chat.id, world.admin.id, world.fan_a.id)
    services.directory.add_moderator(chat.id, world.admin.id, world.fan_a.id)
    assert chat.moderator_ids == {world.moderator.id, world.fan_a.id}
    assert len(chat.moderators) == 2
    assert services.permissions.is_moderator(world.fan_a.id, chat)

    services.directory.remove_moderator(chat.id, world.admin.id, world.fan_a.id)
    assert chat.moderator_ids == {world.moderator.id}
    assert not services.permissions.is_moderator(world.fan_a.id, chat)


def test_private_chats_are_listed_only_to_participants(services, world):
    general = services.directory.create_general(world.group.id, world.fan_a.id)
    private = services.directory.create_private(world.group.id, world.fan_a.id, world.fan_b.id)

    for user in (world.moderator, world.admin, world.main_admin):
        assert [chat.id for chat in services.directory.list_visible(world.group.id, user.id)] == [general.id]
        with pytest.raises(PermissionDenied):
            services.directory.get(private.id, user.id)
