from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from fanchat.models import ModerationAction
from fanchat.services import ModerationRecord, fold_restrictions

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _entry(entry_id: int, action: ModerationAction, minutes: int = 0, duration: int | None = None):
    return SimpleNamespace(
        id=entry_id,
        action=action,
        timestamp=T0 + timedelta(minutes=minutes),
        duration_seconds=duration,
    )


def test_empty_ledger_means_no_restrictions():
    state = fold_restrictions([], T0)
    assert not state.is_banned
    assert not state.is_muted
    assert state.warning_count == 0
    assert state.can_write


def test_permanent_ban_never_expires():
    entries = [_entry(1, ModerationAction.BAN_USER)]
    state = fold_restrictions(entries, T0 + timedelta(days=3650))
    assert state.is_banned
    assert state.banned_until is None
    assert state.is_permanently_banned


def test_temp_ban_active_until_exact_expiry():
    entries = [_entry(1, ModerationAction.TEMP_BAN_USER, duration=3600)]
    assert fold_restrictions(entries, T0).is_banned
    assert fold_restrictions(entries, T0 + timedelta(seconds=3599)).is_banned
    assert not fold_restrictions(entries, T0 + timedelta(seconds=3600)).is_banned


def test_temp_ban_does_not_shorten_permanent_ban():
    entries = [
        _entry(1, ModerationAction.BAN_USER),
        _entry(2, ModerationAction.TEMP_BAN_USER, minutes=1, duration=60),
    ]
    state = fold_restrictions(entries, T0 + timedelta(hours=1))
    assert state.is_permanently_banned


def test_unban_clears_ban_and_warnings():
    entries = [
        _entry(1, ModerationAction.WARN_USER),
        _entry(2, ModerationAction.WARN_USER, minutes=1),
        _entry(3, ModerationAction.BAN_USER, minutes=2),
        _entry(4, ModerationAction.UNBAN_USER, minutes=3),
    ]
    state = fold_restrictions(entries, T0 + timedelta(minutes=5))
    assert not state.is_banned
    assert state.warning_count == 0
    assert state.active_warnings == 0


def test_mute_and_unmute():
    muted = [_entry(1, ModerationAction.MUTE_USER, duration=600)]
    state = fold_restrictions(muted, T0 + timedelta(minutes=5))
    assert state.is_muted
    assert state.muted_until == T0 + timedelta(minutes=10)
    assert not state.can_write
    assert not fold_restrictions(muted, T0 + timedelta(minutes=10)).is_muted

    unmuted = muted + [_entry(2, ModerationAction.UNMUTE_USER, minutes=1)]
    assert not fold_restrictions(unmuted, T0 + timedelta(minutes=2)).is_muted


def test_entries_are_replayed_in_chronological_order():
    entries = [
        _entry(2, ModerationAction.UNBAN_USER, minutes=5),
        _entry(1, ModerationAction.BAN_USER, minutes=0),
    ]
    assert not fold_restrictions(entries, T0 + timedelta(minutes=10)).is_banned


def test_same_timestamp_is_ordered_by_entry_id():
    entries = [
        _entry(7, ModerationAction.BAN_USER),
        _entry(6, ModerationAction.UNBAN_USER),
    ]
    assert fold_restrictions(entries, T0).is_banned


def test_message_actions_do_not_restrict():
    entries = [
        _entry(1, ModerationAction.DELETE_MESSAGE),
        _entry(2, ModerationAction.HIDE_MESSAGE),
    ]
    state = fold_restrictions(entries, T0)
    assert state.can_write
    assert state.warning_count == 0


def test_engine_reads_ledger_for_one_chat_and_user(services, world):
    chat = services.directory.create_general(world.group.id, world.fan_a.id)
    other = services.directory.create_themed(world.group.id, world.moderator.id, "Tour talk")
    services.ledger.record(
        ModerationRecord(
            chat_id=chat.id,
            action=ModerationAction.BAN_USER,
            moderator_id=world.moderator.id,
            reason="abuse",
            target_user_id=world.fan_a.id,
        )
    )

    assert services.restrictions.effective_restriction(chat.id, world.fan_a.id).is_banned
    assert not services.restrictions.effective_restriction(chat.id, world.fan_b.id).is_banned
    assert not services.restrictions.effective_restriction(other.id, world.fan_a.id).is_banned


def test_list_restricted_reports_only_current_sanctions(services, world, clock):
    chat = services.directory.create_general(world.group.id, world.fan_a.id)

    def record(action, target, duration=None):
        services.ledger.record(
            ModerationRecord(
                chat_id=chat.id,
                action=action,
                moderator_id=world.moderator.id,
                reason="rules",
                target_user_id=target.id,
                duration_seconds=duration,
            )
        )

    record(ModerationAction.MUTE_USER, world.fan_a, duration=60)
    record(ModerationAction.BAN_USER, world.fan_b)
    record(ModerationAction.WARN_USER, world.fan_c)

    restricted = services.restrictions.list_restricted(chat.id)
    assert set(restricted) == {world.fan_a.id, world.fan_b.id}
    assert restricted[world.fan_a.id].is_muted

    clock.advance(seconds=61)
    assert set(services.restrictions.list_restricted(chat.id)) == {world.fan_b.id}


def test_warnings_during_temp_ban_only_raise_the_total():
    entries = [
        _entry(1, ModerationAction.TEMP_BAN_USER, duration=3600),
        _entry(2, ModerationAction.WARN_USER, minutes=10),
        _entry(3, ModerationAction.WARN_USER, minutes=90),
    ]
    state = fold_restrictions(entries, T0 + timedelta(hours=2))
    assert not state.is_banned
    assert state.warning_count == 2
    assert state.active_warnings == 1
