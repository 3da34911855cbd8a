"""Derive a user's current restrictions by folding the moderation ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from fanchat.core.clock import Clock, system_clock
from fanchat.models import ModerationAction, ModerationLogEntry


@dataclass(slots=True)
class RestrictionState:
    """Effective restrictions of one user in one chat at a point in time."""

    is_banned: bool = False
    banned_until: datetime | None = None
    is_muted: bool = False
    muted_until: datetime | None = None
    warning_count: int = 0
    # warnings since the last ban, temp-ban or unban; drives auto escalation
    active_warnings: int = 0

    @property
    def is_permanently_banned(self) -> bool:
        return self.is_banned and self.banned_until is None

    @property
    def can_write(self) -> bool:
        return not self.is_banned and not self.is_muted


def fold_restrictions(entries: Iterable[ModerationLogEntry], now: datetime) -> RestrictionState:
    """Replay *entries* in chronological order and resolve expiries at *now*.

    Entries are sorted by ``(timestamp, id)`` here so callers may pass them in
    any order.
    """

    state = RestrictionState()
    ordered = sorted(entries, key=lambda entry: (entry.timestamp, entry.id or 0))
    for entry in ordered:
        action = ModerationAction(entry.action)
        if action == ModerationAction.BAN_USER:
            state.is_banned = True
            state.banned_until = None
            state.active_warnings = 0
        elif action == ModerationAction.TEMP_BAN_USER:
            if state.is_permanently_banned:
                continue
            state.is_banned = True
            state.banned_until = entry.timestamp + timedelta(seconds=entry.duration_seconds or 0)
            state.active_warnings = 0
        elif action == ModerationAction.UNBAN_USER:
            state.is_banned = False
            state.banned_until = None
            state.warning_count = 0
            state.active_warnings = 0
        elif action == ModerationAction.MUTE_USER:
            state.is_muted = True
            state.muted_until = entry.timestamp + timedelta(seconds=entry.duration_seconds or 0)
        elif action == ModerationAction.UNMUTE_USER:
            state.is_muted = False
            state.muted_until = None
        elif action == ModerationAction.WARN_USER:
            state.warning_count += 1
            # warnings given during a ban do not count towards the next one
            banned_at_warning = state.is_banned and (
                state.banned_until is None or entry.timestamp < state.banned_until
            )
            if not banned_at_warning:
                state.active_warnings += 1

    if state.is_banned and state.banned_until is not None and now >= state.banned_until:
        state.is_banned = False
    if state.is_muted and state.muted_until is not None and now >= state.muted_until:
        state.is_muted = False
    return state


class RestrictionEngine:
    """Computes restriction state on every read; nothing is cached."""

    def __init__(self, db: Session, *, clock: Clock = system_clock) -> None:
        self.db = db
        self.clock = clock

    def _entries_for(self, chat_id: int, user_id: int) -> list[ModerationLogEntry]:
        stmt = (
            select(ModerationLogEntry)
            .where(
                ModerationLogEntry.chat_id == chat_id,
                ModerationLogEntry.target_user_id == user_id,
            )
            .order_by(ModerationLogEntry.timestamp.asc(), ModerationLogEntry.id.asc())
        )
        return list(self.db.execute(stmt).scalars())

    def effective_restriction(
        self, chat_id: int, user_id: int, *, now: datetime | None = None
    ) -> RestrictionState:
        return fold_restrictions(self._entries_for(chat_id, user_id), now or self.clock.now())

    def list_restricted(self, chat_id: int) -> dict[int, RestrictionState]:
        """Users currently banned or muted in the chat."""

        stmt = (
            select(ModerationLogEntry)
            .where(
                ModerationLogEntry.chat_id == chat_id,
                ModerationLogEntry.target_user_id.is_not(None),
            )
            .order_by(ModerationLogEntry.timestamp.asc(), ModerationLogEntry.id.asc())
        )
        by_user: dict[int, list[ModerationLogEntry]] = {}
        for entry in self.db.execute(stmt).scalars():
            by_user.setdefault(entry.target_user_id, []).append(entry)

        now = self.clock.now()
        restricted: dict[int, RestrictionState] = {}
        for user_id, entries in by_user.items():
            state = fold_restrictions(entries, now)
            if state.is_banned or state.is_muted:
                restricted[user_id] = state
        return restricted
