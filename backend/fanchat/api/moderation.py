"""Moderation ledger and restriction endpoints."""

from fastapi import APIRouter, Depends, Query, status

from fanchat.api.deps import get_current_user, get_services, require_moderator
from fanchat.core.errors import PermissionDenied
from fanchat.models import ModerationLogEntry, User
from fanchat.schemas import (
    ModerationActionRequest,
    ModerationLogRead,
    ModerationStats,
    RestrictionRead,
)
from fanchat.services import FanChatServices, ModerationRecord, RestrictionState

router = APIRouter(tags=["moderation"])


def _restriction_read(chat_id: int, user_id: int, state: RestrictionState) -> RestrictionRead:
    return RestrictionRead(
        chat_id=chat_id,
        user_id=user_id,
        is_banned=state.is_banned,
        banned_until=state.banned_until if state.is_banned else None,
        is_muted=state.is_muted,
        muted_until=state.muted_until if state.is_muted else None,
        warning_count=state.warning_count,
    )


@router.post(
    "/chats/{chat_id}/moderation",
    response_model=ModerationLogRead,
    status_code=status.HTTP_201_CREATED,
)
def record_moderation_action(
    chat_id: int,
    payload: ModerationActionRequest,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> ModerationLogEntry:
    entry_id = services.ledger.record(
        ModerationRecord(
            chat_id=chat_id,
            action=payload.action,
            moderator_id=current_user.id,
            reason=payload.reason,
            target_user_id=payload.target_user_id,
            message_id=payload.message_id,
            duration_seconds=payload.duration_seconds,
        )
    )
    return services.ledger.get(entry_id)


@router.get("/chats/{chat_id}/moderation/history", response_model=list[ModerationLogRead])
def read_moderation_history(
    chat_id: int,
    limit: int | None = Query(default=None, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> list[ModerationLogEntry]:
    """Return ledger entries, newest first."""

    chat = services.directory.get(chat_id)
    require_moderator(services, current_user, chat)
    return services.ledger.history_for(chat.id, limit=limit)


@router.delete("/chats/{chat_id}/moderation/history")
def clear_moderation_history(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> dict[str, int]:
    removed = services.ledger.clear(chat_id, current_user.id)
    return {"removed": removed}


@router.get("/chats/{chat_id}/moderation/stats", response_model=ModerationStats)
def read_moderation_stats(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> ModerationStats:
    chat = services.directory.get(chat_id)
    require_moderator(services, current_user, chat)
    return ModerationStats(chat_id=chat.id, counts=services.ledger.stats(chat.id))


@router.get("/chats/{chat_id}/restrictions", response_model=list[RestrictionRead])
def list_restricted_users(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> list[RestrictionRead]:
    """Users currently banned or muted in the chat."""

    chat = services.directory.get(chat_id)
    require_moderator(services, current_user, chat)
    restricted = services.restrictions.list_restricted(chat.id)
    return [_restriction_read(chat.id, user_id, state) for user_id, state in sorted(restricted.items())]


@router.get("/chats/{chat_id}/restrictions/{user_id}", response_model=RestrictionRead)
def read_user_restriction(
    chat_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> RestrictionRead:
    chat = services.directory.get(chat_id)
    if user_id != current_user.id and not services.permissions.is_moderator(current_user.id, chat):
        raise PermissionDenied("You can only view your own restrictions")
    state = services.restrictions.effective_restriction(chat.id, user_id)
    return _restriction_read(chat.id, user_id, state)
