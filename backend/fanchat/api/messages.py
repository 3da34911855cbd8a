"""Message history and authoring endpoints."""

from fastapi import APIRouter, Depends, Query, status

from fanchat.api.deps import get_current_user, get_services
from fanchat.models import User
from fanchat.schemas import MessageCreate, MessageRead, MessageUpdate
from fanchat.services import FanChatServices

router = APIRouter(tags=["messages"])


@router.get("/chats/{chat_id}/messages", response_model=list[MessageRead])
def read_messages(
    chat_id: int,
    limit: int | None = Query(default=None, ge=1),
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> list[MessageRead]:
    """Return the latest messages, oldest first, redacted for the viewer."""

    return services.messages.list_for_viewer(chat_id, current_user.id, limit=limit)


@router.post(
    "/chats/{chat_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
)
def post_message(
    chat_id: int,
    payload: MessageCreate,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> MessageRead:
    message = services.messages.append(chat_id, current_user.id, payload.content, payload.type)
    return MessageRead.from_message(message, reveal=True)


@router.patch("/messages/{message_id}", response_model=MessageRead)
def edit_message(
    message_id: int,
    payload: MessageUpdate,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> MessageRead:
    message = services.messages.edit(message_id, payload.content, current_user.id)
    return MessageRead.from_message(message, reveal=True)


@router.delete("/messages/{message_id}", response_model=MessageRead)
def delete_message(
    message_id: int,
    reason: str | None = Query(default=None, max_length=500),
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> MessageRead:
    message = services.messages.soft_delete(message_id, current_user.id, reason)
    reveal = services.policy.can_read(current_user.id, message.chat) and services.permissions.is_moderator(
        current_user.id, message.chat
    )
    return MessageRead.from_message(message, reveal=reveal)
