"""Chat directory endpoints."""

from fastapi import APIRouter, Depends, Response, status

from fanchat.api.deps import get_current_user, get_services
from fanchat.models import User
from fanchat.schemas import (
    ChatRead,
    ChatStatusUpdate,
    MixedChatCreate,
    PrivateChatCreate,
    ThemedChatCreate,
)
from fanchat.services import FanChatServices

router = APIRouter(tags=["chats"])


@router.get("/groups/{group_id}/chats", response_model=list[ChatRead])
def list_group_chats(
    group_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> list[ChatRead]:
    """Return chats of the fan group the current user can read."""

    chats = services.directory.list_visible(group_id, current_user.id)
    return [ChatRead.from_chat(chat) for chat in chats]


@router.post("/groups/{group_id}/chats/general", response_model=ChatRead)
def open_general_chat(
    group_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> ChatRead:
    return ChatRead.from_chat(services.directory.create_general(group_id, current_user.id))


@router.post("/groups/{group_id}/chats/announcement", response_model=ChatRead)
def open_announcement_chat(
    group_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> ChatRead:
    return ChatRead.from_chat(services.directory.create_announcement(group_id, current_user.id))


@router.post(
    "/groups/{group_id}/chats/themed",
    response_model=ChatRead,
    status_code=status.HTTP_201_CREATED,
)
def create_themed_chat(
    group_id: int,
    payload: ThemedChatCreate,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> ChatRead:
    chat = services.directory.create_themed(
        group_id, current_user.id, payload.name, payload.description
    )
    return ChatRead.from_chat(chat)


@router.post(
    "/groups/{group_id}/chats/mixed",
    response_model=ChatRead,
    status_code=status.HTTP_201_CREATED,
)
def create_mixed_chat(
    group_id: int,
    payload: MixedChatCreate,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> ChatRead:
    chat = services.directory.create_mixed(
        group_id,
        current_user.id,
        payload.name,
        payload.description,
        payload.participant_ids,
    )
    return ChatRead.from_chat(chat)


@router.post("/groups/{group_id}/chats/private", response_model=ChatRead)
def open_private_chat(
    group_id: int,
    payload: PrivateChatCreate,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> ChatRead:
    """Return the private chat with the target user, creating it if needed."""

    chat = services.directory.create_private(group_id, current_user.id, payload.target_user_id)
    return ChatRead.from_chat(chat)


@router.get("/chats/{chat_id}", response_model=ChatRead)
def read_chat(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> ChatRead:
    return ChatRead.from_chat(services.directory.get(chat_id, current_user.id))


@router.delete("/chats/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_chat(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> Response:
    services.directory.delete_chat(chat_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/chats/{chat_id}/status", response_model=ChatRead)
def update_chat_status(
    chat_id: int,
    payload: ChatStatusUpdate,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> ChatRead:
    chat = services.directory.set_active(chat_id, current_user.id, payload.is_active)
    return ChatRead.from_chat(chat)


@router.put("/chats/{chat_id}/moderators/{user_id}", response_model=ChatRead)
def add_chat_moderator(
    chat_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> ChatRead:
    return ChatRead.from_chat(services.directory.add_moderator(chat_id, current_user.id, user_id))


@router.delete("/chats/{chat_id}/moderators/{user_id}", response_model=ChatRead)
def remove_chat_moderator(
    chat_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    services: FanChatServices = Depends(get_services),
) -> ChatRead:
    return ChatRead.from_chat(services.directory.remove_moderator(chat_id, current_user.id, user_id))
