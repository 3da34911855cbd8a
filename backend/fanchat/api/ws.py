"""WebSocket endpoint streaming live events of an open chat."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, status
from fastapi.exceptions import HTTPException
from fastapi.websockets import WebSocketDisconnect, WebSocketState
from sqlalchemy.orm import sessionmaker

from fanchat.api.deps import (
    get_clock,
    get_event_hub,
    get_notifier,
    get_session_factory,
    get_user_from_token,
)
from fanchat.config import get_settings
from fanchat.core.clock import Clock
from fanchat.core.errors import FanChatError
from fanchat.services import ChatEventHub, ChatSubscription, NotificationDispatcher, build_services

router = APIRouter(prefix="/ws", tags=["ws"])

logger = logging.getLogger(__name__)


async def safe_send_json(websocket: WebSocket, data: dict[str, Any]) -> bool:
    """Send JSON, returning False instead of raising once the client is gone."""

    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


async def _forward_events(websocket: WebSocket, subscription: ChatSubscription) -> None:
    async for event in subscription:
        if not await safe_send_json(websocket, event):
            break


async def _receive_until_closed(websocket: WebSocket) -> None:
    while True:
        try:
            raw_message = await websocket.receive_text()
        except (WebSocketDisconnect, RuntimeError):
            return
        if raw_message.strip().lower() == "ping":
            await safe_send_json(websocket, {"type": "pong"})
            continue
        try:
            payload = json.loads(raw_message)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict) and payload.get("type") == "ping":
            await safe_send_json(websocket, {"type": "pong"})


@router.websocket("/chats/{chat_id}")
async def websocket_chat_stream(
    websocket: WebSocket,
    chat_id: int,
    session_factory: sessionmaker = Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
    notifier: NotificationDispatcher = Depends(get_notifier),
    events: ChatEventHub = Depends(get_event_hub),
) -> None:
    """Stream messages, edits and moderation events of one chat.

    The stream has no timeout; it ends when the client disconnects.
    """

    token = websocket.query_params.get("token")
    if not token:
        auth_header = websocket.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Missing token")
        return

    try:
        with session_factory() as db:
            user = get_user_from_token(token, db)
            services = build_services(db, get_settings(), clock=clock, notifier=notifier, events=events)
            subscription = services.messages.stream(chat_id, user.id)
            user_id = user.id
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return
    except FanChatError as exc:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.detail)
        return

    await websocket.accept()
    logger.debug("User %s opened live stream of chat %s", user_id, chat_id)
    async with subscription:
        await safe_send_json(websocket, {"type": "subscribed", "chat_id": chat_id})
        tasks = [
            asyncio.create_task(_forward_events(websocket, subscription)),
            asyncio.create_task(_receive_until_closed(websocket)),
        ]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
    logger.debug("User %s closed live stream of chat %s", user_id, chat_id)
