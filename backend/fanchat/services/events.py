"""Live chat event fan-out for open chat views."""

from __future__ import annotations

import asyncio
import threading
from collections import defaultdict
from typing import Any, Dict, Set

from fanchat.monitoring.metrics import live_subscribers

_CLOSED = object()


class ChatSubscription:
    """Unbounded async stream of events for one chat.

    The stream never ends on its own; it stops only when the consumer
    calls :meth:`close` (or leaves the ``async with`` block).
    """

    def __init__(self, hub: "ChatEventHub", chat_id: int, loop: asyncio.AbstractEventLoop) -> None:
        self.chat_id = chat_id
        self._hub = hub
        self._loop = loop
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    def _deliver(self, payload: dict[str, Any]) -> None:
        if self._closed or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, payload)

    def __aiter__(self) -> "ChatSubscription":
        return self

    async def __anext__(self) -> dict[str, Any]:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._hub._discard(self)
        self._queue.put_nowait(_CLOSED)

    async def __aenter__(self) -> "ChatSubscription":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class ChatEventHub:
    """Tracks open chat streams; ``publish`` is safe to call from any thread."""

    def __init__(self) -> None:
        self._subscriptions: Dict[int, Set[ChatSubscription]] = defaultdict(set)
        self._lock = threading.Lock()

    def subscribe(self, chat_id: int) -> ChatSubscription:
        subscription = ChatSubscription(self, chat_id, asyncio.get_running_loop())
        with self._lock:
            self._subscriptions[chat_id].add(subscription)
        live_subscribers.inc()
        return subscription

    def _discard(self, subscription: ChatSubscription) -> None:
        with self._lock:
            subscriptions = self._subscriptions.get(subscription.chat_id)
            if not subscriptions or subscription not in subscriptions:
                return
            subscriptions.discard(subscription)
            if not subscriptions:
                self._subscriptions.pop(subscription.chat_id, None)
        live_subscribers.dec()

    def subscriber_count(self, chat_id: int) -> int:
        with self._lock:
            return len(self._subscriptions.get(chat_id, ()))

    def publish(self, chat_id: int, payload: dict[str, Any]) -> None:
        with self._lock:
            targets = list(self._subscriptions.get(chat_id, ()))
        for subscription in targets:
            subscription._deliver(payload)


chat_event_hub = ChatEventHub()
"""Process-wide hub shared by the API layer and the websocket endpoint."""
