from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100


def format_sse(payload: dict | None = None, *, event: str | None = None, retry_ms: int | None = None) -> str:
    lines: list[str] = []
    if retry_ms is not None:
        lines.append(f"retry: {int(retry_ms)}")
    if event:
        lines.append(f"event: {event}")
    if payload is not None:
        lines.append(f"data: {json.dumps(payload, default=str)}")
    return "\n".join(lines) + "\n\n"


class NotificationHub:
    """Fan-out of notification events to per-user event-stream subscribers."""

    def __init__(self) -> None:
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def subscribe(self, user_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        async with self._lock:
            self._subscribers[user_id].add(queue)
        return queue

    async def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        async with self._lock:
            queues = self._subscribers.get(user_id)
            if not queues:
                return
            queues.discard(queue)
            if not queues:
                self._subscribers.pop(user_id, None)

    async def publish(self, user_id: str, payload: dict) -> int:
        async with self._lock:
            queues = list(self._subscribers.get(user_id, set()))

        delivered = 0
        for queue in queues:
            try:
                queue.put_nowait(payload)
                delivered += 1
            except asyncio.QueueFull:
                logger.debug("Dropping notification event for slow subscriber of user %s", user_id)
        return delivered

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_id, ()))


notification_hub = NotificationHub()
