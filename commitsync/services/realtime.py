"""Real-time publish contract and the in-process hub implementing it.

Producers only know `Publisher.publish(topic, kind, payload)`. The hub fans
messages out to asyncio queues; a transport (SSE, websocket, ...) can
subscribe to a topic and drain its queue.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100


class Publisher(Protocol):
    """Contract for pushing a message to subscribers of a topic."""

    async def publish(self, topic: str, kind: str, payload: dict[str, Any]) -> None: ...


@dataclass
class BroadcastMessage:
    topic: str
    kind: str
    payload: dict[str, Any]
    published_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class BroadcastHub:
    """
    In-process topic fan-out.

    Each subscriber gets a bounded queue. A full queue drops the oldest
    message, so a stalled consumer never blocks the sync jobs.
    """

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue[BroadcastMessage]]] = defaultdict(set)

    def subscribe(self, topic: str) -> asyncio.Queue[BroadcastMessage]:
        queue: asyncio.Queue[BroadcastMessage] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[topic].add(queue)
        return queue

    def unsubscribe(self, topic: str, queue: asyncio.Queue[BroadcastMessage]) -> None:
        subscribers = self._subscribers.get(topic)
        if not subscribers:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[topic]

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    async def publish(self, topic: str, kind: str, payload: dict[str, Any]) -> None:
        message = BroadcastMessage(topic=topic, kind=kind, payload=payload)
        subscribers = list(self._subscribers.get(topic, ()))

        for queue in subscribers:
            if queue.full():
                queue.get_nowait()
                logger.debug(f"[broadcast] Dropped oldest message for slow subscriber on {topic}")
            queue.put_nowait(message)

        logger.debug(f"[broadcast] {topic} {kind} -> {len(subscribers)} subscriber(s)")


broadcast_hub = BroadcastHub()
