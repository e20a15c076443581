"""
Broadcast channels announcing presence changes to observers.

A channel only needs ``publish``; observers attach through ``subscribe``
(in-memory) or ``listen`` (Redis pub/sub).
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class InMemoryPresenceChannel:
    """Fans each published message out to every subscriber queue."""

    def __init__(self):
        self._subscribers: List[asyncio.Queue] = []
        self.published: List[Dict[str, Any]] = []

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    async def publish(self, message: Dict[str, Any]) -> None:
        self.published.append(message)
        for queue in self._subscribers:
            queue.put_nowait(message)


class RedisPresenceChannel:
    """Redis pub/sub channel carrying the JSON presence-changed payload."""

    def __init__(self, client: redis.Redis, channel: str = "presence:updates"):
        self.client = client
        self.channel = channel

    async def publish(self, message: Dict[str, Any]) -> None:
        """
        Raises:
            redis.exceptions.RedisError: If the publish does not reach Redis
        """
        await self.client.publish(self.channel, json.dumps(message))

    async def listen(self) -> AsyncIterator[Dict[str, Any]]:
        """Yield decoded presence-changed messages until cancelled."""
        pubsub = self.client.pubsub()
        await pubsub.subscribe(self.channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    yield json.loads(message["data"])
                except (TypeError, ValueError) as exc:
                    logger.warning("Dropping malformed presence message: %s", exc)
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
