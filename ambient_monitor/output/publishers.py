"""Redis publishers for the presentation boundary

Fused readings are published with Redis PUBLISH: subscribers that are not
listening miss the message, and there is no acknowledgement. Readings are
produced on the sampling thread as well as the event loop, so each message
is handed to the event loop with run_coroutine_threadsafe and never awaited
by the producer.
"""

import asyncio
import json
import logging
from typing import Optional

import redis.asyncio as redis

from ambient_monitor.models.interfaces import ReadingPublisher
from ambient_monitor.models.readings import FusedReading
from ambient_monitor.config.config_loader import config


logger = logging.getLogger(__name__)


class RedisChannelPublisher(ReadingPublisher):
    """Fire-and-forget publishing to one Redis pub/sub channel.

    Attributes:
        channel: Pub/sub channel name
        redis_client: Async Redis client (attached once the loop is running)
        loop: Event loop that owns redis_client
        sent_count: Messages handed to Redis successfully
        dropped_count: Messages that could not be delivered
    """

    def __init__(
        self,
        channel: str,
        redis_client: Optional[redis.Redis] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None
    ):
        self.channel = channel
        self.redis_client = redis_client
        self.loop = loop
        self.sent_count = 0
        self.dropped_count = 0

    def attach(self, redis_client: redis.Redis, loop: asyncio.AbstractEventLoop) -> None:
        self.redis_client = redis_client
        self.loop = loop

    def detach(self) -> None:
        self.redis_client = None
        self.loop = None

    def _submit(self, message: str) -> None:
        if self.redis_client is None or self.loop is None or self.loop.is_closed():
            self.dropped_count += 1
            logger.debug(f"No Redis connection, dropped message for {self.channel}")
            return

        try:
            asyncio.run_coroutine_threadsafe(self._send(message), self.loop)
        except RuntimeError as e:
            self.dropped_count += 1
            logger.debug(f"Event loop unavailable, dropped message for {self.channel}: {e}")

    async def _send(self, message: str) -> None:
        try:
            await self.redis_client.publish(self.channel, message)
            self.sent_count += 1
        except Exception as e:
            self.dropped_count += 1
            logger.error(f"Failed to publish to {self.channel}: {e}")


class RedisReadingPublisher(RedisChannelPublisher):
    """Broadcasts every FusedReading as JSON"""

    def __init__(self, channel: Optional[str] = None, redis_client=None, loop=None):
        super().__init__(
            channel or config.get('redis.reading_channel', 'ambient:readings'),
            redis_client=redis_client,
            loop=loop
        )

    def publish(self, reading: FusedReading) -> None:
        self._submit(json.dumps(reading.to_payload()))
