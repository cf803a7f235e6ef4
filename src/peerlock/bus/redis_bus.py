"""Redis Pub/Sub broadcast bus.

Pub/Sub matches the delivery guarantees the lock protocol expects: every
subscriber that is listening when a message is published receives it at
most once, and a peer that is disconnected simply misses it.

Redis also delivers a publisher's messages back to itself, so every payload
is wrapped in an envelope naming the publishing bus:

    {"origin": "<bus id>", "message": {...}}

and listeners drop their own echoes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, cast
from uuid import uuid4

import orjson

from peerlock.bus.base import BroadcastBus, MessageHandler
from peerlock.bus.messages import LockMessage
from peerlock.keys import LockKeys
from peerlock.redis import get_redis

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from redis.asyncio.client import PubSub

logger = logging.getLogger(__name__)


class RedisBroadcastBus(BroadcastBus):
    """Broadcasts lock protocol messages via Redis Pub/Sub.

    Example:
        bus = RedisBroadcastBus(LockKeys("printer"))
        await bus.subscribe(handle_message)
        await bus.start()

        await bus.publish(LockMessage.heartbeat(peer_id))

        await bus.stop()
    """

    def __init__(self, keys: LockKeys, redis: Redis | None = None):
        self.channel = keys.bus_channel
        self.bus_id = uuid4().hex
        self._handlers: list[MessageHandler] = []
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._pubsub: PubSub | None = None
        self._redis = redis

    async def _get_redis(self) -> Redis:
        """Get Redis client."""
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def publish(self, message: LockMessage) -> None:
        """Publish a message to all other peers.

        Returns once Redis has accepted the message; the number of
        receivers is only logged.
        """
        redis = await self._get_redis()
        payload = orjson.dumps({"origin": self.bus_id, "message": message.to_dict()})
        count = cast(int, await redis.publish(self.channel, payload))
        logger.debug(f"Published {message.type.value} to {count} subscribers")

    async def subscribe(self, handler: MessageHandler) -> None:
        self._handlers.append(handler)
        handler_name = getattr(handler, "__name__", handler.__class__.__name__)
        logger.debug(f"Registered message handler: {handler_name}")

    async def unsubscribe(self, handler: MessageHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def start(self) -> None:
        """Start listening for messages."""
        if self._running:
            return

        redis = await self._get_redis()
        self._pubsub = redis.pubsub()
        await self._pubsub.subscribe(self.channel)

        self._running = True
        self._task = asyncio.create_task(self._listen_loop())
        logger.info(f"Started broadcast bus on channel {self.channel}")

    async def stop(self) -> None:
        """Stop listening for messages."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._pubsub:
            await self._pubsub.unsubscribe(self.channel)
            await self._pubsub.close()
            self._pubsub = None

        logger.info("Stopped broadcast bus")

    async def _listen_loop(self) -> None:
        """Main loop for receiving broadcasts."""
        while self._running and self._pubsub:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )

                if message is None:
                    continue

                if message["type"] == "message":
                    await self._handle_message(message["data"])

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in broadcast listener: {e}")
                await asyncio.sleep(1)

    async def _handle_message(self, data: bytes) -> None:
        """Unwrap an envelope and pass the message to the handlers."""
        try:
            envelope = orjson.loads(data)
            if envelope.get("origin") == self.bus_id:
                return
            message = LockMessage.from_dict(envelope["message"])
        except (orjson.JSONDecodeError, KeyError, TypeError, AttributeError, ValueError) as e:
            logger.warning(f"Dropping malformed broadcast: {e}")
            return

        for handler in list(self._handlers):
            try:
                await handler(message)
            except Exception as e:
                logger.error(f"Broadcast handler failed: {e}")
