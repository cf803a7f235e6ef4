"""Redis-backed shared store.

Lock state lives in plain Redis string keys. Every write made through a
``RedisSharedStore`` also publishes a change record on the resource's
change channel so that other peers learn about it:

    {"key": ..., "old": ..., "new": ..., "origin": <store id>}

Listeners drop records carrying their own ``origin``; a writer is never told
about its own writes.

Example:
    store = RedisSharedStore(LockKeys("printer"))
    await store.watch(on_change)
    await store.start()

    await store.set(keys.owner, peer_id)
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING
from uuid import uuid4

import orjson

from peerlock.keys import LockKeys
from peerlock.redis import decode, get_redis
from peerlock.store.base import SharedStore, StoreChange, StoreChangeHandler

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from redis.asyncio.client import PubSub

logger = logging.getLogger(__name__)


class RedisSharedStore(SharedStore):
    """Shared store on Redis strings with Pub/Sub change notifications."""

    def __init__(self, keys: LockKeys, redis: Redis | None = None):
        self.keys = keys
        self.channel = keys.changes_channel
        self.store_id = uuid4().hex
        self._handlers: list[StoreChangeHandler] = []
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._pubsub: PubSub | None = None
        self._redis = redis

    async def _get_redis(self) -> Redis:
        """Get Redis client."""
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def get(self, key: str) -> str | None:
        redis = await self._get_redis()
        return decode(await redis.get(key))

    async def set(self, key: str, value: str) -> None:
        redis = await self._get_redis()
        old = decode(await redis.set(key, value, get=True))
        await self._publish_change(redis, StoreChange(key=key, old_value=old, new_value=value))

    async def delete(self, key: str) -> None:
        redis = await self._get_redis()
        old = decode(await redis.getdel(key))
        if old is None:
            return
        await self._publish_change(redis, StoreChange(key=key, old_value=old, new_value=None))

    async def _publish_change(self, redis: Redis, change: StoreChange) -> None:
        payload = orjson.dumps(
            {
                "key": change.key,
                "old": change.old_value,
                "new": change.new_value,
                "origin": self.store_id,
            }
        )
        await redis.publish(self.channel, payload)

    async def watch(self, handler: StoreChangeHandler) -> None:
        self._handlers.append(handler)
        handler_name = getattr(handler, "__name__", handler.__class__.__name__)
        logger.debug(f"Registered store change handler: {handler_name}")

    async def unwatch(self, handler: StoreChangeHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def start(self) -> None:
        """Start listening for change notifications."""
        if self._running:
            return

        redis = await self._get_redis()
        self._pubsub = redis.pubsub()
        await self._pubsub.subscribe(self.channel)

        self._running = True
        self._task = asyncio.create_task(self._listen_loop())
        logger.info(f"Started store change listener on channel {self.channel}")

    async def stop(self) -> None:
        """Stop listening for change notifications."""
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

        logger.info("Stopped store change listener")

    async def _listen_loop(self) -> None:
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
                logger.error(f"Error in store change listener: {e}")
                await asyncio.sleep(1)

    async def _handle_message(self, data: bytes) -> None:
        """Decode a change record and hand it to the handlers."""
        try:
            parsed = orjson.loads(data)
            if parsed.get("origin") == self.store_id:
                return
            change = StoreChange(
                key=parsed["key"],
                old_value=parsed.get("old"),
                new_value=parsed.get("new"),
            )
        except (orjson.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Dropping malformed store change record: {e}")
            return

        logger.debug(f"Store change {change.key}: {change.old_value!r} -> {change.new_value!r}")
        for handler in list(self._handlers):
            try:
                await handler(change)
            except Exception as e:
                logger.error(f"Store change handler failed: {e}")
