"""Redis Pub/Sub fan-out of live relays between gateway processes.

Each gateway publishes the frames it could not deliver locally, tagged with
the target user and its own instance id. Every gateway subscribes to the same
channel and delivers the frames whose target it holds a connection for;
frames it published itself are skipped.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import redis.asyncio as aioredis
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)


class RelayEnvelope(BaseModel):
    event_type: str
    target_user_id: int
    origin: str
    data: dict[str, Any]


DeliverLocal = Callable[[int, str, dict[str, Any]], Awaitable[Any]]


class RedisRelayPublisher:
    """Implements application.ports.bus.RelayPublisher."""

    def __init__(self, redis: aioredis.Redis, channel: str, *, origin: str) -> None:
        self._redis = redis
        self._channel = channel
        self._origin = origin

    async def publish_relay(self, target_user_id: int, event_type: str, data: dict[str, Any]) -> None:
        envelope = RelayEnvelope(
            event_type=event_type,
            target_user_id=target_user_id,
            origin=self._origin,
            data=data,
        )
        receivers = await self._redis.publish(self._channel, envelope.model_dump_json())
        logger.debug(
            "Published %s for user %s to %s subscriber(s)", event_type, target_user_id, receivers,
        )


class RedisRelaySubscriber:
    """Background task handing relays from other processes to ``deliver``."""

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        deliver: DeliverLocal,
        *,
        origin: str,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._deliver = deliver
        self._origin = origin
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._listen(), name="redis-relay-subscriber")
        logger.info("Relay subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Relay subscriber stopped")

    async def handle(self, raw: str | bytes) -> bool:
        """Deliver one published relay. Returns False if it was dropped or our own."""
        try:
            envelope = RelayEnvelope.model_validate_json(raw)
        except ValidationError:
            logger.warning("Dropping malformed relay on %s: %r", self._channel, raw)
            return False
        if envelope.origin == self._origin:
            return False
        await self._deliver(envelope.target_user_id, envelope.event_type, envelope.data)
        return True

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    await self.handle(message["data"])
                except Exception:
                    logger.exception("Error processing relay from %s", self._channel)
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()
