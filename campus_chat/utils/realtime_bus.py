import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional

import redis.asyncio as redis

from campus_chat.core.config import settings
from campus_chat.schemas.chat import RealtimeEvent


logger = logging.getLogger(__name__)

OnMessage = Callable[[str], Awaitable[None]]


def message_channel(conversation_id: str) -> str:
    return f"messages:{conversation_id}"


def typing_channel(conversation_id: str) -> str:
    return f"typing:{conversation_id}"


def notification_channel(user_id: str) -> str:
    return f"notifications:{user_id}"


class LocalSubscription:

    def __init__(self, bus: "LocalBus", channel: str, on_message: OnMessage) -> None:
        self._bus = bus
        self.channel = channel
        self._on_message = on_message
        self._closed = asyncio.Event()

    async def deliver(self, message: str) -> None:
        await self._on_message(message)

    async def run(self) -> None:
        # delivery happens inside publish(); this only parks until cancelled
        await self._closed.wait()

    async def cancel(self) -> None:
        self._bus._remove(self)
        self._closed.set()


class LocalBus:
    """In-process fan-out used when no Redis is configured (single worker, tests)."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[LocalSubscription]] = {}
        self._presence: Dict[str, float] = {}

    async def publish(self, channel: str, message: str) -> None:
        for sub in list(self._subscribers.get(channel, [])):
            try:
                await sub.deliver(message)
            except Exception:
                logger.exception("Subscriber on %s failed to handle message", channel)

    async def subscribe(self, channel: str, on_message: OnMessage) -> LocalSubscription:
        sub = LocalSubscription(self, channel, on_message)
        self._subscribers.setdefault(channel, []).append(sub)
        return sub

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, []))

    def _remove(self, sub: LocalSubscription) -> None:
        subs = self._subscribers.get(sub.channel)
        if not subs:
            return
        try:
            subs.remove(sub)
        except ValueError:
            pass
        if not subs:
            del self._subscribers[sub.channel]

    async def set_presence(self, user_id: str, ttl_seconds: int = 60) -> None:
        self._presence[user_id] = time.monotonic() + ttl_seconds

    async def is_online(self, user_id: str) -> bool:
        expires = self._presence.get(user_id)
        return expires is not None and expires > time.monotonic()

    async def close(self) -> None:
        self._subscribers.clear()


class RedisSubscription:

    def __init__(self, pubsub, channel: str, on_message: OnMessage) -> None:
        self._pubsub = pubsub
        self.channel = channel
        self._on_message = on_message
        self._running = True

    async def run(self) -> None:
        while self._running:
            try:
                msg = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if msg and msg.get("type") == "message":
                    data = msg.get("data")
                    if isinstance(data, bytes):
                        data = data.decode("utf-8")
                    await self._on_message(data)
            except Exception:
                logger.exception("Redis subscription on %s failed", self.channel)
                await asyncio.sleep(0.5)

    async def cancel(self) -> None:
        self._running = False
        try:
            await self._pubsub.unsubscribe(self.channel)
            await self._pubsub.aclose()
        except Exception:
            logger.warning("Could not cleanly unsubscribe from %s", self.channel, exc_info=True)


class RedisBus:

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: OnMessage) -> RedisSubscription:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)
        return RedisSubscription(pubsub, channel, on_message)

    async def set_presence(self, user_id: str, ttl_seconds: int = 60) -> None:
        await self._redis.set(f"presence:{user_id}", "online", ex=ttl_seconds)

    async def is_online(self, user_id: str) -> bool:
        ttl = await self._redis.ttl(f"presence:{user_id}")
        return bool(ttl and ttl > 0)

    async def close(self) -> None:
        await self._redis.aclose()


_bus = None


async def get_bus():
    global _bus
    if _bus is not None:
        return _bus
    if settings.REDIS_URL:
        _bus = RedisBus(settings.REDIS_URL)
        logger.info("Realtime bus: redis")
    else:
        _bus = LocalBus()
        logger.info("Realtime bus: in-process (REDIS_URL not set)")
    return _bus


async def close_bus() -> None:
    global _bus
    if _bus is None:
        return
    await _bus.close()
    _bus = None


async def bus_dependency():
    return await get_bus()


async def publish_event(bus, channel: str, event: RealtimeEvent) -> None:
    await bus.publish(channel, event.model_dump_json(exclude_none=True))


def parse_event(raw: str) -> Optional[RealtimeEvent]:
    try:
        return RealtimeEvent.model_validate_json(raw)
    except ValueError:
        logger.warning("Dropping malformed realtime event: %.200s", raw)
        return None
