"""
Topic-keyed publish/subscribe fan-out for realtime updates
"""
import redis.asyncio as redis
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple
import asyncio
import json
import logging

from .config import settings

logger = logging.getLogger(__name__)

Payload = Dict[str, Any]


class Topics:
    """Topic naming: one topic per (entity kind, entity id)"""

    MESSAGE_RECEIVED = "MESSAGE_RECEIVED_"
    CONVERSATION = "CONVERSATION_"
    POST_UPDATED = "POST_UPDATED_"
    LINK_REQUEST_UPDATED = "LINK_REQUEST_UPDATED_"
    NOTIFICATION = "NOTIFICATION_"
    USER_UNREADS = "USER_UNREADS_"

    PREFIXES = (
        MESSAGE_RECEIVED,
        CONVERSATION,
        POST_UPDATED,
        LINK_REQUEST_UPDATED,
        NOTIFICATION,
        USER_UNREADS,
    )

    # Topics whose id is the owning user
    USER_SCOPED = (CONVERSATION, LINK_REQUEST_UPDATED, NOTIFICATION, USER_UNREADS)

    @staticmethod
    def message_received(conversation_id: str) -> str:
        return f"{Topics.MESSAGE_RECEIVED}{conversation_id}"

    @staticmethod
    def conversation(user_id: str) -> str:
        return f"{Topics.CONVERSATION}{user_id}"

    @staticmethod
    def post_updated(post_id: str) -> str:
        return f"{Topics.POST_UPDATED}{post_id}"

    @staticmethod
    def link_request_updated(user_id: str) -> str:
        return f"{Topics.LINK_REQUEST_UPDATED}{user_id}"

    @staticmethod
    def notification(user_id: str) -> str:
        return f"{Topics.NOTIFICATION}{user_id}"

    @staticmethod
    def user_unreads(user_id: str) -> str:
        return f"{Topics.USER_UNREADS}{user_id}"

    @staticmethod
    def parse(topic: str) -> Optional[Tuple[str, str]]:
        """Split a topic into (prefix, entity id); None when unknown"""
        for prefix in Topics.PREFIXES:
            if topic.startswith(prefix) and len(topic) > len(prefix):
                return prefix, topic[len(prefix):]
        return None


class Subscription(ABC):
    """Live, non-restartable sequence of payloads for one topic"""

    def __init__(self, topic: str):
        self.topic = topic
        self.closed = False

    def __aiter__(self):
        return self

    @abstractmethod
    async def __anext__(self) -> Payload:
        pass

    @abstractmethod
    async def aclose(self) -> None:
        pass


class PubSubBroker(ABC):
    """Fan-out bus injected into every engine"""

    @abstractmethod
    async def publish(self, topic: str, payload: Payload) -> int:
        """Deliver payload to current subscribers; returns how many got it"""
        pass

    @abstractmethod
    async def subscribe(self, topic: str) -> Subscription:
        """Register a subscriber; events published afterwards are delivered"""
        pass

    async def close(self) -> None:
        pass


_CLOSED = object()


class QueueSubscription(Subscription):
    """Subscriber backed by a bounded asyncio queue"""

    def __init__(self, broker: "InMemoryPubSub", topic: str, max_queue_size: int):
        super().__init__(topic)
        self._broker = broker
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)

    def push(self, item: Any) -> None:
        if self.closed and item is not _CLOSED:
            return
        if self._queue.full():
            # Slow consumer: drop the oldest event
            self._queue.get_nowait()
            logger.warning(f"Subscriber queue full on {self.topic}, dropped oldest event")
        self._queue.put_nowait(item)

    async def __anext__(self) -> Payload:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._broker._remove(self)
        self.push(_CLOSED)


class InMemoryPubSub(PubSubBroker):
    """Process-local broker"""

    def __init__(self, max_queue_size: int = 256):
        self.max_queue_size = max_queue_size
        self._subscribers: Dict[str, Set[QueueSubscription]] = {}

    async def publish(self, topic: str, payload: Payload) -> int:
        subscribers = list(self._subscribers.get(topic, ()))
        for subscriber in subscribers:
            subscriber.push(payload)
        if subscribers:
            logger.debug(f"Published to {topic} ({len(subscribers)} subscribers)")
        return len(subscribers)

    async def subscribe(self, topic: str) -> Subscription:
        subscription = QueueSubscription(self, topic, self.max_queue_size)
        self._subscribers.setdefault(topic, set()).add(subscription)
        return subscription

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    def _remove(self, subscription: QueueSubscription) -> None:
        subscribers = self._subscribers.get(subscription.topic)
        if not subscribers:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.topic]

    async def close(self) -> None:
        for subscribers in list(self._subscribers.values()):
            for subscription in list(subscribers):
                await subscription.aclose()
        self._subscribers.clear()


class RedisSubscription(Subscription):
    """Subscriber backed by a Redis PUBSUB channel"""

    def __init__(self, topic: str, pubsub):
        super().__init__(topic)
        self._pubsub = pubsub

    async def __anext__(self) -> Payload:
        while not self.closed:
            message = await self._pubsub.get_message(
                ignore_subscribe_messages=True, timeout=1.0
            )
            if message is None:
                continue
            try:
                return json.loads(message["data"])
            except (TypeError, ValueError) as e:
                logger.error(f"Dropping undecodable message on {self.topic}: {e}")
        raise StopAsyncIteration

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self._pubsub.unsubscribe(self.topic)
        finally:
            await self._pubsub.aclose()


class RedisPubSub(PubSubBroker):
    """Broker shared across processes through Redis PUBLISH/SUBSCRIBE"""

    def __init__(self):
        self.redis: Optional[redis.Redis] = None

    async def connect(self) -> bool:
        """Connect to Redis; False when unavailable"""
        try:
            self.redis = await redis.from_url(
                f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}",
                password=settings.REDIS_PASSWORD if settings.REDIS_PASSWORD else None,
                encoding="utf-8",
                decode_responses=True,
            )
            await self.redis.ping()
            logger.info("Connected to Redis pub/sub successfully")
            return True
        except Exception as e:
            logger.warning(f"Failed to connect to Redis: {e}")
            self.redis = None
            return False

    async def publish(self, topic: str, payload: Payload) -> int:
        if not self.redis:
            return 0
        try:
            return await self.redis.publish(topic, json.dumps(payload))
        except Exception as e:
            logger.error(f"Error publishing to {topic}: {e}")
            return 0

    async def subscribe(self, topic: str) -> Subscription:
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(topic)
        return RedisSubscription(topic, pubsub)

    async def close(self) -> None:
        if self.redis:
            await self.redis.aclose()
            logger.info("Disconnected from Redis")


class TransformedSubscription(Subscription):
    """Applies an async per-subscriber transform to every payload"""

    def __init__(self, inner: Subscription,
                 transform: Callable[[Payload], Awaitable[Payload]]):
        super().__init__(inner.topic)
        self._inner = inner
        self._transform = transform

    async def __anext__(self) -> Payload:
        payload = await self._inner.__anext__()
        return await self._transform(payload)

    async def aclose(self) -> None:
        self.closed = True
        await self._inner.aclose()


async def create_broker() -> PubSubBroker:
    """Build the configured broker, falling back to process-local fan-out"""
    if settings.PUBSUB_BACKEND == "redis":
        broker = RedisPubSub()
        if await broker.connect():
            return broker
        logger.warning("Redis unavailable, continuing with in-memory pub/sub")
    return InMemoryPubSub(settings.PUBSUB_QUEUE_SIZE)
