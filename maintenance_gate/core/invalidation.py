"""Best-effort broadcast of maintenance state changes across processes"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from maintenance_gate import schemas
from maintenance_gate.core.config import settings

logger = logging.getLogger(__name__)

Subscriber = Callable[[schemas.MaintenanceState], object]


class InvalidationBus(ABC):
    """Fan-out of state pushes to subscribers

    Delivery is at most "eventually, or not at all": publish never raises,
    and the cache TTL covers anything that gets lost.
    """

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber):
        self._subscribers.append(callback)

    async def start(self):
        pass

    async def stop(self):
        pass

    @abstractmethod
    async def publish(self, state: schemas.MaintenanceState) -> int:
        """Broadcast ``state``, returning how many receivers got it"""

    def _deliver(self, state: schemas.MaintenanceState) -> int:
        delivered = 0
        for callback in self._subscribers:
            try:
                callback(state)
                delivered += 1
            except Exception:
                logger.exception(f"Maintenance subscriber {callback!r} failed for revision {state.revision}")
        return delivered


class LocalInvalidationBus(InvalidationBus):
    """In-process bus for single-worker deployments and tests"""

    async def publish(self, state: schemas.MaintenanceState) -> int:
        return self._deliver(state)


class RedisInvalidationBus(InvalidationBus):
    """Redis pub/sub bus, one channel shared by every worker"""

    def __init__(
        self,
        redis_url: str,
        channel: str = settings.MAINTENANCE_CHANNEL,
        reconnect_delay: float = 1.0,
    ):
        super().__init__()
        self.redis_url = redis_url
        self.channel = channel
        self.reconnect_delay = reconnect_delay
        self.redis: Optional[redis.Redis] = None
        self._listener: Optional[asyncio.Task] = None

    async def start(self):
        if self.redis is None:
            self.redis = self._connect()
        self._listener = asyncio.create_task(self._listen())
        logger.info(f"Maintenance invalidation bus listening on '{self.channel}'")

    def _connect(self) -> redis.Redis:
        return redis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            health_check_interval=30,
        )

    async def stop(self):
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None

        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
            logger.info("Maintenance invalidation bus stopped")

    async def publish(self, state: schemas.MaintenanceState) -> int:
        if self.redis is None:
            logger.warning(f"Bus not started, dropping maintenance revision {state.revision}")
            return 0

        try:
            receivers = await self.redis.publish(self.channel, state.model_dump_json())
        except RedisError as e:
            logger.warning(f"Failed to publish maintenance revision {state.revision}: {e}")
            return 0

        logger.debug(f"Published maintenance revision {state.revision} to {receivers} subscribers")
        return receivers

    def handle_message(self, message: dict) -> int:
        if message.get("type") != "message":
            return 0

        try:
            state = schemas.MaintenanceState.model_validate_json(message["data"])
        except (ValidationError, KeyError, TypeError) as e:
            logger.warning(f"Dropping undecodable maintenance message on '{self.channel}': {e}")
            return 0

        return self._deliver(state)

    async def _listen(self):
        while True:
            pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
            try:
                await pubsub.subscribe(self.channel)
                async for message in pubsub.listen():
                    self.handle_message(message)
            except RedisError as e:
                logger.warning(
                    f"Maintenance bus connection lost ({e}), retrying in {self.reconnect_delay}s"
                )
            finally:
                try:
                    await pubsub.aclose()
                except RedisError:
                    pass

            await asyncio.sleep(self.reconnect_delay)


def build_invalidation_bus(redis_url: str = "") -> InvalidationBus:
    if redis_url:
        return RedisInvalidationBus(redis_url, channel=settings.MAINTENANCE_CHANNEL)
    return LocalInvalidationBus()
