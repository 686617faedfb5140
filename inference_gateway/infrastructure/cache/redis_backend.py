"""
Redis cache backend.

Values are orjson-encoded and written with SETEX so Redis expires them on
its own. Shared by every gateway process pointed at the same Redis.

Connection pooling follows the usual redis.asyncio setup: one pool per
backend, verified with PING on connect, closed on disconnect.
"""

from typing import Any

import orjson
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from inference_gateway.core.config.settings import RedisSettings
from inference_gateway.core.exceptions import CacheConnectionError, CacheSerializationError
from inference_gateway.core.logging import get_logger

logger = get_logger(__name__)


def create_redis_client(settings: RedisSettings) -> redis.Redis:
    """
    Build a pooled redis.asyncio client from settings.

    The client connects lazily; call `ping()` to verify it.
    """
    pool = ConnectionPool(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        password=settings.REDIS_PASSWORD,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        retry_on_timeout=True,
        decode_responses=True,
    )
    return redis.Redis(connection_pool=pool)


class RedisCacheBackend:
    """
    CacheBackend backed by Redis.

    Raises CacheConnectionError / CacheSerializationError; CacheAside turns
    both into a cache miss.
    """

    def __init__(self, client: redis.Redis, owns_client: bool = True):
        self._client = client
        self._owns_client = owns_client
        self._connected = False

    async def connect(self) -> None:
        if self._connected:
            return
        try:
            await self._client.ping()
        except (RedisError, OSError) as e:
            logger.error("Failed to connect to Redis cache", error=str(e))
            raise CacheConnectionError(f"Failed to connect to Redis: {e}") from e
        self._connected = True
        logger.info("Redis cache connected")

    async def disconnect(self) -> None:
        if self._owns_client:
            await self._client.aclose()
        self._connected = False
        logger.info("Redis cache disconnected")

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(key)
        except (RedisError, OSError) as e:
            raise CacheConnectionError(f"Redis GET failed: {e}", details={"key": key}) from e

        if raw is None:
            return None
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise CacheSerializationError(
                "Cached value is not valid JSON", details={"key": key}
            ) from e

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            encoded = orjson.dumps(value)
        except TypeError as e:
            raise CacheSerializationError(
                f"Value is not JSON serializable: {e}", details={"key": key}
            ) from e

        try:
            await self._client.setex(key, ttl, encoded)
        except (RedisError, OSError) as e:
            raise CacheConnectionError(f"Redis SETEX failed: {e}", details={"key": key}) from e

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._client.delete(key))
        except (RedisError, OSError) as e:
            raise CacheConnectionError(f"Redis DEL failed: {e}", details={"key": key}) from e
