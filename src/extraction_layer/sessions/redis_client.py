"""
Async Redis connection pooling for the Redis session store.
"""

import logging
from typing import Optional

from redis.asyncio import ConnectionPool as AsyncConnectionPool
from redis.asyncio import Redis as AsyncRedis

from extraction_layer.config import Settings

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Holds one process-wide async connection pool.

    Every store built from the same settings shares the pool; call
    ``close_pool`` on shutdown.
    """

    _pool: Optional[AsyncConnectionPool] = None

    @classmethod
    def get_client(cls, settings: Settings) -> AsyncRedis:
        """
        Get an async Redis client backed by the shared pool.

        Args:
            settings: Application settings (REDIS_URL, REDIS_MAX_CONNECTIONS)
        """
        if cls._pool is None:
            cls._pool = AsyncConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True,
            )
            logger.info("Initialized Redis session connection pool (max_connections=%s)",
                        settings.REDIS_MAX_CONNECTIONS)

        return AsyncRedis(connection_pool=cls._pool)

    @classmethod
    async def close_pool(cls) -> None:
        if cls._pool is not None:
            await cls._pool.disconnect()
            cls._pool = None
            logger.info("Closed Redis session connection pool")


def get_async_redis_client(settings: Settings) -> AsyncRedis:
    return RedisClient.get_client(settings)
