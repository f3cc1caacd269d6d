"""
Redis client configuration and connection management
Redis客户端配置和连接管理 - 连接池、重试，显式生命周期
"""

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError
from typing import Optional
from hatgame.core.config import settings
from hatgame.core.exceptions import StoreUnavailableError
import logging
import asyncio
import time

logger = logging.getLogger(__name__)


class RedisManager:
    """Redis connection pool with retry on transient failures"""

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url or settings.REDIS_URL
        self.pool: Optional[redis.ConnectionPool] = None
        self.client: Optional[redis.Redis] = None
        self._max_attempts = 2
        self._retry_delay = 0.5
        self._last_health_check = 0.0

    async def initialize(self):
        """Open the connection pool and ping the server"""
        self.pool = redis.ConnectionPool.from_url(
            self.redis_url,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_SOCKET_CONNECT_TIMEOUT,
            retry_on_timeout=True,
            health_check_interval=30,
            encoding="utf-8",
            decode_responses=True
        )
        self.client = redis.Redis(connection_pool=self.pool)

        if not await self.health_check():
            logger.error("Redis is not reachable at startup")
            if settings.ENVIRONMENT == "production":
                raise StoreUnavailableError("Redis is not reachable")
        else:
            logger.info("Redis manager initialized successfully")

    async def health_check(self) -> bool:
        """Ping Redis"""
        if not self.client:
            return False
        try:
            await self.client.ping()
            self._last_health_check = time.time()
            return True
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning(f"Redis connection test failed: {e}")
            return False

    async def get_client(self) -> redis.Redis:
        """Get the Redis client"""
        if not self.client:
            raise StoreUnavailableError("Redis connection unavailable")
        return self.client

    async def execute_with_retry(self, operation, *args, **kwargs):
        """Run ``operation(client, *args)`` retrying once on connection errors"""
        for attempt in range(self._max_attempts):
            try:
                client = await self.get_client()
                return await operation(client, *args, **kwargs)
            except (RedisConnectionError, RedisTimeoutError) as e:
                if attempt == self._max_attempts - 1:
                    logger.error(f"Redis operation failed after {self._max_attempts} attempts: {e}")
                    raise StoreUnavailableError("Cache is temporarily unavailable") from e
                logger.warning(f"Redis operation attempt {attempt + 1} failed, retrying: {e}")
                await asyncio.sleep(self._retry_delay)

    async def close(self):
        """Close Redis connections"""
        if self.client:
            await self.client.aclose()
        if self.pool:
            await self.pool.aclose()

        self.client = None
        self.pool = None
        logger.info("Redis connections closed")
