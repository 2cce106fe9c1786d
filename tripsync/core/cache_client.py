"""
Redis cache client for local trip snapshots.

This module provides a Redis-based key-value client with connection management,
error handling, and bounded reconnect attempts. Operations never raise; they
report failure through their return value so callers can degrade gracefully.
"""

import asyncio
import logging
from typing import Optional

from redis import asyncio as aioredis
from redis.asyncio import Redis

from tripsync.config.settings import get_settings


class CacheClient:
    """
    Redis cache client with connection management and error handling.
    """

    def __init__(self, redis_url: Optional[str] = None, redis_client: Optional[Redis] = None):
        """
        Initialize the cache client.

        Args:
            redis_url: Redis connection URL (optional, uses settings if not provided)
            redis_client: Pre-built client (tests inject a fake here)
        """
        self.redis_url = redis_url or get_settings().redis.url
        self.redis_client: Optional[Redis] = redis_client
        self.logger = logging.getLogger(__name__)
        self._connection_lock = asyncio.Lock()
        self._is_connected = redis_client is not None
        self._connection_retries = 0
        self._max_retries = 3

    async def connect(self) -> bool:
        """
        Establish connection to Redis server.

        Returns:
            True if connection successful, False otherwise
        """
        async with self._connection_lock:
            if self._is_connected and self.redis_client:
                return True

            try:
                self.logger.info(f"Connecting to Redis at {self.redis_url}")
                settings = get_settings().redis
                self.redis_client = aioredis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_timeout=settings.socket_timeout,
                    socket_connect_timeout=settings.socket_timeout,
                    max_connections=settings.max_connections,
                    retry_on_timeout=True,
                    health_check_interval=30
                )

                await self.redis_client.ping()
                self._is_connected = True
                self._connection_retries = 0
                self.logger.info("Successfully connected to Redis")
                return True

            except Exception as e:
                self._connection_retries += 1
                self.logger.error(
                    f"Failed to connect to Redis (attempt {self._connection_retries}): {str(e)}"
                )
                await self._drop_client()
                return False

    async def disconnect(self) -> None:
        """Disconnect from Redis server."""
        async with self._connection_lock:
            if self.redis_client:
                self.logger.info("Disconnecting from Redis")
            await self._drop_client()

    async def get(self, key: str) -> Optional[str]:
        """
        Get value from cache.

        Args:
            key: Cache key to retrieve

        Returns:
            Cached value as string or None if not found/error
        """
        if not await self._ensure_connection():
            return None

        try:
            value = await self.redis_client.get(key)
            if value:
                self.logger.debug(f"Cache hit for key: {key}")
            else:
                self.logger.debug(f"Cache miss for key: {key}")
            return value

        except Exception as e:
            self.logger.warning(f"Error getting cache key '{key}': {str(e)}")
            await self._handle_connection_error()
            return None

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key to set
            value: Value to cache
            ttl_seconds: Time to live in seconds (optional)

        Returns:
            True if successful, False otherwise
        """
        if not await self._ensure_connection():
            return False

        try:
            if ttl_seconds:
                result = await self.redis_client.setex(key, ttl_seconds, value)
            else:
                result = await self.redis_client.set(key, value)

            if result:
                self.logger.debug(f"Cache set for key: {key}")
                return True
            self.logger.warning(f"Failed to set cache key: {key}")
            return False

        except Exception as e:
            self.logger.warning(f"Error setting cache key '{key}': {str(e)}")
            await self._handle_connection_error()
            return False

    async def delete(self, key: str) -> bool:
        """
        Delete key from cache.

        Returns:
            True if a key was removed, False otherwise
        """
        if not await self._ensure_connection():
            return False

        try:
            result = await self.redis_client.delete(key)
            self.logger.debug(f"Cache delete for key: {key}, result: {result}")
            return result > 0

        except Exception as e:
            self.logger.warning(f"Error deleting cache key '{key}': {str(e)}")
            await self._handle_connection_error()
            return False

    async def ping(self) -> bool:
        """
        Ping Redis server to check connectivity.

        Returns:
            True if server responds, False otherwise
        """
        if not await self._ensure_connection():
            return False

        try:
            return await self.redis_client.ping() is True
        except Exception as e:
            self.logger.warning(f"Redis ping failed: {str(e)}")
            await self._handle_connection_error()
            return False

    async def _ensure_connection(self) -> bool:
        """
        Ensure Redis connection is established.

        Returns:
            True if connected, False otherwise
        """
        if self._is_connected and self.redis_client:
            return True

        if self._connection_retries >= self._max_retries:
            self.logger.warning(
                f"Max connection retries ({self._max_retries}) exceeded, "
                "cache operations will be disabled"
            )
            return False

        return await self.connect()

    async def _handle_connection_error(self) -> None:
        """Handle connection errors by marking connection as failed."""
        await self._drop_client()

    async def _drop_client(self) -> None:
        client, self.redis_client = self.redis_client, None
        self._is_connected = False
        if client is not None:
            try:
                await client.aclose()
            except Exception as e:
                self.logger.debug(f"Error closing Redis client: {e}")

    @property
    def is_connected(self) -> bool:
        """Check if client is connected to Redis."""
        return self._is_connected and self.redis_client is not None
