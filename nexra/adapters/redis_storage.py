"""Redis storage adapter for the durable cache tier."""

import logging
from typing import Any

import redis.asyncio as aioredis

from nexra.config import get_settings
from nexra.core.ports import StoragePort

logger = logging.getLogger(__name__)


class RedisStorage(StoragePort):
    """Durable tier store using the async redis client.

    Expiry is enforced by the cache manager from the envelope's captured_at,
    so keys are written without a Redis TTL. Read errors are logged and
    reported as a miss.
    """

    def __init__(self, url: str | None = None, prefix: str | None = None) -> None:
        settings = get_settings()
        self._url = url or settings.redis_url
        self._prefix = (prefix if prefix is not None else settings.redis_key_prefix).rstrip(":")
        self._client: Any = None  # aioredis.Redis (untyped library)

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._client:
            logger.warning("Redis client already connected")
            return

        try:
            self._client = await aioredis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("Redis client connected")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Redis client disconnected")

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}" if self._prefix else key

    async def get(self, key: str) -> str | None:
        if not self._client:
            logger.error("Redis client not connected")
            return None

        try:
            value = await self._client.get(self._key(key))
            return value if isinstance(value, str) else None
        except Exception as e:
            logger.error(f"Error getting key {key}: {e}")
            return None

    async def set(self, key: str, value: str) -> bool:
        if not self._client:
            logger.error("Redis client not connected")
            return False

        try:
            await self._client.set(self._key(key), value)
            return True
        except Exception as e:
            logger.error(f"Error setting key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        if not self._client:
            logger.error("Redis client not connected")
            return False

        try:
            await self._client.delete(self._key(key))
            return True
        except Exception as e:
            logger.error(f"Error deleting key {key}: {e}")
            return False

    async def keys(self) -> list[str]:
        if not self._client:
            logger.error("Redis client not connected")
            return []

        pattern = f"{self._prefix}:*" if self._prefix else "*"
        strip = len(self._prefix) + 1 if self._prefix else 0
        try:
            return [k[strip:] async for k in self._client.scan_iter(match=pattern)]
        except Exception as e:
            logger.error(f"Error scanning keys: {e}")
            return []

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        if not self._client:
            return False

        try:
            await self._client.ping()
            return True
        except Exception:
            return False
