"""Adapter implementations for external services."""

from .memory_storage import MemoryStorage
from .nexra_gateway import NexraGateway
from .redis_storage import RedisStorage

__all__ = ["MemoryStorage", "NexraGateway", "RedisStorage"]
