"""Dict-backed storage for the session cache tier.

Lives as long as the process (the equivalent of a browsing session); also
the default durable store when Redis is not configured.
"""

from nexra.core.ports import StoragePort


class MemoryStorage(StoragePort):
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> bool:
        self._data[key] = value
        return True

    async def delete(self, key: str) -> bool:
        self._data.pop(key, None)
        return True

    async def keys(self) -> list[str]:
        return list(self._data)

    def __len__(self) -> int:
        return len(self._data)
