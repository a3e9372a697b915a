"""Tiered client-local cache.

Three tiers with different lifetimes:

- SESSION: cleared when the browsing session ends; TTL ~5 minutes
  (dashboard snapshots, per-player popup data)
- DURABLE: survives across sessions; TTL ~7 days (identity resolution only)
- MEMORY: process-local, never serialized, never expires; holds analysis
  jobs/results and in-flight markers for the current page load

Persistent tiers are untrusted input. A read that fails to parse or validate
is a miss, and the offending entry is evicted.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from nexra.config.settings import get_settings
from nexra.core.errors import CorruptEntryError
from nexra.core.ports import StoragePort

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class CacheTier(str, Enum):
    SESSION = "session"
    DURABLE = "durable"
    MEMORY = "memory"


@dataclass(frozen=True)
class NavigationTiming:
    """How the current page load was initiated (Navigation Timing `type`)."""

    type: str = "navigate"

    @classmethod
    def from_entries(cls, entries: Iterable[Mapping[str, Any]] | None) -> NavigationTiming:
        """Build from `performance.getEntriesByType('navigation')` output."""
        for entry in entries or ():
            nav_type = str(entry.get("type") or "").strip().lower()
            if nav_type:
                return cls(type=nav_type)
        return cls()

    @property
    def is_reload(self) -> bool:
        return self.type == "reload"


class CacheKeys:
    """Key layout for the persistent tiers and the memory tier."""

    @staticmethod
    def _norm(*parts: str) -> str:
        return ":".join(p.strip().lower() for p in parts)

    @classmethod
    def identity(cls, handle: str, tag_line: str, region: str) -> str:
        return f"identity:{cls._norm(handle, tag_line, region)}"

    @classmethod
    def dashboard(cls, handle: str, tag_line: str, region: str) -> str:
        return f"dashboard:{cls._norm(handle, tag_line, region)}"

    @classmethod
    def popup(cls, handle: str, tag_line: str, region: str) -> str:
        return f"popup:{cls._norm(handle, tag_line, region)}"

    @staticmethod
    def analysis_result(match_id: str) -> str:
        return f"analysis:{match_id}"

    @staticmethod
    def analysis_job(match_id: str) -> str:
        return f"job:{match_id}"

    @staticmethod
    def inflight(kind: str, *parts: str) -> str:
        # Stable ids and match ids are case-sensitive; kept verbatim.
        return f"inflight:{kind}:" + ":".join(parts)

    @classmethod
    def inflight_identity(cls, handle: str, tag_line: str, region: str) -> str:
        return f"inflight:identity:{cls._norm(handle, tag_line, region)}"


class CacheManager:
    """Typed get/set/invalidate over the three cache tiers.

    One instance per page session, passed explicitly to every component that
    needs it. Tearing it down (or clearing the MEMORY tier) destroys all
    analysis jobs and results.
    """

    def __init__(
        self,
        session_store: StoragePort,
        durable_store: StoragePort,
        *,
        session_ttl_seconds: float | None = None,
        durable_ttl_seconds: float | None = None,
        navigation: NavigationTiming | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        settings = get_settings()
        self._stores: dict[CacheTier, StoragePort] = {
            CacheTier.SESSION: session_store,
            CacheTier.DURABLE: durable_store,
        }
        self._ttl: dict[CacheTier, float] = {
            CacheTier.SESSION: (
                session_ttl_seconds
                if session_ttl_seconds is not None
                else settings.session_cache_ttl_seconds
            ),
            CacheTier.DURABLE: (
                durable_ttl_seconds
                if durable_ttl_seconds is not None
                else settings.durable_cache_ttl_seconds
            ),
        }
        self._navigation = navigation or NavigationTiming()
        self._clock = clock
        self._memory: dict[str, Any] = {}
        # Session keys written during this page load; only these survive a hard reload.
        self._written_this_load: set[str] = set()

    # ------------------------------------------------------------------
    # Hard reload
    # ------------------------------------------------------------------

    def is_hard_reload(self) -> bool:
        """True when the page was loaded by a full reload rather than in-app navigation."""
        return self._navigation.is_reload

    def mark_navigation(self, navigation: NavigationTiming) -> None:
        """Start a new page load (e.g. after a simulated reload)."""
        self._navigation = navigation
        self._written_this_load.clear()

    def now(self) -> datetime:
        """Current time on the cache clock, for `captured_at` stamps."""
        return datetime.fromtimestamp(self._clock(), UTC)

    # ------------------------------------------------------------------
    # Async tier API
    # ------------------------------------------------------------------

    async def get(self, tier: CacheTier, key: str, model: type[M] | None = None) -> Any | None:
        """Read an entry; expired, corrupt or reload-bypassed entries read as None."""
        if tier is CacheTier.MEMORY:
            return self._memory.get(key)

        if (
            tier is CacheTier.SESSION
            and self.is_hard_reload()
            and key not in self._written_this_load
        ):
            logger.debug("Hard reload: ignoring session entry %s", key)
            await self._evict(tier, key)
            return None

        raw = await self._stores[tier].get(key)
        if raw is None:
            return None

        try:
            value, captured_at = self._decode(raw)
            if model is not None:
                value = model.model_validate(value)
        except (CorruptEntryError, ValidationError) as exc:
            logger.debug("Evicting corrupt %s entry %s: %s", tier.value, key, exc)
            await self._evict(tier, key)
            return None

        age = self._clock() - captured_at
        if age > self._ttl[tier]:
            logger.debug("Evicting expired %s entry %s (age=%.0fs)", tier.value, key, age)
            await self._evict(tier, key)
            return None

        return value

    async def set(
        self,
        tier: CacheTier,
        key: str,
        value: Any,
        captured_at: datetime | float | None = None,
    ) -> None:
        """Write an entry, overwriting unconditionally."""
        if tier is CacheTier.MEMORY:
            self._memory[key] = value
            return

        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        if captured_at is None:
            stamp = self._clock()
        elif isinstance(captured_at, datetime):
            stamp = captured_at.timestamp()
        else:
            stamp = float(captured_at)

        payload = json.dumps({"value": value, "captured_at": stamp}, default=str)
        await self._stores[tier].set(key, payload)
        if tier is CacheTier.SESSION:
            self._written_this_load.add(key)

    async def invalidate(self, tier: CacheTier, key: str) -> None:
        """Explicit removal (forced refresh, unlinking an account)."""
        if tier is CacheTier.MEMORY:
            self._memory.pop(key, None)
            return
        await self._evict(tier, key)

    async def clear(self, tier: CacheTier) -> None:
        """Drop every entry of a tier."""
        if tier is CacheTier.MEMORY:
            self._memory.clear()
            return
        store = self._stores[tier]
        for key in await store.keys():
            await store.delete(key)
        if tier is CacheTier.SESSION:
            self._written_this_load.clear()

    # ------------------------------------------------------------------
    # Synchronous MEMORY tier helpers (no suspension point in between)
    # ------------------------------------------------------------------

    def peek(self, key: str) -> Any | None:
        return self._memory.get(key)

    def put(self, key: str, value: Any) -> None:
        self._memory[key] = value

    def discard(self, key: str) -> None:
        self._memory.pop(key, None)

    # ------------------------------------------------------------------

    async def _evict(self, tier: CacheTier, key: str) -> None:
        await self._stores[tier].delete(key)
        if tier is CacheTier.SESSION:
            self._written_this_load.discard(key)

    @staticmethod
    def _decode(raw: str) -> tuple[Any, float]:
        try:
            envelope = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as exc:
            raise CorruptEntryError(f"unparseable entry: {exc}") from exc

        if not isinstance(envelope, dict) or "value" not in envelope:
            raise CorruptEntryError("entry is not a cache envelope")
        captured_at = envelope.get("captured_at")
        if isinstance(captured_at, bool) or not isinstance(captured_at, int | float):
            raise CorruptEntryError("entry has no numeric captured_at")
        return envelope["value"], float(captured_at)
