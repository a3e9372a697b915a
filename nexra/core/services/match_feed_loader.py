"""Match Feed Loader - initial load and incremental paging of match history.

Two fetch strategies for the initial load, picked by whether the identity was
already in the durable cache:

- FAST (cached identity): identity confirmation, first page and aggregate
  stats are issued together. A failed confirmation is tolerated: the cached
  id is used and a warning is logged.
- COLD (no cached identity): resolve first, then page + stats together.

Paging (`load_more`) is guarded per identity so a duplicate scroll trigger
does not issue a second request while the first is still in flight. Only an
explicit zero-length page ends the history; short pages are treated as
possibly partial upstream responses.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from nexra.config.settings import get_settings
from nexra.contracts import AccountProfile, AggregateStats, IdentityRecord, MatchPage, MatchRecord
from nexra.core.errors import RateLimitedError
from nexra.core.ports import MatchDataPort
from nexra.core.services.cache_manager import CacheKeys, CacheManager
from nexra.core.services.identity_resolver import IdentityResolver

logger = logging.getLogger(__name__)


class FetchStrategy(str, Enum):
    FAST = "fast"
    COLD = "cold"


@dataclass(frozen=True)
class FeedLoadResult:
    identity: IdentityRecord
    profile: AccountProfile | None
    matches: list[MatchRecord]
    aggregate_stats: AggregateStats | None
    strategy: FetchStrategy

    @property
    def has_more(self) -> bool:
        return len(self.matches) > 0


def merge_matches(
    existing: Iterable[MatchRecord], incoming: Iterable[MatchRecord]
) -> list[MatchRecord]:
    """Append incoming records whose match_id is not already present."""
    merged = list(existing)
    seen = {record.match_id for record in merged}
    for record in incoming:
        if record.match_id in seen:
            continue
        seen.add(record.match_id)
        merged.append(record)
    return merged


class MatchFeedLoader:
    def __init__(
        self,
        resolver: IdentityResolver,
        match_data: MatchDataPort,
        cache: CacheManager,
        *,
        page_size: int | None = None,
        short_page_floor: int | None = None,
        retry_delay_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        settings = get_settings()
        self._resolver = resolver
        self._match_data = match_data
        self._cache = cache
        self.page_size = page_size or settings.match_page_size
        self.short_page_floor = (
            short_page_floor if short_page_floor is not None else settings.short_page_floor
        )
        self._retry_delay = (
            retry_delay_seconds
            if retry_delay_seconds is not None
            else settings.rate_limit_retry_delay_seconds
        )
        self._sleep = sleep

    async def load_initial(
        self, handle: str, region: str, page_size: int | None = None
    ) -> FeedLoadResult:
        """Identity, first match page and aggregate stats for a handle.

        Raises:
            NotFoundError / RateLimitedError / UnavailableError from the
            identity call (cold path) or the page fetch (both paths).
        """
        size = page_size or self.page_size
        cached = await self._resolver.lookup(handle, region)

        if cached is not None:
            strategy = FetchStrategy.FAST
            identity = cached
            confirmation, page, stats = await asyncio.gather(
                self._resolver.confirm(handle, region),
                self._fetch_page(cached, 0, size),
                self._match_data.get_aggregate_stats(cached.stable_id, cached.region),
                return_exceptions=True,
            )
            if isinstance(confirmation, BaseException):
                logger.warning(
                    f"Identity confirmation failed for {cached.riot_id}; "
                    f"continuing with cached id: {confirmation}"
                )
                profile = None
            else:
                identity, profile = confirmation
        else:
            strategy = FetchStrategy.COLD
            identity, profile = await self._resolver.confirm(handle, region)
            page, stats = await asyncio.gather(
                self._fetch_page(identity, 0, size),
                self._match_data.get_aggregate_stats(identity.stable_id, identity.region),
                return_exceptions=True,
            )

        if isinstance(page, BaseException):
            raise page

        if isinstance(stats, BaseException):
            logger.warning(f"Aggregate stats unavailable for {identity.riot_id}: {stats}")
            stats = None

        logger.info(
            f"Loaded {len(page)} matches for {identity.riot_id} via {strategy.value} path"
        )
        return FeedLoadResult(
            identity=identity,
            profile=profile,
            matches=merge_matches([], page),
            aggregate_stats=stats,
            strategy=strategy,
        )

    async def load_more(
        self, identity: IdentityRecord, offset: int, page_size: int | None = None
    ) -> MatchPage:
        """Fetch the next page of history starting at `offset`.

        A call made while another is in flight for the same identity returns
        a suppressed page without any network call.
        """
        size = page_size or self.page_size
        inflight_key = CacheKeys.inflight("feed", identity.stable_id)
        if self._cache.peek(inflight_key):
            logger.debug(f"load_more suppressed for {identity.riot_id}: already in flight")
            return MatchPage(offset=offset, suppressed=True)

        self._cache.put(inflight_key, True)
        try:
            records = await self._fetch_page(identity, offset, size)
        finally:
            self._cache.discard(inflight_key)

        if 0 < len(records) < self.short_page_floor:
            logger.info(
                f"Short page ({len(records)}/{size}) at offset {offset} for "
                f"{identity.riot_id}; keeping pagination open"
            )
        return MatchPage(records=records, offset=offset)

    async def load_recent(
        self, identity: IdentityRecord, count: int
    ) -> tuple[list[MatchRecord], AggregateStats | None]:
        """Recent matches and aggregate stats fetched together (player popup)."""
        page, stats = await asyncio.gather(
            self._fetch_page(identity, 0, count),
            self._match_data.get_aggregate_stats(identity.stable_id, identity.region),
            return_exceptions=True,
        )
        if isinstance(page, BaseException):
            raise page
        if isinstance(stats, BaseException):
            logger.warning(f"Aggregate stats unavailable for {identity.riot_id}: {stats}")
            stats = None
        return merge_matches([], page), stats

    def is_loading(self, identity: IdentityRecord) -> bool:
        return bool(self._cache.peek(CacheKeys.inflight("feed", identity.stable_id)))

    async def _fetch_page(
        self, identity: IdentityRecord, offset: int, limit: int
    ) -> list[MatchRecord]:
        # One retry after a fixed delay on 429; everything else surfaces.
        try:
            return await self._match_data.list_matches(
                identity.stable_id, identity.region, offset, limit
            )
        except RateLimitedError as exc:
            logger.warning(
                f"Rate limited fetching matches for {identity.riot_id}; "
                f"retrying once in {self._retry_delay}s ({exc})"
            )
        await self._sleep(self._retry_delay)
        return await self._match_data.list_matches(
            identity.stable_id, identity.region, offset, limit
        )
