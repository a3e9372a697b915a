"""Identity Resolver - maps a player handle to a stable identity.

Resolution is the most rate-limit-expensive upstream call and the mapping
effectively never changes, so results live in the durable cache tier:

- cache hit: returned without any network call
- miss or expiry: one upstream call, durable write before returning
- concurrent callers for the same handle share a single in-flight call

Entries are never refreshed or invalidated on the resolver's own initiative;
only `forget` (an explicit user action such as linking a different account)
removes one.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import UTC, datetime

from nexra.contracts import AccountProfile, IdentityRecord
from nexra.core.errors import InvalidHandleError
from nexra.core.ports import IdentityServicePort
from nexra.core.services.cache_manager import CacheKeys, CacheManager, CacheTier

logger = logging.getLogger(__name__)

# Regex pattern for Riot ID format: GameName#TAG
RIOT_ID_PATTERN = re.compile(r"^(.+?)#([A-Za-z0-9]{2,5})$")


def parse_riot_id(riot_id: str) -> tuple[str, str]:
    """Split `GameName#TAG` into its parts.

    Raises:
        InvalidHandleError: when the input is not a Riot ID
    """
    match = RIOT_ID_PATTERN.match(riot_id.strip())
    if not match:
        raise InvalidHandleError(
            f"Invalid Riot ID: {riot_id!r} (expected GameName#TAG, e.g. Faker#KR1)"
        )
    game_name, tag_line = match.groups()
    return game_name.strip(), tag_line


class IdentityResolver:
    """Resolve `(handle, region)` to a stable id, durable tier first."""

    def __init__(self, identity_service: IdentityServicePort, cache: CacheManager) -> None:
        self._service = identity_service
        self._cache = cache

    async def lookup(self, handle: str, region: str) -> IdentityRecord | None:
        """Cached identity for a handle, without touching the network."""
        game_name, tag_line = parse_riot_id(handle)
        return await self._cached(game_name, tag_line, region)

    async def resolve(self, handle: str, region: str) -> str:
        """Return the stable id for `handle` (`GameName#TAG`) in `region`.

        Raises:
            NotFoundError: upstream reports no such handle
            RateLimitedError: upstream throttled; the caller decides on retries
            UnavailableError: transport failure
        """
        record = await self.resolve_record(handle, region)
        return record.stable_id

    async def resolve_record(self, handle: str, region: str) -> IdentityRecord:
        game_name, tag_line = parse_riot_id(handle)
        cached = await self._cached(game_name, tag_line, region)
        if cached is not None:
            return cached
        record, _ = await self._fetch_shared(game_name, tag_line, region)
        return record

    async def confirm(self, handle: str, region: str) -> tuple[IdentityRecord, AccountProfile]:
        """Call upstream for the account profile, regardless of cache state.

        Used as the fast-path confirmation and the cold-path resolution. A
        cached record is kept as-is (identities are immutable); only a
        missing record is written.
        """
        game_name, tag_line = parse_riot_id(handle)
        return await self._fetch_shared(game_name, tag_line, region)

    async def forget(self, handle: str, region: str) -> None:
        """Drop the durable entry. Explicit user action only."""
        game_name, tag_line = parse_riot_id(handle)
        await self._cache.invalidate(
            CacheTier.DURABLE, CacheKeys.identity(game_name, tag_line, region)
        )
        logger.info(f"Identity forgotten for {game_name}#{tag_line} ({region})")

    # ------------------------------------------------------------------

    async def _cached(self, game_name: str, tag_line: str, region: str) -> IdentityRecord | None:
        return await self._cache.get(
            CacheTier.DURABLE,
            CacheKeys.identity(game_name, tag_line, region),
            model=IdentityRecord,
        )

    async def _fetch_shared(
        self, game_name: str, tag_line: str, region: str
    ) -> tuple[IdentityRecord, AccountProfile]:
        inflight_key = CacheKeys.inflight_identity(game_name, tag_line, region)
        pending: asyncio.Future | None = self._cache.peek(inflight_key)
        if pending is not None:
            return await asyncio.shield(pending)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._cache.put(inflight_key, future)
        try:
            result = await self._fetch(game_name, tag_line, region)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unshared failure does not warn at GC.
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._cache.discard(inflight_key)

    async def _fetch(
        self, game_name: str, tag_line: str, region: str
    ) -> tuple[IdentityRecord, AccountProfile]:
        profile = await self._service.resolve_handle(game_name, tag_line, region)

        key = CacheKeys.identity(game_name, tag_line, region)
        existing = await self._cache.get(CacheTier.DURABLE, key, model=IdentityRecord)
        if existing is not None:
            if existing.stable_id != profile.stable_id:
                logger.warning(
                    f"Upstream id for {game_name}#{tag_line} differs from cached identity; "
                    "keeping cached record"
                )
            return existing, profile

        record = IdentityRecord(
            stable_id=profile.stable_id,
            handle=game_name,
            tag_line=tag_line,
            region=region.strip().lower(),
            resolved_at=datetime.now(UTC),
        )
        await self._cache.set(CacheTier.DURABLE, key, record)
        logger.info(f"Identity resolved for {game_name}#{tag_line} ({region})")
        return record, profile
