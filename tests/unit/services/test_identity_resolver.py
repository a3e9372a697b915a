"""IdentityResolver unit tests."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from nexra.contracts import AccountProfile, IdentityRecord
from nexra.core.errors import InvalidHandleError, NotFoundError, RateLimitedError
from nexra.core.services.cache_manager import CacheKeys, CacheTier
from nexra.core.services.identity_resolver import IdentityResolver, parse_riot_id


@pytest.mark.parametrize(
    ("riot_id", "expected"),
    [
        ("Faker#KR1", ("Faker", "KR1")),
        ("  Hide on bush#KR1 ", ("Hide on bush", "KR1")),
        ("a#b#EUW", ("a#b", "EUW")),
    ],
)
def test_parse_riot_id(riot_id: str, expected: tuple[str, str]) -> None:
    assert parse_riot_id(riot_id) == expected


@pytest.mark.parametrize("riot_id", ["Faker", "Faker#", "#KR1", "Faker#TOOLONG"])
def test_parse_riot_id_rejects_malformed(riot_id: str) -> None:
    with pytest.raises(InvalidHandleError):
        parse_riot_id(riot_id)


@pytest.mark.asyncio
async def test_second_resolve_is_served_from_durable_cache(cache, faker_profile) -> None:
    service = AsyncMock()
    service.resolve_handle = AsyncMock(return_value=faker_profile)
    resolver = IdentityResolver(service, cache)

    first = await resolver.resolve("Faker#KR1", "kr")
    second = await resolver.resolve("Faker#KR1", "kr")

    assert first == second == "puuid-faker"
    service.resolve_handle.assert_awaited_once_with("Faker", "KR1", "kr")


@pytest.mark.asyncio
async def test_resolution_is_written_before_returning(cache, durable_store, faker_profile) -> None:
    service = AsyncMock()
    service.resolve_handle = AsyncMock(return_value=faker_profile)
    resolver = IdentityResolver(service, cache)

    record = await resolver.resolve_record("Faker#KR1", "KR")

    assert record.stable_id == "puuid-faker"
    assert record.region == "kr"
    assert await durable_store.get(CacheKeys.identity("Faker", "KR1", "kr")) is not None


@pytest.mark.asyncio
async def test_expired_identity_is_refetched(cache, clock, faker_profile) -> None:
    service = AsyncMock()
    service.resolve_handle = AsyncMock(return_value=faker_profile)
    resolver = IdentityResolver(service, cache)

    await resolver.resolve("Faker#KR1", "kr")
    clock.advance(7 * 24 * 3600 + 1)
    await resolver.resolve("Faker#KR1", "kr")

    assert service.resolve_handle.await_count == 2


@pytest.mark.asyncio
async def test_concurrent_resolves_share_one_upstream_call(cache, faker_profile) -> None:
    release = asyncio.Event()

    async def slow_resolve(*_args: object) -> AccountProfile:
        await release.wait()
        return faker_profile

    service = AsyncMock()
    service.resolve_handle = AsyncMock(side_effect=slow_resolve)
    resolver = IdentityResolver(service, cache)

    tasks = [asyncio.create_task(resolver.resolve("Faker#KR1", "kr")) for _ in range(3)]
    await asyncio.sleep(0)
    release.set()
    results = await asyncio.gather(*tasks)

    assert results == ["puuid-faker"] * 3
    service.resolve_handle.assert_awaited_once()
    assert cache.peek(CacheKeys.inflight_identity("Faker", "KR1", "kr")) is None


@pytest.mark.asyncio
async def test_upstream_errors_propagate_and_are_not_cached(cache, faker_profile) -> None:
    service = AsyncMock()
    service.resolve_handle = AsyncMock(
        side_effect=[RateLimitedError(retry_after=2), NotFoundError("Riot account not found"), faker_profile]
    )
    resolver = IdentityResolver(service, cache)

    with pytest.raises(RateLimitedError):
        await resolver.resolve("Faker#KR1", "kr")
    with pytest.raises(NotFoundError):
        await resolver.resolve("Faker#KR1", "kr")
    assert await resolver.resolve("Faker#KR1", "kr") == "puuid-faker"


@pytest.mark.asyncio
async def test_confirm_keeps_existing_record(cache, faker_identity, faker_profile) -> None:
    await cache.set(CacheTier.DURABLE, CacheKeys.identity("Faker", "KR1", "kr"), faker_identity)
    changed = faker_profile.model_copy(update={"stable_id": "other-puuid"})
    service = AsyncMock()
    service.resolve_handle = AsyncMock(return_value=changed)
    resolver = IdentityResolver(service, cache)

    record, profile = await resolver.confirm("Faker#KR1", "kr")

    assert record.stable_id == "puuid-faker"
    assert profile.stable_id == "other-puuid"
    cached = await cache.get(
        CacheTier.DURABLE, CacheKeys.identity("Faker", "KR1", "kr"), model=IdentityRecord
    )
    assert cached.stable_id == "puuid-faker"


@pytest.mark.asyncio
async def test_lookup_never_calls_upstream(cache) -> None:
    service = AsyncMock()
    resolver = IdentityResolver(service, cache)

    assert await resolver.lookup("Faker#KR1", "kr") is None
    service.resolve_handle.assert_not_awaited()


@pytest.mark.asyncio
async def test_forget_removes_durable_entry(cache, faker_profile) -> None:
    service = AsyncMock()
    service.resolve_handle = AsyncMock(return_value=faker_profile)
    resolver = IdentityResolver(service, cache)
    await resolver.resolve("Faker#KR1", "kr")

    await resolver.forget("Faker#KR1", "kr")

    assert await resolver.lookup("Faker#KR1", "kr") is None
