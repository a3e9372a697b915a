"""MatchFeedLoader unit tests: fetch strategies, paging and rate-limit retry."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from nexra.contracts import AggregateStats
from nexra.core.errors import NotFoundError, RateLimitedError, UnavailableError
from nexra.core.services.cache_manager import CacheKeys, CacheTier
from nexra.core.services.identity_resolver import IdentityResolver
from nexra.core.services.match_feed_loader import (
    FetchStrategy,
    MatchFeedLoader,
    merge_matches,
)


def _build(cache, profile, *, matches=None, stats=None, sleep=None):
    identity_service = AsyncMock()
    identity_service.resolve_handle = AsyncMock(return_value=profile)
    match_data = AsyncMock()
    match_data.list_matches = AsyncMock(return_value=matches or [])
    match_data.get_aggregate_stats = AsyncMock(return_value=stats or AggregateStats())
    loader = MatchFeedLoader(
        IdentityResolver(identity_service, cache),
        match_data,
        cache,
        page_size=20,
        short_page_floor=5,
        retry_delay_seconds=2.0,
        sleep=sleep or AsyncMock(),
    )
    return loader, identity_service, match_data


@pytest.mark.asyncio
async def test_cold_path_resolves_before_fetching(cache, faker_profile, make_matches) -> None:
    order: list[str] = []
    loader, identity_service, match_data = _build(cache, faker_profile)

    async def resolve(*_args):
        order.append("identity")
        return faker_profile

    async def list_matches(*_args):
        order.append("matches")
        return make_matches(20)

    async def stats(*_args):
        order.append("stats")
        return AggregateStats(total_games=20, wins=12, losses=8)

    identity_service.resolve_handle.side_effect = resolve
    match_data.list_matches.side_effect = list_matches
    match_data.get_aggregate_stats.side_effect = stats

    result = await loader.load_initial("Faker#KR1", "kr")

    assert result.strategy is FetchStrategy.COLD
    assert order[0] == "identity"
    assert sorted(order[1:]) == ["matches", "stats"]
    assert len(result.matches) == 20
    assert result.aggregate_stats.wins == 12
    match_data.list_matches.assert_awaited_once_with("puuid-faker", "kr", 0, 20)


@pytest.mark.asyncio
async def test_fast_path_issues_all_three_calls_together(
    cache, faker_identity, faker_profile, make_matches
) -> None:
    await cache.set(CacheTier.DURABLE, CacheKeys.identity("Faker", "KR1", "kr"), faker_identity)
    loader, identity_service, match_data = _build(cache, faker_profile)
    started: list[str] = []
    gate = asyncio.Event()

    async def resolve(*_args):
        started.append("identity")
        await gate.wait()
        return faker_profile

    async def list_matches(*_args):
        started.append("matches")
        await gate.wait()
        return make_matches(20)

    async def stats(*_args):
        started.append("stats")
        await gate.wait()
        return AggregateStats()

    identity_service.resolve_handle.side_effect = resolve
    match_data.list_matches.side_effect = list_matches
    match_data.get_aggregate_stats.side_effect = stats

    task = asyncio.create_task(loader.load_initial("Faker#KR1", "kr"))
    for _ in range(5):
        await asyncio.sleep(0)
    # All three are in flight before any of them completes.
    assert sorted(started) == ["identity", "matches", "stats"]
    gate.set()
    result = await task

    assert result.strategy is FetchStrategy.FAST
    assert result.profile == faker_profile


@pytest.mark.asyncio
async def test_fast_path_tolerates_failed_confirmation(
    cache, faker_identity, faker_profile, make_matches
) -> None:
    await cache.set(CacheTier.DURABLE, CacheKeys.identity("Faker", "KR1", "kr"), faker_identity)
    loader, identity_service, match_data = _build(cache, faker_profile, matches=make_matches(20))
    identity_service.resolve_handle.side_effect = UnavailableError("down")

    result = await loader.load_initial("Faker#KR1", "kr")

    assert result.identity == faker_identity
    assert result.profile is None
    assert len(result.matches) == 20


@pytest.mark.asyncio
async def test_cold_path_not_found_propagates(cache, faker_profile) -> None:
    loader, identity_service, match_data = _build(cache, faker_profile)
    identity_service.resolve_handle.side_effect = NotFoundError("Riot account not found")

    with pytest.raises(NotFoundError):
        await loader.load_initial("Nobody#EUW", "euw1")
    match_data.list_matches.assert_not_awaited()


@pytest.mark.asyncio
async def test_stats_failure_degrades_to_none(cache, faker_profile, make_matches) -> None:
    loader, _, match_data = _build(cache, faker_profile, matches=make_matches(5))
    match_data.get_aggregate_stats.side_effect = UnavailableError("stats down")

    result = await loader.load_initial("Faker#KR1", "kr")

    assert result.aggregate_stats is None
    assert len(result.matches) == 5


@pytest.mark.asyncio
async def test_rate_limited_page_is_retried_exactly_once(
    cache, faker_identity, faker_profile, make_matches
) -> None:
    sleep = AsyncMock()
    loader, _, match_data = _build(cache, faker_profile, sleep=sleep)
    match_data.list_matches.side_effect = [RateLimitedError(retry_after=1), make_matches(10)]

    page = await loader.load_more(faker_identity, 20, page_size=10)

    assert len(page.records) == 10
    assert match_data.list_matches.await_count == 2
    sleep.assert_awaited_once_with(2.0)


@pytest.mark.asyncio
async def test_second_rate_limit_surfaces(cache, faker_identity, faker_profile) -> None:
    loader, _, match_data = _build(cache, faker_profile)
    match_data.list_matches.side_effect = [RateLimitedError(), RateLimitedError()]

    with pytest.raises(RateLimitedError):
        await loader.load_more(faker_identity, 20)
    assert match_data.list_matches.await_count == 2
    assert not loader.is_loading(faker_identity)


@pytest.mark.asyncio
async def test_duplicate_load_more_is_suppressed(
    cache, faker_identity, faker_profile, make_matches
) -> None:
    loader, _, match_data = _build(cache, faker_profile)
    gate = asyncio.Event()

    async def list_matches(*_args):
        await gate.wait()
        return make_matches(10, start=20)

    match_data.list_matches.side_effect = list_matches

    first = asyncio.create_task(loader.load_more(faker_identity, 20, page_size=10))
    await asyncio.sleep(0)
    assert loader.is_loading(faker_identity)

    second = await loader.load_more(faker_identity, 20, page_size=10)
    gate.set()
    first_page = await first

    assert second.suppressed
    assert not second.exhausted
    assert len(first_page.records) == 10
    match_data.list_matches.assert_awaited_once()


@pytest.mark.asyncio
async def test_short_page_keeps_paging_open(
    cache, faker_identity, faker_profile, make_matches
) -> None:
    loader, _, match_data = _build(cache, faker_profile, matches=make_matches(3))

    page = await loader.load_more(faker_identity, 20, page_size=10)

    assert len(page.records) == 3
    assert not page.exhausted


@pytest.mark.asyncio
async def test_empty_page_is_exhausted(cache, faker_identity, faker_profile) -> None:
    loader, _, _ = _build(cache, faker_profile, matches=[])

    page = await loader.load_more(faker_identity, 20, page_size=10)

    assert page.exhausted


@pytest.mark.asyncio
async def test_load_recent_fetches_matches_and_stats(
    cache, faker_identity, faker_profile, make_matches
) -> None:
    loader, _, match_data = _build(
        cache, faker_profile, matches=make_matches(10), stats=AggregateStats(total_games=10)
    )

    matches, stats = await loader.load_recent(faker_identity, 10)

    assert len(matches) == 10
    assert stats.total_games == 10
    match_data.list_matches.assert_awaited_once_with("puuid-faker", "kr", 0, 10)


def test_merge_matches_drops_duplicates_and_keeps_order(make_match) -> None:
    existing = [make_match("KR_1"), make_match("KR_2")]
    incoming = [make_match("KR_2"), make_match("KR_3"), make_match("KR_3")]

    merged = merge_matches(existing, incoming)

    assert [m.match_id for m in merged] == ["KR_1", "KR_2", "KR_3"]
