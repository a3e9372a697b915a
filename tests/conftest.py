"""Shared fixtures for the dashboard core tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from nexra.adapters.memory_storage import MemoryStorage
from nexra.contracts import AccountProfile, IdentityRecord, MatchRecord
from nexra.core.services.cache_manager import CacheManager

# 2025-01-01T00:00:00Z
EPOCH = 1_735_689_600.0


class FakeClock:
    """Manually advanced wall clock (seconds since epoch)."""

    def __init__(self, start: float = EPOCH) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_store() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def durable_store() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def cache(
    session_store: MemoryStorage, durable_store: MemoryStorage, clock: FakeClock
) -> CacheManager:
    return CacheManager(
        session_store,
        durable_store,
        session_ttl_seconds=300,
        durable_ttl_seconds=7 * 24 * 3600,
        clock=clock,
    )


@pytest.fixture
def make_match() -> Callable[..., MatchRecord]:
    def _make(match_id: str, **overrides: Any) -> MatchRecord:
        payload: dict[str, Any] = {
            "matchId": match_id,
            "win": True,
            "champion": "Ahri",
            "kills": 7,
            "deaths": 2,
            "assists": 9,
            "gameMode": "CLASSIC",
            "queueId": 420,
            "gameDuration": 1820,
            "timestamp": 1_735_000_000_000,
        }
        payload.update(overrides)
        return MatchRecord.model_validate(payload)

    return _make


@pytest.fixture
def make_matches(
    make_match: Callable[..., MatchRecord],
) -> Callable[..., list[MatchRecord]]:
    def _make(count: int, start: int = 0, prefix: str = "KR") -> list[MatchRecord]:
        return [make_match(f"{prefix}_{7_000_000_000 + i}") for i in range(start, start + count)]

    return _make


@pytest.fixture
def faker_profile() -> AccountProfile:
    return AccountProfile.model_validate(
        {
            "puuid": "puuid-faker",
            "gameName": "Faker",
            "tagLine": "KR1",
            "profileIconId": 6,
            "summonerLevel": 812,
            "rank": {"tier": "CHALLENGER", "rank": "I", "leaguePoints": 1204, "wins": 180, "losses": 120},
        }
    )


@pytest.fixture
def faker_identity() -> IdentityRecord:
    return IdentityRecord(stable_id="puuid-faker", handle="Faker", tag_line="KR1", region="kr")
