"""Unit tests for the dashboard API gateway.

The aiohttp session is replaced with a MagicMock whose `get`/`post` return
async context managers, so no network is touched.
"""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
import pytest_asyncio

from nexra.adapters.nexra_gateway import NexraGateway
from nexra.contracts import AnalysisTarget, Outcome
from nexra.core.errors import (
    InsufficientCreditsError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
    UnavailableError,
)


def _response(status: int = 200, body: Any = None, headers: dict[str, str] | None = None):
    response = MagicMock()
    response.status = status
    response.headers = headers or {}
    response.json = AsyncMock(return_value=body)
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=False)
    return response


class TestNexraGateway:
    @pytest.fixture
    def gateway(self) -> NexraGateway:
        return NexraGateway("http://nexra.test/", access_token="secret-token", timeout_seconds=5)

    @pytest_asyncio.fixture
    async def session(self, gateway: NexraGateway) -> MagicMock:
        session = MagicMock()
        session.closed = False
        gateway._session = session
        gateway._session_loop = asyncio.get_running_loop()
        return session

    @pytest.mark.asyncio
    async def test_resolve_handle(self, gateway, session) -> None:
        session.get.return_value = _response(
            body={
                "puuid": "puuid-faker",
                "profileIconId": 6,
                "summonerLevel": 812,
                "gameName": "Faker",
                "tagLine": "KR1",
                "rank": {"tier": "CHALLENGER", "rank": "I", "leaguePoints": 1204, "wins": 1, "losses": 1},
            }
        )

        profile = await gateway.resolve_handle("Faker", "KR1", "kr")

        assert profile.stable_id == "puuid-faker"
        assert profile.summoner_level == 812
        assert profile.rank.division == "I"
        url = session.get.call_args.args[0]
        kwargs = session.get.call_args.kwargs
        assert url == "http://nexra.test/api/riot/summoner"
        assert kwargs["params"] == {"gameName": "Faker", "tagLine": "KR1", "region": "kr"}
        assert kwargs["headers"]["Authorization"] == "Bearer secret-token"

    @pytest.mark.asyncio
    async def test_list_matches_parses_records_and_skips_malformed(self, gateway, session) -> None:
        session.get.return_value = _response(
            body=[
                {"matchId": "KR_1", "win": True, "champion": "Ahri", "queueId": 420, "teamPosition": "MIDDLE"},
                {"matchId": "KR_2", "win": False, "champion": "Azir", "queueId": 420},
                {"champion": "no id"},
            ]
        )

        records = await gateway.list_matches("puuid-faker", "kr", 20, 10)

        assert [r.match_id for r in records] == ["KR_1", "KR_2"]
        assert records[0].outcome is Outcome.WIN
        assert records[0].role == "MIDDLE"
        assert records[1].outcome is Outcome.LOSS
        params = session.get.call_args.kwargs["params"]
        assert params == {"puuid": "puuid-faker", "region": "kr", "start": "20", "count": "10"}

    @pytest.mark.asyncio
    async def test_aggregate_stats_uses_routing_cluster(self, gateway, session) -> None:
        session.get.return_value = _response(body={"totalGames": 20, "mainRole": "MID"})

        stats = await gateway.get_aggregate_stats("puuid-faker", "kr")

        assert stats.total_games == 20
        assert stats.model_extra["mainRole"] == "MID"
        assert session.get.call_args.kwargs["params"]["region"] == "asia"

    @pytest.mark.asyncio
    async def test_live_game_not_found_means_not_in_game(self, gateway, session) -> None:
        session.get.return_value = _response(status=404, body={"error": "Not in game"})

        game = await gateway.get_active_game("puuid-faker", "kr")

        assert game.active is False

    @pytest.mark.asyncio
    async def test_live_game_lifts_timing(self, gateway, session) -> None:
        session.get.return_value = _response(
            body={"inGame": True, "gameData": {"gameStartTime": 1_700_000_000_000, "gameLength": 420}}
        )

        game = await gateway.get_active_game("puuid-faker", "kr")

        assert game.active is True
        assert game.game_start_time == 1_700_000_000_000
        assert game.game_length == 420

    @pytest.mark.asyncio
    async def test_consume_credit(self, gateway, session) -> None:
        session.post.return_value = _response(body={"success": True, "remainingBalance": 4})

        consumption = await gateway.consume_credit("user-1")

        assert consumption.success is True
        assert consumption.remaining_balance == 4
        assert session.post.call_args.kwargs["json"] == {"userId": "user-1"}

    @pytest.mark.asyncio
    async def test_submit_analysis_has_no_client_deadline(self, gateway, session) -> None:
        session.post.return_value = _response(
            body={"id": "an-1", "stats": {"overallScore": 71.5}, "errors": [], "tips": []}
        )

        result = await gateway.submit_analysis(
            "KR_1", AnalysisTarget(stable_id="puuid-faker", region="kr")
        )

        assert result.id == "an-1"
        assert result.match_id == "KR_1"
        assert result.score == 71.5
        kwargs = session.post.call_args.kwargs
        assert kwargs["json"] == {"matchId": "KR_1", "puuid": "puuid-faker", "region": "kr"}
        assert kwargs["timeout"].total is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "error"),
        [
            (404, NotFoundError),
            (401, UnauthorizedError),
            (403, UnauthorizedError),
            (402, InsufficientCreditsError),
            (500, UnavailableError),
            (503, UnavailableError),
        ],
    )
    async def test_status_mapping(self, gateway, session, status, error) -> None:
        session.post.return_value = _response(status=status, body={"error": "nope"})

        with pytest.raises(error) as exc_info:
            await gateway.consume_credit("user-1")
        assert exc_info.value.message == "nope"

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self, gateway, session) -> None:
        session.get.return_value = _response(status=429, body={}, headers={"Retry-After": "3"})

        with pytest.raises(RateLimitedError) as exc_info:
            await gateway.list_matches("puuid-faker", "kr", 0, 20)
        assert exc_info.value.retry_after == 3

    @pytest.mark.asyncio
    async def test_transport_errors_become_unavailable(self, gateway, session) -> None:
        session.get.side_effect = aiohttp.ClientConnectionError("connection reset")

        with pytest.raises(UnavailableError):
            await gateway.list_matches("puuid-faker", "kr", 0, 20)

    @pytest.mark.asyncio
    async def test_timeout_becomes_unavailable(self, gateway, session) -> None:
        session.get.side_effect = asyncio.TimeoutError()

        with pytest.raises(UnavailableError):
            await gateway.resolve_handle("Faker", "KR1", "kr")

    @pytest.mark.asyncio
    async def test_undecodable_body_becomes_unavailable(self, gateway, session) -> None:
        response = _response()
        response.json = AsyncMock(side_effect=ValueError("bad json"))
        session.get.return_value = response

        with pytest.raises(UnavailableError):
            await gateway.get_aggregate_stats("puuid-faker", "kr")

    @pytest.mark.asyncio
    async def test_unexpected_payload_becomes_unavailable(self, gateway, session) -> None:
        session.get.return_value = _response(body={"profileIconId": 6})

        with pytest.raises(UnavailableError):
            await gateway.resolve_handle("Faker", "KR1", "kr")

    @pytest.mark.asyncio
    async def test_close_releases_session(self, gateway, session) -> None:
        session.close = AsyncMock()

        await gateway.close()

        session.close.assert_awaited_once()
        assert gateway._session is None
