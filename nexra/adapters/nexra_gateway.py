"""HTTP gateway to the dashboard API.

Implements every upstream port (identity, match data, live status, credit
ledger, analysis compute) over one reusable aiohttp session and translates
HTTP outcomes into the core error taxonomy:

- 404 -> NotFoundError
- 429 -> RateLimitedError (Retry-After honoured when present)
- 401/403 -> UnauthorizedError
- 402 -> InsufficientCreditsError
- 5xx, transport errors, timeouts, undecodable bodies -> UnavailableError
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, TypeVar

import aiohttp
from pydantic import BaseModel, ValidationError

from nexra.config.settings import get_settings
from nexra.contracts import (
    AccountProfile,
    ActiveGame,
    AggregateStats,
    AnalysisResult,
    AnalysisTarget,
    CreditConsumption,
    MatchRecord,
    routing_for,
)
from nexra.core.errors import (
    InsufficientCreditsError,
    NexraError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
    UnavailableError,
)
from nexra.core.observability import trace_adapter
from nexra.core.ports import (
    AnalysisComputePort,
    CreditLedgerPort,
    IdentityServicePort,
    LiveStatusPort,
    MatchDataPort,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class NexraGateway(
    IdentityServicePort,
    MatchDataPort,
    LiveStatusPort,
    CreditLedgerPort,
    AnalysisComputePort,
):
    def __init__(
        self,
        base_url: str | None = None,
        *,
        access_token: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.nexra_api_base_url).rstrip("/")
        self._timeout = (
            timeout_seconds
            if timeout_seconds is not None
            else settings.nexra_request_timeout_seconds
        )
        self.access_token = access_token
        self._session: aiohttp.ClientSession | None = None
        self._session_loop: asyncio.AbstractEventLoop | None = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        loop = asyncio.get_running_loop()
        needs_new_session = (
            self._session is None
            or getattr(self._session, "closed", True)
            or self._session_loop is not loop
        )
        if needs_new_session:
            if self._session and not getattr(self._session, "closed", True):
                try:
                    await self._session.close()
                except Exception:
                    logger.warning("Failed to close stale gateway session", exc_info=True)
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout)
            )
            self._session_loop = loop
        return self._session

    async def close(self) -> None:
        try:
            if self._session and not self._session.closed:
                await self._session.close()
        finally:
            self._session = None
            self._session_loop = None

    async def __aenter__(self) -> NexraGateway:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @trace_adapter
    async def resolve_handle(self, handle: str, tag_line: str, region: str) -> AccountProfile:
        data = await self._request(
            "GET",
            "/api/riot/summoner",
            params={"gameName": handle, "tagLine": tag_line, "region": region},
        )
        profile = _parse(AccountProfile, data)
        if profile.game_name is None or profile.tag_line is None:
            profile = profile.model_copy(
                update={
                    "game_name": profile.game_name or handle,
                    "tag_line": profile.tag_line or tag_line,
                }
            )
        return profile

    # ------------------------------------------------------------------
    # Match data
    # ------------------------------------------------------------------

    @trace_adapter
    async def list_matches(
        self, stable_id: str, region: str, offset: int, limit: int
    ) -> list[MatchRecord]:
        data = await self._request(
            "GET",
            "/api/riot/matches",
            params={"puuid": stable_id, "region": region, "start": offset, "count": limit},
        )
        if not isinstance(data, list):
            raise UnavailableError("Match list response is not a list")

        records: list[MatchRecord] = []
        for item in data:
            try:
                records.append(MatchRecord.model_validate(item))
            except ValidationError as exc:
                logger.warning(f"Skipping malformed match entry: {exc}")
        return records

    @trace_adapter
    async def get_aggregate_stats(self, stable_id: str, region: str) -> AggregateStats:
        data = await self._request(
            "GET",
            "/api/riot/player-stats",
            params={"puuid": stable_id, "region": routing_for(region).value},
        )
        return _parse(AggregateStats, data)

    # ------------------------------------------------------------------
    # Live status
    # ------------------------------------------------------------------

    @trace_adapter
    async def get_active_game(self, stable_id: str, region: str) -> ActiveGame:
        try:
            data = await self._request(
                "GET", "/api/riot/live-game", params={"puuid": stable_id, "region": region}
            )
        except NotFoundError:
            return ActiveGame(active=False)
        return _parse(ActiveGame, data)

    # ------------------------------------------------------------------
    # Credits
    # ------------------------------------------------------------------

    @trace_adapter
    async def consume_credit(self, user_id: str) -> CreditConsumption:
        data = await self._request("POST", "/api/credits/consume", json={"userId": user_id})
        return _parse(CreditConsumption, data)

    @trace_adapter
    async def refund_credit(self, user_id: str) -> CreditConsumption:
        data = await self._request("POST", "/api/credits/refund", json={"userId": user_id})
        return _parse(CreditConsumption, data)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    @trace_adapter
    async def submit_analysis(self, match_id: str, target: AnalysisTarget) -> AnalysisResult:
        # No client-side deadline: the analysis call blocks until the backend answers.
        data = await self._request(
            "POST",
            "/api/analysis/analyze",
            json={"matchId": match_id, "puuid": target.stable_id, "region": target.region},
            timeout=aiohttp.ClientTimeout(total=None),
        )
        if isinstance(data, dict) and isinstance(data.get("analysis"), dict):
            data = data["analysis"]
        result = _parse(AnalysisResult, data)
        if result.match_id is None:
            result = result.model_copy(update={"match_id": match_id})
        return result

    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        options: dict[str, Any] = {"headers": self._headers()}
        if params is not None:
            options["params"] = {k: str(v) for k, v in params.items()}
        if json is not None:
            options["json"] = json
        if timeout is not None:
            options["timeout"] = timeout

        try:
            session = await self._ensure_session()
            call = session.get if method == "GET" else session.post
            async with call(url, **options) as resp:
                if resp.status >= 400:
                    raise await self._error_for(resp, path)
                try:
                    return await resp.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError) as exc:
                    raise UnavailableError(f"Undecodable response from {path}") from exc
        except NexraError:
            raise
        except asyncio.TimeoutError as exc:
            raise UnavailableError(f"Request to {path} timed out") from exc
        except aiohttp.ClientError as exc:
            raise UnavailableError(f"Request to {path} failed: {exc}") from exc

    @staticmethod
    async def _error_for(resp: Any, path: str) -> NexraError:
        message = await _error_message(resp) or f"{path} returned {resp.status}"
        status = resp.status
        if status == 404:
            return NotFoundError(message, status_code=404)
        if status == 429:
            retry_after = resp.headers.get("Retry-After") if resp.headers else None
            try:
                retry = int(retry_after) if retry_after is not None else None
            except (TypeError, ValueError):
                retry = None
            return RateLimitedError(message, retry_after=retry)
        if status in (401, 403):
            return UnauthorizedError(message, status_code=status)
        if status == 402:
            return InsufficientCreditsError(message, status_code=402)
        logger.error(f"Gateway error {status} from {path}: {message}")
        return UnavailableError(message, status_code=status)


async def _error_message(resp: Any) -> str | None:
    try:
        body = await resp.json(content_type=None)
    except Exception:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None


def _parse(model: type[M], data: Any) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise UnavailableError(
            f"Unexpected {model.__name__} payload: {exc.error_count()} errors"
        ) from exc
