"""Live Status Poller - watch whether an identity is in an active game."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from nexra.config.settings import get_settings
from nexra.contracts import ActiveGame, IdentityRecord, PollingSession
from nexra.core.ports import LiveStatusPort

logger = logging.getLogger(__name__)


class LiveStatusPoller:
    """Adaptive poll of the live status service for one identity.

    Two independent loops run while started: the poll loop (30 s between
    requests when idle, 60 s while in game) and a 1 s tick that advances the
    elapsed game-time counter locally. A failed poll reports not-live and the
    schedule continues. Stopping cancels both loops.
    """

    def __init__(
        self,
        live_service: LiveStatusPort,
        target: IdentityRecord,
        *,
        idle_interval: float | None = None,
        in_game_interval: float | None = None,
        tick_interval: float | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_status_change: Callable[[bool], None] | None = None,
    ) -> None:
        settings = get_settings()
        self._service = live_service
        self._target = target
        self.idle_interval = (
            idle_interval if idle_interval is not None else settings.live_poll_idle_seconds
        )
        self.in_game_interval = (
            in_game_interval if in_game_interval is not None else settings.live_poll_in_game_seconds
        )
        self.tick_interval = (
            tick_interval if tick_interval is not None else settings.live_tick_seconds
        )
        self._clock = clock
        self._sleep = sleep
        self._on_status_change = on_status_change

        self._is_live = False
        self._game: ActiveGame | None = None
        self._elapsed = 0
        self._last_check: datetime | None = None
        self._last_error: str | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._tick_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_live(self) -> bool:
        return self._is_live

    @property
    def game(self) -> ActiveGame | None:
        return self._game

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed

    @property
    def last_check(self) -> datetime | None:
        return self._last_check

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def interval(self) -> float:
        """Delay before the next poll, chosen from the latest status."""
        return self.in_game_interval if self._is_live else self.idle_interval

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def session(self) -> PollingSession:
        return PollingSession(
            target_identity=self._target.stable_id,
            interval_ms=int(self.interval * 1000),
            active=self.running,
        )

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def poll_once(self) -> bool:
        """One full request/response cycle; returns the live flag."""
        was_live = self._is_live
        try:
            game = await self._service.get_active_game(self._target.stable_id, self._target.region)
        except Exception as exc:
            logger.warning(f"Live status check failed for {self._target.riot_id}: {exc}")
            self._last_error = str(exc) or type(exc).__name__
            self._set_not_live()
        else:
            self._last_error = None
            if game.active:
                self._is_live = True
                self._game = game
                self._elapsed = self._seed_elapsed(game)
            else:
                self._set_not_live()
        finally:
            self._last_check = datetime.now(UTC)

        if was_live != self._is_live:
            logger.info(
                f"{self._target.riot_id} is {'now in game' if self._is_live else 'no longer in game'}"
            )
            if self._on_status_change is not None:
                try:
                    self._on_status_change(self._is_live)
                except Exception:
                    logger.exception(f"Live status callback failed for {self._target.riot_id}")
        return self._is_live

    def tick(self) -> None:
        """Advance the elapsed counter by one tick while live."""
        if self._is_live:
            self._elapsed += 1

    def _set_not_live(self) -> None:
        self._is_live = False
        self._game = None
        self._elapsed = 0

    def _seed_elapsed(self, game: ActiveGame) -> int:
        # Prefer wall-clock age from the start time; fall back to reported length.
        if game.game_start_time:
            elapsed = int(self._clock() - game.game_start_time / 1000)
            if elapsed > 0:
                return elapsed
        return max(game.game_length or 0, 0)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin both loops; the first poll is issued immediately."""
        if self.running:
            return
        self._poll_task = asyncio.create_task(self._poll_loop())
        self._tick_task = asyncio.create_task(self._tick_loop())
        logger.debug(f"Live polling started for {self._target.riot_id}")

    async def stop(self) -> None:
        """Cancel both loops and wait for them to unwind."""
        tasks = [t for t in (self._poll_task, self._tick_task) if t is not None]
        self._poll_task = None
        self._tick_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if tasks:
            logger.debug(f"Live polling stopped for {self._target.riot_id}")

    async def __aenter__(self) -> LiveStatusPoller:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception:
                logger.exception(f"Live poll cycle failed for {self._target.riot_id}")
            await self._sleep(self.interval)

    async def _tick_loop(self) -> None:
        while True:
            await self._sleep(self.tick_interval)
            self.tick()
