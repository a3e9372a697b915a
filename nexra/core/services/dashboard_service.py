"""Dashboard Service - view-facing orchestration of identity, feed and cache.

Holds the `DashboardState` of the mounted dashboard and the session-tier
snapshots behind it. Upstream failures never clear data already shown: they
land in `state.error` as a dismissible `SurfacedError`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from nexra.config.settings import get_settings
from nexra.contracts import (
    AnalysisOverview,
    DashboardSnapshot,
    DashboardState,
    IdentityRecord,
    IdentitySummary,
    MatchRecord,
    PlayerPopupSnapshot,
    Queue,
    SurfacedError,
)
from nexra.core.errors import NexraError, NotFoundError, UnauthorizedError
from nexra.core.services.analysis_job_controller import (
    AnalysisJobController,
    StatusFilter,
    filter_by_status,
)
from nexra.core.services.cache_manager import CacheKeys, CacheManager, CacheTier
from nexra.core.services.identity_resolver import IdentityResolver, parse_riot_id
from nexra.core.services.match_feed_loader import MatchFeedLoader, merge_matches

logger = logging.getLogger(__name__)

# Errors after which paging stops until the user acts.
_UNRECOVERABLE = (NotFoundError, UnauthorizedError)


def filter_by_queue(records: Iterable[MatchRecord], queue: str | int) -> list[MatchRecord]:
    """Game mode filter: `"all"` or a queue id (as int or string)."""
    if isinstance(queue, str) and queue.strip().lower() == "all":
        return list(records)
    queue_id = int(queue)
    return [r for r in records if r.queue_id == queue_id]


def ranked_solo(records: Iterable[MatchRecord]) -> list[MatchRecord]:
    """Only ranked solo/duo games are eligible for analysis."""
    return filter_by_queue(records, Queue.RANKED_SOLO_5x5.value)


class DashboardService:
    def __init__(
        self,
        resolver: IdentityResolver,
        loader: MatchFeedLoader,
        controller: AnalysisJobController,
        cache: CacheManager,
        *,
        load_more_page_size: int | None = None,
        popup_match_count: int | None = None,
    ) -> None:
        settings = get_settings()
        self._resolver = resolver
        self._loader = loader
        self._controller = controller
        self._cache = cache
        self.load_more_page_size = load_more_page_size or settings.load_more_page_size
        self.popup_match_count = popup_match_count or settings.popup_match_count
        self._state = DashboardState()

    @property
    def state(self) -> DashboardState:
        return self._state

    def dismiss_error(self) -> None:
        self._state.error = None

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    async def load_dashboard(
        self, handle: str, region: str, force: bool = False
    ) -> DashboardState:
        """Show the dashboard for `handle` in `region`.

        Serves the session snapshot when fresh. `force` (the user's explicit
        reload) invalidates it first.
        """
        self._state.error = None
        try:
            game_name, tag_line = parse_riot_id(handle)
        except NexraError as exc:
            self._surface(exc)
            return self._state

        key = CacheKeys.dashboard(game_name, tag_line, region)
        if force:
            await self._cache.invalidate(CacheTier.SESSION, key)
        else:
            cached = await self._cache.get(CacheTier.SESSION, key, model=DashboardSnapshot)
            if cached is not None:
                logger.debug(f"Serving cached dashboard for {game_name}#{tag_line}")
                self._state.snapshot = cached
                self._state.has_more = len(cached.match_page) > 0
                return self._state

        self._state.is_loading = True
        try:
            result = await self._loader.load_initial(handle, region)
        except NexraError as exc:
            self._surface(exc)
            return self._state
        finally:
            self._state.is_loading = False

        snapshot = DashboardSnapshot(
            identity_summary=IdentitySummary.from_identity(result.identity, result.profile),
            match_page=result.matches,
            aggregate_stats=result.aggregate_stats,
            captured_at=self._cache.now(),
        )
        await self._cache.set(CacheTier.SESSION, key, snapshot, captured_at=snapshot.captured_at)
        self._state.snapshot = snapshot
        self._state.has_more = result.has_more
        return self._state

    async def load_more(
        self, handle: str, region: str, page_size: int | None = None
    ) -> DashboardState:
        """Append the next page to the snapshot (infinite scroll)."""
        game_name, tag_line = parse_riot_id(handle)
        key = CacheKeys.dashboard(game_name, tag_line, region)
        current = await self._current_snapshot(key)
        if current is None:
            logger.warning(f"load_more for {game_name}#{tag_line} without a loaded dashboard")
            return self._state

        identity = self._identity_of(current)
        if self._loader.is_loading(identity):
            return self._state

        self._state.error = None
        self._state.is_loading_more = True
        try:
            page = await self._loader.load_more(
                identity, len(current.match_page), page_size or self.load_more_page_size
            )
        except NexraError as exc:
            self._surface(exc)
            if isinstance(exc, _UNRECOVERABLE):
                self._state.has_more = False
            return self._state
        finally:
            self._state.is_loading_more = False

        if page.suppressed:
            return self._state
        if page.exhausted:
            self._state.has_more = False
            return self._state

        # Read-modify-write of the whole snapshot.
        latest = await self._current_snapshot(key) or current
        snapshot = DashboardSnapshot(
            identity_summary=latest.identity_summary,
            match_page=merge_matches(latest.match_page, page.records),
            aggregate_stats=latest.aggregate_stats,
            captured_at=self._cache.now(),
        )
        await self._cache.set(CacheTier.SESSION, key, snapshot, captured_at=snapshot.captured_at)
        self._state.snapshot = snapshot
        self._state.has_more = True
        return self._state

    # ------------------------------------------------------------------
    # Analysis tab
    # ------------------------------------------------------------------

    def analysis_view(self) -> DashboardSnapshot | None:
        """Current snapshot with every match projected through its analysis job."""
        snapshot = self._state.snapshot
        if snapshot is None:
            return None
        return snapshot.model_copy(
            update={"match_page": self._controller.project_all(snapshot.match_page)}
        )

    def analysis_matches(self, status: StatusFilter = "all") -> list[MatchRecord]:
        view = self.analysis_view()
        if view is None:
            return []
        return filter_by_status(ranked_solo(view.match_page), status)

    def analysis_overview(self) -> AnalysisOverview:
        snapshot = self._state.snapshot
        if snapshot is None:
            return AnalysisOverview()
        return self._controller.overview(ranked_solo(snapshot.match_page))

    # ------------------------------------------------------------------
    # Player popup / account
    # ------------------------------------------------------------------

    async def load_player_popup(self, handle: str, region: str) -> PlayerPopupSnapshot:
        """Recent matches and stats for a scoreboard player.

        Raises:
            NotFoundError / RateLimitedError / UnavailableError
        """
        game_name, tag_line = parse_riot_id(handle)
        key = CacheKeys.popup(game_name, tag_line, region)
        cached = await self._cache.get(CacheTier.SESSION, key, model=PlayerPopupSnapshot)
        if cached is not None:
            return cached

        identity = await self._resolver.resolve_record(handle, region)
        matches, stats = await self._loader.load_recent(identity, self.popup_match_count)
        popup = PlayerPopupSnapshot(
            identity_summary=IdentitySummary.from_identity(identity),
            recent_matches=matches,
            aggregate_stats=stats,
            captured_at=self._cache.now(),
        )
        await self._cache.set(CacheTier.SESSION, key, popup, captured_at=popup.captured_at)
        return popup

    async def unlink_account(self, handle: str, region: str) -> None:
        """Drop everything cached for a handle (e.g. before linking another account)."""
        game_name, tag_line = parse_riot_id(handle)
        await self._resolver.forget(handle, region)
        await self._cache.invalidate(
            CacheTier.SESSION, CacheKeys.dashboard(game_name, tag_line, region)
        )
        await self._cache.invalidate(CacheTier.SESSION, CacheKeys.popup(game_name, tag_line, region))

        shown = self._state.snapshot
        if shown is not None and self._shows(shown, game_name, tag_line, region):
            self._state = DashboardState()

    # ------------------------------------------------------------------

    async def _current_snapshot(self, key: str) -> DashboardSnapshot | None:
        cached = await self._cache.get(CacheTier.SESSION, key, model=DashboardSnapshot)
        if cached is not None:
            return cached
        shown = self._state.snapshot
        if shown is not None and key == CacheKeys.dashboard(
            shown.identity_summary.handle,
            shown.identity_summary.tag_line,
            shown.identity_summary.region,
        ):
            return shown
        return None

    @staticmethod
    def _identity_of(snapshot: DashboardSnapshot) -> IdentityRecord:
        summary = snapshot.identity_summary
        return IdentityRecord(
            stable_id=summary.stable_id,
            handle=summary.handle,
            tag_line=summary.tag_line,
            region=summary.region,
        )

    @staticmethod
    def _shows(snapshot: DashboardSnapshot, game_name: str, tag_line: str, region: str) -> bool:
        summary = snapshot.identity_summary
        return (
            summary.handle.lower() == game_name.lower()
            and summary.tag_line.lower() == tag_line.lower()
            and summary.region.lower() == region.strip().lower()
        )

    def _surface(self, exc: NexraError) -> None:
        logger.warning(f"Dashboard request failed ({exc.kind}): {exc.message}")
        self._state.error = SurfacedError(
            kind=exc.kind, message=exc.message, retryable=exc.retryable
        )
