"""Analysis Job Controller - credit-gated analysis per match.

State machine per match id::

    NOT_STARTED -> PROCESSING -> COMPLETED
                             `-> FAILED

Step order inside `start_analysis` is strict: optimistic PROCESSING, credit
consumption, analysis submission, terminal transition. The optimistic state
is provisional; if consumption fails it is rolled back to NOT_STARTED and the
compute service is never called. `credit_consumed` is only set after the
ledger reported success.

Jobs and results live in the MEMORY cache tier: they outlive snapshot TTLs
but not the page session.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any, Literal

from nexra.config.settings import get_settings
from nexra.contracts import (
    AnalysisJob,
    AnalysisOverview,
    AnalysisResult,
    AnalysisState,
    AnalysisTarget,
    MatchRecord,
    SessionContext,
)
from nexra.core.errors import (
    AnalysisInProgressError,
    AnalysisStateError,
    InsufficientCreditsError,
    UnauthorizedError,
)
from nexra.core.ports import AnalysisComputePort, CreditLedgerPort
from nexra.core.services.cache_manager import CacheKeys, CacheManager

logger = logging.getLogger(__name__)

StatusFilter = Literal["all", "ready", "processing", "completed"]

_FILTER_STATES: dict[str, AnalysisState] = {
    "ready": AnalysisState.NOT_STARTED,
    "processing": AnalysisState.PROCESSING,
    "completed": AnalysisState.COMPLETED,
}


class AnalysisJobController:
    def __init__(
        self,
        credit_ledger: CreditLedgerPort,
        compute: AnalysisComputePort,
        cache: CacheManager,
        *,
        allow_retry_after_failure: bool | None = None,
        refund_on_failure: bool | None = None,
    ) -> None:
        settings = get_settings()
        self._ledger = credit_ledger
        self._compute = compute
        self._cache = cache
        self.allow_retry_after_failure = (
            settings.analysis_allow_retry_after_failure
            if allow_retry_after_failure is None
            else allow_retry_after_failure
        )
        self.refund_on_failure = (
            settings.analysis_refund_on_failure if refund_on_failure is None else refund_on_failure
        )
        self._purchase_required = False

    # ------------------------------------------------------------------
    # Getters for the presentation layer
    # ------------------------------------------------------------------

    @property
    def purchase_required(self) -> bool:
        """Set when a start failed for lack of credits; the host shows the purchase flow."""
        return self._purchase_required

    def acknowledge_purchase(self) -> None:
        self._purchase_required = False

    def job(self, match_id: str) -> AnalysisJob | None:
        return self._cache.peek(CacheKeys.analysis_job(match_id))

    def state_of(self, match_id: str) -> AnalysisState:
        job = self.job(match_id)
        return job.state if job else AnalysisState.NOT_STARTED

    def result(self, match_id: str) -> AnalysisResult | None:
        return self._cache.peek(CacheKeys.analysis_result(match_id))

    def is_in_flight(self, match_id: str) -> bool:
        return bool(self._cache.peek(CacheKeys.inflight("analysis", match_id)))

    def project(self, record: MatchRecord) -> MatchRecord:
        """Overlay the job state (and result summary) onto a match record."""
        job = self.job(record.match_id)
        if job is None:
            return record
        update: dict[str, Any] = {
            "analysis_state": job.state,
            "analysis_job_id": job.job_id,
        }
        if job.state == AnalysisState.COMPLETED and job.result_payload is not None:
            update["score"] = job.result_payload.score
            update["error_count"] = job.result_payload.error_count
        return record.model_copy(update=update)

    def project_all(self, records: Iterable[MatchRecord]) -> list[MatchRecord]:
        return [self.project(record) for record in records]

    def overview(self, records: Iterable[MatchRecord]) -> AnalysisOverview:
        return build_overview(self.project_all(records))

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    async def start_analysis(
        self,
        match_id: str,
        target: AnalysisTarget,
        session: SessionContext | None,
    ) -> AnalysisJob:
        """Spend one credit and run the analysis for `match_id`.

        Returns the job in its terminal state (COMPLETED or FAILED). A job
        that already COMPLETED is returned as-is without another charge.

        Raises:
            UnauthorizedError: no authenticated session
            InsufficientCreditsError: balance is zero or the ledger declined;
                `purchase_required` is raised, nothing is retried
            AnalysisInProgressError: a job for this match is already in flight
            AnalysisStateError: job FAILED and retries are disabled
            Any consume-credit failure, after rolling back to NOT_STARTED
        """
        if session is None or not session.is_authenticated:
            raise UnauthorizedError("Sign in to analyse matches")

        inflight_key = CacheKeys.inflight("analysis", match_id)
        if self._cache.peek(inflight_key):
            logger.info(f"Analysis already in flight for {match_id}; ignoring start")
            raise AnalysisInProgressError(f"Analysis already running for {match_id}")

        # Finished jobs are answered before the balance is looked at.
        current = self.job(match_id)
        if current is not None:
            if current.state == AnalysisState.COMPLETED:
                return current
            if current.state == AnalysisState.FAILED and not self.allow_retry_after_failure:
                raise AnalysisStateError(f"Analysis for {match_id} failed and cannot be restarted")

        if session.credit_balance <= 0:
            self._purchase_required = True
            raise InsufficientCreditsError()

        self._cache.put(inflight_key, True)
        try:
            return await self._run(match_id, target, session)
        finally:
            self._cache.discard(inflight_key)

    async def _run(
        self, match_id: str, target: AnalysisTarget, session: SessionContext
    ) -> AnalysisJob:
        user_id = str(session.user_id)
        self._transition(
            match_id,
            AnalysisState.PROCESSING,
            credit_consumed=False,
            job_id=None,
            result_payload=None,
            error_message=None,
        )

        try:
            consumption = await self._ledger.consume_credit(user_id)
            if not consumption.success:
                raise InsufficientCreditsError("Credit ledger declined the request")
        except InsufficientCreditsError:
            self._rollback(match_id)
            self._purchase_required = True
            session.credit_balance = 0
            logger.info(f"Analysis for {match_id} not started: no credits")
            raise
        except (Exception, asyncio.CancelledError) as exc:
            self._rollback(match_id)
            logger.warning(f"Credit consumption failed for {match_id}: {exc}")
            raise

        session.credit_balance = consumption.remaining_balance
        self._transition(match_id, AnalysisState.PROCESSING, credit_consumed=True)

        try:
            result = await self._compute.submit_analysis(match_id, target)
        except (Exception, asyncio.CancelledError) as exc:
            logger.error(f"Analysis failed for {match_id} after credit consumption: {exc}")
            job = self._transition(match_id, AnalysisState.FAILED, error_message=str(exc) or None)
            if self.refund_on_failure and not isinstance(exc, asyncio.CancelledError):
                await self._refund(match_id, session)
            if isinstance(exc, asyncio.CancelledError):
                raise
            return job

        self._cache.put(CacheKeys.analysis_result(match_id), result)
        job = self._transition(
            match_id,
            AnalysisState.COMPLETED,
            job_id=result.id,
            result_payload=result,
        )
        logger.info(
            f"Analysis completed for {match_id}: score={result.score} errors={result.error_count}"
        )
        return job

    def _transition(self, match_id: str, state: AnalysisState, **fields: Any) -> AnalysisJob:
        key = CacheKeys.analysis_job(match_id)
        current: AnalysisJob | None = self._cache.peek(key)
        base = current or AnalysisJob(match_id=match_id)
        job = base.model_copy(update={"state": state, "updated_at": datetime.now(UTC), **fields})
        self._cache.put(key, job)
        return job

    def _rollback(self, match_id: str) -> None:
        self._transition(
            match_id, AnalysisState.NOT_STARTED, credit_consumed=False, error_message=None
        )

    async def _refund(self, match_id: str, session: SessionContext) -> None:
        try:
            refund = await self._ledger.refund_credit(str(session.user_id))
        except Exception as exc:
            logger.error(f"Credit refund failed for {match_id}: {exc}")
            return
        if refund.success:
            session.credit_balance = refund.remaining_balance
            self._transition(match_id, AnalysisState.FAILED, credit_consumed=False)
            logger.info(f"Credit refunded for failed analysis {match_id}")


# ----------------------------------------------------------------------
# Analysis tab helpers
# ----------------------------------------------------------------------


def filter_by_status(records: Iterable[MatchRecord], status: StatusFilter) -> list[MatchRecord]:
    """Filter projected records by analysis status bucket."""
    if status == "all":
        return list(records)
    wanted = _FILTER_STATES[status]
    return [r for r in records if r.analysis_state == wanted]


def status_counts(records: Iterable[MatchRecord]) -> dict[str, int]:
    records = list(records)
    counts = {"all": len(records)}
    for name, state in _FILTER_STATES.items():
        counts[name] = sum(1 for r in records if r.analysis_state == state)
    return counts


def build_overview(records: Iterable[MatchRecord]) -> AnalysisOverview:
    """Aggregate score/error figures over completed (projected) records."""
    completed = [r for r in records if r.analysis_state == AnalysisState.COMPLETED]
    total = len(completed)
    if total == 0:
        return AnalysisOverview()
    total_errors = sum(r.error_count or 0 for r in completed)
    return AnalysisOverview(
        total_games=total,
        avg_score=round(sum(r.score or 0 for r in completed) / total),
        win_rate=round(sum(1 for r in completed if r.is_win) / total * 100),
        total_errors=total_errors,
        avg_errors_per_game=round(total_errors / total, 1),
    )
