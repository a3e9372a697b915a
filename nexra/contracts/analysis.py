"""
Analysis job contracts.

An analysis job turns a finished match plus a spent credit into a stored
analysis result. The compute service and credit ledger are external; these
models describe only what the job controller consumes and exposes.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import ConfigDict, Field

from .common import AnalysisState, BaseContract


class SessionContext(BaseContract):
    """Authenticated user session supplied by the auth provider."""

    user_id: str | None = None
    access_token: str | None = None
    credit_balance: int = Field(0, ge=0)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id and self.access_token)


class AnalysisTarget(BaseContract):
    """Identity context sent along with an analysis request."""

    stable_id: str = Field(..., min_length=1, description="Riot PUUID of the analysed player")
    region: str = Field(..., min_length=1)


class CreditConsumption(BaseContract):
    success: bool
    remaining_balance: int = Field(0, ge=0)


class AnalysisStats(BaseContract):
    model_config = ConfigDict(extra="allow")

    overall_score: float = 0.0
    cs_score: float | None = None
    vision_score: float | None = None
    positioning_score: float | None = None
    objective_score: float | None = None


class AnalysisResult(BaseContract):
    """Full result payload returned by the compute service."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1, description="Analysis id issued by the compute service")
    match_id: str | None = None
    stats: AnalysisStats = Field(default_factory=AnalysisStats)
    errors: list[dict[str, Any]] = Field(default_factory=list)
    tips: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def score(self) -> float:
        return self.stats.overall_score

    @property
    def error_count(self) -> int:
        return len(self.errors)


class AnalysisJob(BaseContract):
    """Lifecycle record of one analysis request for a match."""

    match_id: str = Field(..., min_length=1)
    state: AnalysisState = AnalysisState.NOT_STARTED
    credit_consumed: bool = False
    job_id: str | None = None
    result_payload: AnalysisResult | None = None
    error_message: str | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AnalysisOverview(BaseContract):
    """Aggregate figures over completed analyses (analysis tab header)."""

    total_games: int = 0
    avg_score: int = 0
    win_rate: int = 0
    total_errors: int = 0
    avg_errors_per_game: float = 0.0
