"""
Match history contracts: match records, aggregate stats and cached snapshots.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, ConfigDict, Field, model_validator

from .common import AnalysisState, BaseContract, Outcome
from .identity import IdentitySummary


class MatchRecord(BaseContract):
    """A finished game as listed in the match history.

    Everything except the analysis projection (`analysis_state`,
    `analysis_job_id`, `score`, `error_count`) is a frozen fact about the game;
    the projection is replaced through `model_copy`, never assigned.
    """

    model_config = ConfigDict(frozen=True)

    match_id: str = Field(..., min_length=1, description="Match-V5 id, e.g. 'KR_7123456789'")
    outcome: Outcome
    champion: str = ""
    kills: int = Field(0, ge=0)
    deaths: int = Field(0, ge=0)
    assists: int = Field(0, ge=0)
    game_mode: str = "CLASSIC"
    queue_id: int = 0
    game_duration: int = Field(0, ge=0, description="Duration in seconds")
    timestamp: int = Field(0, description="Game creation (epoch milliseconds)")
    role: str | None = Field(None, validation_alias=AliasChoices("teamPosition", "role"))
    total_minions_killed: int | None = None
    vision_score: int | None = None
    gold_earned: int | None = None
    total_damage_dealt_to_champions: int | None = None

    analysis_state: AnalysisState = AnalysisState.NOT_STARTED
    analysis_job_id: str | None = None
    score: float | None = None
    error_count: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_outcome(cls, data: Any) -> Any:
        # The match service reports `win: bool`; cached records carry `outcome`.
        if isinstance(data, dict) and "outcome" not in data and "win" in data:
            data = dict(data)
            data["outcome"] = Outcome.WIN if data.pop("win") else Outcome.LOSS
        return data

    @property
    def is_win(self) -> bool:
        return self.outcome == Outcome.WIN

    @property
    def kda(self) -> float:
        """(kills + assists) / deaths, with deathless games counted as perfect."""
        if self.deaths == 0:
            return float(self.kills + self.assists)
        return round((self.kills + self.assists) / self.deaths, 2)


class ChampionAggregate(BaseContract):
    champion: str
    games: int = 0
    wins: int = 0
    kills: float = 0.0
    deaths: float = 0.0
    assists: float = 0.0


class AggregateStats(BaseContract):
    """Player aggregate stats (ranked stats / champion breakdown panels).

    The stats service adds fields over time; unknown fields are kept as-is.
    """

    model_config = ConfigDict(extra="allow")

    total_games: int = Field(0, ge=0)
    wins: int = Field(0, ge=0)
    losses: int = Field(0, ge=0)
    avg_kills: float = 0.0
    avg_deaths: float = 0.0
    avg_assists: float = 0.0
    champions: list[ChampionAggregate] = Field(default_factory=list)

    @property
    def win_rate(self) -> float:
        if self.total_games == 0:
            return 0.0
        return (self.wins / self.total_games) * 100


class DashboardSnapshot(BaseContract):
    """Cached bundle of identity summary, match page and aggregate stats."""

    identity_summary: IdentitySummary
    match_page: list[MatchRecord] = Field(default_factory=list)
    aggregate_stats: AggregateStats | None = None
    captured_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @model_validator(mode="after")
    def _unique_match_ids(self) -> "DashboardSnapshot":
        seen: set[str] = set()
        for record in self.match_page:
            if record.match_id in seen:
                raise ValueError(f"duplicate match_id in snapshot: {record.match_id}")
            seen.add(record.match_id)
        return self

    def match_ids(self) -> set[str]:
        return {record.match_id for record in self.match_page}


class PlayerPopupSnapshot(BaseContract):
    """Per-player popup data (opened from a scoreboard row)."""

    identity_summary: IdentitySummary
    recent_matches: list[MatchRecord] = Field(default_factory=list)
    aggregate_stats: AggregateStats | None = None
    captured_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class MatchPage(BaseContract):
    """One `load_more` outcome.

    `suppressed` marks a call dropped by the in-flight guard; such a page says
    nothing about whether more history exists.
    """

    records: list[MatchRecord] = Field(default_factory=list)
    offset: int = Field(0, ge=0)
    suppressed: bool = False

    @property
    def exhausted(self) -> bool:
        """Only an explicit zero-length response ends paging."""
        return not self.suppressed and len(self.records) == 0
