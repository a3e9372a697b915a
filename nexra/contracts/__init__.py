"""Contract models for data validation."""

from .analysis import (
    AnalysisJob,
    AnalysisOverview,
    AnalysisResult,
    AnalysisStats,
    AnalysisTarget,
    CreditConsumption,
    SessionContext,
)
from .common import AnalysisState, BaseContract, Outcome, Platform, Queue, RoutingCluster, routing_for
from .dashboard import DashboardState, SurfacedError
from .identity import AccountProfile, IdentityRecord, IdentitySummary, RankEntry
from .live import ActiveGame, PollingSession
from .match import (
    AggregateStats,
    ChampionAggregate,
    DashboardSnapshot,
    MatchPage,
    MatchRecord,
    PlayerPopupSnapshot,
)

__all__ = [
    "AccountProfile",
    "ActiveGame",
    "AggregateStats",
    "AnalysisJob",
    "AnalysisOverview",
    "AnalysisResult",
    "AnalysisState",
    "AnalysisStats",
    "AnalysisTarget",
    "BaseContract",
    "ChampionAggregate",
    "CreditConsumption",
    "DashboardSnapshot",
    "DashboardState",
    "IdentityRecord",
    "IdentitySummary",
    "MatchPage",
    "MatchRecord",
    "Outcome",
    "Platform",
    "PlayerPopupSnapshot",
    "PollingSession",
    "Queue",
    "RankEntry",
    "RoutingCluster",
    "SessionContext",
    "SurfacedError",
    "routing_for",
]
