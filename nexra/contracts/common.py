"""
Common data types and base models for the dashboard core.
All models use Pydantic V2.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Platform(str, Enum):
    """Riot API Platforms (game servers)."""

    BR1 = "br1"  # Brazil
    EUN1 = "eun1"  # Europe Nordic & East
    EUW1 = "euw1"  # Europe West
    JP1 = "jp1"  # Japan
    KR = "kr"  # Korea
    LA1 = "la1"  # Latin America North
    LA2 = "la2"  # Latin America South
    NA1 = "na1"  # North America
    OC1 = "oc1"  # Oceania
    PH2 = "ph2"  # Philippines
    RU = "ru"  # Russia
    SG2 = "sg2"  # Singapore
    TH2 = "th2"  # Thailand
    TR1 = "tr1"  # Turkey
    TW2 = "tw2"  # Taiwan
    VN2 = "vn2"  # Vietnam


class RoutingCluster(str, Enum):
    """Riot API regional routing values."""

    AMERICAS = "americas"
    EUROPE = "europe"
    ASIA = "asia"
    SEA = "sea"


_PLATFORM_ROUTING: dict[Platform, RoutingCluster] = {
    Platform.EUW1: RoutingCluster.EUROPE,
    Platform.EUN1: RoutingCluster.EUROPE,
    Platform.TR1: RoutingCluster.EUROPE,
    Platform.RU: RoutingCluster.EUROPE,
    Platform.NA1: RoutingCluster.AMERICAS,
    Platform.BR1: RoutingCluster.AMERICAS,
    Platform.LA1: RoutingCluster.AMERICAS,
    Platform.LA2: RoutingCluster.AMERICAS,
    Platform.KR: RoutingCluster.ASIA,
    Platform.JP1: RoutingCluster.ASIA,
    Platform.OC1: RoutingCluster.SEA,
    Platform.PH2: RoutingCluster.SEA,
    Platform.SG2: RoutingCluster.SEA,
    Platform.TH2: RoutingCluster.SEA,
    Platform.TW2: RoutingCluster.SEA,
    Platform.VN2: RoutingCluster.SEA,
}


def routing_for(region: str) -> RoutingCluster:
    """Map a platform region (e.g. 'euw1') to its routing cluster.

    Unknown regions fall back to Europe, matching the dashboard default.
    """
    try:
        platform = Platform(region.strip().lower())
    except ValueError:
        return RoutingCluster.EUROPE
    return _PLATFORM_ROUTING[platform]


class Queue(int, Enum):
    """Game queue types."""

    RANKED_SOLO_5x5 = 420
    RANKED_FLEX_SR = 440
    NORMAL_DRAFT_PICK = 400
    NORMAL_BLIND_PICK = 430
    ARAM = 450
    CLASH = 700


class Outcome(str, Enum):
    WIN = "win"
    LOSS = "loss"


class AnalysisState(str, Enum):
    """Per-match analysis lifecycle, rendered by the presentation layer."""

    NOT_STARTED = "not_started"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class BaseContract(BaseModel):
    """Base model for all data contracts with common configuration.

    Upstream payloads are camelCase; contracts accept either the alias or the
    field name and drop fields they do not model.
    """

    model_config = ConfigDict(
        # Validate data on assignment
        validate_assignment=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )
