"""
Identity contracts: player handles, resolved identities and account profiles.
"""

from datetime import UTC, datetime

from pydantic import AliasChoices, ConfigDict, Field

from .common import BaseContract


class RankEntry(BaseContract):
    """Ranked standing shown in the player header."""

    tier: str = Field(..., description="Tier (IRON to CHALLENGER)")
    division: str | None = Field(
        None, validation_alias=AliasChoices("rank", "division"), description="Division"
    )
    league_points: int = Field(0, description="League points")
    wins: int = Field(0, ge=0)
    losses: int = Field(0, ge=0)

    @property
    def win_rate(self) -> float:
        """Calculate win rate percentage."""
        total_games = self.wins + self.losses
        if total_games == 0:
            return 0.0
        return (self.wins / total_games) * 100


class IdentityRecord(BaseContract):
    """Stable identity for a (handle, tag line, region) triple.

    Issued once by the identity service and never changed afterwards, so the
    record is frozen and lives in the durable cache tier.
    """

    model_config = ConfigDict(frozen=True)

    stable_id: str = Field(..., min_length=1, description="Riot PUUID")
    handle: str = Field(..., min_length=1, description="Game name (before #)")
    tag_line: str = Field(..., min_length=1, description="Tag line (after #)")
    region: str = Field(..., min_length=1, description="Platform region, e.g. 'euw1'")
    resolved_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def riot_id(self) -> str:
        return f"{self.handle}#{self.tag_line}"


class AccountProfile(BaseContract):
    """Identity service payload for a resolved handle."""

    stable_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("stableId", "puuid", "stable_id"),
    )
    game_name: str | None = None
    tag_line: str | None = None
    profile_icon_id: int = Field(1, description="Profile icon ID")
    summoner_level: int = Field(
        0, validation_alias=AliasChoices("summonerLevel", "level", "summoner_level")
    )
    rank: RankEntry | None = None


class IdentitySummary(BaseContract):
    """Identity block of a dashboard snapshot (player header data)."""

    stable_id: str
    handle: str
    tag_line: str
    region: str
    profile_icon_id: int = 1
    summoner_level: int = 0
    rank: RankEntry | None = None

    @classmethod
    def from_identity(
        cls, identity: IdentityRecord, profile: AccountProfile | None = None
    ) -> "IdentitySummary":
        """Build a summary, falling back to bare identity data without a profile."""
        if profile is None:
            return cls(
                stable_id=identity.stable_id,
                handle=identity.handle,
                tag_line=identity.tag_line,
                region=identity.region,
            )
        return cls(
            stable_id=identity.stable_id,
            handle=identity.handle,
            tag_line=identity.tag_line,
            region=identity.region,
            profile_icon_id=profile.profile_icon_id,
            summoner_level=profile.summoner_level,
            rank=profile.rank,
        )
