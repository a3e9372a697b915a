"""Port interfaces for hexagonal architecture.

These ports define the contracts between the orchestration core and the
external collaborators (upstream services, client-local storage). All
adapters must implement these interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from nexra.contracts import (
    AccountProfile,
    ActiveGame,
    AggregateStats,
    AnalysisResult,
    AnalysisTarget,
    CreditConsumption,
    MatchRecord,
)

__all__ = [
    "StoragePort",
    "IdentityServicePort",
    "MatchDataPort",
    "LiveStatusPort",
    "CreditLedgerPort",
    "AnalysisComputePort",
]


class StoragePort(ABC):
    """Raw string key/value store backing one persistent cache tier.

    Implementations are untrusted: values may be missing, truncated or
    written by an older client version.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Get raw value."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> bool:
        """Store raw value, overwriting any existing one."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove value."""
        pass

    @abstractmethod
    async def keys(self) -> list[str]:
        """List stored keys (used for tier teardown)."""
        pass


class IdentityServicePort(ABC):
    @abstractmethod
    async def resolve_handle(self, handle: str, tag_line: str, region: str) -> AccountProfile:
        """Resolve `handle#tag_line` in `region`.

        Raises:
            NotFoundError: no such account
            RateLimitedError: upstream throttled the call
            UnavailableError: transport/server failure
        """
        pass


class MatchDataPort(ABC):
    @abstractmethod
    async def list_matches(
        self, stable_id: str, region: str, offset: int, limit: int
    ) -> list[MatchRecord]:
        """List finished matches, newest first, starting at `offset`."""
        pass

    @abstractmethod
    async def get_aggregate_stats(self, stable_id: str, region: str) -> AggregateStats:
        """Get aggregate player stats."""
        pass


class LiveStatusPort(ABC):
    @abstractmethod
    async def get_active_game(self, stable_id: str, region: str) -> ActiveGame:
        """Report whether the player is currently in a game."""
        pass


class CreditLedgerPort(ABC):
    @abstractmethod
    async def consume_credit(self, user_id: str) -> CreditConsumption:
        """Spend one analysis credit.

        Raises:
            InsufficientCreditsError: balance exhausted (HTTP 402)
            UnauthorizedError: session rejected
        """
        pass

    @abstractmethod
    async def refund_credit(self, user_id: str) -> CreditConsumption:
        """Return one credit to the user's balance."""
        pass


class AnalysisComputePort(ABC):
    @abstractmethod
    async def submit_analysis(self, match_id: str, target: AnalysisTarget) -> AnalysisResult:
        """Run an analysis and block until its result or a definitive failure."""
        pass
