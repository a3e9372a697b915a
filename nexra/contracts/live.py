"""
Live status contracts (spectator "is this player in a game" flag).
"""

from typing import Any

from pydantic import AliasChoices, Field, model_validator

from .common import BaseContract


class ActiveGame(BaseContract):
    """Live status service payload."""

    active: bool = Field(False, validation_alias=AliasChoices("active", "inGame"))
    game_start_time: int | None = Field(None, description="Epoch milliseconds")
    game_length: int | None = Field(None, description="Seconds reported by the spectator API")
    game_mode: str | None = None
    details: dict[str, Any] | None = Field(
        None, validation_alias=AliasChoices("details", "gameData")
    )

    @model_validator(mode="before")
    @classmethod
    def _lift_timing(cls, data: Any) -> Any:
        # The spectator route nests timing inside `gameData`.
        if not isinstance(data, dict):
            return data
        details = data.get("gameData") or data.get("details")
        if not isinstance(details, dict):
            return data
        data = dict(data)
        for alias, name in (
            ("gameStartTime", "game_start_time"),
            ("gameLength", "game_length"),
            ("gameMode", "game_mode"),
        ):
            present = data.get(alias) is not None or data.get(name) is not None
            if not present and details.get(alias) is not None:
                data[alias] = details[alias]
        return data


class PollingSession(BaseContract):
    """Process-local state of one mounted live-status view."""

    target_identity: str = Field(..., description="Stable id being watched")
    interval_ms: int = Field(..., ge=0)
    active: bool = False
