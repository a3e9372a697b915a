"""
Configuration settings using Pydantic Settings.

All runtime configuration is loaded from environment variables (or `.env`).
Nothing in the orchestration core persists server-side, so the only external
endpoints configured here are the dashboard HTTP API and the optional Redis
store backing the durable cache tier.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Ensure .env values take precedence over system environment variables.
    # Order: init kwargs > .env (dotenv) > env vars > file secrets
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        return (
            init_settings,
            dotenv_settings,
            env_settings,
            file_secret_settings,
        )

    # Dashboard HTTP API (identity, match data, live status, credits, analysis)
    nexra_api_base_url: str = Field("http://localhost:3000", alias="NEXRA_API_BASE_URL")
    nexra_request_timeout_seconds: float = Field(15.0, alias="NEXRA_REQUEST_TIMEOUT_SECONDS")

    # Cache tiers
    session_cache_ttl_seconds: int = Field(300, alias="SESSION_CACHE_TTL_SECONDS")
    durable_cache_ttl_seconds: int = Field(
        604800, alias="DURABLE_CACHE_TTL_SECONDS"
    )  # 7 days
    durable_store_backend: Literal["memory", "redis"] = Field(
        "memory", alias="DURABLE_STORE_BACKEND"
    )
    redis_url: str = Field("redis://localhost:6379", alias="REDIS_URL")
    redis_key_prefix: str = Field("nexra", alias="REDIS_KEY_PREFIX")

    # Match feed
    match_page_size: int = Field(20, ge=1, le=100, alias="MATCH_PAGE_SIZE")
    load_more_page_size: int = Field(10, ge=1, le=100, alias="LOAD_MORE_PAGE_SIZE")
    popup_match_count: int = Field(10, ge=1, le=100, alias="POPUP_MATCH_COUNT")
    short_page_floor: int = Field(
        5,
        ge=0,
        alias="SHORT_PAGE_FLOOR",
        description="Pages shorter than this are logged as possibly partial, not end-of-history",
    )
    rate_limit_retry_delay_seconds: float = Field(2.0, alias="RATE_LIMIT_RETRY_DELAY_SECONDS")

    # Live status polling
    live_poll_idle_seconds: float = Field(30.0, alias="LIVE_POLL_IDLE_SECONDS")
    live_poll_in_game_seconds: float = Field(60.0, alias="LIVE_POLL_IN_GAME_SECONDS")
    live_tick_seconds: float = Field(1.0, alias="LIVE_TICK_SECONDS")

    # Analysis jobs
    analysis_allow_retry_after_failure: bool = Field(
        False,
        alias="ANALYSIS_ALLOW_RETRY_AFTER_FAILURE",
        description="Allow a failed analysis job to be started again",
    )
    analysis_refund_on_failure: bool = Field(
        False,
        alias="ANALYSIS_REFUND_ON_FAILURE",
        description="Ask the credit ledger to refund a credit spent on a failed job",
    )

    # Application Configuration
    app_log_level: str = Field("INFO", alias="APP_LOG_LEVEL")


# Global settings instance - loaded from environment
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance.

    This function provides dependency injection support for settings.
    """
    return settings
