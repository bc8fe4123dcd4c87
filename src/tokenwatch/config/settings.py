"""Application settings using pydantic-settings."""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from tokenwatch.constants.chains import (
    DEFAULT_DETECTION_INTERVAL_MS,
    DEFAULT_MAX_BATCH_WIDTH,
    TOKEN_DETECTION_CHAINS,
    normalize_chain_id,
)


class Settings(BaseSettings):
    """tokenwatch configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Application
    app_name: str = Field(default="tokenwatch", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Minimum log level"
    )

    # Detection polling
    detection_interval_ms: int = Field(
        default=DEFAULT_DETECTION_INTERVAL_MS,
        ge=1,
        description="Milliseconds between detection cycles",
    )
    legacy_polling_enabled: bool = Field(
        default=True,
        description="Run the single loop that follows the active network",
    )
    supported_chains: Annotated[frozenset[str], NoDecode] = Field(
        default=TOKEN_DETECTION_CHAINS,
        description="Chain ids with a known candidate token source",
    )
    max_batch_width: int = Field(
        default=DEFAULT_MAX_BATCH_WIDTH,
        ge=1,
        description="Maximum token addresses per balance query",
    )

    # Standalone runner (tokenwatch.main)
    rpc_url: str | None = Field(
        default=None, description="JSON-RPC endpoint of the watched network"
    )
    network_client_id: str = Field(default="mainnet", description="Id of the watched network client")
    chain_id: str = Field(default="0x1", description="Chain id of the watched network")
    watch_address: str | None = Field(default=None, description="Account to detect tokens for")

    # Reference adapters
    token_api_url: str = Field(
        default="https://token-api.metaswap.codefi.network",
        description="Base URL of the token list API",
    )
    http_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Timeout for outbound HTTP calls"
    )

    # Circuit Breaker
    circuit_breaker_threshold: int = Field(
        default=5, ge=1, description="Failures before circuit opens"
    )
    circuit_breaker_cooldown: int = Field(
        default=30, ge=1, description="Seconds before half-open"
    )

    @field_validator("supported_chains", mode="before")
    @classmethod
    def normalize_supported_chains(cls, v: object) -> object:
        """Normalize chain ids to lowercase 0x-prefixed hex."""
        if isinstance(v, str):
            v = [item for item in v.split(",") if item.strip()]
        if isinstance(v, (list, tuple, set, frozenset)):
            try:
                return frozenset(normalize_chain_id(item) for item in v)
            except ValueError as e:
                raise ValueError(f"Invalid chain id in supported_chains: {e}") from e
        return v

    @field_validator("token_api_url")
    @classmethod
    def validate_token_api_url(cls, v: str) -> str:
        """Validate token API URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Token API URL must start with http:// or https://")
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
