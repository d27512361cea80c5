"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    db_type: str = Field(default="duckdb", description="Storage backend (duckdb|memory)")
    db_path: str = Field(default="./data/indexer.duckdb", description="DuckDB file path")
    db_threads: int = Field(default=4, ge=1, description="DuckDB thread count")

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Reward rules
    user_points_per_vote: int = Field(
        default=3, ge=0, description="Points granted to the voter for every podium"
    )
    claim_points_multiplier: int = Field(
        default=3, ge=0, description="Claim bonus points per BRND power level"
    )

    # Materialization
    top_brands_size: int = Field(
        default=3, ge=1, le=10, description="Slots per timeframe in the top brands cache"
    )
    maintain_full_ranks: bool = Field(
        default=True, description="Recompute rank columns for every row of a touched period"
    )

    # Pipeline
    pipeline_queue_size: int = Field(
        default=1000, ge=1, description="Max events buffered ahead of the reducer"
    )

    # Development
    dev_mode: bool = Field(default=False, description="Development mode")
    testing: bool = Field(default=False, description="Testing mode")

    @field_validator("db_type")
    @classmethod
    def validate_db_type(cls, v: str) -> str:
        """Only the bundled backends are accepted."""
        v = v.lower()
        if v not in ("duckdb", "memory"):
            raise ValueError("db_type must be 'duckdb' or 'memory'")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()
