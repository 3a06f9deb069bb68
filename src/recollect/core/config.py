"""
Configuration management.

Loads settings from environment variables and .env file.
Prefix: RECOLLECT_
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RECOLLECT_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    enabled: bool = Field(default=True, description="Master switch for memory injection")

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Data storage directory")
    db_name: str = Field(default="recollect.db", description="SQLite database name")

    # Injection
    max_budget: int = Field(default=4000, ge=0, description="Max injected characters")
    min_fragment: int = Field(
        default=100, ge=0, description="Smallest remaining budget worth a truncated entry"
    )
    min_importance: float = Field(
        default=0.2, ge=0.0, le=1.0, description="Candidates below this are not packed"
    )
    injection_identifier: str = Field(
        default="recollect_memory", description="Identifier the payload is injected under"
    )
    injection_position: int = Field(default=2, description="Host prompt position")
    injection_depth: int = Field(default=0, description="Host prompt depth")
    raw_message_max_chars: int = Field(
        default=800, description="Stored entries longer than this are treated as raw messages"
    )

    # Formatting
    max_items: int = Field(default=10, ge=1, description="Max entries rendered per payload")
    max_keywords: int = Field(default=5, ge=0, description="Keyword tags shown per entry")

    # Tier placement
    long_term_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    short_term_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    sensory_capacity: int = Field(default=100, ge=1)
    short_term_capacity: int = Field(default=500, ge=1)
    long_term_capacity: int = Field(default=5000, ge=1)
    archive_capacity: int = Field(default=50000, ge=1)

    # Maintenance (minutes unless noted)
    sensory_expiry_interval: int = Field(default=30, ge=1)
    sensory_max_age: int = Field(default=60, ge=1)
    demotion_interval: int = Field(default=60, ge=1)
    demotion_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    resync_interval: int = Field(default=10, ge=1)
    resync_summary_limit: int = Field(default=10, ge=0)
    resync_deep_limit: int = Field(default=5, ge=0)
    archive_cleanup_interval: int = Field(default=1440, ge=1)
    archive_retention_days: int = Field(default=30, ge=1)
    outdated_cleanup_interval: int = Field(default=60, ge=1)
    outdated_max_age_days: int = Field(default=90, ge=1)
    outdated_importance_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    compression_interval: int = Field(default=60, ge=1)
    compression_similarity: float = Field(
        default=0.85, ge=0.0, le=1.0, description="Word overlap above which entries are merged"
    )
    scheduler_tick: float = Field(default=1.0, gt=0, description="Scheduler poll seconds")

    # Rollback windows (minutes)
    rollback_short_term_window: int = Field(default=5, ge=0)
    rollback_long_term_window: int = Field(default=10, ge=0)

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()
