"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Match clock
    regulation_duration_seconds: int = 4200   # 70 minutes
    tick_interval_ms: int = 100
    max_event_time_seconds: int = 7200        # 120 minutes including extra time

    # Momentum
    momentum_window_seconds: int = 300        # 5 minutes

    # Statistics cache
    stats_cache_max_age_seconds: float = 30.0

    # Ledger limits
    max_ledger_entries: int = 1000
    max_notes_length: int = 500

    # Team defaults
    default_team1_name: str = "Netherton"
    default_team2_name: str = "Opposition Team"

    # Persistence
    database_url: str = "sqlite:///./matchlog.db"
    storage_key: str = "match_state"
    persist_debounce_ms: int = 100

    # Optional log level override for the HTTP host
    log_level: Optional[str] = None

    class Config:
        env_prefix = "MATCHLOG_"
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
