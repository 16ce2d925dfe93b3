"""Configuration management for bundle-scheduler."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Storage
    database_url: str = "sqlite+pysqlite:///data/bundles.db"

    # YAML seed file with templates and recurring rules
    seed_file: str = "config.yaml"

    # Recurring generation
    recurring_max_range_days: int = 90  # longest accepted generation range
    recurring_window_days: int = 14  # days generated ahead by each cycle

    # Automatic triggers
    trigger_search_days: int = 1464  # horizon when looking for the next occurrence

    # Logging
    log_level: str = "INFO"
