"""
Configuration management for LotLedger.
Uses pydantic-settings for type-safe, centralized configuration.
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Every field can be overridden with a LEDGER_-prefixed variable or in .env.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        env_prefix='LEDGER_',
        extra='ignore'
    )

    # Database
    database_url: str = "sqlite:///lot_ledger.db"
    db_echo: bool = False
    db_busy_timeout_ms: int = 5000

    # Transaction engine
    engine_retry_attempts: int = 2  # total attempts on ConcurrentModification

    # Journal reads
    journal_recent_limit: int = 20
    journal_instrument_limit: int = 50

    # Asset directory
    default_currency: str = "USD"

    log_level: str = "INFO"

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured store is SQLite."""
        return self.database_url.startswith("sqlite")


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
