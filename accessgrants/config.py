"""Engine configuration via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class GrantsSettings(BaseSettings):
    """Grants engine settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESSGRANTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cache resolved role hierarchies until the next mutation
    memoize_hierarchy: bool = True

    # Lock the table as soon as a grants object is loaded
    lock_on_load: bool = False

    # Log every permission decision at INFO instead of DEBUG
    log_decisions: bool = False


# Singleton instance
_settings: GrantsSettings | None = None


def get_settings() -> GrantsSettings:
    """Get the settings singleton."""
    global _settings
    if _settings is None:
        _settings = GrantsSettings()
    return _settings
