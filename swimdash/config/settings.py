"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (and an optional
.env file) with sensible defaults. Using Pydantic's BaseSettings means
a bad value fails at startup instead of at the first save.

Mock mode keeps the session history in memory, which is what local
development and the tests use.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables,
    e.g. STORAGE_DIR=/data/swimdash.
    """

    # API Configuration
    api_title: str = "SwimDash API"
    host: str = Field(
        default="127.0.0.1",
        description="Interface to bind. The API serves a single local user."
    )
    port: int = Field(default=8000, description="Port to bind")

    # Storage Configuration
    storage_dir: Path = Field(
        default=Path("~/.swimdash"),
        description="Directory holding the key-value storage files"
    )
    storage_key: str = Field(
        default="swimSessions",
        description="Storage slot holding the session history"
    )
    storage_quota_bytes: int = Field(
        default=5 * 1024 * 1024,
        gt=0,
        description="Byte budget shared by every storage key, like browser local storage"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Keep sessions in memory instead of on disk. Nothing survives a restart."
    )

    # Storage warnings
    storage_warning_ratio: float = Field(
        default=0.8,
        gt=0,
        le=1,
        description="Fraction of the quota at which an export is recommended"
    )
    session_warning_threshold: int = Field(
        default=1000,
        gt=0,
        description="Session count above which archiving is recommended"
    )

    # Goals
    weekly_goal_meters: int = Field(default=5000, gt=0, description="Weekly distance goal")
    monthly_goal_meters: int = Field(default=20000, gt=0, description="Monthly distance goal")

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins for the local frontend."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def storage_path(self) -> Path:
        return self.storage_dir.expanduser()

    def validate_required_fields(self) -> list[str]:
        """
        Report settings that cannot work as configured.

        Returns a list of problems; empty means the configuration is usable.
        """
        problems = []

        if not self.storage_key.replace("_", "").replace("-", "").replace(".", "").isalnum():
            problems.append("STORAGE_KEY may only contain letters, digits, '.', '_' and '-'")

        if not self.storage_mock_mode and self.storage_path.exists() and not self.storage_path.is_dir():
            problems.append("STORAGE_DIR must be a directory")

        if self.log_level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            problems.append("LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR or CRITICAL")

        return problems


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are read once per process. Tests can call
    get_settings.cache_clear() to reload them.
    """
    return Settings()
