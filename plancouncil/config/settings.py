"""
Settings

Typed configuration for the coordinator, its stores and the API, read from
the environment (and an optional .env file) through pydantic-settings.

Layout:
- PlannerSettings: accumulator backend, artifact location, context budgets
- RedisSettings: connection for the redis accumulator backend
- ObservabilitySettings: log level and output format
- Settings: application metadata plus the sections above, frozen
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """Connection for the redis store backend."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost")
    port: int = Field(default=6379, ge=1, le=65535)
    db: int = Field(default=0, ge=0, le=15)
    password: SecretStr | None = None
    ssl: bool = False
    key_prefix: str = Field(default="plancouncil:outputs:", min_length=1)

    @property
    def url(self) -> str:
        """``redis[s]://[:password@]host:port/db``"""
        scheme = "rediss" if self.ssl else "redis"
        credentials = f":{self.password.get_secret_value()}@" if self.password else ""
        return f"{scheme}://{credentials}{self.host}:{self.port}/{self.db}"


class PlannerSettings(BaseSettings):
    """Coordinator, accumulator and artifact configuration."""

    model_config = SettingsConfigDict(env_prefix="PLANNER_", populate_by_name=True)

    # Accumulator storage
    store_backend: Literal["file", "memory", "redis"] = "file"
    cache_dir: Path = Field(default=Path(".plan-cache"))
    accumulator_ttl_seconds: int = Field(default=86400, ge=1)

    # Plan artifacts
    devlog_path: Path = Field(
        default=Path("devlog"),
        validation_alias=AliasChoices("PLANNER_DEVLOG_PATH", "DEVLOG_PATH"),
    )
    recent_plan_days: int = Field(default=7, ge=1)

    # Context budgets (characters)
    intermediate_context_limit: int = Field(default=2500, ge=100)
    synthesis_context_limit: int = Field(default=6000, ge=100)
    code_context_limit: int = Field(default=8000, ge=100)

    @property
    def daily_dir(self) -> Path:
        """Day-bucketed directory holding plan artifacts."""
        return self.devlog_path / "daily"


class ObservabilitySettings(BaseSettings):
    """Log output configuration."""

    model_config = SettingsConfigDict(env_prefix="OBS_")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    """
    Top-level configuration.

    Built once per process (see get_settings) and passed to create_app;
    frozen so components can hold a reference safely.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    app_name: str = "plan-council"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # HTTP surface
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    planner: PlannerSettings = Field(default_factory=PlannerSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read from the environment on first use."""
    return Settings()
