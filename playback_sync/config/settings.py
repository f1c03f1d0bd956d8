"""Engine settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="playback-sync", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )

    # Cassandra
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Cassandra hosts"
    )
    cassandra_port: int = Field(default=9042, description="Cassandra port")
    cassandra_keyspace: str = Field(
        default="playback_sync", description="Cassandra keyspace"
    )
    cassandra_username: str | None = Field(default=None, description="Cassandra user")
    cassandra_password: str | None = Field(
        default=None, description="Cassandra password"
    )
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=False, description="Include caller info"
    )

    # Progress policy
    # 10% / 90% come from the legacy players; pending product confirmation.
    progress_persist_step: int = Field(
        default=10, ge=1, le=100, description="Persistence granularity (percent)"
    )
    progress_auto_complete_threshold: int = Field(
        default=90, ge=1, le=100, description="Auto-complete threshold (percent)"
    )

    # Player adapters
    poll_interval_seconds: float = Field(
        default=1.0, gt=0, description="Polling adapter tick interval"
    )
    message_allowed_origins: list[str] = Field(
        default=[
            "https://player.curseduca.com",
            "https://curseduca.com",
            "https://app.curseduca.com",
            "https://embed.curseduca.com",
        ],
        description="Origins accepted by the cross-origin message adapter",
    )
    message_ignored_sources: list[str] = Field(
        default=[
            "react-devtools-bridge",
            "react-devtools-content-script",
            "react-devtools-backend",
        ],
        description="Message 'source' tags discarded as tooling chatter",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
