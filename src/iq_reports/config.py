"""Configuration management for iq-reports."""

from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class IQConfig(BaseSettings):
    """Nexus IQ server configuration."""

    model_config = SettingsConfigDict(env_prefix="IQ_")

    url: str = Field(default="http://localhost:8070", description="IQ server base URL")
    username: str = Field(default="admin", description="IQ user name")
    password: str = Field(default="admin123", description="IQ password or user token passcode")
    timeout: float = Field(default=30.0, description="Per-request timeout in seconds")


class ReportsConfig(BaseSettings):
    """Report retrieval behavior configuration."""

    model_config = SettingsConfigDict(env_prefix="REPORTS_")

    max_workers: int = Field(
        default=4, ge=1, description="Concurrent report fetches during aggregation"
    )
    deadline_seconds: float | None = Field(
        default=None, description="Abort a whole command after this many seconds"
    )


class AppConfig(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    iq: IQConfig = Field(default_factory=IQConfig)
    reports: ReportsConfig = Field(default_factory=ReportsConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "AppConfig":
        """Load configuration from a YAML file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load application configuration from environment and optional YAML file."""
    if config_path:
        return AppConfig.from_yaml(config_path)
    return AppConfig()
