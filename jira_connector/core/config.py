"""Connector configuration loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from jira_connector.core.exceptions import InvalidConfigurationError

BASE_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    APP_NAME: str = "Jira Data Connector"

    # jira credentials
    JIRA_BASE_URL: str = ""
    JIRA_USERNAME: str = ""
    JIRA_PERSONAL_ACCESS_TOKEN: str = ""
    JIRA_PROJECT_KEYS: str = ""
    JIRA_TIMEOUT_SECONDS: int = Field(default=30, ge=1, le=300)
    JIRA_MAX_RESULTS_PER_REQUEST: int = Field(default=100, ge=1, le=1000)

    DATABASE_URL: str = "sqlite:///jira_data.db"
    DATABASE_ECHO: bool = False

    SYNC_INTERVAL_MINUTES: int = Field(default=30, ge=1, le=1440)
    SYNC_FULL_ON_STARTUP: bool = False
    SYNC_LOOKBACK_DAYS: int = Field(default=7, ge=1, le=90)
    SYNC_BATCH_SIZE: int = Field(default=50, ge=1, le=1000)

    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def project_keys(self) -> list[str]:
        keys: list[str] = []
        for key in self.JIRA_PROJECT_KEYS.split(","):
            value = key.strip().upper()
            if value and value not in keys:
                keys.append(value)
        return keys

    @property
    def jira_ready(self) -> bool:
        return bool(
            self.JIRA_BASE_URL.strip()
            and self.JIRA_USERNAME.strip()
            and self.JIRA_PERSONAL_ACCESS_TOKEN.strip()
        )

    def problems(self) -> list[str]:
        issues: list[str] = []
        base_url = self.JIRA_BASE_URL.strip()
        if not base_url:
            issues.append("JIRA_BASE_URL is required")
        else:
            parsed = urlparse(base_url)
            if parsed.scheme not in {"http", "https"} or not parsed.netloc:
                issues.append("JIRA_BASE_URL must be a valid http(s) URL")
        if not self.JIRA_USERNAME.strip():
            issues.append("JIRA_USERNAME is required")
        if not self.JIRA_PERSONAL_ACCESS_TOKEN.strip():
            issues.append("JIRA_PERSONAL_ACCESS_TOKEN is required")
        if not self.DATABASE_URL.strip():
            issues.append("DATABASE_URL is required")
        return issues

    def validate_required(self) -> None:
        issues = self.problems()
        if issues:
            raise InvalidConfigurationError(
                "Configuration validation failed: " + "; ".join(issues),
                problems=issues,
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def load_settings(env_file: str | None = None) -> Settings:
    if env_file:
        return Settings(_env_file=env_file)
    return get_settings()
