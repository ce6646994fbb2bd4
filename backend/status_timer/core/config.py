"""
Configuration management using Pydantic Settings.
Loads environment variables from .env file.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Status Timer"
    app_version: str = "0.1.0"
    debug: bool = False

    # CORS Settings
    cors_origins: str = "*"

    # Jira Configuration
    jira_host: Optional[str] = None  # e.g. "acme.atlassian.net"
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None
    jira_project: Optional[str] = None
    jira_max_results: int = 100

    # Slack Configuration
    slack_bot_token: Optional[str] = None
    slack_alerts_channel: Optional[str] = None
    slack_api_base_url: str = "https://slack.com/api"

    # Tracking persistence
    data_dir: str = "data"
    tracking_file_name: str = "tracking.json"
    fallback_tracking_path: str = "/tmp/tracking.json"
    lock_timeout_seconds: float = 5.0

    # Timing
    reference_timezone: str = "America/New_York"
    reminder_interval_hours: int = 24
    http_timeout_seconds: float = 10.0

    # Scheduler Settings
    enable_scheduler: bool = True
    alert_check_interval_minutes: int = 5
    reconcile_interval_minutes: int = 60

    # Only ONE worker should run the scheduler in multi-worker deployments,
    # otherwise every worker posts the same alert.
    run_scheduler: bool = False

    # Job Monitoring
    job_failure_alert_threshold: int = 2  # Alert after this many failures

    # Status -> minutes (null disables the timer). Merged over the defaults.
    threshold_overrides: dict[str, Optional[int]] = Field(default_factory=dict)

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def tracking_file_path(self) -> Path:
        """Location of the durable tracking snapshot."""
        return Path(self.data_dir) / self.tracking_file_name

    @property
    def jira_enabled(self) -> bool:
        """Check if Jira credentials are configured."""
        return bool(self.jira_host and self.jira_email and self.jira_api_token and self.jira_project)

    @property
    def slack_enabled(self) -> bool:
        """Check if Slack is configured."""
        return bool(self.slack_bot_token and self.slack_alerts_channel)

    def missing_required(self) -> list[str]:
        """Names of required environment variables that are unset."""
        required = {
            "SLACK_BOT_TOKEN": self.slack_bot_token,
            "SLACK_ALERTS_CHANNEL": self.slack_alerts_channel,
            "JIRA_HOST": self.jira_host,
            "JIRA_EMAIL": self.jira_email,
            "JIRA_API_TOKEN": self.jira_api_token,
            "JIRA_PROJECT": self.jira_project,
        }
        return [name for name, value in required.items() if not value]

    def validate_required(self) -> None:
        """Raise ConfigurationError naming the first missing variable."""
        missing = self.missing_required()
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                config_key=missing[0],
            )


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance.
    Call this function to get application settings.
    """
    return Settings()


# Global settings instance
settings = get_settings()
