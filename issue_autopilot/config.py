"""
Configuration management for Issue Autopilot.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Issue Autopilot")
    environment: str = Field(default="development")

    # Credentials
    github_token: Optional[str] = Field(default=None)
    gemini_api_key: Optional[str] = Field(default=None)

    # Endpoints
    github_api_url: str = Field(default="https://api.github.com")
    gemini_api_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta"
    )
    gemini_model: str = Field(default="gemini-2.5-flash")
    http_timeout_seconds: float = Field(default=30.0)

    # Target repository
    repo_owner: str = Field(default="sonyddr666")
    repo_name: str = Field(default="teste")
    branch: str = Field(default="main")

    # Polling
    check_interval: int = Field(
        default=300, description="Seconds between poll cycles"
    )
    enable_polling: bool = Field(default=True)

    # Plan execution
    dry_run: bool = Field(default=False)
    max_actions: int = Field(default=20, ge=1)
    max_file_size_bytes: int = Field(default=200_000, ge=1)
    max_mentioned_files: int = Field(default=15, ge=0)
    use_pull_request: bool = Field(
        default=False,
        description="Apply plans on a dedicated branch and open a pull request",
    )
    isolated_branch_prefix: str = Field(default="autopilot/")
    inter_action_delay: float = Field(
        default=1.0, ge=0, description="Seconds to wait between actions"
    )

    # Retry
    retry_attempts: int = Field(default=4, ge=1)
    retry_backoff: float = Field(default=0.8, ge=0)

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=10000)
    webhook_secret: Optional[str] = Field(default=None)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @property
    def repo_full_name(self) -> str:
        return f"{self.repo_owner}/{self.repo_name}"

    def missing_required(self) -> List[str]:
        """Names of required credentials that are not set."""
        required = {
            "GITHUB_TOKEN": self.github_token,
            "GEMINI_API_KEY": self.gemini_api_key,
        }
        return [name for name, value in required.items() if not value]


def ensure_required(settings: Settings) -> None:
    """Fail fast when a required credential is missing.

    Raises:
        ConfigurationError: listing every missing variable
    """
    missing = settings.missing_required()
    if missing:
        raise ConfigurationError(
            f"Missing required configuration: {', '.join(missing)}"
        )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
