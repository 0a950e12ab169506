from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    debug: bool = False

    # GitLab server - default credentials for the command line entry point.
    # Library callers pass their own GitLabReadOperations instead.
    gitlab_url: str = "https://gitlab.com"
    gitlab_access_token: str = ""

    # GitLab HTTP client
    gitlab_per_page: int = 100  # GitLab caps per_page at 100
    gitlab_max_pages: int = 50
    gitlab_request_timeout: float = 30.0
    gitlab_connect_timeout: float = 5.0
    gitlab_max_connections: int = 20

    # Commit diffs never change for a given sha, so they can live long
    commit_diff_cache_ttl: int = 3600
    commit_diff_cache_size: int = 2000

    # Timeline aggregation
    timeline_max_concurrency: int = 10
    timeline_timeout_seconds: float | None = None
    timeline_failure_policy: Literal["fail_fast", "partial"] = "fail_fast"

    @property
    def gitlab_configured(self) -> bool:
        """Check if a GitLab access token is configured."""
        return bool(self.gitlab_access_token)


settings = Settings()
