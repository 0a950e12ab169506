"""
GitLab API helper utilities.

Provides rate limit handling, error response mapping and timestamp parsing
for GitLab API calls.
"""

import logging
from datetime import datetime

import httpx

from analyzer.services.gitlab.exceptions import (
    AuthExpired,
    GitLabAPIError,
    NotFound,
    RateLimited,
    RemoteUnavailable,
)

logger = logging.getLogger(__name__)


class RateLimitInfo:
    """Rate limit information from GitLab API response."""

    def __init__(self, response: httpx.Response) -> None:
        self.remaining = response.headers.get("RateLimit-Remaining")
        self.reset = response.headers.get("RateLimit-Reset")

    @property
    def reset_timestamp(self) -> int | None:
        """Get reset timestamp as integer, or None if not available."""
        return int(self.reset) if self.reset else None

    @property
    def is_exhausted(self) -> bool:
        """Check if rate limit is exhausted."""
        return self.remaining is not None and int(self.remaining) == 0


def handle_error_response(response: httpx.Response, resource: str) -> None:
    """
    Map an unsuccessful GitLab response onto the error taxonomy.

    Args:
        response: The HTTP response from GitLab API
        resource: Human readable resource for error context
            (e.g. "project 42 merge request !7")

    Raises:
        RateLimited: On 429, or 403 with an exhausted rate limit
        AuthExpired: On 401, or any other 403
        NotFound: On 404
        RemoteUnavailable: On 5xx and any other non-2xx status
    """
    if response.is_success:
        return

    rate_info = RateLimitInfo(response)
    status = response.status_code

    if status == 429 or (status == 403 and rate_info.is_exhausted):
        raise RateLimited(
            "GitLab API rate limit exceeded",
            status,
            rate_limit_reset=rate_info.reset_timestamp,
        )
    elif status == 401:
        raise AuthExpired("Invalid or expired GitLab token", 401)
    elif status == 403:
        raise AuthExpired(f"GitLab API forbidden: {resource}", 403)
    elif status == 404:
        raise NotFound(f"GitLab resource not found: {resource}")
    elif status >= 500:
        logger.warning(f"GitLab returned {status} for {resource}")
        raise RemoteUnavailable(f"GitLab server error: {status}", status)
    raise RemoteUnavailable(f"GitLab API error: {status}", status)


def parse_gitlab_datetime(value: str) -> datetime:
    """
    Parse a GitLab ISO 8601 timestamp into a timezone-aware datetime.

    GitLab sends both "2021-03-01T10:00:00.000Z" and
    "2021-03-01T10:00:00.000+01:00" forms.
    """
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        raise ValueError(f"GitLab timestamp without timezone: {value!r}")
    return parsed


def format_gitlab_datetime(value: datetime) -> str:
    """Format a timezone-aware datetime for GitLab query parameters."""
    return value.isoformat()


def next_page(response: httpx.Response) -> int | None:
    """Return the next page number from GitLab pagination headers, if any."""
    value = response.headers.get("X-Next-Page", "").strip()
    return int(value) if value else None
