"""Exceptions for GitLab service."""


class GitLabAPIError(Exception):
    """Error from GitLab API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limit_reset: int | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.rate_limit_reset = rate_limit_reset  # Unix timestamp when rate limit resets
        super().__init__(message)


class RemoteUnavailable(GitLabAPIError):
    """GitLab could not be reached or answered with a server error."""


class NotFound(GitLabAPIError):
    """Project, merge request or commit does not exist (or vanished mid-request)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class AuthExpired(GitLabAPIError):
    """Access token was rejected."""


class RateLimited(GitLabAPIError):
    """GitLab rate limit exceeded.

    rate_limit_reset holds the Unix timestamp from the RateLimit-Reset header
    when GitLab sent one.
    """
