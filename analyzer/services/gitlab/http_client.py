"""
Shared HTTP client for GitLab API operations.

Provides a singleton AsyncClient with connection pooling for all GitLab API calls,
so the many small diff requests of a timeline build reuse connections.
"""

import logging

import httpx

from analyzer.config import settings

logger = logging.getLogger(__name__)

# Module-level singleton client
_client: httpx.AsyncClient | None = None


def get_gitlab_client() -> httpx.AsyncClient:
    """
    Get or create the shared HTTP client for GitLab API calls.

    The client is shared across all GitLabReadOperations instances to maximize
    connection reuse. Base URL and auth headers are passed per-request, not
    stored on the client, so one client serves any number of servers.

    Returns:
        Shared httpx.AsyncClient configured for GitLab API
    """
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                settings.gitlab_request_timeout, connect=settings.gitlab_connect_timeout
            ),
            limits=httpx.Limits(
                max_connections=settings.gitlab_max_connections,
                max_keepalive_connections=settings.gitlab_max_connections // 2,
            ),
            http2=True,
        )
        logger.debug("Created new GitLab HTTP client with connection pooling")
    return _client


async def close_gitlab_client() -> None:
    """
    Close the shared HTTP client.

    Call on shutdown for graceful termination.
    """
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
        _client = None
        logger.debug("Closed GitLab HTTP client")
