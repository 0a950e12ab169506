"""
GitLab service package.

Re-exports all public types and classes.
Usage: `from analyzer.services.gitlab import GitLabReadOperations, GitLabAPIError`

Module structure:
- read_operations.py: All read-only API operations
- helpers.py: Rate limit handling, error mapping and timestamp parsing
- types.py: Normalized records (merge requests, commits, file changes)
- exceptions.py: Error taxonomy
- cache.py: TTL cache for immutable commit diffs
- http_client.py: Shared pooled HTTP client
"""

from analyzer.services.gitlab.cache import clear_all_caches as clear_gitlab_caches
from analyzer.services.gitlab.cache import get_cache_stats as get_gitlab_cache_stats
from analyzer.services.gitlab.exceptions import (
    AuthExpired,
    GitLabAPIError,
    NotFound,
    RateLimited,
    RemoteUnavailable,
)
from analyzer.services.gitlab.helpers import RateLimitInfo, handle_error_response
from analyzer.services.gitlab.http_client import close_gitlab_client
from analyzer.services.gitlab.read_operations import GitLabReadOperations
from analyzer.services.gitlab.types import (
    ChangeKind,
    CommitRecord,
    FileChange,
    GitLabProject,
    MergeRequestRecord,
    ProjectId,
)

__all__ = [
    # Operations (main entry point)
    "GitLabReadOperations",
    "ProjectId",
    # HTTP client lifecycle
    "close_gitlab_client",
    # Cache management
    "clear_gitlab_caches",
    "get_gitlab_cache_stats",
    # Utilities
    "handle_error_response",
    "RateLimitInfo",
    # Exceptions
    "GitLabAPIError",
    "RemoteUnavailable",
    "NotFound",
    "AuthExpired",
    "RateLimited",
    # Types
    "ChangeKind",
    "CommitRecord",
    "FileChange",
    "GitLabProject",
    "MergeRequestRecord",
]
