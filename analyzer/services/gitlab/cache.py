"""
TTL caching for GitLab API responses.

Commit diffs are content-addressed: the diff of a sha never changes, so a
timeline rebuilt over an overlapping window can reuse them. Merge request
listings and diffs change as MRs are updated and are never cached.
"""

import hashlib
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

from analyzer.config import settings

logger = logging.getLogger(__name__)

# Type vars for decorator typing
P = ParamSpec("P")
T = TypeVar("T")

_commit_diff_cache: TTLCache[str, Any] = TTLCache(
    maxsize=settings.commit_diff_cache_size, ttl=settings.commit_diff_cache_ttl
)


def _make_cache_key(func_name: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
    """
    Generate a cache key from function name, credentials and arguments.

    The instance (first positional arg) contributes its server URL and token
    fingerprint. An entry is only served back to the token that fetched it,
    since GitLab never sees the repeated request and cannot check access.
    """
    instance = args[0] if args else None
    server = getattr(instance, "server_url", "")
    token = getattr(instance, "token_fingerprint", "")
    cache_args = args[1:] if args else ()
    key_data = f"{func_name}:{server}:{token}:{cache_args}:{sorted(kwargs.items())}"
    return hashlib.md5(key_data.encode()).hexdigest()


def cached_gitlab_call(
    cache: TTLCache[str, Any],
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Decorator for caching async GitLab API calls.

    Usage:
        @cached_gitlab_call(commit_diff_cache)
        async def get_commit_diff(self, project_id: int, sha: str) -> list[FileChange]:
            ...

    Only successful results are stored; a raised GitLabAPIError leaves the
    cache untouched.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            key = _make_cache_key(func.__name__, args, kwargs)

            if key in cache:
                logger.debug(f"Cache HIT: {func.__name__}")
                cached_result: T = cache[key]
                return cached_result

            logger.debug(f"Cache MISS: {func.__name__}")
            result = await func(*args, **kwargs)
            cache[key] = result
            return result

        return wrapper

    return decorator


def clear_all_caches() -> None:
    """Clear all GitLab caches. Useful for testing or when data is known to be stale."""
    _commit_diff_cache.clear()
    logger.debug("Cleared all GitLab caches")


def get_cache_stats() -> dict[str, dict[str, int]]:
    """Get current cache statistics for monitoring."""
    return {
        "commit_diff": {
            "size": len(_commit_diff_cache),
            "maxsize": _commit_diff_cache.maxsize,
        },
    }


commit_diff_cache = _commit_diff_cache
