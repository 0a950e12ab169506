"""
Concurrency primitives for timeline builds.

ConcurrencyLimiter bounds in-flight remote calls. It wraps only the leaf
RemoteSource calls, never a task that itself waits on other tasks, so nested
fan-out (merge request -> its commits) cannot starve the pool.
"""

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from typing import Any, Literal, TypeVar

from analyzer.services.gitlab.exceptions import GitLabAPIError
from analyzer.services.timeline.types import EnrichmentFailure, FailurePolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrencyLimiter:
    """
    Async context manager capping concurrent remote calls.

    Excess callers queue on the semaphore instead of spawning more requests.
    in_flight and peak_in_flight are kept for monitoring and tests.
    """

    def __init__(self, max_concurrency: int):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self.max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self.in_flight = 0
        self.peak_in_flight = 0

    async def __aenter__(self) -> "ConcurrencyLimiter":
        await self._semaphore.acquire()
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.in_flight -= 1
        self._semaphore.release()


async def gather_or_cancel(*aws: Awaitable[Any]) -> list[Any]:
    """
    Run awaitables concurrently and return their results in input order.

    On the first failure every sibling still running is cancelled and awaited
    before that failure is re-raised, so nothing outlives the join. Cancelling
    the caller cancels all of them the same way.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def gather_with_policy(
    aws: Sequence[Awaitable[T]],
    keys: Sequence[str],
    kind: Literal["merge_request", "commit"],
    failure_policy: FailurePolicy,
) -> tuple[list[T], list[EnrichmentFailure]]:
    """
    Join one enrichment task per item under the given failure policy.

    FAIL_FAST re-raises the first error (see gather_or_cancel). PARTIAL keeps
    every success, turns each GitLabAPIError into an EnrichmentFailure and
    still re-raises anything else.

    Returns:
        Tuple of (successful results in input order, failures in input order)
    """
    if failure_policy is FailurePolicy.FAIL_FAST:
        return await gather_or_cancel(*aws), []

    results = await asyncio.gather(*aws, return_exceptions=True)
    succeeded: list[T] = []
    failures: list[EnrichmentFailure] = []
    for key, result in zip(keys, results, strict=True):
        if isinstance(result, GitLabAPIError):
            logger.warning(f"[timeline] Skipping {kind} {key}: {result.message}")
            failures.append(EnrichmentFailure(kind=kind, key=key, error=result))
        elif isinstance(result, BaseException):
            raise result
        else:
            succeeded.append(result)
    return succeeded, failures
