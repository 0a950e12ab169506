"""Build a project timeline from a remote source.

Pipeline, with its three join points:

1. List the window's merge requests; enrich every merge request in parallel
   while the window's commit list is fetched alongside. Join.
2. Build the set of shas covered by merge requests, filter the commit list
   down to orphans and enrich each orphan in parallel. Join.
3. Assemble and order the Timeline.

The build is a single cancellable unit: cancelling it (or hitting the
timeout) cancels every in-flight remote call and returns nothing.
"""

import asyncio
import logging
import time
from datetime import datetime

from analyzer.config import settings
from analyzer.services.gitlab.types import CommitRecord, MergeRequestRecord, ProjectId
from analyzer.services.timeline.assembler import assemble_timeline
from analyzer.services.timeline.concurrency import (
    ConcurrencyLimiter,
    gather_or_cancel,
    gather_with_policy,
)
from analyzer.services.timeline.merge_request_enricher import enrich_merge_request
from analyzer.services.timeline.orphan_filter import enrich_orphans
from analyzer.services.timeline.source import RemoteSource
from analyzer.services.timeline.types import (
    EnrichedMergeRequest,
    EnrichmentFailure,
    FailurePolicy,
    Timeline,
)

logger = logging.getLogger(__name__)


class InvalidWindowError(ValueError):
    """Raised when a timeline window is empty, inverted or timezone-naive."""


def validate_window(start: datetime, end: datetime) -> None:
    """Check that [start, end) is a non-empty window of timezone-aware instants."""
    if start.tzinfo is None or end.tzinfo is None:
        raise InvalidWindowError("Timeline window bounds must be timezone-aware")
    if start >= end:
        raise InvalidWindowError(
            f"Timeline window start ({start.isoformat()}) must be before end ({end.isoformat()})"
        )


async def build_timeline(
    source: RemoteSource,
    project_id: ProjectId,
    start: datetime,
    end: datetime,
    *,
    max_concurrency: int | None = None,
    limiter: ConcurrencyLimiter | None = None,
    failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST,
    timeout: float | None = None,
) -> Timeline:
    """
    Aggregate a project's merge requests and orphan commits over [start, end).

    Args:
        source: Authorized remote source; passed per call, never stored
        project_id: Project to aggregate
        start: Inclusive window start (timezone-aware)
        end: Exclusive window end (timezone-aware)
        max_concurrency: Cap on in-flight remote calls
            (default: settings.timeline_max_concurrency)
        limiter: Pre-built limiter, e.g. shared across several builds;
            takes precedence over max_concurrency
        failure_policy: FAIL_FAST aborts on the first enrichment error,
            PARTIAL skips failed items and lists them in Timeline.failures
        timeout: Seconds before the whole build is cancelled (default: none)

    Returns:
        Timeline with merge requests ascending by iid and orphan commits
        ascending by creation time

    Raises:
        InvalidWindowError: If the window is empty or timezone-naive
        GitLabAPIError: The first remote failure (any failure when listing,
            any enrichment failure under FAIL_FAST)
        TimeoutError: If timeout elapsed
    """
    validate_window(start, end)
    if limiter is None:
        limiter = ConcurrencyLimiter(max_concurrency or settings.timeline_max_concurrency)

    started = time.monotonic()
    async with asyncio.timeout(timeout):
        timeline = await _build(source, project_id, start, end, limiter, failure_policy)

    logger.info(
        f"[timeline] Built timeline for project {project_id} "
        f"({start.isoformat()} to {end.isoformat()}): "
        f"{len(timeline.merge_requests)} merge requests, "
        f"{len(timeline.orphan_commits)} orphan commits, "
        f"{len(timeline.failures)} skipped "
        f"({round(time.monotonic() - started, 2)}s)"
    )
    return timeline


async def _build(
    source: RemoteSource,
    project_id: ProjectId,
    start: datetime,
    end: datetime,
    limiter: ConcurrencyLimiter,
    failure_policy: FailurePolicy,
) -> Timeline:
    async def enrich_all_merge_requests() -> tuple[
        list[EnrichedMergeRequest], list[EnrichmentFailure]
    ]:
        async with limiter:
            merge_requests: list[MergeRequestRecord] = await source.list_merge_requests(
                project_id, start, end
            )
        logger.debug(f"[timeline] Project {project_id}: {len(merge_requests)} merge requests")
        return await gather_with_policy(
            [enrich_merge_request(source, project_id, mr, limiter) for mr in merge_requests],
            [str(mr.iid) for mr in merge_requests],
            "merge_request",
            failure_policy,
        )

    async def list_window_commits() -> list[CommitRecord]:
        async with limiter:
            return await source.list_commits(project_id, start, end)

    (enriched_mrs, mr_failures), commits = await gather_or_cancel(
        enrich_all_merge_requests(), list_window_commits()
    )
    logger.debug(
        f"[timeline] Project {project_id}: enriched {len(enriched_mrs)} merge requests, "
        f"{len(commits)} commits in window"
    )

    orphans, commit_failures = await enrich_orphans(
        source, project_id, enriched_mrs, commits, limiter, failure_policy
    )
    logger.debug(f"[timeline] Project {project_id}: enriched {len(orphans)} orphan commits")

    return assemble_timeline(
        project_id,
        start,
        end,
        enriched_mrs,
        orphans,
        [*mr_failures, *commit_failures],
    )


class TimelineBuilder:
    """
    Timeline builder preconfigured from settings.

    Holds configuration only; the remote source is passed to every build, so
    one builder can serve concurrent builds for different users and servers.
    """

    def __init__(
        self,
        max_concurrency: int | None = None,
        failure_policy: FailurePolicy | None = None,
        timeout: float | None = None,
    ):
        self.max_concurrency = max_concurrency or settings.timeline_max_concurrency
        self.failure_policy = failure_policy or FailurePolicy(settings.timeline_failure_policy)
        self.timeout = timeout if timeout is not None else settings.timeline_timeout_seconds

    async def build(
        self,
        source: RemoteSource,
        project_id: ProjectId,
        start: datetime,
        end: datetime,
    ) -> Timeline:
        """Build a timeline with this builder's configuration."""
        return await build_timeline(
            source,
            project_id,
            start,
            end,
            max_concurrency=self.max_concurrency,
            failure_policy=self.failure_policy,
            timeout=self.timeout,
        )


timeline_builder = TimelineBuilder()
