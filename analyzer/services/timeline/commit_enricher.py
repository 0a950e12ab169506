"""Attach diffs to commits."""

from collections.abc import Iterable
from datetime import datetime

from analyzer.services.gitlab.types import CommitRecord, ProjectId
from analyzer.services.timeline.concurrency import ConcurrencyLimiter, gather_or_cancel
from analyzer.services.timeline.source import RemoteSource
from analyzer.services.timeline.types import EnrichedCommit


def commit_sort_key(commit: EnrichedCommit) -> tuple[datetime, str]:
    """Oldest first; equal timestamps fall back to sha so order is deterministic."""
    return (commit.created_at, commit.sha)


def sort_commits(commits: Iterable[EnrichedCommit]) -> list[EnrichedCommit]:
    return sorted(commits, key=commit_sort_key)


async def enrich_commit(
    source: RemoteSource,
    project_id: ProjectId,
    commit: CommitRecord,
    limiter: ConcurrencyLimiter,
) -> EnrichedCommit:
    """
    Fetch one commit's diff and attach it.

    File changes keep the order the source returned them in. A failed diff
    fetch propagates; the caller decides whether that aborts the build.
    """
    async with limiter:
        changes = await source.get_commit_diff(project_id, commit.sha)
    return EnrichedCommit(commit=commit, changes=tuple(changes))


async def enrich_commits(
    source: RemoteSource,
    project_id: ProjectId,
    commits: Iterable[CommitRecord],
    limiter: ConcurrencyLimiter,
) -> list[EnrichedCommit]:
    """Enrich every commit in parallel and return them oldest first."""
    enriched = await gather_or_cancel(
        *(enrich_commit(source, project_id, c, limiter) for c in commits)
    )
    return sort_commits(enriched)
