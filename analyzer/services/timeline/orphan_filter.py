"""Find and enrich commits that belong to no merge request."""

from collections.abc import Iterable

from analyzer.services.gitlab.types import CommitRecord, ProjectId
from analyzer.services.timeline.commit_enricher import enrich_commit, sort_commits
from analyzer.services.timeline.concurrency import ConcurrencyLimiter, gather_with_policy
from analyzer.services.timeline.source import RemoteSource
from analyzer.services.timeline.types import (
    EnrichedCommit,
    EnrichedMergeRequest,
    EnrichmentFailure,
    FailurePolicy,
)


def collect_merge_request_shas(merge_requests: Iterable[EnrichedMergeRequest]) -> frozenset[str]:
    """Membership set of every sha attached to any of the merge requests."""
    return frozenset(c.sha for mr in merge_requests for c in mr.commits)


def filter_orphans(
    commits: Iterable[CommitRecord],
    covered_shas: frozenset[str],
) -> list[CommitRecord]:
    """
    Keep commits whose sha is not covered by a merge request.

    covered_shas must already hold the shas of all merge requests in the
    window; a commit can belong to any of them. A sha listed more than once
    is kept only at its first occurrence.
    """
    seen: set[str] = set()
    orphans: list[CommitRecord] = []
    for commit in commits:
        if commit.sha in covered_shas or commit.sha in seen:
            continue
        seen.add(commit.sha)
        orphans.append(commit)
    return orphans


async def enrich_orphans(
    source: RemoteSource,
    project_id: ProjectId,
    merge_requests: Iterable[EnrichedMergeRequest],
    commits: Iterable[CommitRecord],
    limiter: ConcurrencyLimiter,
    failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST,
) -> tuple[list[EnrichedCommit], list[EnrichmentFailure]]:
    """
    Filter the window's commits down to orphans and attach their diffs.

    Returns:
        Tuple of (orphans oldest first, commits skipped by a partial build)
    """
    orphans = filter_orphans(commits, collect_merge_request_shas(merge_requests))
    enriched, failures = await gather_with_policy(
        [enrich_commit(source, project_id, c, limiter) for c in orphans],
        [c.sha for c in orphans],
        "commit",
        failure_policy,
    )
    return sort_commits(enriched), failures
