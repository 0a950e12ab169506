"""Attach commits and diffs to merge requests."""

import logging

from analyzer.services.gitlab.types import FileChange, MergeRequestRecord, ProjectId
from analyzer.services.timeline.commit_enricher import enrich_commits
from analyzer.services.timeline.concurrency import ConcurrencyLimiter, gather_or_cancel
from analyzer.services.timeline.source import RemoteSource
from analyzer.services.timeline.types import EnrichedCommit, EnrichedMergeRequest

logger = logging.getLogger(__name__)


async def enrich_merge_request(
    source: RemoteSource,
    project_id: ProjectId,
    merge_request: MergeRequestRecord,
    limiter: ConcurrencyLimiter,
) -> EnrichedMergeRequest:
    """
    Enrich one merge request with its commits and its own diff.

    The commit branch (list commits, then enrich each in parallel) and the
    diff branch run concurrently. Both must succeed: a failure in either
    cancels the other and propagates, so a half-enriched merge request is
    never returned.

    Args:
        source: Remote data source
        project_id: Project the merge request belongs to
        merge_request: The merge request to enrich
        limiter: Shared bound on in-flight remote calls

    Returns:
        EnrichedMergeRequest with commits sorted oldest first
    """
    iid = merge_request.iid

    async def fetch_commits() -> list[EnrichedCommit]:
        async with limiter:
            commits = await source.list_merge_request_commits(project_id, iid)
        return await enrich_commits(source, project_id, commits, limiter)

    async def fetch_diff() -> list[FileChange]:
        async with limiter:
            return await source.get_merge_request_diff(project_id, iid)

    commits, changes = await gather_or_cancel(fetch_commits(), fetch_diff())
    logger.debug(f"[timeline] Enriched merge request !{iid}: {len(commits)} commits")

    return EnrichedMergeRequest(
        merge_request=merge_request,
        commits=tuple(commits),
        changes=tuple(changes),
    )
