"""Assemble the final Timeline value."""

from collections.abc import Iterable
from datetime import datetime

from analyzer.services.gitlab.types import ProjectId
from analyzer.services.timeline.commit_enricher import sort_commits
from analyzer.services.timeline.types import (
    EnrichedCommit,
    EnrichedMergeRequest,
    EnrichmentFailure,
    Timeline,
)


def assemble_timeline(
    project_id: ProjectId,
    start: datetime,
    end: datetime,
    merge_requests: Iterable[EnrichedMergeRequest],
    orphan_commits: Iterable[EnrichedCommit],
    failures: Iterable[EnrichmentFailure] = (),
) -> Timeline:
    """
    Build a Timeline from enriched parts. Pure, no I/O.

    Ordering is applied here regardless of how the inputs arrived: merge
    requests by iid, orphan commits by (created_at, sha).
    """
    return Timeline(
        project_id=project_id,
        start=start,
        end=end,
        merge_requests=tuple(sorted(merge_requests, key=lambda mr: mr.iid)),
        orphan_commits=tuple(sort_commits(orphan_commits)),
        failures=tuple(failures),
    )
