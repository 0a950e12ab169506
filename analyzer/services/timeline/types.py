"""Data types for assembled project timelines."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal

from analyzer.services.gitlab.exceptions import GitLabAPIError
from analyzer.services.gitlab.types import (
    CommitRecord,
    FileChange,
    MergeRequestRecord,
    ProjectId,
)


class FailurePolicy(str, Enum):
    """What a timeline build does when a single enrichment fails."""

    FAIL_FAST = "fail_fast"  # Abort the whole build with that error
    PARTIAL = "partial"  # Skip the failed item, record it in Timeline.failures


@dataclass(frozen=True)
class EnrichedCommit:
    """A commit with its file changes attached."""

    commit: CommitRecord
    changes: tuple[FileChange, ...]

    @property
    def sha(self) -> str:
        return self.commit.sha

    @property
    def created_at(self) -> datetime:
        return self.commit.created_at


@dataclass(frozen=True)
class EnrichedMergeRequest:
    """A merge request with its own commits (oldest first) and its merge diff."""

    merge_request: MergeRequestRecord
    commits: tuple[EnrichedCommit, ...]
    changes: tuple[FileChange, ...]

    @property
    def iid(self) -> int:
        return self.merge_request.iid


@dataclass(frozen=True)
class EnrichmentFailure:
    """A merge request or commit skipped by a partial build."""

    kind: Literal["merge_request", "commit"]
    key: str  # iid for merge requests, sha for commits
    error: GitLabAPIError


@dataclass(frozen=True)
class MergeRequestRow:
    """Fields needed to upsert a merge request row keyed by (project_id, iid)."""

    project_id: ProjectId
    iid: int
    author: str
    title: str
    created_at: datetime
    web_url: str


@dataclass(frozen=True)
class Timeline:
    """Deduplicated, ordered view of a project's activity over [start, end)."""

    project_id: ProjectId
    start: datetime
    end: datetime
    merge_requests: tuple[EnrichedMergeRequest, ...]  # Ascending by iid
    orphan_commits: tuple[EnrichedCommit, ...]  # Ascending by (created_at, sha)
    failures: tuple[EnrichmentFailure, ...] = field(default=())

    @property
    def is_partial(self) -> bool:
        """True when a partial build skipped at least one item."""
        return bool(self.failures)

    def merge_request_commit_shas(self) -> set[str]:
        """All shas attached to some merge request."""
        return {c.sha for mr in self.merge_requests for c in mr.commits}

    def merge_request_rows(self) -> list[MergeRequestRow]:
        """Rows for persisting merge requests; orphan commits are not persisted."""
        return [
            MergeRequestRow(
                project_id=self.project_id,
                iid=mr.merge_request.iid,
                author=mr.merge_request.author,
                title=mr.merge_request.title,
                created_at=mr.merge_request.created_at,
                web_url=mr.merge_request.web_url,
            )
            for mr in self.merge_requests
        ]
