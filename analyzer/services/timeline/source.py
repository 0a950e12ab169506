"""Remote data source consumed by the timeline builder."""

from datetime import datetime
from typing import Protocol

from analyzer.services.gitlab.types import (
    CommitRecord,
    FileChange,
    MergeRequestRecord,
    ProjectId,
)


class RemoteSource(Protocol):
    """
    Read access to one code-hosting server.

    GitLabReadOperations satisfies this protocol. Every call may raise a
    GitLabAPIError subclass (RemoteUnavailable, NotFound, AuthExpired,
    RateLimited); retrying is the implementation's concern, never the builder's.
    """

    async def list_merge_requests(
        self, project_id: ProjectId, start: datetime, end: datetime
    ) -> list[MergeRequestRecord]: ...

    async def list_commits(
        self, project_id: ProjectId, start: datetime, end: datetime
    ) -> list[CommitRecord]: ...

    async def list_merge_request_commits(
        self, project_id: ProjectId, iid: int
    ) -> list[CommitRecord]: ...

    async def get_merge_request_diff(self, project_id: ProjectId, iid: int) -> list[FileChange]: ...

    async def get_commit_diff(self, project_id: ProjectId, sha: str) -> list[FileChange]: ...
