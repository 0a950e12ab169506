"""
GitLab API read operations.

Provides the read-only operations the timeline needs:
- Project details
- Merge requests and commits created within a time window
- Commits belonging to a merge request
- Commit and merge request diffs
"""

import hashlib
import logging
from collections.abc import AsyncIterator, Callable
from datetime import datetime
from typing import Any, TypeVar
from urllib.parse import quote

import httpx

from analyzer.config import settings
from analyzer.services.gitlab.cache import cached_gitlab_call, commit_diff_cache
from analyzer.services.gitlab.exceptions import RemoteUnavailable
from analyzer.services.gitlab.helpers import (
    format_gitlab_datetime,
    handle_error_response,
    next_page,
    parse_gitlab_datetime,
)
from analyzer.services.gitlab.http_client import get_gitlab_client
from analyzer.services.gitlab.types import (
    ChangeKind,
    CommitRecord,
    FileChange,
    GitLabProject,
    MergeRequestRecord,
    ProjectId,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _in_window(created_at: datetime, start: datetime, end: datetime) -> bool:
    """Half-open window check: start <= created_at < end."""
    return start <= created_at < end


class GitLabReadOperations:
    """
    Read-only operations for GitLab API v4.

    Server URL and access token are explicit constructor arguments; an instance
    holds no other state and is safe to share between concurrent timeline builds.

    Uses a shared HTTP client singleton for connection pooling.
    """

    API_PATH = "/api/v4"

    def __init__(self, server_url: str, access_token: str):
        self.server_url = server_url.rstrip("/")
        self.base_url = f"{self.server_url}{self.API_PATH}"
        self.token_fingerprint = hashlib.sha256(access_token.encode()).hexdigest()[:16]
        self._headers = {
            "PRIVATE-TOKEN": access_token,
            "Accept": "application/json",
        }

    def _project_path(self, project_id: ProjectId) -> str:
        """Build the /projects/:id prefix, URL-encoding namespaced paths."""
        return f"/projects/{quote(str(project_id), safe='')}"

    # ─────────────────────────────────────────────────────────────────────
    # Normalizers
    # ─────────────────────────────────────────────────────────────────────

    def _normalize_project(self, data: dict[str, Any]) -> GitLabProject:
        """Convert GitLab API response to GitLabProject dataclass."""
        return GitLabProject(
            id=data["id"],
            name=data["name"],
            name_with_namespace=data.get("name_with_namespace", data["name"]),
            web_url=data["web_url"],
        )

    def _normalize_merge_request(self, data: dict[str, Any]) -> MergeRequestRecord:
        """Convert GitLab API response to MergeRequestRecord dataclass."""
        author = data.get("author") or {}
        return MergeRequestRecord(
            iid=data["iid"],
            author=author.get("username", ""),
            title=data.get("title", ""),
            created_at=parse_gitlab_datetime(data["created_at"]),
            web_url=data.get("web_url", ""),
        )

    def _normalize_commit(self, data: dict[str, Any]) -> CommitRecord:
        """Convert GitLab API response to CommitRecord dataclass."""
        message = data.get("message") or ""
        return CommitRecord(
            sha=data["id"],
            author=data.get("author_name", ""),
            created_at=parse_gitlab_datetime(data["created_at"]),
            message=message,
            title=data.get("title") or message.split("\n")[0],
            web_url=data.get("web_url"),
        )

    def _normalize_file_change(self, data: dict[str, Any]) -> FileChange:
        """Convert one GitLab diff entry to FileChange dataclass."""
        if data.get("new_file"):
            kind = ChangeKind.ADDED
        elif data.get("deleted_file"):
            kind = ChangeKind.DELETED
        elif data.get("renamed_file"):
            kind = ChangeKind.RENAMED
        else:
            kind = ChangeKind.MODIFIED

        new_path = data.get("new_path") or data.get("old_path", "")
        return FileChange(
            path=new_path,
            change_kind=kind,
            patch=data.get("diff", ""),
            old_path=data.get("old_path") or new_path,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Transport
    # ─────────────────────────────────────────────────────────────────────

    async def _get(
        self,
        path: str,
        resource: str,
        params: dict[str, str | int] | None = None,
    ) -> httpx.Response:
        """
        Issue a GET against the API and map failures onto the error taxonomy.

        Raises:
            RemoteUnavailable: On transport errors, timeouts and 5xx
            AuthExpired, NotFound, RateLimited: See handle_error_response
        """
        client = get_gitlab_client()
        try:
            response = await client.get(
                f"{self.base_url}{path}",
                headers=self._headers,
                params=params,
            )
        except httpx.TimeoutException as e:
            raise RemoteUnavailable(f"GitLab request timed out: {resource}") from e
        except httpx.RequestError as e:
            raise RemoteUnavailable(f"GitLab request failed for {resource}: {e}") from e

        handle_error_response(response, resource)
        return response

    def _parse(self, response: httpx.Response, resource: str, parse: Callable[[Any], T]) -> T:
        """
        Decode a successful response body and normalize it.

        Raises:
            RemoteUnavailable: If the body is not JSON or lacks required fields
        """
        try:
            return parse(response.json())
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Malformed GitLab response for {resource}: {e!r}")
            raise RemoteUnavailable(
                f"Malformed GitLab response for {resource}", status_code=response.status_code
            ) from e

    async def _paginate(
        self,
        path: str,
        resource: str,
        normalize: Callable[[dict[str, Any]], T],
        params: dict[str, str | int] | None = None,
    ) -> AsyncIterator[T]:
        """
        Lazily yield normalized items from a paginated list endpoint.

        Follows X-Next-Page until GitLab stops sending it. A listing longer
        than settings.gitlab_max_pages pages is an error rather than a
        silently shortened result.
        """

        def parse_page(data: Any) -> list[T]:
            if not isinstance(data, list):
                raise TypeError(f"expected a JSON array, got {type(data).__name__}")
            return [normalize(item) for item in data]

        page: int | None = 1
        pages_read = 0
        while page is not None:
            if pages_read >= settings.gitlab_max_pages:
                raise RemoteUnavailable(
                    f"GitLab listing for {resource} exceeds "
                    f"gitlab_max_pages={settings.gitlab_max_pages}"
                )
            page_params: dict[str, str | int] = {
                **(params or {}),
                "per_page": settings.gitlab_per_page,
                "page": page,
            }
            response = await self._get(path, resource, page_params)
            for item in self._parse(response, resource, parse_page):
                yield item

            pages_read += 1
            page = next_page(response)

    # ─────────────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────────────

    async def get_project(self, project_id: ProjectId) -> GitLabProject:
        """
        Fetch details for a single project.

        Args:
            project_id: Numeric project id or "namespace/project" path

        Returns:
            GitLabProject with id, names and web URL
        """
        resource = f"project {project_id}"
        response = await self._get(self._project_path(project_id), resource)
        return self._parse(response, resource, self._normalize_project)

    async def list_merge_requests(
        self,
        project_id: ProjectId,
        start: datetime,
        end: datetime,
    ) -> list[MergeRequestRecord]:
        """
        List merge requests created within [start, end), in any state.

        Args:
            project_id: Numeric project id or "namespace/project" path
            start: Inclusive window start (timezone-aware)
            end: Exclusive window end (timezone-aware)

        Returns:
            Merge requests in the order GitLab returned them
        """
        params: dict[str, str | int] = {
            "scope": "all",
            "state": "all",
            "created_after": format_gitlab_datetime(start),
            "created_before": format_gitlab_datetime(end),
        }
        merge_requests = [
            item
            async for item in self._paginate(
                f"{self._project_path(project_id)}/merge_requests",
                f"project {project_id} merge requests",
                self._normalize_merge_request,
                params,
            )
        ]
        return [mr for mr in merge_requests if _in_window(mr.created_at, start, end)]

    async def list_commits(
        self,
        project_id: ProjectId,
        start: datetime,
        end: datetime,
    ) -> list[CommitRecord]:
        """
        List commits on any branch created within [start, end).

        Args:
            project_id: Numeric project id or "namespace/project" path
            start: Inclusive window start (timezone-aware)
            end: Exclusive window end (timezone-aware)

        Returns:
            Commits in the order GitLab returned them
        """
        params: dict[str, str | int] = {
            "since": format_gitlab_datetime(start),
            "until": format_gitlab_datetime(end),
            "all": "true",
        }
        commits = [
            item
            async for item in self._paginate(
                f"{self._project_path(project_id)}/repository/commits",
                f"project {project_id} commits",
                self._normalize_commit,
                params,
            )
        ]
        return [c for c in commits if _in_window(c.created_at, start, end)]

    async def list_merge_request_commits(
        self,
        project_id: ProjectId,
        iid: int,
    ) -> list[CommitRecord]:
        """List every commit of merge request !iid, regardless of window."""
        return [
            item
            async for item in self._paginate(
                f"{self._project_path(project_id)}/merge_requests/{iid}/commits",
                f"project {project_id} merge request !{iid} commits",
                self._normalize_commit,
            )
        ]

    async def get_merge_request_diff(
        self,
        project_id: ProjectId,
        iid: int,
    ) -> list[FileChange]:
        """
        Fetch the file changes of merge request !iid.

        Returns:
            FileChange list in the order GitLab returned them
        """
        resource = f"project {project_id} merge request !{iid} diff"
        response = await self._get(
            f"{self._project_path(project_id)}/merge_requests/{iid}/changes", resource
        )
        return self._parse(
            response,
            resource,
            lambda data: [self._normalize_file_change(c) for c in data.get("changes") or []],
        )

    @cached_gitlab_call(commit_diff_cache)
    async def get_commit_diff(
        self,
        project_id: ProjectId,
        sha: str,
    ) -> list[FileChange]:
        """
        Fetch the file changes of a single commit.

        Results are cached per server, token, project and sha since a commit's diff
        never changes.

        Returns:
            FileChange list in the order GitLab returned them
        """
        return [
            item
            async for item in self._paginate(
                f"{self._project_path(project_id)}/repository/commits/{sha}/diff",
                f"project {project_id} commit {sha[:8]} diff",
                self._normalize_file_change,
            )
        ]
