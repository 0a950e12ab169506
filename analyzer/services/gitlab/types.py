"""Data types for GitLab API responses."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

ProjectId = int | str  # Numeric id or "namespace/project" path


class ChangeKind(str, Enum):
    """How a file was touched by a commit or merge request."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


@dataclass(frozen=True)
class GitLabProject:
    """Normalized GitLab project data."""

    id: int
    name: str
    name_with_namespace: str
    web_url: str


@dataclass(frozen=True)
class MergeRequestRecord:
    """A merge request as listed by GitLab."""

    iid: int  # Project-scoped sequence number
    author: str  # Author username
    title: str
    created_at: datetime
    web_url: str


@dataclass(frozen=True)
class CommitRecord:
    """A commit as listed by GitLab."""

    sha: str
    author: str  # Author name as recorded in the commit
    created_at: datetime
    message: str
    title: str = ""  # First line of the message
    web_url: str | None = None


@dataclass(frozen=True)
class FileChange:
    """One file's diff within a commit or merge request."""

    path: str
    change_kind: ChangeKind
    patch: str
    old_path: str = ""  # Differs from path only for renames
