"""Unit tests for GitLab read operations.

Tests GitLabReadOperations with mocked HTTP responses to verify:
- Request construction (URLs, headers, params)
- Response normalization into records and file changes
- Half-open window filtering
- Pagination via X-Next-Page
- Error mapping and transport failures
- Commit diff caching
"""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from analyzer.services.gitlab.cache import clear_all_caches, get_cache_stats
from analyzer.services.gitlab.exceptions import (
    AuthExpired,
    NotFound,
    RateLimited,
    RemoteUnavailable,
)
from analyzer.services.gitlab.read_operations import GitLabReadOperations
from analyzer.services.gitlab.types import ChangeKind

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SERVER = "https://gitlab.example.com/"
TOKEN = "glpat-test-token-12345"
START = datetime(2021, 3, 1, tzinfo=UTC)
END = datetime(2021, 4, 1, tzinfo=UTC)


def _make_response(
    status_code: int = 200,
    json_data: object = None,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """Build a fake httpx.Response with the given status, JSON body, and headers."""
    return httpx.Response(
        status_code=status_code,
        json=json_data,
        headers=headers or {},
    )


def _mr_json(iid: int = 1, created_at: str = "2021-03-05T10:00:00.000Z", **overrides: object) -> dict:
    """Minimal GitLab merge request payload."""
    base = {
        "id": 1000 + iid,
        "iid": iid,
        "title": f"Merge request {iid}",
        "created_at": created_at,
        "web_url": f"https://gitlab.example.com/group/project/-/merge_requests/{iid}",
        "author": {"id": 7, "username": "jdev", "name": "Jane Dev"},
    }
    base.update(overrides)
    return base


def _commit_json(
    sha: str = "a1b2c3d4e5", created_at: str = "2021-03-05T10:00:00.000+01:00", **overrides: object
) -> dict:
    """Minimal GitLab commit payload."""
    base = {
        "id": sha,
        "short_id": sha[:8],
        "title": "Fix the thing",
        "message": "Fix the thing\n\nLonger description",
        "author_name": "Jane Dev",
        "created_at": created_at,
        "web_url": f"https://gitlab.example.com/group/project/-/commit/{sha}",
    }
    base.update(overrides)
    return base


def _diff_json(path: str = "app/main.py", **overrides: object) -> dict:
    base = {
        "old_path": path,
        "new_path": path,
        "new_file": False,
        "renamed_file": False,
        "deleted_file": False,
        "diff": "@@ -1 +1 @@\n-a\n+b\n",
    }
    base.update(overrides)
    return base


@pytest.fixture(autouse=True)
def _clear_caches():
    """Clear GitLab TTL caches before each test to prevent cross-test pollution."""
    clear_all_caches()
    yield
    clear_all_caches()


@pytest.fixture
def client():
    with patch("analyzer.services.gitlab.read_operations.get_gitlab_client") as mock_get_client:
        mock_client = AsyncMock()
        mock_get_client.return_value = mock_client
        yield mock_client


# ═══════════════════════════════════════════════════════════════════════════
# Request construction
# ═══════════════════════════════════════════════════════════════════════════


class TestRequestConstruction:
    @pytest.mark.anyio
    async def test_sends_private_token_and_api_path(self, client):
        client.get.return_value = _make_response(
            json_data={
                "id": 42,
                "name": "project",
                "name_with_namespace": "Group / project",
                "web_url": "https://gitlab.example.com/group/project",
            }
        )

        project = await GitLabReadOperations(SERVER, TOKEN).get_project(42)

        args, kwargs = client.get.call_args
        assert args[0] == "https://gitlab.example.com/api/v4/projects/42"
        assert kwargs["headers"]["PRIVATE-TOKEN"] == TOKEN
        assert project.name_with_namespace == "Group / project"

    @pytest.mark.anyio
    async def test_encodes_namespaced_project_path(self, client):
        client.get.return_value = _make_response(json_data=[])

        await GitLabReadOperations(SERVER, TOKEN).list_merge_request_commits("group/project", 3)

        url = client.get.call_args.args[0]
        assert url.endswith("/projects/group%2Fproject/merge_requests/3/commits")

    @pytest.mark.anyio
    async def test_merge_request_listing_params(self, client):
        client.get.return_value = _make_response(json_data=[])

        await GitLabReadOperations(SERVER, TOKEN).list_merge_requests(42, START, END)

        params = client.get.call_args.kwargs["params"]
        assert params["scope"] == "all"
        assert params["state"] == "all"
        assert params["created_after"] == "2021-03-01T00:00:00+00:00"
        assert params["created_before"] == "2021-04-01T00:00:00+00:00"
        assert params["per_page"] == 100
        assert params["page"] == 1

    @pytest.mark.anyio
    async def test_commit_listing_params(self, client):
        client.get.return_value = _make_response(json_data=[])

        await GitLabReadOperations(SERVER, TOKEN).list_commits(42, START, END)

        url = client.get.call_args.args[0]
        params = client.get.call_args.kwargs["params"]
        assert url.endswith("/projects/42/repository/commits")
        assert params["since"] == "2021-03-01T00:00:00+00:00"
        assert params["until"] == "2021-04-01T00:00:00+00:00"
        assert params["all"] == "true"


# ═══════════════════════════════════════════════════════════════════════════
# Normalization and window filtering
# ═══════════════════════════════════════════════════════════════════════════


class TestNormalization:
    @pytest.mark.anyio
    async def test_merge_request_fields(self, client):
        client.get.return_value = _make_response(json_data=[_mr_json(iid=5)])

        [mr] = await GitLabReadOperations(SERVER, TOKEN).list_merge_requests(42, START, END)

        assert mr.iid == 5
        assert mr.author == "jdev"
        assert mr.title == "Merge request 5"
        assert mr.created_at == datetime(2021, 3, 5, 10, tzinfo=UTC)
        assert mr.web_url.endswith("/merge_requests/5")

    @pytest.mark.anyio
    async def test_commit_fields(self, client):
        client.get.return_value = _make_response(json_data=[_commit_json()])

        [commit] = await GitLabReadOperations(SERVER, TOKEN).list_commits(42, START, END)

        assert commit.sha == "a1b2c3d4e5"
        assert commit.author == "Jane Dev"
        assert commit.title == "Fix the thing"
        assert commit.message.startswith("Fix the thing\n")
        assert commit.created_at == datetime(2021, 3, 5, 9, tzinfo=UTC)
        assert commit.created_at.tzinfo is not None

    @pytest.mark.anyio
    async def test_window_is_half_open(self, client):
        client.get.return_value = _make_response(
            json_data=[
                _mr_json(iid=1, created_at="2021-03-01T00:00:00Z"),
                _mr_json(iid=2, created_at="2021-04-01T00:00:00Z"),
                _mr_json(iid=3, created_at="2021-02-28T23:59:59Z"),
            ]
        )

        mrs = await GitLabReadOperations(SERVER, TOKEN).list_merge_requests(42, START, END)

        assert [mr.iid for mr in mrs] == [1]

    @pytest.mark.anyio
    async def test_merge_request_diff_change_kinds_in_order(self, client):
        client.get.return_value = _make_response(
            json_data={
                "iid": 5,
                "changes": [
                    _diff_json("b.py", new_file=True),
                    _diff_json("a.py"),
                    _diff_json("gone.py", deleted_file=True),
                    _diff_json("new.py", old_path="old.py", renamed_file=True),
                ],
            }
        )

        changes = await GitLabReadOperations(SERVER, TOKEN).get_merge_request_diff(42, 5)

        url = client.get.call_args.args[0]
        assert url.endswith("/projects/42/merge_requests/5/changes")
        assert [c.path for c in changes] == ["b.py", "a.py", "gone.py", "new.py"]
        assert [c.change_kind for c in changes] == [
            ChangeKind.ADDED,
            ChangeKind.MODIFIED,
            ChangeKind.DELETED,
            ChangeKind.RENAMED,
        ]
        assert changes[3].old_path == "old.py"
        assert changes[1].patch == "@@ -1 +1 @@\n-a\n+b\n"

    @pytest.mark.anyio
    async def test_merge_request_without_changes(self, client):
        client.get.return_value = _make_response(json_data={"iid": 5})

        assert await GitLabReadOperations(SERVER, TOKEN).get_merge_request_diff(42, 5) == []


# ═══════════════════════════════════════════════════════════════════════════
# Pagination
# ═══════════════════════════════════════════════════════════════════════════


class TestPagination:
    @pytest.mark.anyio
    async def test_follows_next_page_header(self, client):
        client.get.side_effect = [
            _make_response(json_data=[_commit_json("aaa")], headers={"X-Next-Page": "2"}),
            _make_response(json_data=[_commit_json("bbb")], headers={"X-Next-Page": ""}),
        ]

        commits = await GitLabReadOperations(SERVER, TOKEN).list_commits(42, START, END)

        assert [c.sha for c in commits] == ["aaa", "bbb"]
        pages = [call.kwargs["params"]["page"] for call in client.get.call_args_list]
        assert pages == [1, 2]

    @pytest.mark.anyio
    async def test_listing_beyond_max_pages_raises(self, client):
        client.get.return_value = _make_response(
            json_data=[_commit_json("aaa")], headers={"X-Next-Page": "2"}
        )

        with patch("analyzer.services.gitlab.read_operations.settings") as mock_settings:
            mock_settings.gitlab_per_page = 100
            mock_settings.gitlab_max_pages = 3
            with pytest.raises(RemoteUnavailable, match="gitlab_max_pages=3"):
                await GitLabReadOperations(SERVER, TOKEN).list_merge_request_commits(42, 1)

        assert client.get.call_count == 3

    @pytest.mark.anyio
    async def test_listing_of_exactly_max_pages_succeeds(self, client):
        client.get.side_effect = [
            _make_response(json_data=[_commit_json("aaa")], headers={"X-Next-Page": "2"}),
            _make_response(json_data=[_commit_json("bbb")], headers={"X-Next-Page": ""}),
        ]

        with patch("analyzer.services.gitlab.read_operations.settings") as mock_settings:
            mock_settings.gitlab_per_page = 100
            mock_settings.gitlab_max_pages = 2
            commits = await GitLabReadOperations(SERVER, TOKEN).list_merge_request_commits(42, 1)

        assert [c.sha for c in commits] == ["aaa", "bbb"]


# ═══════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════


class TestErrors:
    @pytest.mark.anyio
    async def test_404_raises_not_found(self, client):
        client.get.return_value = _make_response(status_code=404)

        with pytest.raises(NotFound, match="merge request !9"):
            await GitLabReadOperations(SERVER, TOKEN).get_merge_request_diff(42, 9)

    @pytest.mark.anyio
    async def test_401_raises_auth_expired(self, client):
        client.get.return_value = _make_response(status_code=401)

        with pytest.raises(AuthExpired):
            await GitLabReadOperations(SERVER, TOKEN).list_commits(42, START, END)

    @pytest.mark.anyio
    async def test_429_raises_rate_limited(self, client):
        client.get.return_value = _make_response(
            status_code=429, headers={"RateLimit-Reset": "1700000000"}
        )

        with pytest.raises(RateLimited) as exc_info:
            await GitLabReadOperations(SERVER, TOKEN).list_merge_requests(42, START, END)

        assert exc_info.value.rate_limit_reset == 1700000000

    @pytest.mark.anyio
    async def test_connection_error_raises_remote_unavailable(self, client):
        client.get.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(RemoteUnavailable, match="request failed"):
            await GitLabReadOperations(SERVER, TOKEN).get_project(42)

    @pytest.mark.anyio
    async def test_timeout_raises_remote_unavailable(self, client):
        client.get.side_effect = httpx.ReadTimeout("read timed out")

        with pytest.raises(RemoteUnavailable, match="timed out"):
            await GitLabReadOperations(SERVER, TOKEN).get_commit_diff(42, "abc")

    @pytest.mark.anyio
    async def test_error_on_second_page_propagates(self, client):
        client.get.side_effect = [
            _make_response(json_data=[_commit_json("aaa")], headers={"X-Next-Page": "2"}),
            _make_response(status_code=502),
        ]

        with pytest.raises(RemoteUnavailable):
            await GitLabReadOperations(SERVER, TOKEN).list_commits(42, START, END)

    @pytest.mark.anyio
    async def test_non_json_body_raises_remote_unavailable(self, client):
        client.get.return_value = httpx.Response(
            status_code=200, content=b"<html>proxy login</html>"
        )

        with pytest.raises(RemoteUnavailable, match="Malformed") as exc_info:
            await GitLabReadOperations(SERVER, TOKEN).get_merge_request_diff(42, 5)

        assert exc_info.value.status_code == 200

    @pytest.mark.anyio
    async def test_missing_required_field_raises_remote_unavailable(self, client):
        payload = _mr_json(2)
        del payload["iid"]
        client.get.return_value = _make_response(json_data=[_mr_json(1), payload])

        with pytest.raises(RemoteUnavailable, match="merge requests"):
            await GitLabReadOperations(SERVER, TOKEN).list_merge_requests(42, START, END)

    @pytest.mark.anyio
    async def test_naive_timestamp_raises_remote_unavailable(self, client):
        client.get.return_value = _make_response(
            json_data=[_commit_json("aaa", created_at="2021-03-05T10:00:00")]
        )

        with pytest.raises(RemoteUnavailable):
            await GitLabReadOperations(SERVER, TOKEN).list_merge_request_commits(42, 1)

    @pytest.mark.anyio
    async def test_object_instead_of_list_raises_remote_unavailable(self, client):
        client.get.return_value = _make_response(json_data={"message": "unexpected"})

        with pytest.raises(RemoteUnavailable, match="commit abc"):
            await GitLabReadOperations(SERVER, TOKEN).get_commit_diff(42, "abc")

    @pytest.mark.anyio
    async def test_malformed_project_raises_remote_unavailable(self, client):
        client.get.return_value = _make_response(json_data={"id": 42})

        with pytest.raises(RemoteUnavailable):
            await GitLabReadOperations(SERVER, TOKEN).get_project(42)


# ═══════════════════════════════════════════════════════════════════════════
# Commit diff caching
# ═══════════════════════════════════════════════════════════════════════════


class TestCommitDiffCache:
    @pytest.mark.anyio
    async def test_second_fetch_hits_cache(self, client):
        client.get.return_value = _make_response(json_data=[_diff_json()])
        ops = GitLabReadOperations(SERVER, TOKEN)

        first = await ops.get_commit_diff(42, "abc")
        second = await GitLabReadOperations(SERVER, TOKEN).get_commit_diff(42, "abc")

        assert first == second
        assert client.get.call_count == 1
        assert get_cache_stats()["commit_diff"]["size"] == 1

    @pytest.mark.anyio
    async def test_servers_do_not_share_entries(self, client):
        client.get.return_value = _make_response(json_data=[_diff_json()])

        await GitLabReadOperations(SERVER, TOKEN).get_commit_diff(42, "abc")
        await GitLabReadOperations("https://other.example.com", TOKEN).get_commit_diff(42, "abc")

        assert client.get.call_count == 2

    @pytest.mark.anyio
    async def test_tokens_do_not_share_entries(self, client):
        client.get.side_effect = [
            _make_response(json_data=[_diff_json("secret.py")]),
            _make_response(status_code=404),
        ]

        changes = await GitLabReadOperations(SERVER, TOKEN).get_commit_diff(42, "abc")
        with pytest.raises(NotFound):
            await GitLabReadOperations(SERVER, "glpat-no-access").get_commit_diff(42, "abc")

        assert [c.path for c in changes] == ["secret.py"]
        assert client.get.call_count == 2
        second_headers = client.get.call_args_list[1].kwargs["headers"]
        assert second_headers["PRIVATE-TOKEN"] == "glpat-no-access"

    @pytest.mark.anyio
    async def test_failures_are_not_cached(self, client):
        client.get.side_effect = [
            _make_response(status_code=503),
            _make_response(json_data=[_diff_json()]),
        ]
        ops = GitLabReadOperations(SERVER, TOKEN)

        with pytest.raises(RemoteUnavailable):
            await ops.get_commit_diff(42, "abc")
        changes = await ops.get_commit_diff(42, "abc")

        assert len(changes) == 1
