"""Tests for the GitHub client wrapper."""

from pathlib import Path

import pytest

from pysocle.config import Config
from pysocle.github import (
    GitHubClient, PRStatus, PullRequest, fetch_pull_request_statuses, find_github_token,
)
from pysocle.typing import PullRequestError
from pysocle.tests.fake_github import FakeGithub, FakeRepository
from pysocle.tests.utils import OWNER, REPO_NAME

MARKER = "<!-- marker -->"


@pytest.fixture
def client(fake_github: FakeGithub) -> GitHubClient:
    config = Config({'repo': {'github_repo_owner': OWNER, 'github_repo_name': REPO_NAME}})
    return GitHubClient(config, fake_github)  # type: ignore[arg-type]


class TestPullRequestStatus:
    """Tests for mapping pull request fields to a status."""

    @pytest.mark.parametrize("state,merged,draft,expected", [
        ("open", False, False, PRStatus.OPEN),
        ("open", False, True, PRStatus.DRAFT),
        ("closed", False, False, PRStatus.CLOSED),
        ("closed", False, True, PRStatus.CLOSED),
        ("closed", True, False, PRStatus.MERGED),
    ])
    def test_status(self, state: str, merged: bool, draft: bool, expected: PRStatus) -> None:
        """Test that merged wins over closed and closed wins over draft."""
        assert PullRequest(1, state=state, merged=merged, draft=draft).status is expected


class TestGitHubClient:
    """Tests for GitHubClient against the fake GitHub."""

    def test_get_pull_request(self, client: GitHubClient, fake_repo: FakeRepository) -> None:
        """Test that pull requests are converted with their refs."""
        fake_repo.create_pull(title="Feature", body="", base="main", head="feature-a")

        pr = client.get_pull_request(1)

        assert pr is not None
        assert (pr.number, pr.base_ref, pr.head_ref, pr.title) == (1, "main", "feature-a", "Feature")
        assert pr.url.endswith("/pull/1")
        assert client.get_pull_request_status(1) is PRStatus.OPEN

    def test_missing_pull_request(self, client: GitHubClient) -> None:
        """Test that a 404 is not an error."""
        assert client.get_pull_request(99) is None
        assert client.get_pull_request_status(99) is PRStatus.NOT_FOUND

    def test_server_error(self, client: GitHubClient, fake_repo: FakeRepository) -> None:
        """Test that other API failures are raised as PullRequestError."""
        fake_repo.create_pull(title="Feature", body="", base="main", head="feature-a")
        fake_repo.failing.add(1)

        with pytest.raises(PullRequestError):
            client.get_pull_request(1)

    def test_transport_error(self, client: GitHubClient, fake_repo: FakeRepository) -> None:
        """Test that a request that times out is raised as PullRequestError."""
        fake_repo.create_pull(title="Feature", body="", base="main", head="feature-a")
        fake_repo.unreachable.add(1)

        with pytest.raises(PullRequestError):
            client.get_pull_request(1)
        with pytest.raises(PullRequestError):
            client.create_comment(1, "overview")

    def test_missing_repository_settings(self, fake_github: FakeGithub) -> None:
        """Test that an unknown owner or name is reported before any call."""
        client = GitHubClient(Config({'repo': {}}), fake_github)  # type: ignore[arg-type]

        with pytest.raises(PullRequestError):
            client.get_pull_request(1)

    def test_update_base(self, client: GitHubClient, fake_repo: FakeRepository) -> None:
        fake_repo.create_pull(title="Feature", body="", base="feature-a", head="feature-b")
        client.update_pull_request_base(1, "main")
        assert fake_repo.pulls[1].base.ref == "main"

    def test_find_open_pull_request(self, client: GitHubClient, fake_repo: FakeRepository) -> None:
        """Test that only open pull requests with the exact head are found."""
        fake_repo.create_pull(title="Old", body="", base="main", head="feature-a")
        fake_repo.close(1)
        fake_repo.create_pull(title="New", body="", base="main", head="feature-a")

        pr = client.find_open_pull_request("feature-a")

        assert pr is not None and pr.number == 2
        assert client.find_open_pull_request("feature-b") is None

    def test_comments(self, client: GitHubClient, fake_repo: FakeRepository) -> None:
        """Test creating, finding, reading and updating comments."""
        fake_repo.create_pull(title="Feature", body="", base="main", head="feature-a")
        client.create_comment(1, "unrelated")
        comment = client.create_comment(1, f"overview\n{MARKER}")

        assert client.find_comment_with_marker(1, MARKER) == comment.id
        assert client.update_comment(1, comment.id, f"new overview\n{MARKER}")
        fetched = client.get_comment(1, comment.id)
        assert fetched is not None and fetched.body.startswith("new overview")

    def test_deleted_comment(self, client: GitHubClient, fake_repo: FakeRepository) -> None:
        """Test that a comment that is gone reads as None and cannot be updated."""
        fake_repo.create_pull(title="Feature", body="", base="main", head="feature-a")

        assert client.get_comment(1, 12345) is None
        assert not client.update_comment(1, 12345, "body")
        assert client.find_comment_with_marker(1, MARKER) is None


class TestFetchPullRequestStatuses:
    """Tests for the concurrent status lookup."""

    @pytest.mark.parametrize("max_workers", [0, 1, 4])
    def test_collects_statuses_and_errors(self, client: GitHubClient, fake_repo: FakeRepository,
                                          max_workers: int) -> None:
        """Test that every lookup is reported either as a status or as an error."""
        for head in ("a", "b", "c", "d"):
            fake_repo.create_pull(title=head, body="", base="main", head=head)
        fake_repo.merge(1)
        fake_repo.close(2)
        fake_repo.failing.add(3)

        statuses, errors = fetch_pull_request_statuses(
            client, {"a": 1, "b": 2, "c": 3, "d": 4, "gone": 40}, max_workers)

        assert statuses == {
            "a": PRStatus.MERGED,
            "b": PRStatus.CLOSED,
            "d": PRStatus.OPEN,
            "gone": PRStatus.NOT_FOUND,
        }
        assert list(errors) == ["c"]

    def test_timeouts_are_errors(self, client: GitHubClient, fake_repo: FakeRepository) -> None:
        """Test that a lookup that times out is reported without stopping the others."""
        for head in ("a", "b"):
            fake_repo.create_pull(title=head, body="", base="main", head=head)
        fake_repo.unreachable.add(2)

        statuses, errors = fetch_pull_request_statuses(client, {"a": 1, "b": 2})

        assert statuses == {"a": PRStatus.OPEN}
        assert list(errors) == ["b"]
        assert "timed out" in errors["b"]

    def test_nothing_to_look_up(self, client: GitHubClient) -> None:
        assert fetch_pull_request_statuses(client, {}) == ({}, {})


class TestFindGithubToken:
    """Tests for token discovery."""

    def test_environment_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert find_github_token() == "env-token"

    def test_gh_hosts_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test that the gh CLI's stored token is used for the matching host."""
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        hosts = tmp_path / ".config" / "gh" / "hosts.yml"
        hosts.parent.mkdir(parents=True)
        hosts.write_text("github.com:\n  oauth_token: gh-token\n  user: someone\n")

        assert find_github_token("github.com") == "gh-token"
        assert find_github_token("github.example.com") is None

    def test_no_token(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert find_github_token() is None
