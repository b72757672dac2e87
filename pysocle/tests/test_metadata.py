"""Tests for the git config backed metadata store."""

import pytest

from pysocle.git import GitCommandFailure
from pysocle.git.metadata import MetadataStore
from pysocle.tests.utils import RepoContext


class TestMetadataStore:
    """Tests for MetadataStore against a real repository."""

    def test_get_missing_key(self, repo: RepoContext) -> None:
        """Test that an unset key reads as None."""
        assert repo.store.get_parent("nothing") is None
        assert repo.store.get_pr_number("nothing") is None

    def test_set_and_get(self, repo: RepoContext) -> None:
        """Test that values are written to the local git config."""
        repo.store.set_tracking("feature-a", "main", "main")
        repo.store.set_pr_number("feature-a", 42)

        assert repo.store.get_parent("feature-a") == "main"
        assert repo.store.get_base("feature-a") == "main"
        assert repo.store.get_pr_number("feature-a") == 42
        assert repo.run("git config --local branch.feature-a.socle-pr-number") == "42"

    def test_set_replaces_value(self, repo: RepoContext) -> None:
        """Test that setting a key twice keeps a single value."""
        repo.store.set_tracking("b", "a", "main")
        repo.store.set_tracking("b", "main", "main")
        assert repo.run("git config --local --get-all branch.b.socle-parent") == "main"

    def test_unset_missing_key(self, repo: RepoContext) -> None:
        """Test that unsetting an absent key is not an error."""
        repo.store.clear_all("never-tracked")

    def test_clear_tracking(self, repo: RepoContext) -> None:
        """Test that parent and base are removed together."""
        repo.store.set_tracking("feature-a", "main", "main")
        repo.store.set_comment_id("feature-a", 7)
        repo.store.clear_tracking("feature-a")
        assert repo.store.get_parent("feature-a") is None
        assert repo.store.get_base("feature-a") is None
        assert repo.store.get_comment_id("feature-a") == 7

    def test_clear_pr_number_drops_comment(self, repo: RepoContext) -> None:
        """Test that forgetting a pull request also forgets its comment."""
        repo.store.set_pr_number("feature-a", 3)
        repo.store.set_comment_id("feature-a", 99)
        repo.store.clear_pr_number("feature-a")
        assert repo.store.get_pr_number("feature-a") is None
        assert repo.store.get_comment_id("feature-a") is None

    def test_get_all_parents(self, repo: RepoContext) -> None:
        """Test that the bulk scan returns every parent record, names with dots and slashes included."""
        repo.store.set_tracking("feature/a", "main", "main")
        repo.store.set_tracking("release.1.x", "feature/a", "main")
        repo.store.set_pr_number("feature/a", 12)

        assert repo.store.get_all_parents() == {"feature/a": "main", "release.1.x": "feature/a"}

    def test_get_all_parents_empty(self, repo: RepoContext) -> None:
        """Test that a repository without records scans as empty."""
        assert repo.store.get_all_parents() == {}

    def test_malformed_pr_number(self, repo: RepoContext) -> None:
        """Test that a non-numeric stored number reads as absent."""
        repo.run("git config --local branch.feature-a.socle-pr-number abc")
        assert repo.store.get_pr_number("feature-a") is None

    def test_failures_carry_status(self, repo: RepoContext) -> None:
        """Test that unexpected git failures surface with their exit status and output."""
        store = MetadataStore(repo.git_cmd)
        with pytest.raises(GitCommandFailure) as exc_info:
            store.git_cmd.run_cmd("config --local --get-regexp '['")
        assert exc_info.value.status not in (None, 0, 1)
        assert exc_info.value.stderr
