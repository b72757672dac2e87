"""Common types and errors used across the codebase."""

from typing import List, Optional, Protocol


class GitInterface(Protocol):
    """Protocol for running git commands."""

    def run_cmd(self, command: str) -> str:
        """Run a git command and return its output."""
        ...

    def must_git(self, command: str) -> str:
        """Run a git command, raising on failure."""
        ...


class Prompter(Protocol):
    """Single-call capabilities used wherever the user has to decide something."""

    def choose(self, message: str, options: List[str]) -> int:
        """Return the index of the chosen option."""
        ...

    def confirm(self, message: str, default: bool = False) -> bool:
        """Answer a yes/no question."""
        ...


class SocleError(Exception):
    """Base class for all pysocle errors."""


class NotTrackedError(SocleError):
    """Branch has no stack metadata and is not a root branch."""

    def __init__(self, branch: str):
        super().__init__(
            f"Branch '{branch}' is not tracked by socle. "
            f"Run 'socle track' on it first.")
        self.branch = branch


class BrokenTrackingError(SocleError):
    """Stack metadata is corrupted: a missing ancestor or a cycle."""


class NonLinearViolationError(SocleError):
    """A non-root branch has more than one child."""

    def __init__(self, branch: str, children: List[str]):
        super().__init__(
            f"Branch '{branch}' has multiple children ({', '.join(children)}). "
            f"Only root branches may have more than one child.")
        self.branch = branch
        self.children = children


class RebaseConflictError(SocleError):
    """A rebase stopped on conflicts and is waiting for manual resolution."""

    def __init__(self, branch: str, onto: str):
        super().__init__(f"Rebase of '{branch}' onto '{onto}' stopped on conflicts")
        self.branch = branch
        self.onto = onto


class RebaseInProgressError(SocleError):
    """A rebase or merge from an earlier run is still paused."""

    def __init__(self) -> None:
        super().__init__(
            "A rebase or merge is already in progress. Finish it with "
            "'git rebase --continue' or abandon it with 'git rebase --abort' first.")


class DirtyWorkingTreeError(SocleError):
    """The working tree has uncommitted changes."""

    def __init__(self, action: str):
        super().__init__(
            f"Cannot {action}: you have uncommitted changes. Commit or stash them first.")


class RestackFailedError(SocleError):
    """A rebase failed for a reason other than conflicts."""


class RemoteFailureError(SocleError):
    """Remote not found, fetch failed or push rejected."""


class InvalidBranchError(SocleError):
    """Branch name or branch state does not allow the requested operation."""


class PullRequestError(SocleError):
    """Creating or updating a pull request failed."""


class MetadataIOError(SocleError):
    """A git subprocess failed."""

    def __init__(self, message: str, stderr: str = "", stdout: str = ""):
        details = stderr.strip() or stdout.strip()
        super().__init__(f"{message}: {details}" if details else message)
        self.stderr = stderr
        self.stdout = stdout


class GitCommandFailure(MetadataIOError):
    """A git command exited with a non-zero status."""

    def __init__(self, command: str, status: Optional[int], stderr: str = "", stdout: str = ""):
        super().__init__(f"git {command} failed (exit {status})", stderr, stdout)
        self.command = command
        self.status = status
