"""Git interfaces and implementation."""

import os
import shlex
import logging
from typing import List, Optional
import git
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from ..typing import (
    GitInterface, GitCommandFailure, InvalidBranchError, MetadataIOError,
    RebaseConflictError, RemoteFailureError,
)
from ..config.models import SocleConfig

logger = logging.getLogger(__name__)

# Markers git leaves in the git dir while an operation is paused
REBASE_MARKERS = ("rebase-merge", "rebase-apply")
PAUSED_OPERATION_MARKERS = REBASE_MARKERS + ("MERGE_HEAD", "CHERRY_PICK_HEAD")


class RealGit:
    """Real Git implementation backed by GitPython."""
    def __init__(self, config: SocleConfig, directory: Optional[str] = None):
        """Initialize with config and the directory to run commands in."""
        self.config: SocleConfig = config
        self.directory = directory or os.getcwd()
        self._repo: Optional[git.Repo] = None

    @property
    def repo(self) -> git.Repo:
        """The repository containing the working directory."""
        if self._repo is None:
            try:
                self._repo = git.Repo(self.directory, search_parent_directories=True)
            except (InvalidGitRepositoryError, NoSuchPathError):
                raise MetadataIOError(f"Not in a git repository: {self.directory}")
        return self._repo

    def run_cmd(self, command: str) -> str:
        """Run git command."""
        cmd_str = command.strip()

        if self.config.tool.pretend and cmd_str.startswith('push'):
            logger.info(f"> git {cmd_str} (pretend)")
            return ""

        if self.config.user.log_git_commands:
            logger.info(f"> git {cmd_str}")
        else:
            logger.debug(f"> git {cmd_str}")

        cmd_parts = shlex.split(cmd_str)
        method = getattr(self.repo.git, cmd_parts[0].replace('-', '_'))
        try:
            result = method(*cmd_parts[1:])
        except GitCommandError as e:
            logger.debug(f"git {cmd_str} exited with {e.status}: {e.stderr}")
            raise GitCommandFailure(cmd_str, e.status if isinstance(e.status, int) else None,
                                    _decode(e.stderr), _decode(e.stdout))
        return result if isinstance(result, str) else str(result)

    def must_git(self, command: str) -> str:
        """Run git command, failing on error."""
        return self.run_cmd(command)


def _decode(output: object) -> str:
    """GitCommandError wraps captured output in a quoted, labelled string."""
    if isinstance(output, bytes):
        output = output.decode('utf-8', errors='replace')
    text = str(output or "").strip()
    for label in ("stderr: ", "stdout: "):
        if text.startswith(label):
            text = text[len(label):]
    return text.strip("'").strip()


def get_current_branch(git_cmd: GitInterface) -> str:
    """Name of the checked out branch."""
    branch = git_cmd.must_git("rev-parse --abbrev-ref HEAD").strip()
    if branch == "HEAD":
        raise InvalidBranchError("HEAD is detached; check out a branch first")
    return branch


def rev_parse(git_cmd: GitInterface, ref: str) -> str:
    """Resolve a ref to its commit hash."""
    return git_cmd.must_git(f"rev-parse --verify {ref}").strip()


def branch_exists(git_cmd: GitInterface, branch: str) -> bool:
    """Whether a local branch exists."""
    try:
        git_cmd.run_cmd(f"show-ref --verify --quiet refs/heads/{branch}")
    except GitCommandFailure as e:
        if e.status == 1:
            return False
        raise
    return True


def remote_branch_exists(git_cmd: GitInterface, remote: str, branch: str) -> bool:
    """Whether a remote-tracking ref exists for branch."""
    try:
        git_cmd.run_cmd(f"show-ref --verify --quiet refs/remotes/{remote}/{branch}")
    except GitCommandFailure as e:
        if e.status == 1:
            return False
        raise
    return True


def list_local_branches(git_cmd: GitInterface) -> List[str]:
    """All local branch names, sorted."""
    output = git_cmd.must_git("for-each-ref --format=%(refname:short) refs/heads/")
    return sorted(line.strip() for line in output.splitlines() if line.strip())


def checkout(git_cmd: GitInterface, branch: str) -> None:
    """Check out an existing branch."""
    git_cmd.must_git(f"checkout {branch}")


def create_branch(git_cmd: GitInterface, branch: str, start_point: str = "HEAD") -> None:
    """Create a branch at start_point without checking it out."""
    git_cmd.must_git(f"branch {branch} {start_point}")


def delete_branch(git_cmd: GitInterface, branch: str) -> None:
    """Force-delete a local branch."""
    git_cmd.must_git(f"branch -D {branch}")


def get_merge_base(git_cmd: GitInterface, first: str, second: str) -> str:
    """Best common ancestor of two refs."""
    return git_cmd.must_git(f"merge-base {first} {second}").strip()


def is_ancestor(git_cmd: GitInterface, ancestor: str, descendant: str) -> bool:
    """Whether ancestor is reachable from descendant."""
    try:
        git_cmd.run_cmd(f"merge-base --is-ancestor {ancestor} {descendant}")
    except GitCommandFailure as e:
        if e.status == 1:
            return False
        raise
    return True


def _git_dir(git_cmd: GitInterface) -> str:
    return git_cmd.must_git("rev-parse --absolute-git-dir").strip()


def is_rebase_in_progress(git_cmd: GitInterface) -> bool:
    """Whether a rebase is paused in this repository."""
    git_dir = _git_dir(git_cmd)
    return any(os.path.exists(os.path.join(git_dir, marker)) for marker in REBASE_MARKERS)


def is_operation_in_progress(git_cmd: GitInterface) -> bool:
    """Whether a rebase, merge or cherry-pick is paused in this repository."""
    git_dir = _git_dir(git_cmd)
    return any(os.path.exists(os.path.join(git_dir, marker)) for marker in PAUSED_OPERATION_MARKERS)


def rebase_onto(git_cmd: GitInterface, branch: str, onto: str) -> None:
    """Rebase the checked out branch onto a commit.

    Raises:
        RebaseConflictError: The rebase stopped and is waiting for the user
        GitCommandFailure: The rebase failed for any other reason
    """
    try:
        git_cmd.must_git(f"rebase {onto}")
    except GitCommandFailure:
        if is_rebase_in_progress(git_cmd):
            raise RebaseConflictError(branch, onto)
        raise


def has_uncommitted_changes(git_cmd: GitInterface) -> bool:
    """Whether tracked files have staged or unstaged changes."""
    output = git_cmd.must_git("status --porcelain --untracked-files=no")
    return bool(output.strip())


def has_diff(git_cmd: GitInterface, base: str, head: str) -> bool:
    """Whether head introduces changes relative to base."""
    try:
        git_cmd.run_cmd(f"diff --quiet {base}..{head}")
    except GitCommandFailure as e:
        if e.status == 1:
            return True
        raise
    return False


def get_commit_subjects(git_cmd: GitInterface, base: str, head: str) -> List[str]:
    """Subjects of the commits in base..head, oldest first."""
    output = git_cmd.must_git(f"log --format=%s --reverse {base}..{head}")
    return [line for line in output.splitlines() if line.strip()]


def validate_branch_name(git_cmd: GitInterface, name: str) -> None:
    """Raise InvalidBranchError unless name is a valid branch name."""
    try:
        git_cmd.run_cmd(f"check-ref-format --branch {shlex.quote(name)}")
    except GitCommandFailure:
        raise InvalidBranchError(f"'{name}' is not a valid branch name")


def get_config(git_cmd: GitInterface, key: str) -> Optional[str]:
    """Read a git config value, None if unset."""
    try:
        value = git_cmd.run_cmd(f"config --get {key}")
    except GitCommandFailure as e:
        if e.status == 1:
            return None
        raise
    return value.strip()


def remote_exists(git_cmd: GitInterface, remote: str) -> bool:
    """Whether the named remote is configured."""
    output = git_cmd.must_git("remote")
    return remote in [line.strip() for line in output.splitlines()]


def fetch(git_cmd: GitInterface, remote: str, branch: Optional[str] = None) -> None:
    """Fetch from remote, optionally a single branch."""
    if not remote_exists(git_cmd, remote):
        raise RemoteFailureError(f"Remote '{remote}' is not configured")
    command = f"fetch {remote}" if branch is None else f"fetch {remote} {branch}"
    try:
        git_cmd.must_git(command)
    except GitCommandFailure as e:
        raise RemoteFailureError(f"Failed to fetch from '{remote}': {e}")


def push_branch(git_cmd: GitInterface, remote: str, branch: str,
                force: bool = False, force_with_lease: bool = False) -> None:
    """Push a local branch to the same name on remote."""
    args = ["push"]
    if force:
        args.append("--force")
    elif force_with_lease:
        args.append("--force-with-lease")
    args.extend([remote, f"refs/heads/{branch}:refs/heads/{branch}"])
    try:
        git_cmd.must_git(" ".join(args))
    except GitCommandFailure as e:
        raise RemoteFailureError(f"Failed to push '{branch}' to '{remote}': {e}")


def fast_forward_branch(git_cmd: GitInterface, branch: str, target: str) -> bool:
    """Move branch up to target if that is a fast-forward.

    Returns False, leaving branch untouched, when branch has diverged from target.
    """
    if not is_ancestor(git_cmd, branch, target):
        return False
    current = git_cmd.must_git("rev-parse --abbrev-ref HEAD").strip()
    if current == branch:
        git_cmd.must_git(f"merge --ff-only {target}")
    else:
        git_cmd.must_git(f"branch -f {branch} {target}")
    return True


def reset_branch_hard(git_cmd: GitInterface, branch: str, target: str) -> None:
    """Check out branch and force it to target."""
    checkout(git_cmd, branch)
    git_cmd.must_git(f"reset --hard {target}")


def has_staged_changes(git_cmd: GitInterface) -> bool:
    """Whether the index differs from HEAD."""
    try:
        git_cmd.run_cmd("diff --cached --quiet")
    except GitCommandFailure as e:
        if e.status == 1:
            return True
        raise
    return False


def stage_all_changes(git_cmd: GitInterface) -> None:
    git_cmd.must_git("add -A")


def commit(git_cmd: GitInterface, message: str) -> None:
    """Commit the index."""
    git_cmd.must_git(f"commit -m {shlex.quote(message)}")
