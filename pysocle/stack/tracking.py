"""Adding branches to stacks and taking them out again."""

import logging
from typing import Optional

from ..config.models import SocleConfig
from ..git import (
    branch_exists, checkout, commit, create_branch, delete_branch, get_current_branch,
    has_staged_changes, is_operation_in_progress, list_local_branches, stage_all_changes,
    validate_branch_name,
)
from ..github import GitHubClient
from ..typing import (
    GitCommandFailure, GitInterface, InvalidBranchError, NonLinearViolationError,
    NotTrackedError, Prompter, RebaseInProgressError,
)
from . import StackBuilder

logger = logging.getLogger(__name__)


class StackTracker:
    """track, untrack and create."""

    def __init__(self, config: SocleConfig, git_cmd: GitInterface, prompter: Prompter,
                 builder: Optional[StackBuilder] = None, github: Optional[GitHubClient] = None):
        self.config = config
        self.git_cmd = git_cmd
        self.prompter = prompter
        self.builder = builder or StackBuilder(config, git_cmd)
        self.store = self.builder.store
        self.github = github

    def _base_for_parent(self, parent: str, new_branch: str) -> str:
        """Base a branch stacked on parent inherits; enforces the linear invariant."""
        if self.config.is_root_branch(parent):
            return parent
        base = self.store.get_base(parent)
        if base is None or self.store.get_parent(parent) is None:
            raise NotTrackedError(parent)
        children = self.builder.load_graph().children(parent)
        if children:
            raise NonLinearViolationError(parent, children + [new_branch])
        return base

    def track(self, branch: Optional[str] = None, parent: Optional[str] = None,
              discover: bool = False) -> str:
        """Stack branch on parent, asking for the parent when none is given.

        Returns the parent that was recorded.
        """
        if branch is None:
            branch = get_current_branch(self.git_cmd)
        if self.config.is_root_branch(branch):
            raise InvalidBranchError(f"'{branch}' is a root branch; root branches are always tracked")
        existing = self.store.get_parent(branch)
        if existing is not None:
            raise InvalidBranchError(f"'{branch}' is already tracked with parent '{existing}'")

        if parent is None:
            candidates = [b for b in list_local_branches(self.git_cmd) if b != branch]
            if not candidates:
                raise InvalidBranchError(f"There is no other local branch to stack '{branch}' on")
            parent = candidates[self.prompter.choose(f"Select the parent of '{branch}'", candidates)]
        if parent == branch:
            raise InvalidBranchError(f"'{branch}' cannot be its own parent")
        if not branch_exists(self.git_cmd, parent):
            raise InvalidBranchError(f"Parent branch '{parent}' does not exist")

        base = self._base_for_parent(parent, branch)
        self.store.set_tracking(branch, parent, base)
        logger.info(f"Tracking '{branch}' on top of '{parent}' (base '{base}')")

        if discover:
            self._discover_pull_request(branch)
        return parent

    def _discover_pull_request(self, branch: str) -> None:
        if self.github is None:
            logger.warning("No GitHub client available, skipping pull request discovery")
            return
        pr = self.github.find_open_pull_request(branch)
        if pr is None:
            logger.info(f"No open pull request found for '{branch}'")
            return
        self.store.set_pr_number(branch, pr.number)
        logger.info(f"Linked '{branch}' to pull request #{pr.number}")

    def untrack(self, branch: Optional[str] = None) -> None:
        """Forget branch's stack metadata. Only allowed for the tip of a stack."""
        if branch is None:
            branch = get_current_branch(self.git_cmd)
        if self.config.is_root_branch(branch):
            raise InvalidBranchError(f"'{branch}' is a root branch and cannot be untracked")
        if self.store.get_parent(branch) is None:
            raise NotTrackedError(branch)
        children = self.builder.load_graph().children(branch)
        if children:
            raise InvalidBranchError(
                f"Branches are stacked on '{branch}' ({', '.join(children)}); untrack them first")
        self.store.clear_all(branch)
        logger.info(f"Stopped tracking '{branch}'")

    def create(self, name: str, message: Optional[str] = None, stage_all: bool = False) -> str:
        """Create name on top of the current branch and check it out.

        With a message, the staged changes (everything, if stage_all) are
        committed on the new branch. Returns the parent branch.
        """
        if is_operation_in_progress(self.git_cmd):
            raise RebaseInProgressError()
        parent = get_current_branch(self.git_cmd)
        base = self._base_for_parent(parent, name)
        validate_branch_name(self.git_cmd, name)
        if branch_exists(self.git_cmd, name):
            raise InvalidBranchError(f"Branch '{name}' already exists")

        create_branch(self.git_cmd, name)
        checkout(self.git_cmd, name)
        self.store.set_tracking(name, parent, base)
        logger.info(f"Created '{name}' on top of '{parent}'")

        if message:
            try:
                if stage_all:
                    stage_all_changes(self.git_cmd)
                if has_staged_changes(self.git_cmd):
                    commit(self.git_cmd, message)
                else:
                    logger.info("Nothing staged, created the branch without a commit")
            except GitCommandFailure:
                logger.error(f"Commit failed, removing '{name}'")
                checkout(self.git_cmd, parent)
                delete_branch(self.git_cmd, name)
                self.store.clear_all(name)
                raise
        return parent
