"""Sync: drop branches whose pull requests have landed and splice their children."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..config.models import SocleConfig
from ..git import (
    branch_exists, checkout, delete_branch, fast_forward_branch, fetch,
    get_current_branch, has_uncommitted_changes, is_operation_in_progress,
    remote_branch_exists, remote_exists, reset_branch_hard,
)
from ..github import GitHubClient, PRStatus, fetch_pull_request_statuses
from ..typing import (
    BrokenTrackingError, DirtyWorkingTreeError, GitInterface, Prompter, RebaseInProgressError,
)
from . import MAX_ANCESTOR_STEPS, StackBuilder, StackInfo
from .restack import RestackReport, Restacker

logger = logging.getLogger(__name__)

FINISHED_STATUSES = (PRStatus.MERGED, PRStatus.CLOSED)


@dataclass
class SyncReport:
    statuses: Dict[str, PRStatus] = field(default_factory=dict)
    candidates: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    reparented: Dict[str, str] = field(default_factory=dict)
    trunk_update: Optional[str] = None
    restack: Optional[RestackReport] = None
    warnings: List[str] = field(default_factory=list)


def plan_reparenting(parents: Dict[str, str], doomed: Iterable[str]) -> Dict[str, str]:
    """New parent for every surviving branch whose parent is about to be deleted.

    Everything is resolved against parents as it was before any deletion, so a
    run of consecutive deleted ancestors collapses onto the first survivor
    below it in a single pass.
    """
    doomed = set(doomed)
    plan: Dict[str, str] = {}
    for branch, parent in parents.items():
        if branch in doomed or parent not in doomed:
            continue
        new_parent = parent
        steps = 0
        while new_parent in doomed:
            if steps >= MAX_ANCESTOR_STEPS:
                raise BrokenTrackingError(f"Parent records below '{branch}' form a cycle")
            next_parent = parents.get(new_parent)
            if next_parent is None:
                raise BrokenTrackingError(f"'{new_parent}' has no parent recorded")
            new_parent = next_parent
            steps += 1
        plan[branch] = new_parent
    return plan


class Syncer:
    """Reconciles local stacks with the state of their pull requests."""

    def __init__(self, config: SocleConfig, git_cmd: GitInterface, github: GitHubClient,
                 prompter: Prompter, builder: Optional[StackBuilder] = None):
        self.config = config
        self.git_cmd = git_cmd
        self.github = github
        self.prompter = prompter
        self.builder = builder or StackBuilder(config, git_cmd)
        self.store = self.builder.store

    def sync(self, restack: bool = True, fetch_remote: bool = True) -> SyncReport:
        if is_operation_in_progress(self.git_cmd):
            raise RebaseInProgressError()
        if has_uncommitted_changes(self.git_cmd):
            raise DirtyWorkingTreeError("sync")

        original_branch = get_current_branch(self.git_cmd)
        remote = self.config.repo.remote
        if fetch_remote:
            if remote_exists(self.git_cmd, remote):
                fetch(self.git_cmd, remote)
            else:
                logger.debug(f"Remote '{remote}' not configured, skipping fetch")
        info = self.builder.build_stack_info(original_branch)
        report = SyncReport()

        branches = self._stack_branches(info)
        pr_numbers: Dict[str, int] = {}
        for branch in branches:
            number = self.store.get_pr_number(branch)
            if number is not None:
                pr_numbers[branch] = number

        statuses, errors = fetch_pull_request_statuses(
            self.github, pr_numbers, self.config.tool.concurrency)
        report.statuses = statuses
        for branch, error in errors.items():
            report.warnings.append(f"Could not get pull request status for '{branch}': {error}")

        report.candidates = [b for b in branches if statuses.get(b) in FINISHED_STATUSES]
        if report.candidates:
            for branch in report.candidates:
                logger.info(f"'{branch}': pull request #{pr_numbers[branch]} is {statuses[branch].value}")
            if self.prompter.confirm(
                    f"Delete {len(report.candidates)} branch(es) whose pull requests are merged or closed?",
                    default=True):
                self.remove_branches(info, report.candidates, report)
            else:
                logger.info("Keeping merged and closed branches.")
        else:
            logger.info("No merged or closed pull requests in this stack.")

        self.update_trunk(info.base_branch, report)

        if branch_exists(self.git_cmd, original_branch):
            checkout(self.git_cmd, original_branch)
        else:
            checkout(self.git_cmd, info.base_branch)

        for warning in report.warnings:
            logger.warning(warning)

        if restack:
            restacker = Restacker(self.config, self.git_cmd, self.prompter, self.builder)
            report.restack = restacker.restack(fetch_base=False, push=False)
        return report

    def remove_branches(self, info: StackInfo, candidates: List[str], report: SyncReport) -> None:
        """Re-parent survivors, then delete candidates and their metadata."""
        plan = plan_reparenting(info.graph.parent_of, candidates)
        for branch, new_parent in plan.items():
            if self.config.is_root_branch(new_parent):
                base = new_parent
            else:
                base = self.store.get_base(branch) or info.base_branch
            self.store.set_tracking(branch, new_parent, base)
            report.reparented[branch] = new_parent
            logger.info(f"Re-parented '{branch}' onto '{new_parent}'")

        if get_current_branch(self.git_cmd) in candidates:
            checkout(self.git_cmd, info.base_branch)

        for branch in candidates:
            self.store.clear_all(branch)
            if branch_exists(self.git_cmd, branch):
                delete_branch(self.git_cmd, branch)
            report.deleted.append(branch)
            logger.info(f"Deleted '{branch}'")

    def update_trunk(self, base_branch: str, report: SyncReport) -> None:
        """Bring base_branch level with its remote counterpart."""
        remote = self.config.repo.remote
        if not remote_exists(self.git_cmd, remote):
            logger.info(f"Remote '{remote}' not configured, leaving '{base_branch}' as is")
            return
        remote_ref = f"{remote}/{base_branch}"
        if not remote_branch_exists(self.git_cmd, remote, base_branch):
            report.warnings.append(f"'{remote_ref}' does not exist; '{base_branch}' was not updated")
            return

        checkout(self.git_cmd, base_branch)
        if fast_forward_branch(self.git_cmd, base_branch, remote_ref):
            report.trunk_update = "fast-forwarded"
            logger.info(f"Updated '{base_branch}' from '{remote_ref}'")
        else:
            logger.warning(f"'{base_branch}' has diverged from '{remote_ref}', resetting it to the remote")
            reset_branch_hard(self.git_cmd, base_branch, remote_ref)
            report.trunk_update = "reset"

    @staticmethod
    def _stack_branches(info: StackInfo) -> List[str]:
        branches: List[str] = []
        for chain in info.chains():
            for branch in chain[1:]:
                if branch not in branches:
                    branches.append(branch)
        return branches
