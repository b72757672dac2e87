"""Restack: rebase every branch of a stack onto its parent's tip."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..config.models import SocleConfig
from ..git import (
    checkout, fast_forward_branch, fetch, get_config, get_current_branch, get_merge_base,
    has_uncommitted_changes, is_operation_in_progress, push_branch, rebase_onto,
    remote_branch_exists, remote_exists, rev_parse,
)
from ..typing import (
    DirtyWorkingTreeError, GitCommandFailure, GitInterface, Prompter,
    RebaseConflictError, RebaseInProgressError, RestackFailedError,
)
from . import StackBuilder

logger = logging.getLogger(__name__)


class BranchOutcome(Enum):
    SKIPPED = "skipped"
    REBASED = "rebased"
    CONFLICTED = "conflicted"
    FAILED = "failed"


@dataclass
class RestackReport:
    """What happened to each branch, in stack order."""
    outcomes: Dict[str, BranchOutcome] = field(default_factory=dict)
    conflicted: Optional[str] = None
    conflicted_onto: Optional[str] = None
    pushed: List[str] = field(default_factory=list)

    @property
    def rebased(self) -> List[str]:
        return [b for b, outcome in self.outcomes.items() if outcome is BranchOutcome.REBASED]

    @property
    def skipped(self) -> List[str]:
        return [b for b, outcome in self.outcomes.items() if outcome is BranchOutcome.SKIPPED]

    @property
    def paused(self) -> bool:
        return self.conflicted is not None


class Restacker:
    """Rebases a stack branch by branch, pausing on conflicts.

    Running it again after the user finishes a paused rebase picks up where
    it stopped: branches that are already on their parent's tip are skipped.
    """

    def __init__(self, config: SocleConfig, git_cmd: GitInterface, prompter: Prompter,
                 builder: Optional[StackBuilder] = None):
        self.config = config
        self.git_cmd = git_cmd
        self.prompter = prompter
        self.builder = builder or StackBuilder(config, git_cmd)

    def restack(self, fetch_base: bool = True, push: Optional[bool] = None) -> RestackReport:
        """Restack the full stack of the current branch.

        Args:
            fetch_base: Fetch the remote and fast-forward the base branch first
            push: Force-push rebased branches (True), never push (False),
                or ask (None)
        """
        if is_operation_in_progress(self.git_cmd):
            raise RebaseInProgressError()
        if has_uncommitted_changes(self.git_cmd):
            raise DirtyWorkingTreeError("restack")

        original_branch = get_current_branch(self.git_cmd)
        info = self.builder.build_stack_info(original_branch)
        if fetch_base:
            self.update_base(info.base_branch)

        report = RestackReport()
        try:
            for chain in info.chains():
                self.restack_chain(chain, report)
                if report.paused:
                    break
        except RestackFailedError:
            self._return_to(original_branch)
            raise

        if report.paused:
            self._report_conflict(report)
            return report

        self._return_to(original_branch)
        if report.rebased:
            logger.info(f"Rebased {len(report.rebased)} branch(es): {', '.join(report.rebased)}")
            self._push_rebased(report, push)
        else:
            logger.info("Stack is already up to date.")
        return report

    def restack_chain(self, chain: List[str], report: RestackReport) -> None:
        """Rebase chain[1:] onto their parents, stopping at the first conflict."""
        for parent, branch in zip(chain, chain[1:]):
            if branch in report.outcomes:
                continue
            parent_tip = rev_parse(self.git_cmd, parent)
            try:
                merge_base: Optional[str] = get_merge_base(self.git_cmd, parent, branch)
            except GitCommandFailure as e:
                logger.warning(f"Could not find merge base of '{parent}' and '{branch}', rebasing anyway: {e}")
                merge_base = None

            if merge_base == parent_tip:
                logger.info(f"'{branch}' is already based on '{parent}', skipping")
                report.outcomes[branch] = BranchOutcome.SKIPPED
                continue

            logger.info(f"Rebasing '{branch}' onto '{parent}' ({parent_tip[:8]})")
            try:
                checkout(self.git_cmd, branch)
                rebase_onto(self.git_cmd, branch, parent_tip)
            except RebaseConflictError:
                report.outcomes[branch] = BranchOutcome.CONFLICTED
                report.conflicted = branch
                report.conflicted_onto = parent
                return
            except GitCommandFailure as e:
                report.outcomes[branch] = BranchOutcome.FAILED
                raise RestackFailedError(f"Failed to rebase '{branch}' onto '{parent}': {e}") from e
            report.outcomes[branch] = BranchOutcome.REBASED

    def update_base(self, base_branch: str) -> None:
        """Fetch the remote and fast-forward base_branch from it when possible."""
        remote = self.config.repo.remote
        if not remote_exists(self.git_cmd, remote):
            logger.debug(f"Remote '{remote}' not configured, skipping fetch")
            return
        fetch(self.git_cmd, remote)
        if not remote_branch_exists(self.git_cmd, remote, base_branch):
            logger.debug(f"'{remote}/{base_branch}' does not exist, nothing to fast-forward")
            return
        if not fast_forward_branch(self.git_cmd, base_branch, f"{remote}/{base_branch}"):
            logger.warning(
                f"Could not fast-forward '{base_branch}' from '{remote}/{base_branch}'; "
                f"it has diverged, restacking onto the local version")

    def _push_rebased(self, report: RestackReport, push: Optional[bool]) -> None:
        remote = self.config.repo.remote
        if push is None:
            push = self.prompter.confirm(
                f"Force-push {len(report.rebased)} rebased branch(es) to '{remote}'?", default=False)
        if not push:
            logger.info("Skipping push.")
            return
        if not remote_exists(self.git_cmd, remote):
            logger.info(f"Remote '{remote}' not configured, skipping push")
            return
        for branch in report.rebased:
            push_branch(self.git_cmd, remote, branch, force_with_lease=True)
            report.pushed.append(branch)

    def _report_conflict(self, report: RestackReport) -> None:
        logger.warning(
            f"Rebase of '{report.conflicted}' onto '{report.conflicted_onto}' stopped on conflicts.\n"
            f"  1. Resolve the conflicts in the files git lists\n"
            f"  2. Stage them with 'git add <file>'\n"
            f"  3. Run 'git rebase --continue'\n"
            f"  4. Run 'socle restack' again to finish the stack\n"
            f"Or run 'git rebase --abort' to give up.")
        if self.config.user.rerere_hint and get_config(self.git_cmd, "rerere.enabled") != "true":
            logger.info(
                "Tip: 'git config --global rerere.enabled true' lets git replay "
                "conflict resolutions you have already made.")

    def _return_to(self, branch: str) -> None:
        if get_current_branch(self.git_cmd) != branch:
            checkout(self.git_cmd, branch)
