"""Per-branch status of the stacks around the current branch."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..config.models import SocleConfig
from ..git import get_merge_base, rev_parse
from ..github import GitHubClient, PRStatus, fetch_pull_request_statuses
from ..typing import GitCommandFailure, GitInterface
from . import StackBuilder

logger = logging.getLogger(__name__)


@dataclass
class BranchStatus:
    branch: str
    is_current: bool
    rebase_text: str
    pr_text: str


@dataclass
class StackLog:
    """One stack, rows ordered tip first."""
    base_branch: str
    rows: List[BranchStatus] = field(default_factory=list)


def describe_pr(number: Optional[int], status: Optional[PRStatus], error: Optional[str],
                has_client: bool) -> str:
    if number is None:
        return "(PR: Not Submitted)"
    if not has_client:
        return f"(PR #{number}: Client N/A)"
    if error is not None or status is None:
        return f"(PR #{number}: API Error)"
    return f"(PR #{number}: {status.value})"


class LogCollector:
    """Gathers rebase and pull request status for every branch of the current stacks."""

    def __init__(self, config: SocleConfig, git_cmd: GitInterface,
                 github: Optional[GitHubClient] = None, builder: Optional[StackBuilder] = None):
        self.config = config
        self.git_cmd = git_cmd
        self.github = github
        self.builder = builder or StackBuilder(config, git_cmd)
        self.store = self.builder.store

    def collect(self) -> List[StackLog]:
        info = self.builder.build_stack_info()
        chains = info.chains()

        pr_numbers: Dict[str, int] = {}
        for chain in chains:
            for branch in chain[1:]:
                number = self.store.get_pr_number(branch)
                if number is not None:
                    pr_numbers[branch] = number

        statuses: Dict[str, PRStatus] = {}
        errors: Dict[str, str] = {}
        if self.github is not None:
            statuses, errors = fetch_pull_request_statuses(
                self.github, pr_numbers, self.config.tool.concurrency)
            for branch, error in errors.items():
                logger.warning(f"Could not fetch pull request for '{branch}': {error}")

        logs: List[StackLog] = []
        for chain in chains:
            stack_log = StackLog(chain[0])
            for parent, branch in reversed(list(zip(chain, chain[1:]))):
                stack_log.rows.append(BranchStatus(
                    branch=branch,
                    is_current=branch == info.current_branch,
                    rebase_text=self.rebase_status(parent, branch),
                    pr_text=describe_pr(pr_numbers.get(branch), statuses.get(branch),
                                        errors.get(branch), self.github is not None),
                ))
            logs.append(stack_log)
        return logs

    def rebase_status(self, parent: str, branch: str) -> str:
        try:
            parent_tip = rev_parse(self.git_cmd, parent)
            merge_base = get_merge_base(self.git_cmd, parent, branch)
        except GitCommandFailure as e:
            logger.warning(f"Could not check whether '{branch}' needs a restack: {e}")
            return "(Rebase: Error)"
        if merge_base != parent_tip:
            return "(Needs Restack)"
        return "(Up-to-date)"
