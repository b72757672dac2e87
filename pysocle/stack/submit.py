"""Submit: push a stack and keep one pull request per branch."""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..config.models import SocleConfig
from ..git import get_commit_subjects, has_diff, push_branch
from ..github import GitHubClient
from ..typing import GitInterface, Prompter, SocleError
from . import StackBuilder
from .navigation import select_chain

logger = logging.getLogger(__name__)

STACK_COMMENT_MARKER = "<!-- socle-stack-overview -->"

PR_TEMPLATE_PATHS = [
    ".github/pull_request_template.md",
    ".github/PULL_REQUEST_TEMPLATE.md",
    "pull_request_template.md",
    "PULL_REQUEST_TEMPLATE.md",
    "docs/pull_request_template.md",
    "docs/PULL_REQUEST_TEMPLATE.md",
]


def render_stack_comment(chain: List[str], current_branch: str, pr_numbers: Dict[str, int]) -> str:
    """Stack overview posted on every pull request of chain, bottom first."""
    lines = ["**Stack Overview:**", ""]
    for branch in chain[1:]:
        pointer = " 👈" if branch == current_branch else ""
        number = pr_numbers.get(branch)
        if number is not None:
            lines.append(f"* **#{number}**{pointer}")
        else:
            lines.append(f"* `{branch}` (Coming soon 🤞){pointer}")
    lines.append(f"* `{chain[0]}` (base)")
    lines.append("")
    lines.append(STACK_COMMENT_MARKER)
    return "\n".join(lines) + "\n"


def read_pr_template(repo_root: str) -> str:
    """Contents of the repository's pull request template, or an empty string."""
    for rel_path in PR_TEMPLATE_PATHS:
        path = os.path.join(repo_root, rel_path)
        if os.path.isfile(path):
            logger.debug(f"Using pull request template {rel_path}")
            with open(path, "r") as f:
                return f.read()
    return ""


@dataclass
class SubmitOptions:
    push: bool = True
    force: bool = False
    draft: bool = False


@dataclass
class SubmitReport:
    pr_numbers: Dict[str, int] = field(default_factory=dict)
    created: List[str] = field(default_factory=list)
    retargeted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    comments: Dict[str, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


class Submitter:
    """Pushes branches and creates or updates their pull requests."""

    def __init__(self, config: SocleConfig, git_cmd: GitInterface, github: GitHubClient,
                 prompter: Prompter, builder: Optional[StackBuilder] = None):
        self.config = config
        self.git_cmd = git_cmd
        self.github = github
        self.prompter = prompter
        self.builder = builder or StackBuilder(config, git_cmd)
        self.store = self.builder.store

    def submit(self, options: Optional[SubmitOptions] = None) -> SubmitReport:
        """Submit every branch of the current full stack.

        Push and pull request creation failures stop the run; comment
        failures are collected in the report's warnings.
        """
        options = options or SubmitOptions()
        info = self.builder.build_stack_info()
        chain = select_chain(info, self.prompter)
        report = SubmitReport()
        if len(chain) <= 1:
            logger.info("Nothing to submit: no branches are stacked on this base.")
            return report

        for parent, branch in zip(chain, chain[1:]):
            if options.push:
                push_branch(self.git_cmd, self.config.repo.remote, branch, force=options.force)
            self.submit_branch(parent, branch, options, report)

        for branch in chain[1:]:
            number = report.pr_numbers.get(branch)
            if number is None:
                continue
            body = render_stack_comment(chain, branch, report.pr_numbers)
            try:
                report.comments[branch] = self.upsert_stack_comment(branch, number, body)
            except SocleError as e:
                report.warnings.append(f"Could not update stack comment on #{number} ('{branch}'): {e}")

        for warning in report.warnings:
            logger.warning(warning)
        return report

    def submit_branch(self, parent: str, branch: str, options: SubmitOptions,
                      report: SubmitReport) -> None:
        number = self.store.get_pr_number(branch)
        if number is not None:
            pr = self.github.get_pull_request(number)
            if pr is not None:
                if pr.base_ref != parent:
                    self.github.update_pull_request_base(number, parent)
                    report.retargeted.append(branch)
                report.pr_numbers[branch] = number
                return
            logger.warning(f"Pull request #{number} for '{branch}' no longer exists, opening a new one")
            self.store.clear_pr_number(branch)

        if not has_diff(self.git_cmd, parent, branch):
            logger.info(f"'{branch}' has no changes relative to '{parent}', not opening a pull request")
            report.skipped.append(branch)
            return

        title = self.default_title(parent, branch)
        repo_root = self.git_cmd.must_git("rev-parse --show-toplevel").strip()
        pr = self.github.create_pull_request(branch, parent, title, read_pr_template(repo_root),
                                             draft=options.draft)
        self.store.set_pr_number(branch, pr.number)
        report.pr_numbers[branch] = pr.number
        report.created.append(branch)
        logger.info(f"Opened pull request #{pr.number} for '{branch}'")

    def default_title(self, parent: str, branch: str) -> str:
        subjects = get_commit_subjects(self.git_cmd, parent, branch)
        if subjects:
            return subjects[0]
        return branch.replace("-", " ")

    def upsert_stack_comment(self, branch: str, number: int, body: str) -> int:
        """Create or refresh the stack overview comment on a pull request."""
        comment_id = self.store.get_comment_id(branch)
        if comment_id is not None:
            if self.github.update_comment(number, comment_id, body):
                return comment_id
            logger.debug(f"Stored comment {comment_id} on #{number} is gone")
            self.store.clear_comment_id(branch)

        found = self.github.find_comment_with_marker(number, STACK_COMMENT_MARKER)
        if found is not None and self.github.update_comment(number, found, body):
            self.store.set_comment_id(branch, found)
            return found

        comment = self.github.create_comment(number, body)
        self.store.set_comment_id(branch, comment.id)
        return comment.id
