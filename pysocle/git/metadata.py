"""Per-branch stack metadata kept in the repository's local git config.

Keys live under ``branch.<name>.socle-*`` and are never pushed:

- ``socle-parent``: branch this one is stacked on
- ``socle-base``: root branch at the bottom of the stack
- ``socle-pr-number``: pull request opened for the branch
- ``socle-comment-id``: stack overview comment posted on that pull request
"""

import logging
import shlex
from typing import Dict, Optional

from ..typing import GitInterface, GitCommandFailure
from ..util import parse_int

logger = logging.getLogger(__name__)

PARENT = "socle-parent"
BASE = "socle-base"
PR_NUMBER = "socle-pr-number"
COMMENT_ID = "socle-comment-id"
ALL_KEYS = (PARENT, BASE, PR_NUMBER, COMMENT_ID)

PARENT_SCAN_PATTERN = r'^branch\..*\.socle-parent$'

# git config exit statuses
CONFIG_KEY_NOT_FOUND = 1
CONFIG_NOTHING_TO_UNSET = 5


def config_key(branch: str, name: str) -> str:
    return f"branch.{branch}.{name}"


class MetadataStore:
    """Read and write socle metadata through git config."""

    def __init__(self, git_cmd: GitInterface):
        self.git_cmd = git_cmd

    def get(self, branch: str, name: str) -> Optional[str]:
        key = config_key(branch, name)
        try:
            value = self.git_cmd.run_cmd(f"config --local --get {shlex.quote(key)}")
        except GitCommandFailure as e:
            if e.status == CONFIG_KEY_NOT_FOUND:
                return None
            raise
        return value.strip() or None

    def set(self, branch: str, name: str, value: str) -> None:
        key = config_key(branch, name)
        self.git_cmd.must_git(f"config --local {shlex.quote(key)} {shlex.quote(value)}")

    def unset(self, branch: str, name: str) -> None:
        key = config_key(branch, name)
        try:
            self.git_cmd.run_cmd(f"config --local --unset-all {shlex.quote(key)}")
        except GitCommandFailure as e:
            if e.status != CONFIG_NOTHING_TO_UNSET:
                raise

    def get_all_parents(self) -> Dict[str, str]:
        """Map every tracked branch to its parent with a single config scan."""
        try:
            output = self.git_cmd.run_cmd(
                f"config --local --get-regexp {shlex.quote(PARENT_SCAN_PATTERN)}")
        except GitCommandFailure as e:
            if e.status == CONFIG_KEY_NOT_FOUND:
                return {}
            raise

        prefix, suffix = "branch.", f".{PARENT}"
        parents: Dict[str, str] = {}
        for line in output.splitlines():
            key, _, value = line.strip().partition(" ")
            if not key.startswith(prefix) or not key.endswith(suffix) or not value.strip():
                logger.debug(f"Ignoring malformed parent record: {line!r}")
                continue
            parents[key[len(prefix):-len(suffix)]] = value.strip()
        return parents

    def get_parent(self, branch: str) -> Optional[str]:
        return self.get(branch, PARENT)

    def get_base(self, branch: str) -> Optional[str]:
        return self.get(branch, BASE)

    def set_tracking(self, branch: str, parent: str, base: str) -> None:
        """Record parent and base together."""
        self.set(branch, PARENT, parent)
        self.set(branch, BASE, base)

    def clear_tracking(self, branch: str) -> None:
        self.unset(branch, PARENT)
        self.unset(branch, BASE)

    def get_pr_number(self, branch: str) -> Optional[int]:
        return parse_int(self.get(branch, PR_NUMBER))

    def set_pr_number(self, branch: str, number: int) -> None:
        self.set(branch, PR_NUMBER, str(number))

    def clear_pr_number(self, branch: str) -> None:
        self.unset(branch, PR_NUMBER)
        self.unset(branch, COMMENT_ID)

    def get_comment_id(self, branch: str) -> Optional[int]:
        return parse_int(self.get(branch, COMMENT_ID))

    def set_comment_id(self, branch: str, comment_id: int) -> None:
        self.set(branch, COMMENT_ID, str(comment_id))

    def clear_comment_id(self, branch: str) -> None:
        self.unset(branch, COMMENT_ID)

    def clear_all(self, branch: str) -> None:
        """Drop every socle key for branch."""
        for name in ALL_KEYS:
            self.unset(branch, name)
