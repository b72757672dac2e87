"""GitHub interfaces and implementation."""

import os
import logging
import threading
import concurrent.futures
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from github.GithubException import GithubException
from requests.exceptions import RequestException

from ..config.models import SocleConfig
from ..typing import PullRequestError, SocleError

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404

# PyGithub lets transport failures (timeouts, refused connections) through as
# requests exceptions, so both kinds are turned into PullRequestError.
API_ERRORS = (GithubException, RequestException)


class PRStatus(Enum):
    """Semantic state of a pull request."""
    OPEN = "Open"
    CLOSED = "Closed"
    MERGED = "Merged"
    DRAFT = "Draft"
    NOT_FOUND = "Not Found"


@dataclass
class PullRequest:
    """Pull request info."""
    number: int
    title: str = ""
    state: str = "open"
    merged: bool = False
    draft: bool = False
    base_ref: str = ""
    head_ref: str = ""
    url: str = ""

    @property
    def status(self) -> PRStatus:
        # A merged pull request is also closed, so merged wins
        if self.merged:
            return PRStatus.MERGED
        if self.state == "closed":
            return PRStatus.CLOSED
        if self.draft:
            return PRStatus.DRAFT
        return PRStatus.OPEN

    @classmethod
    def from_github(cls, pr: 'GitHubPullRequestProtocol') -> 'PullRequest':
        return cls(
            number=pr.number,
            title=pr.title or "",
            state=pr.state,
            merged=bool(pr.merged),
            draft=bool(pr.draft),
            base_ref=pr.base.ref,
            head_ref=pr.head.ref,
            url=pr.html_url or "",
        )

    def __str__(self) -> str:
        return f"#{self.number} {self.head_ref} -> {self.base_ref} ({self.status.value})"


@dataclass
class IssueComment:
    """Comment on a pull request's conversation."""
    id: int
    body: str


class GitHubRefProtocol(Protocol):
    """Protocol for GitHub branch references."""
    @property
    def ref(self) -> str:
        ...


class GitHubIssueCommentProtocol(Protocol):
    """Protocol for GitHub issue comments."""
    @property
    def id(self) -> int:
        ...

    @property
    def body(self) -> str:
        ...

    def edit(self, body: str) -> None:
        ...


class GitHubPullRequestProtocol(Protocol):
    """Protocol for GitHub pull requests."""
    @property
    def number(self) -> int:
        ...

    @property
    def title(self) -> str:
        ...

    @property
    def state(self) -> str:
        ...

    @property
    def merged(self) -> bool:
        ...

    @property
    def draft(self) -> bool:
        ...

    @property
    def html_url(self) -> str:
        ...

    @property
    def base(self) -> GitHubRefProtocol:
        ...

    @property
    def head(self) -> GitHubRefProtocol:
        ...

    def edit(self, title: Optional[str] = None, body: Optional[str] = None,
             state: Optional[str] = None, base: Optional[str] = None) -> None:
        ...

    def create_issue_comment(self, body: str) -> GitHubIssueCommentProtocol:
        ...

    def get_issue_comments(self) -> List[GitHubIssueCommentProtocol]:
        ...

    def get_issue_comment(self, comment_id: int) -> GitHubIssueCommentProtocol:
        ...


class GitHubRepoProtocol(Protocol):
    """Protocol for GitHub repositories."""
    def get_pull(self, number: int) -> GitHubPullRequestProtocol:
        ...

    def get_pulls(self, state: str = "open", head: str = "", base: str = "") -> List[GitHubPullRequestProtocol]:
        ...

    def create_pull(self, title: str, body: str, base: str, head: str,
                    maintainer_can_modify: bool = True, draft: bool = False) -> GitHubPullRequestProtocol:
        ...


class PyGithubProtocol(Protocol):
    """Protocol for the main PyGithub object."""
    def get_repo(self, full_name_or_id: str) -> GitHubRepoProtocol:
        ...


def find_github_token(host: str = "github.com") -> Optional[str]:
    """Find GitHub token from env var or gh CLI config."""
    import yaml
    from pathlib import Path

    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    gh_config_path = Path.home() / ".config" / "gh" / "hosts.yml"
    if not gh_config_path.exists():
        return None
    try:
        with open(gh_config_path, "r") as f:
            gh_config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error reading gh CLI config: {e}")
        return None
    if gh_config and isinstance(gh_config.get(host), dict):
        token = gh_config[host].get("oauth_token")
        if isinstance(token, str) and token:
            return token
    return None


def _is_not_found(e: Exception) -> bool:
    return isinstance(e, GithubException) and e.status == HTTP_NOT_FOUND


class GitHubClient:
    """Narrow pull request and comment operations over a PyGithub client."""
    def __init__(self, config: SocleConfig, github_client: PyGithubProtocol):
        self.config = config
        self.client = github_client
        self._repo: Optional[GitHubRepoProtocol] = None

    @property
    def repo(self) -> GitHubRepoProtocol:
        """Get GitHub repository."""
        if self._repo is None:
            owner = self.config.repo.github_repo_owner
            name = self.config.repo.github_repo_name
            if not owner or not name:
                raise PullRequestError(
                    "Could not determine the GitHub repository; set repo.github_repo_owner "
                    "and repo.github_repo_name in .socle.yaml")
            try:
                self._repo = self.client.get_repo(f"{owner}/{name}")
            except API_ERRORS as e:
                raise PullRequestError(f"Failed to open repository {owner}/{name}: {e}")
        return self._repo

    def get_pull_request(self, number: int) -> Optional[PullRequest]:
        """Fetch a pull request, None if it does not exist."""
        try:
            return PullRequest.from_github(self.repo.get_pull(number))
        except API_ERRORS as e:
            if _is_not_found(e):
                return None
            raise PullRequestError(f"Failed to get pull request #{number}: {e}")

    def get_pull_request_status(self, number: int) -> PRStatus:
        pr = self.get_pull_request(number)
        if pr is None:
            return PRStatus.NOT_FOUND
        return pr.status

    def find_open_pull_request(self, head: str) -> Optional[PullRequest]:
        """The open pull request whose head is branch head, if any."""
        owner = self.config.repo.github_repo_owner
        try:
            pulls = self.repo.get_pulls(state="open", head=f"{owner}:{head}")
        except API_ERRORS as e:
            raise PullRequestError(f"Failed to list pull requests for '{head}': {e}")
        for pr in pulls:
            if pr.head.ref == head:
                return PullRequest.from_github(pr)
        return None

    def create_pull_request(self, head: str, base: str, title: str, body: str,
                            draft: bool = False) -> PullRequest:
        logger.info(f"Creating pull request {head} -> {base}: {title}")
        try:
            pr = self.repo.create_pull(title=title, body=body, base=base, head=head,
                                       maintainer_can_modify=True, draft=draft)
        except API_ERRORS as e:
            raise PullRequestError(f"Failed to create pull request ({head} -> {base}): {e}")
        return PullRequest.from_github(pr)

    def update_pull_request_base(self, number: int, base: str) -> None:
        logger.info(f"Changing base of pull request #{number} to '{base}'")
        try:
            self.repo.get_pull(number).edit(base=base)
        except API_ERRORS as e:
            raise PullRequestError(f"Failed to update base of pull request #{number} to '{base}': {e}")

    def create_comment(self, number: int, body: str) -> IssueComment:
        try:
            comment = self.repo.get_pull(number).create_issue_comment(body)
        except API_ERRORS as e:
            raise PullRequestError(f"Failed to comment on pull request #{number}: {e}")
        return IssueComment(comment.id, comment.body)

    def get_comment(self, number: int, comment_id: int) -> Optional[IssueComment]:
        """Fetch a comment, None if it was deleted."""
        try:
            comment = self.repo.get_pull(number).get_issue_comment(comment_id)
        except API_ERRORS as e:
            if _is_not_found(e):
                return None
            raise PullRequestError(f"Failed to get comment {comment_id} on #{number}: {e}")
        return IssueComment(comment.id, comment.body)

    def update_comment(self, number: int, comment_id: int, body: str) -> bool:
        """Replace a comment's body. Returns False if the comment no longer exists."""
        try:
            self.repo.get_pull(number).get_issue_comment(comment_id).edit(body)
        except API_ERRORS as e:
            if _is_not_found(e):
                return False
            raise PullRequestError(f"Failed to update comment {comment_id} on #{number}: {e}")
        return True

    def find_comment_with_marker(self, number: int, marker: str) -> Optional[int]:
        """Id of the first comment on the pull request containing marker."""
        try:
            comments = self.repo.get_pull(number).get_issue_comments()
            for comment in comments:
                if comment.body and marker in comment.body:
                    return comment.id
        except API_ERRORS as e:
            raise PullRequestError(f"Failed to list comments on #{number}: {e}")
        return None


def fetch_pull_request_statuses(
        client: GitHubClient, pr_numbers: Dict[str, int],
        max_workers: int = 0) -> Tuple[Dict[str, PRStatus], Dict[str, str]]:
    """Look up the status of several pull requests at once.

    Returns the statuses by branch and, separately, the error for every
    branch whose lookup failed. All lookups finish before this returns.
    """
    statuses: Dict[str, PRStatus] = {}
    errors: Dict[str, str] = {}
    if not pr_numbers:
        return statuses, errors
    lock = threading.Lock()

    def lookup(branch: str, number: int) -> None:
        try:
            status = client.get_pull_request_status(number)
        except SocleError as e:
            with lock:
                errors[branch] = str(e)
            return
        with lock:
            statuses[branch] = status

    workers = max_workers if max_workers > 0 else len(pr_numbers)
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
        futures: Sequence[Future[None]] = [
            executor.submit(lookup, branch, number)
            for branch, number in pr_numbers.items()
        ]
        concurrent.futures.wait(futures)
        for future in futures:
            future.result()
    return statuses, errors
