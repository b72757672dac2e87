"""Adapter classes to wrap PyGithub objects with our protocol interfaces."""

from typing import List, Optional
import logging

from github import Auth, Github
from github.Repository import Repository
from github.PullRequest import PullRequest as PyGithubPullRequest
from github.IssueComment import IssueComment as PyGithubIssueComment
from github.GithubObject import NotSet

from . import (
    PyGithubProtocol,
    GitHubRepoProtocol,
    GitHubPullRequestProtocol,
    GitHubIssueCommentProtocol,
    GitHubRefProtocol,
)

logger = logging.getLogger(__name__)


class PyGithubIssueCommentAdapter(GitHubIssueCommentProtocol):
    """Adapter for PyGithub IssueComment objects."""

    def __init__(self, comment: PyGithubIssueComment) -> None:
        self._comment = comment

    @property
    def id(self) -> int:
        return self._comment.id

    @property
    def body(self) -> str:
        return self._comment.body

    def edit(self, body: str) -> None:
        self._comment.edit(body)


class PyGithubPullRequestAdapter(GitHubPullRequestProtocol):
    """Adapter for PyGithub PullRequest objects."""

    def __init__(self, pr: PyGithubPullRequest) -> None:
        self._pr = pr

    @property
    def number(self) -> int:
        return self._pr.number

    @property
    def title(self) -> str:
        return self._pr.title

    @property
    def state(self) -> str:
        return self._pr.state

    @property
    def merged(self) -> bool:
        return self._pr.merged

    @property
    def draft(self) -> bool:
        return self._pr.draft

    @property
    def html_url(self) -> str:
        return self._pr.html_url

    @property
    def base(self) -> GitHubRefProtocol:
        return self._pr.base

    @property
    def head(self) -> GitHubRefProtocol:
        return self._pr.head

    def edit(self, title: Optional[str] = None, body: Optional[str] = None,
             state: Optional[str] = None, base: Optional[str] = None) -> None:
        """Edit the pull request."""
        # Convert None to NotSet for PyGithub
        self._pr.edit(
            title=title if title is not None else NotSet,
            body=body if body is not None else NotSet,
            state=state if state is not None else NotSet,
            base=base if base is not None else NotSet
        )

    def create_issue_comment(self, body: str) -> GitHubIssueCommentProtocol:
        return PyGithubIssueCommentAdapter(self._pr.create_issue_comment(body))

    def get_issue_comments(self) -> List[GitHubIssueCommentProtocol]:
        return [PyGithubIssueCommentAdapter(c) for c in self._pr.get_issue_comments()]

    def get_issue_comment(self, comment_id: int) -> GitHubIssueCommentProtocol:
        return PyGithubIssueCommentAdapter(self._pr.get_issue_comment(comment_id))


class PyGithubRepoAdapter(GitHubRepoProtocol):
    """Adapter for PyGithub Repository objects."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def get_pull(self, number: int) -> GitHubPullRequestProtocol:
        """Get a pull request by number."""
        return PyGithubPullRequestAdapter(self._repo.get_pull(number))

    def get_pulls(self, state: str = "open", head: str = "", base: str = "") -> List[GitHubPullRequestProtocol]:
        """Get pull requests with optional filtering."""
        pulls = self._repo.get_pulls(
            state=state,
            head=head if head else NotSet,
            base=base if base else NotSet
        )
        return [PyGithubPullRequestAdapter(pr) for pr in pulls]

    def create_pull(self, title: str, body: str, base: str, head: str,
                    maintainer_can_modify: bool = True, draft: bool = False) -> GitHubPullRequestProtocol:
        """Create a new pull request."""
        pr = self._repo.create_pull(
            title=title,
            body=body,
            base=base,
            head=head,
            maintainer_can_modify=maintainer_can_modify,
            draft=draft
        )
        return PyGithubPullRequestAdapter(pr)


class PyGithubAdapter(PyGithubProtocol):
    """Adapter for the main PyGithub object."""

    def __init__(self, github: Github) -> None:
        self._github = github

    @classmethod
    def from_token(cls, token: str, host: str = "github.com", timeout: float = 30.0) -> 'PyGithubAdapter':
        """Build a client for github.com or a GitHub Enterprise host."""
        if host == "github.com":
            return cls(Github(auth=Auth.Token(token), timeout=int(timeout)))
        base_url = f"https://{host}/api/v3"
        logger.debug(f"Using GitHub Enterprise API at {base_url}")
        return cls(Github(base_url=base_url, auth=Auth.Token(token), timeout=int(timeout)))

    def get_repo(self, full_name_or_id: str) -> GitHubRepoProtocol:
        """Get a repository by full name."""
        return PyGithubRepoAdapter(self._github.get_repo(full_name_or_id))
