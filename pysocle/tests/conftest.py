"""Fixtures shared by the pysocle tests."""

from pathlib import Path
from typing import Generator

import pytest

from pysocle.github import GitHubClient
from pysocle.tests.fake_github import FakeGithub, FakeRepository
from pysocle.tests.utils import OWNER, REPO_NAME, RepoContext, make_repo


@pytest.fixture
def repo(tmp_path: Path) -> Generator[RepoContext, None, None]:
    """Fresh repository on main, pushed to a bare origin."""
    yield make_repo(tmp_path, {
        'repo': {
            'remote': 'origin',
            'github_repo_owner': OWNER,
            'github_repo_name': REPO_NAME,
        },
        'user': {'rerere_hint': False},
    })


@pytest.fixture
def fake_github() -> FakeGithub:
    return FakeGithub()


@pytest.fixture
def fake_repo(fake_github: FakeGithub) -> FakeRepository:
    return fake_github.get_repo(f"{OWNER}/{REPO_NAME}")


@pytest.fixture
def github_client(repo: RepoContext, fake_github: FakeGithub) -> GitHubClient:
    return GitHubClient(repo.config, fake_github)  # type: ignore[arg-type]
