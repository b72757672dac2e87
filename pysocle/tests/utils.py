"""Shared utilities for pysocle tests."""
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional
import logging

from pysocle.config import Config
from pysocle.git import RealGit
from pysocle.git.metadata import BASE, MetadataStore, PARENT, config_key
from pysocle.stack import StackBuilder

logger = logging.getLogger(__name__)

OWNER = "socle-test"
REPO_NAME = "stack"

def run_cmd(cmd: str, cwd: Optional[str] = None, check: bool = True) -> str:
    """Run shell command and return output.

    Args:
        cmd: Command to run
        cwd: Working directory
        check: Whether to check return code

    Returns:
        str: Command output
    """
    logger.debug(f"Running command: {cmd}")
    env = dict(os.environ, GIT_EDITOR="true")
    result = subprocess.run(
        cmd, shell=True, check=check, cwd=cwd,
        capture_output=True, text=True, env=env
    )
    logger.debug(f"Command output: {result.stdout.strip()}")
    if result.stderr:
        logger.debug(f"Command stderr: {result.stderr.strip()}")
    return result.stdout.strip()


@dataclass
class RepoContext:
    """A clone with a local bare remote, plus socle objects bound to it."""
    path: str
    remote_path: str
    config: Config
    git_cmd: RealGit
    store: MetadataStore

    def run(self, cmd: str, check: bool = True) -> str:
        return run_cmd(cmd, cwd=self.path, check=check)

    def builder(self) -> StackBuilder:
        return StackBuilder(self.config, self.git_cmd, self.store)

    def write(self, name: str, content: str) -> None:
        with open(os.path.join(self.path, name), "w") as f:
            f.write(content)

    def commit_file(self, name: str, content: str, message: str) -> str:
        self.write(name, content)
        self.run(f"git add {name}")
        self.run(f"git commit -q -m '{message}'")
        return self.tip("HEAD")

    def tip(self, ref: str) -> str:
        return self.run(f"git rev-parse {ref}")

    def merge_base(self, first: str, second: str) -> str:
        return self.run(f"git merge-base {first} {second}")

    def current_branch(self) -> str:
        return self.run("git rev-parse --abbrev-ref HEAD")

    def branches(self) -> List[str]:
        return self.run("git for-each-ref --format='%(refname:short)' refs/heads/").splitlines()

    def stack(self, parent: str, *branches: str, base: str = "main") -> None:
        """Create a tracked chain of branches on parent, one commit each."""
        for branch in branches:
            self.run(f"git checkout -q -b {branch} {parent}")
            self.commit_file(f"{branch}.txt", f"{branch}\n", f"Add {branch}")
            self.store.set_tracking(branch, parent, base)
            parent = branch

    def start_conflicting_rebase(self, branch: str) -> None:
        """Leave branch stopped on a conflict halfway through a rebase onto main."""
        self.run(f"git checkout -q {branch}")
        self.commit_file("shared.txt", f"from {branch}\n", f"Add shared.txt on {branch}")
        self.run("git checkout -q main")
        self.commit_file("shared.txt", "from main\n", "Add shared.txt on main")
        self.run(f"git checkout -q {branch}")
        self.run("git rebase main", check=False)


def make_repo(root: Path, config_dict: Dict[str, Dict[str, object]]) -> RepoContext:
    """Create a repository on main with a bare origin under root."""
    remote_path = root / "remote.git"
    path = root / REPO_NAME
    run_cmd(f"git init -q --bare {remote_path}")
    path.mkdir()
    for cmd in (
        "git init -q",
        f"git remote add origin file://{remote_path}",
        "git config user.name 'Test User'",
        "git config user.email 'test@example.com'",
        "git config commit.gpgsign false",
    ):
        run_cmd(cmd, cwd=str(path))
    (path / "README.md").write_text(f"# {REPO_NAME} test repository\n")
    for cmd in (
        "git add README.md",
        "git commit -q -m 'Initial commit'",
        "git branch -M main",
        "git push -q -u origin main",
    ):
        run_cmd(cmd, cwd=str(path))

    config = Config(config_dict)  # type: ignore[arg-type]
    git_cmd = RealGit(config, directory=str(path))
    return RepoContext(str(path), str(remote_path), config, git_cmd, MetadataStore(git_cmd))


def push_to_remote_main(repo: RepoContext, tmp_root: Path, name: str, content: str) -> str:
    """Commit to main from a second clone and push it, as a teammate would."""
    other = tmp_root / "teammate"
    if not other.exists():
        run_cmd(f"git clone -q file://{repo.remote_path} {other}")
        run_cmd("git config user.name 'Teammate'", cwd=str(other))
        run_cmd("git config user.email 'teammate@example.com'", cwd=str(other))
        run_cmd("git config commit.gpgsign false", cwd=str(other))
    run_cmd("git checkout -q main && git pull -q origin main", cwd=str(other))
    (other / name).write_text(content)
    run_cmd(f"git add {name} && git commit -q -m 'Teammate change to {name}'", cwd=str(other))
    run_cmd("git push -q origin main", cwd=str(other))
    return run_cmd("git rev-parse HEAD", cwd=str(other))


class InMemoryMetadataStore(MetadataStore):
    """MetadataStore keeping its keys in a dict instead of git config."""

    def __init__(self, parents: Optional[Dict[str, str]] = None,
                 bases: Optional[Dict[str, str]] = None) -> None:
        super().__init__(git_cmd=None)  # type: ignore[arg-type]
        self.values: Dict[str, str] = {}
        for branch, parent in (parents or {}).items():
            self.set(branch, PARENT, parent)
        for branch, base in (bases or {}).items():
            self.set(branch, BASE, base)

    def get(self, branch: str, name: str) -> Optional[str]:
        return self.values.get(config_key(branch, name))

    def set(self, branch: str, name: str, value: str) -> None:
        self.values[config_key(branch, name)] = value

    def unset(self, branch: str, name: str) -> None:
        self.values.pop(config_key(branch, name), None)

    def get_all_parents(self) -> Dict[str, str]:
        prefix, suffix = "branch.", f".{PARENT}"
        return {
            key[len(prefix):-len(suffix)]: value
            for key, value in self.values.items()
            if key.startswith(prefix) and key.endswith(suffix)
        }


def chain_store(chain: List[str], base: Optional[str] = None) -> InMemoryMetadataStore:
    """Store where every branch of chain is stacked on the one before it."""
    base = base or chain[0]
    parents = {branch: parent for parent, branch in zip(chain, chain[1:])}
    return InMemoryMetadataStore(parents, {branch: base for branch in chain[1:]})
