"""Pydantic models for config types."""

from typing import List, Optional
from pydantic import BaseModel, Field

DEFAULT_ROOT_BRANCHES = ["main", "master", "develop"]

class RepoConfig(BaseModel):
    """Repository configuration."""
    remote: str = "origin"
    root_branches: List[str] = Field(default_factory=lambda: list(DEFAULT_ROOT_BRANCHES))
    github_host: str = "github.com"
    github_repo_owner: Optional[str] = None
    github_repo_name: Optional[str] = None

    class Config:
        """Pydantic config."""
        extra = "allow"

class UserConfig(BaseModel):
    """User configuration."""
    log_git_commands: bool = True
    rerere_hint: bool = True

    class Config:
        """Pydantic config."""
        extra = "allow"

class ToolConfig(BaseModel):
    """Tool configuration."""
    concurrency: int = 0
    pretend: bool = False
    remote_timeout: float = 30.0

    class Config:
        """Pydantic config."""
        extra = "allow"

class SocleConfig(BaseModel):
    """Full pysocle configuration."""
    repo: RepoConfig = Field(default_factory=RepoConfig)
    user: UserConfig = Field(default_factory=UserConfig)
    tool: ToolConfig = Field(default_factory=ToolConfig)

    class Config:
        """Pydantic config."""
        extra = "allow"

    def is_root_branch(self, branch: str) -> bool:
        """Whether branch is one of the configured root branches."""
        return branch in self.repo.root_branches
