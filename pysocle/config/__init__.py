"""Config module."""

from typing import Dict, Any
from .models import RepoConfig, UserConfig, SocleConfig, ToolConfig

class Config(SocleConfig):
    """Config object holding repository, user and tool config."""
    def __init__(self, config: Dict[str, Dict[str, Any]]):
        """Initialize with parsed config dict."""
        repo_config = config.get('repo', {})
        user_config = config.get('user', {})
        tool_section = config.get('tool', {})
        tool_config = tool_section.get('socle', {})

        super().__init__(
            repo=RepoConfig.model_validate(repo_config),
            user=UserConfig.model_validate(user_config),
            tool=ToolConfig.model_validate(tool_config),
        )

def default_config() -> Config:
    """Get default config without parsing git."""
    return Config({
        'repo': {
            'remote': 'origin',
        },
        'user': {},
        'tool': {
            'socle': {
                'concurrency': 0
            }
        }
    })
