"""Config parser logic."""

import os
import re
from typing import Dict, Any, Optional, Tuple
import logging
import yaml

from ...typing import GitInterface, SocleError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = '.socle.yaml'

Config = Dict[str, Dict[str, Any]]

# git@github.com:owner/repo.git, ssh://git@github.com/owner/repo, https://github.com/owner/repo.git
REMOTE_URL_PATTERN = re.compile(r'^(?:[^@/]+@[^:/]+[:/]|[a-z+]+://(?:[^@/]+@)?[^/]+/)([^/]+)/(.+?)(?:\.git)?/?$')

def parse_owner_and_repo(remote_url: str) -> Optional[Tuple[str, str]]:
    """Extract (owner, repo) from a remote URL, or None if it does not look like one."""
    match = REMOTE_URL_PATTERN.match(remote_url.strip())
    if not match:
        return None
    return match.group(1), match.group(2)

def parse_config(git_cmd: GitInterface) -> Config:
    """Parse config from the repository's .socle.yaml and its remote."""
    config: Config = {
        'repo': {
            'remote': 'origin',
            'github_host': 'github.com',
        },
        'user': {},
        'tool': {
            'socle': {
                'concurrency': 0,
                'pretend': False,
            }
        }
    }

    top_level = git_cmd.run_cmd("rev-parse --show-toplevel").strip()
    config_path = os.path.join(top_level, CONFIG_FILE_NAME)
    try:
        with open(config_path, 'r') as f:
            logger.debug(f"Found {CONFIG_FILE_NAME}, loading...")
            repo_config = yaml.safe_load(f)
    except FileNotFoundError:
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
        repo_config = None

    if repo_config:
        for section in ('repo', 'user'):
            if isinstance(repo_config.get(section), dict):
                config[section].update(repo_config[section])
        tool_section = repo_config.get('tool')
        if isinstance(tool_section, dict) and isinstance(tool_section.get('socle'), dict):
            config['tool']['socle'].update(tool_section['socle'])

    if not config['repo'].get('github_repo_owner') or not config['repo'].get('github_repo_name'):
        remote = config['repo']['remote']
        try:
            remote_url = git_cmd.run_cmd(f"remote get-url {remote}")
        except SocleError as e:
            logger.debug(f"No URL for remote '{remote}': {e}")
            remote_url = ""
        parsed = parse_owner_and_repo(remote_url) if remote_url else None
        if parsed:
            if not config['repo'].get('github_repo_owner'):
                config['repo']['github_repo_owner'] = parsed[0]
            if not config['repo'].get('github_repo_name'):
                config['repo']['github_repo_name'] = parsed[1]

    return config
