"""CLI entry point."""

import os
import sys
import click
import logging
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar
from click import Context

from ...config import Config, default_config
from ...config.config_parser import parse_config
from ...git import RealGit
from ...github import GitHubClient, find_github_token
from ...prompt import ClickPrompter, IndexSelector, child_selector
from ...stack.log import LogCollector
from ...stack.navigation import Navigator, Purpose
from ...stack.restack import Restacker
from ...stack.submit import SubmitOptions, Submitter
from ...stack.sync import Syncer
from ...stack.tracking import StackTracker
from ...typing import Prompter, SocleError

logger = logging.getLogger(__name__)

R = TypeVar('R')


def check(err: Exception) -> None:
    """Log an error and exit."""
    logger.error(f"{err}")
    sys.exit(1)


def run(action: Callable[[], R]) -> R:
    """Run a command body, turning socle errors into a clean exit."""
    try:
        return action()
    except SocleError as e:
        check(e)
        raise


class AliasedGroup(click.Group):
    """Command group with support for aliases."""

    def __init__(self, name: Optional[str] = None, commands: Optional[Dict[str, click.Command]] = None, **attrs: Any) -> None:
        """Initialize with aliases map."""
        super().__init__(name, commands, **attrs)
        self.aliases: Dict[str, str] = {}

    def add_alias(self, alias: str, command: str) -> None:
        """Add an alias for a command."""
        self.aliases[alias] = command

    def get_command(self, ctx: Context, cmd_name: str) -> Optional[click.Command]:
        """Get a command by name, supporting aliases."""
        if cmd_name in self.aliases:
            cmd_name = self.aliases[cmd_name]
        return super().get_command(ctx, cmd_name)


@click.group(cls=AliasedGroup)
@click.pass_context
def cli(ctx: Context) -> None:
    """socle - stacked branches and pull requests on GitHub."""
    ctx.obj = {}


directory_option = click.option(
    '-C', '--directory', type=click.Path(exists=True, file_okay=False, dir_okay=True),
    help='Run as if socle was started in DIRECTORY instead of the current working directory')
verbose_option = click.option(
    '-v', '--verbose', count=True, help="Increase verbosity (can be used multiple times for more verbosity)")
select_index_option = click.option(
    '--select-stack-index', type=int, default=None,
    help="Pick the stack at this index instead of prompting when several stacks share the base")
select_child_option = click.option(
    '--select-stack-child', type=str, default=None,
    help="Pick the stack starting with this branch instead of prompting")


def setup_git(directory: Optional[str] = None) -> Tuple[Config, RealGit]:
    """Setup Git command and config."""
    if directory:
        os.chdir(directory)

    git_cmd = RealGit(default_config())
    try:
        git_cmd.run_cmd("rev-parse --git-dir")
    except SocleError as e:
        logger.error(f"{e}")
        sys.exit(2)

    config = Config(parse_config(git_cmd))
    return config, RealGit(config)


def setup_github(config: Config) -> GitHubClient:
    """Create a GitHub client from the token found in the environment."""
    from ...github.adapters import PyGithubAdapter

    token = find_github_token(config.repo.github_host)
    if not token:
        raise SocleError(
            "No GitHub token found. Try one of:\n"
            "1. Set GITHUB_TOKEN env var\n"
            "2. Log in with 'gh auth login'")
    adapter = PyGithubAdapter.from_token(token, config.repo.github_host, config.tool.remote_timeout)
    return GitHubClient(config, adapter)


def make_prompter(select_index: Optional[int] = None, select_child: Optional[str] = None,
                  assume: Optional[bool] = None) -> Prompter:
    """Deterministic selection when asked for, otherwise the terminal."""
    if select_index is not None:
        return IndexSelector(select_index, answer=True if assume is None else assume)
    if select_child is not None:
        return child_selector(select_child, answer=True if assume is None else assume)
    return ClickPrompter(assume)


@cli.command(name="track", help="Start tracking a branch as part of a stack")
@click.argument('branch', required=False)
@click.option('--parent', '-p', type=str, default=None, help="Parent branch (prompted for when omitted)")
@click.option('--discover', is_flag=True, help="Link the branch to its open pull request, if any")
@directory_option
@verbose_option
def track(branch: Optional[str], parent: Optional[str], discover: bool,
          directory: Optional[str], verbose: int) -> None:
    """Track command."""
    from ... import setup_logging
    setup_logging(verbose)

    config, git_cmd = setup_git(directory)
    github = run(lambda: setup_github(config)) if discover else None
    tracker = StackTracker(config, git_cmd, make_prompter(), github=github)
    recorded = run(lambda: tracker.track(branch, parent, discover))
    click.echo(f"Tracking on top of '{recorded}'.")


@cli.command(name="untrack", help="Stop tracking a branch that has nothing stacked on it")
@click.argument('branch', required=False)
@directory_option
@verbose_option
def untrack(branch: Optional[str], directory: Optional[str], verbose: int) -> None:
    """Untrack command."""
    from ... import setup_logging
    setup_logging(verbose)

    config, git_cmd = setup_git(directory)
    tracker = StackTracker(config, git_cmd, make_prompter())
    run(lambda: tracker.untrack(branch))


@cli.command(name="create", help="Create a branch stacked on the current one")
@click.argument('name')
@click.option('--message', '-m', type=str, default=None, help="Commit staged changes with this message")
@click.option('--all', '-a', 'stage_all', is_flag=True, help="Stage all changes before committing")
@directory_option
@verbose_option
def create(name: str, message: Optional[str], stage_all: bool,
           directory: Optional[str], verbose: int) -> None:
    """Create command."""
    from ... import setup_logging
    setup_logging(verbose)

    config, git_cmd = setup_git(directory)
    tracker = StackTracker(config, git_cmd, make_prompter())
    parent = run(lambda: tracker.create(name, message, stage_all))
    click.echo(f"Created '{name}' on top of '{parent}'.")


@cli.command(name="restack", help="Rebase every branch of the stack onto its parent")
@click.option('--no-fetch', is_flag=True, help="Do not fetch and fast-forward the base branch first")
@click.option('--push/--no-push', default=None, help="Force-push rebased branches without asking")
@directory_option
@verbose_option
def restack(no_fetch: bool, push: Optional[bool], directory: Optional[str], verbose: int) -> None:
    """Restack command."""
    from ... import setup_logging
    setup_logging(verbose)

    config, git_cmd = setup_git(directory)
    restacker = Restacker(config, git_cmd, make_prompter())
    report = run(lambda: restacker.restack(fetch_base=not no_fetch, push=push))
    if report.paused:
        click.echo(f"Restack paused at '{report.conflicted}'.")


@cli.command(name="sync", help="Delete branches whose pull requests are merged or closed")
@click.option('--no-restack', is_flag=True, help="Do not restack afterwards")
@click.option('--no-fetch', is_flag=True, help="Do not fetch from the remote first")
@click.option('--yes', '-y', is_flag=True, help="Delete without asking")
@directory_option
@verbose_option
def sync(no_restack: bool, no_fetch: bool, yes: bool, directory: Optional[str], verbose: int) -> None:
    """Sync command."""
    from ... import setup_logging
    setup_logging(verbose)

    config, git_cmd = setup_git(directory)
    github = run(lambda: setup_github(config))
    syncer = Syncer(config, git_cmd, github, make_prompter(assume=True if yes else None))
    report = run(lambda: syncer.sync(restack=not no_restack, fetch_remote=not no_fetch))
    if report.deleted:
        click.echo(f"Deleted {len(report.deleted)} branch(es): {', '.join(report.deleted)}")


@cli.command(name="submit", help="Push the stack and create or update its pull requests")
@click.option('--no-push', is_flag=True, help="Do not push branches")
@click.option('--force', '-f', is_flag=True, help="Force-push branches")
@click.option('--draft', is_flag=True, help="Open new pull requests as drafts")
@select_index_option
@select_child_option
@directory_option
@verbose_option
def submit(no_push: bool, force: bool, draft: bool, select_stack_index: Optional[int],
           select_stack_child: Optional[str], directory: Optional[str], verbose: int) -> None:
    """Submit command."""
    from ... import setup_logging
    setup_logging(verbose)

    config, git_cmd = setup_git(directory)
    github = run(lambda: setup_github(config))
    submitter = Submitter(config, git_cmd, github, make_prompter(select_stack_index, select_stack_child))
    options = SubmitOptions(push=not no_push, force=force, draft=draft)
    report = run(lambda: submitter.submit(options))
    for branch, number in report.pr_numbers.items():
        click.echo(f"{branch}: #{number}")


def navigate(purpose: Purpose, select_index: Optional[int], select_child: Optional[str],
             directory: Optional[str], verbose: int) -> None:
    """Shared body of the navigation commands."""
    from ... import setup_logging
    setup_logging(verbose)

    config, git_cmd = setup_git(directory)
    navigator = Navigator(config, git_cmd, make_prompter(select_index, select_child))
    result = run(lambda: navigator.navigate(purpose))
    if result.target is None:
        click.echo(result.message)


@cli.command(name="up", help="Check out the branch above the current one")
@select_index_option
@select_child_option
@directory_option
@verbose_option
def up(select_stack_index: Optional[int], select_stack_child: Optional[str],
       directory: Optional[str], verbose: int) -> None:
    navigate(Purpose.UP, select_stack_index, select_stack_child, directory, verbose)


@cli.command(name="down", help="Check out the branch below the current one")
@directory_option
@verbose_option
def down(directory: Optional[str], verbose: int) -> None:
    navigate(Purpose.DOWN, None, None, directory, verbose)


@cli.command(name="top", help="Check out the tip of the stack")
@select_index_option
@select_child_option
@directory_option
@verbose_option
def top(select_stack_index: Optional[int], select_stack_child: Optional[str],
        directory: Optional[str], verbose: int) -> None:
    navigate(Purpose.TOP, select_stack_index, select_stack_child, directory, verbose)


@cli.command(name="bottom", help="Check out the first branch above the base")
@select_index_option
@select_child_option
@directory_option
@verbose_option
def bottom(select_stack_index: Optional[int], select_stack_child: Optional[str],
           directory: Optional[str], verbose: int) -> None:
    navigate(Purpose.BOTTOM, select_stack_index, select_stack_child, directory, verbose)


@cli.command(name="log", help="Show the stack with rebase and pull request status")
@click.option('--offline', is_flag=True, help="Do not query GitHub")
@directory_option
@verbose_option
def log(offline: bool, directory: Optional[str], verbose: int) -> None:
    """Log command."""
    from ... import setup_logging
    from ...pretty import print_stack_logs
    setup_logging(verbose)

    config, git_cmd = setup_git(directory)
    github: Optional[GitHubClient] = None
    if not offline:
        try:
            github = setup_github(config)
        except SocleError as e:
            logger.warning(f"Showing the stack without pull request status: {e}")
    collector = LogCollector(config, git_cmd, github)
    print_stack_logs(run(collector.collect))


def main() -> None:
    """Main entry point."""
    cli.add_alias('ls', 'log')
    cli.add_alias('st', 'log')
    cli.add_alias('rs', 'restack')
    cli(obj={})


if __name__ == "__main__":
    main()
