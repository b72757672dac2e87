"""Ways of answering the questions socle asks.

Components receive one of these as a constructor argument. The CLI uses
ClickPrompter; scripted runs and tests pass a deterministic selector.
"""

from typing import Callable, List, Optional

import click

from .typing import SocleError

STACK_SEPARATOR = " → "


def format_stack_option(chain: List[str]) -> str:
    """Label for a stack choice: the branches above the base, bottom first."""
    return STACK_SEPARATOR.join(chain[1:])


class ClickPrompter:
    """Asks on the terminal."""

    def __init__(self, assume: Optional[bool] = None):
        # assume answers every confirmation without asking
        self.assume = assume

    def choose(self, message: str, options: List[str]) -> int:
        if not options:
            raise SocleError(f"{message}: nothing to choose from")
        click.echo(message)
        for index, option in enumerate(options, 1):
            click.echo(f"  {index}) {option}")
        choice = click.prompt("Selection", type=click.IntRange(1, len(options)), default=1)
        return int(choice) - 1

    def confirm(self, message: str, default: bool = False) -> bool:
        if self.assume is not None:
            return self.assume
        return click.confirm(message, default=default)


class IndexSelector:
    """Always picks the option at a fixed index."""

    def __init__(self, index: int, answer: bool = True):
        self.index = index
        self.answer = answer

    def choose(self, message: str, options: List[str]) -> int:
        if not 0 <= self.index < len(options):
            raise SocleError(
                f"{message}: selection index {self.index} is out of range "
                f"(there are {len(options)} options)")
        return self.index

    def confirm(self, message: str, default: bool = False) -> bool:
        return self.answer


class PredicateSelector:
    """Picks the first option the predicate accepts."""

    def __init__(self, predicate: Callable[[str], bool], answer: bool = True, description: str = ""):
        self.predicate = predicate
        self.answer = answer
        self.description = description

    def choose(self, message: str, options: List[str]) -> int:
        for index, option in enumerate(options):
            if self.predicate(option):
                return index
        raise SocleError(f"{message}: no option matches {self.description or 'the selection'}")

    def confirm(self, message: str, default: bool = False) -> bool:
        return self.answer


def child_selector(child: str, answer: bool = True) -> PredicateSelector:
    """Select the stack whose first branch above the base is child, or a branch named child."""
    def matches(option: str) -> bool:
        return option.split(STACK_SEPARATOR)[0] == child
    return PredicateSelector(matches, answer, description=f"'{child}'")
