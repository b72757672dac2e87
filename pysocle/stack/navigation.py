"""Relative moves between the branches of a stack."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..config.models import SocleConfig
from ..git import checkout
from ..prompt import format_stack_option
from ..typing import GitInterface, Prompter
from . import LinearStack, StackBuilder, StackInfo

logger = logging.getLogger(__name__)


class Purpose(Enum):
    UP = "up"
    DOWN = "down"
    TOP = "top"
    BOTTOM = "bottom"


@dataclass
class NavigationResult:
    """Where to go, or why there is nowhere to go."""
    target: Optional[str]
    message: str = ""


def compute_target(current: str, chain: List[str], purpose: Purpose) -> NavigationResult:
    """Pick the branch a move lands on within chain (base first)."""
    if current not in chain:
        return NavigationResult(None, f"Branch '{current}' is not part of this stack.")
    index = chain.index(current)
    last = len(chain) - 1

    if purpose is Purpose.UP:
        if index == last:
            return NavigationResult(None, "Already at the top of the stack.")
        return NavigationResult(chain[index + 1])
    if purpose is Purpose.DOWN:
        if index == 0:
            return NavigationResult(None, "Already at the base of the stack.")
        return NavigationResult(chain[index - 1])
    if purpose is Purpose.TOP:
        if index == last:
            return NavigationResult(None, "Already at the top of the stack.")
        return NavigationResult(chain[last])
    # Bottom is the first branch above the base
    if len(chain) <= 1:
        return NavigationResult(None, "Only the base branch exists in this stack.")
    if index == 1:
        return NavigationResult(None, "Already at the bottom of the stack.")
    return NavigationResult(chain[1])


def select_chain(info: StackInfo, prompter: Prompter) -> List[str]:
    """The full chain of info, asking which one when the base has several stacks."""
    if isinstance(info.full_stack, LinearStack):
        return info.full_stack.chain
    candidates = info.full_stack.candidates
    if not candidates:
        return [info.base_branch]
    if len(candidates) == 1:
        return candidates[0]
    index = prompter.choose(
        f"Multiple stacks start at '{info.base_branch}'. Select a stack",
        [format_stack_option(chain) for chain in candidates])
    return candidates[index]


class Navigator:
    """Resolves a move against the current stack and checks out the target."""

    def __init__(self, config: SocleConfig, git_cmd: GitInterface, prompter: Prompter,
                 builder: Optional[StackBuilder] = None):
        self.config = config
        self.git_cmd = git_cmd
        self.prompter = prompter
        self.builder = builder or StackBuilder(config, git_cmd)

    def resolve(self, purpose: Purpose, info: Optional[StackInfo] = None) -> NavigationResult:
        if info is None:
            info = self.builder.build_stack_info()
        if purpose is Purpose.DOWN:
            chain = info.current_stack
        elif info.is_ambiguous and not info.chains():
            return NavigationResult(
                None, f"No stacks found starting from base branch '{info.base_branch}'.")
        else:
            chain = select_chain(info, self.prompter)
        return compute_target(info.current_branch, chain, purpose)

    def navigate(self, purpose: Purpose) -> NavigationResult:
        result = self.resolve(purpose)
        if result.target is None:
            logger.info(result.message)
            return result
        checkout(self.git_cmd, result.target)
        logger.info(f"Switched to '{result.target}'")
        return result
