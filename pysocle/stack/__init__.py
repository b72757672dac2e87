"""Stack graph reconstruction.

The branch tree is rebuilt from the flat ``socle-parent`` records on every
call; the metadata store is the only source of truth.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ..config.models import SocleConfig
from ..git import get_current_branch
from ..git.metadata import MetadataStore
from ..typing import (
    BrokenTrackingError, GitInterface, NonLinearViolationError, NotTrackedError,
)

logger = logging.getLogger(__name__)

MAX_ANCESTOR_STEPS = 50
MAX_DESCENDANT_STEPS = 100


@dataclass
class StackGraph:
    """Parent pointers and their inverse."""
    parent_of: Dict[str, str]
    children_of: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_parents(cls, parents: Dict[str, str]) -> 'StackGraph':
        children_of: Dict[str, List[str]] = {}
        for child, parent in parents.items():
            children_of.setdefault(parent, []).append(child)
        for children in children_of.values():
            children.sort()
        return cls(dict(parents), children_of)

    def children(self, branch: str) -> List[str]:
        return self.children_of.get(branch, [])

    def parent(self, branch: str) -> Optional[str]:
        return self.parent_of.get(branch)


@dataclass(frozen=True)
class LinearStack:
    """The full stack is a single chain from base to tip."""
    chain: List[str]


@dataclass(frozen=True)
class AmbiguousStack:
    """The base has several independent stacks; one has to be chosen."""
    candidates: List[List[str]]


FullStack = Union[LinearStack, AmbiguousStack]


@dataclass
class StackInfo:
    """Snapshot of the stack around the current branch."""
    current_branch: str
    base_branch: str
    current_stack: List[str]
    full_stack: FullStack
    graph: StackGraph

    @property
    def is_ambiguous(self) -> bool:
        return isinstance(self.full_stack, AmbiguousStack)

    def chains(self) -> List[List[str]]:
        """Every concrete chain covered by this snapshot."""
        if isinstance(self.full_stack, LinearStack):
            return [self.full_stack.chain]
        return self.full_stack.candidates


class StackBuilder:
    """Builds StackInfo snapshots from the metadata store."""

    def __init__(self, config: SocleConfig, git_cmd: GitInterface,
                 store: Optional[MetadataStore] = None):
        self.config = config
        self.git_cmd = git_cmd
        self.store = store or MetadataStore(git_cmd)

    def load_graph(self) -> StackGraph:
        return StackGraph.from_parents(self.store.get_all_parents())

    def build_stack_info(self, current_branch: Optional[str] = None) -> StackInfo:
        """Resolve the ancestor chain and the full chain of current_branch.

        Raises:
            NotTrackedError: current_branch is neither tracked nor a root
            BrokenTrackingError: metadata has a cycle or a missing ancestor
            NonLinearViolationError: a non-root branch has several children
        """
        if current_branch is None:
            current_branch = get_current_branch(self.git_cmd)
        graph = self.load_graph()

        if self.config.is_root_branch(current_branch):
            base_branch = current_branch
            current_stack = [current_branch]
        else:
            recorded_base = self.store.get_base(current_branch)
            if recorded_base is None:
                raise NotTrackedError(current_branch)
            base_branch = recorded_base
            current_stack = self._walk_up(graph, current_branch, base_branch)

        full_stack: FullStack
        if len(current_stack) == 1 and len(graph.children(base_branch)) > 1:
            full_stack = AmbiguousStack(self.get_available_stacks_from_base(base_branch, graph))
        else:
            full_stack = LinearStack(self._walk_down(graph, current_stack))

        logger.debug(f"Stack for '{current_branch}': current={current_stack} full={full_stack}")
        return StackInfo(current_branch, base_branch, current_stack, full_stack, graph)

    def get_available_stacks_from_base(self, base_branch: str,
                                       graph: Optional[StackGraph] = None) -> List[List[str]]:
        """One linear chain per direct child of base_branch.

        Chains that fan out above the base are left out with a warning.
        """
        if graph is None:
            graph = self.load_graph()
        stacks: List[List[str]] = []
        for child in graph.children(base_branch):
            try:
                stacks.append(self._walk_down(graph, [base_branch, child]))
            except (NonLinearViolationError, BrokenTrackingError) as e:
                logger.warning(f"Skipping stack starting at '{child}': {e}")
        return stacks

    def _walk_up(self, graph: StackGraph, branch: str, base_branch: str) -> List[str]:
        stack = [branch]
        node = branch
        steps = 0
        while node != base_branch:
            if steps >= MAX_ANCESTOR_STEPS:
                raise BrokenTrackingError(
                    f"Could not reach base '{base_branch}' from '{branch}' within "
                    f"{MAX_ANCESTOR_STEPS} steps; the parent records probably form a cycle")
            parent = graph.parent(node)
            if parent is None:
                raise BrokenTrackingError(
                    f"'{node}' has no parent recorded but is not the base '{base_branch}' "
                    f"of '{branch}'")
            stack.insert(0, parent)
            node = parent
            steps += 1
        return stack

    def _walk_down(self, graph: StackGraph, prefix: List[str]) -> List[str]:
        """Extend a known chain upward through single children."""
        for node in prefix[1:-1]:
            self._check_linear(graph, node)

        chain = list(prefix)
        seen = set(chain)
        while True:
            node = chain[-1]
            children = graph.children(node)
            if not children:
                break
            if len(children) > 1:
                if not self.config.is_root_branch(node):
                    raise NonLinearViolationError(node, children)
                # A root in the middle of a chain starts stacks of its own
                break
            child = children[0]
            if child in seen:
                raise BrokenTrackingError(f"Parent records form a cycle through '{child}'")
            if len(chain) > MAX_DESCENDANT_STEPS:
                raise BrokenTrackingError(
                    f"Stack above '{prefix[0]}' is deeper than {MAX_DESCENDANT_STEPS} branches")
            chain.append(child)
            seen.add(child)
        return chain

    def _check_linear(self, graph: StackGraph, node: str) -> None:
        children = graph.children(node)
        if len(children) > 1 and not self.config.is_root_branch(node):
            raise NonLinearViolationError(node, children)
