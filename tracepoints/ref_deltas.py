"""
AddRef/Release delta propagation over the merged call tree.

Every node of the AddRef tree credits its function with +hit_count and every
node of the Release tree debits its function with -hit_count. A function whose
AddRef and Release call sites balance nets to zero.
"""
import logging
from collections import defaultdict
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from tracepoints.call_tree import CallTreeNode
from tracepoints.errors import CallTreeShapeError, DeltasAlreadyComputedError, DeltasNotComputedError
from tracepoints.function_registry import Function, FunctionRegistry
from tracepoints.kinds import ADDREF_MARKER, INDIRECTION_MARKER, RELEASE_MARKER

logger = logging.getLogger(__name__)


class DeltaState(Enum):
    NOT_STARTED = "not_started"
    COMPUTED = "computed"


def is_indirection_node(node: CallTreeNode) -> bool:
    """Interlocked helper frames with a single caller carry no weight of their own."""
    return INDIRECTION_MARKER in node.function.name and len(node.children) == 1


def is_addref_or_release_node(node: CallTreeNode, marker: str) -> bool:
    while is_indirection_node(node):
        node = next(iter(node.children.values()))
    return marker in node.function.name


def select_roots(roots: Sequence[CallTreeNode]) -> Tuple[CallTreeNode, CallTreeNode]:
    """
    Pick the AddRef and Release roots out of the call tree roots.

    Args:
        roots: The call tree roots, in any order

    Returns:
        Tuple of (addref_root, release_root)

    Raises:
        CallTreeShapeError: if there are not exactly two roots, or they are not
            one AddRef root and one Release root
    """
    if len(roots) != 2:
        raise CallTreeShapeError(f"got {len(roots)} roots")

    addref_root, release_root = roots
    if not is_addref_or_release_node(addref_root, ADDREF_MARKER):
        addref_root, release_root = release_root, addref_root

    if (not is_addref_or_release_node(addref_root, ADDREF_MARKER) or
            not is_addref_or_release_node(release_root, RELEASE_MARKER)):
        raise CallTreeShapeError(
            f"roots are '{roots[0].function.name}' and '{roots[1].function.name}'")
    return addref_root, release_root


def apply_delta(root: CallTreeNode, sign: int, root_function_ids: Set[int],
                deltas: Dict[int, int]) -> None:
    """
    Accumulate sign * hit_count for every node under `root` into `deltas`.

    Below the root itself, nodes whose function is one of the tree roots are
    not credited again, since Release can be called from Release. Recursion
    of any other function is counted at every occurrence.
    """
    pending = [(root, False)]
    while pending:
        node, below_root = pending.pop()
        if not below_root or node.function.id not in root_function_ids:
            deltas[node.function.id] += sign * node.hit_count
        for child in node.children.values():
            pending.append((child, True))


class RefDeltaCalculator:
    """Computes per-function AddRef/Release deltas, exactly once per analysis run."""

    def __init__(self, registry: FunctionRegistry):
        self.registry = registry
        self.state = DeltaState.NOT_STARTED
        self.addref_root: Optional[CallTreeNode] = None
        self.release_root: Optional[CallTreeNode] = None
        self._deltas: Dict[int, int] = {}

    @property
    def is_computed(self) -> bool:
        return self.state is DeltaState.COMPUTED

    def compute(self, roots: Sequence[CallTreeNode]) -> Dict[int, int]:
        """
        Propagate deltas from the AddRef and Release roots.

        Raises:
            DeltasAlreadyComputedError: if called a second time
            CallTreeShapeError: if the roots are not one AddRef and one Release root
        """
        if self.is_computed:
            raise DeltasAlreadyComputedError()

        addref_root, release_root = select_roots(roots)
        logger.debug(f"AddRef root: {addref_root.function.name}, Release root: {release_root.function.name}")

        root_function_ids = {root.function.id for root in roots}
        deltas: Dict[int, int] = defaultdict(int)
        apply_delta(addref_root, 1, root_function_ids, deltas)
        apply_delta(release_root, -1, root_function_ids, deltas)

        self._deltas = dict(deltas)
        self.addref_root = addref_root
        self.release_root = release_root
        self.state = DeltaState.COMPUTED
        return dict(self._deltas)

    def _require_computed(self) -> None:
        if not self.is_computed:
            raise DeltasNotComputedError()

    def delta(self, function: Function) -> int:
        self._require_computed()
        return self._deltas.get(function.id, 0)

    def delta_by_name(self, name: str) -> int:
        self._require_computed()
        function = self.registry.get(name)
        if function is None:
            raise KeyError(name)
        return self._deltas.get(function.id, 0)

    def items(self) -> List[Tuple[Function, int]]:
        """Every interned function with its delta, in first-seen order."""
        self._require_computed()
        return [(function, self._deltas.get(function.id, 0)) for function in self.registry]

    def functions_with_delta(self, expected_delta: int) -> List[Function]:
        self._require_computed()
        return [function for function, delta in self.items() if delta == expected_delta]

    def total_delta(self) -> int:
        """Sum of the deltas credited to the two root functions."""
        self._require_computed()
        return self.delta(self.addref_root.function) + self.delta(self.release_root.function)

    def nonzero(self, functions: Optional[Iterable[Function]] = None) -> List[Tuple[Function, int]]:
        self._require_computed()
        if functions is None:
            functions = self.registry
        return [(f, self._deltas[f.id]) for f in functions if self._deltas.get(f.id, 0) != 0]
