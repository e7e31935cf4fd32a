from typing import Dict, Iterator, List, Optional, Tuple

from tracepoints.callstack import CallstackKey
from tracepoints.function_registry import Function


class CallTreeNode:
    """One node of the merged call tree."""
    __slots__ = ('function', 'hit_count', 'children')

    def __init__(self, function: Function):
        self.function = function
        self.hit_count = 1
        self.children: Dict[Function, "CallTreeNode"] = {}

    def sorted_children(self) -> List["CallTreeNode"]:
        """Children in decreasing order of hit count."""
        return sorted(self.children.values(), key=lambda node: node.hit_count, reverse=True)

    def child(self, name: str) -> Optional["CallTreeNode"]:
        for function, node in self.children.items():
            if function.name == name:
                return node
        return None

    def walk(self) -> Iterator[Tuple["CallTreeNode", int]]:
        """Depth-first pre-order walk yielding (node, depth), busiest children first."""
        stack = [(self, 0)]
        while stack:
            node, depth = stack.pop()
            yield node, depth
            for child in reversed(node.sorted_children()):
                stack.append((child, depth + 1))

    def subtree_hit_count(self) -> int:
        return sum(node.hit_count for node, _ in self.walk())

    def __repr__(self) -> str:
        return (f"CallTreeNode(function='{self.function.name}', hit_count={self.hit_count}, "
                f"children={len(self.children)})")


def add_node(nodes: Dict[Function, CallTreeNode], function: Function) -> CallTreeNode:
    node = nodes.get(function)
    if node is not None:
        node.hit_count += 1
        return node
    node = CallTreeNode(function)
    nodes[function] = node
    return node


def add_callstack(root_map: Dict[Function, CallTreeNode], key: CallstackKey) -> None:
    """Merge one callstack into the tree rooted at `root_map`, first frame at the root."""
    nodes = root_map
    for frame in key.frames:
        node = add_node(nodes, frame)
        nodes = node.children


class CallTree:
    """Prefix tree over every accepted callstack, one root per distinct first frame."""

    def __init__(self):
        self.root_map: Dict[Function, CallTreeNode] = {}

    def add(self, key: CallstackKey) -> None:
        add_callstack(self.root_map, key)

    @property
    def roots(self) -> List[CallTreeNode]:
        return list(self.root_map.values())

    def root(self, name: str) -> Optional[CallTreeNode]:
        for function, node in self.root_map.items():
            if function.name == name:
                return node
        return None

    def find(self, *names: str) -> Optional[CallTreeNode]:
        """Follow a path of frame names from the roots, or return None."""
        if not names:
            return None
        node = self.root(names[0])
        for name in names[1:]:
            if node is None:
                return None
            node = node.child(name)
        return node

    def walk(self) -> Iterator[Tuple[CallTreeNode, int]]:
        for root in sorted(self.roots, key=lambda node: node.hit_count, reverse=True):
            yield from root.walk()

    def __len__(self) -> int:
        return len(self.root_map)
