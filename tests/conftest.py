import pytest

from tracepoints.callstack import CallstackKey
from tracepoints.call_tree import CallTree
from tracepoints.function_registry import FunctionRegistry

ADDREF = "mymodule.dll!CFoo::AddRef"
RELEASE = "mymodule.dll!CFoo::Release"


def hit(refcount, frames, tracepoint="mymodule.dll!CFoo::AddRef"):
    """Text of one tracepoint hit: the hit-start line, the frames and a terminating blank line."""
    lines = [f"{refcount}:\t{tracepoint}"]
    lines.extend(f"\t{frame}" for frame in frames)
    lines.append("")
    return lines


def log_lines(*hits):
    lines = []
    for h in hits:
        lines.extend(h)
    return [line + "\n" for line in lines]


@pytest.fixture
def registry():
    return FunctionRegistry()


@pytest.fixture
def make_key(registry):
    def make(*names):
        return CallstackKey(registry.get_objects(list(names)))
    return make


@pytest.fixture
def make_tree(make_key):
    def make(*stacks):
        tree = CallTree()
        for names in stacks:
            tree.add(make_key(*names))
        return tree
    return make
