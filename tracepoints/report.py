from typing import Iterable, List, Optional

from tabulate import tabulate

from tracepoints.call_tree import CallTreeNode
from tracepoints.callstack import Callstack
from tracepoints.errors import RefCountMismatch
from tracepoints.function_registry import Function
from tracepoints.ref_deltas import RefDeltaCalculator


def format_delta(delta: int) -> str:
    return f"+{delta}" if delta > 0 else str(delta)


def _computed(deltas: Optional[RefDeltaCalculator]) -> bool:
    return deltas is not None and deltas.is_computed


def format_callstack(stack: Callstack, deltas: Optional[RefDeltaCalculator] = None) -> str:
    lines = [f"Count = {stack.hit_count}"]
    for frame in stack.frames:
        if _computed(deltas):
            lines.append(f"{frame.name}; Delta = {format_delta(deltas.delta(frame))}")
        else:
            lines.append(frame.name)
    return "\n".join(lines) + "\n"


def format_callstacks(stacks: Iterable[Callstack], deltas: Optional[RefDeltaCalculator] = None) -> str:
    """All callstacks, least frequent first."""
    ordered = sorted(stacks, key=lambda stack: stack.hit_count)
    return "\n".join(format_callstack(stack, deltas) for stack in ordered)


def format_call_tree(roots: Iterable[CallTreeNode], deltas: Optional[RefDeltaCalculator] = None) -> str:
    lines: List[str] = []
    for root in roots:
        for node, depth in root.walk():
            indent = "  " * depth
            if _computed(deltas):
                delta = format_delta(deltas.delta(node.function))
                lines.append(f"{indent}{node.function.name} (Hit Count = {node.hit_count}; Delta = {delta})")
            else:
                lines.append(f"{indent}{node.function.name} ({node.hit_count})")
    return "\n".join(lines)


def format_functions_with_delta(deltas: RefDeltaCalculator, expected_delta: int) -> str:
    functions: List[Function] = deltas.functions_with_delta(expected_delta)
    lines = [f"Functions with delta={expected_delta}:"]
    lines.extend(function.name for function in functions)
    return "\n".join(lines)


def format_delta_table(deltas: RefDeltaCalculator) -> str:
    """Table of every function with a nonzero delta, largest first."""
    rows = sorted(deltas.nonzero(), key=lambda item: item[1], reverse=True)
    table_data = [[function.name, format_delta(delta)] for function, delta in rows]
    return tabulate(table_data, headers=["Function", "Delta"], tablefmt="grid")


def format_mismatches(mismatches: Iterable[RefCountMismatch]) -> str:
    table_data = [[m.line_number, m.asserted, m.expected, m.frame] for m in mismatches]
    return tabulate(table_data, headers=["Line", "Refcount", "Expected", "Frame"], tablefmt="grid")
