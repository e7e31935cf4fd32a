import re
from typing import Iterable, Optional

from tracepoints.callstack import CallstackFilter, CallstackKey


def exclude_functions(*substrings: str) -> CallstackFilter:
    """Reject callstacks with any frame containing one of the substrings."""
    def accept(key: CallstackKey) -> bool:
        return not any(key.contains(text) for text in substrings)
    return accept


def exclude_patterns(patterns: Iterable[str]) -> CallstackFilter:
    """Reject callstacks with any frame matching one of the regular expressions."""
    compiled = [re.compile(pattern) for pattern in patterns]

    def accept(key: CallstackKey) -> bool:
        return not any(regex.search(frame.name) for frame in key.frames for regex in compiled)
    return accept


def exclude_pairs(caller: str, *callees: str) -> CallstackFilter:
    """Reject callstacks where any of `callees` is called directly by `caller`."""
    def accept(key: CallstackKey) -> bool:
        return not key.contains_any_pair(caller, *callees)
    return accept


def all_of(*filters: Optional[CallstackFilter]) -> Optional[CallstackFilter]:
    """Accept a callstack only if every given filter accepts it. None entries are ignored."""
    active = [f for f in filters if f is not None]
    if not active:
        return None
    if len(active) == 1:
        return active[0]

    def accept(key: CallstackKey) -> bool:
        return all(f(key) for f in active)
    return accept
