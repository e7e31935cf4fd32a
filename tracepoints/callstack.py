from functools import total_ordering
from typing import Callable, Dict, Iterable, Iterator, List, Tuple

from tracepoints.function_registry import Function


@total_ordering
class CallstackKey:
    """
    An ordered sequence of interned functions, innermost frame first.

    Two keys are equal when they hold the same functions in the same order.
    Keys sort shorter-first, then by frame name, position by position.
    """
    __slots__ = ('frames', '_hash')

    def __init__(self, frames: Iterable[Function]):
        self.frames: Tuple[Function, ...] = tuple(frames)
        # Positional, so permutations of the same frames hash differently
        self._hash = hash(tuple(frame.id for frame in self.frames))

    def __hash__(self) -> int:
        return self._hash

    def __eq__(self, other) -> bool:
        if not isinstance(other, CallstackKey):
            return NotImplemented
        return self._hash == other._hash and self.frames == other.frames

    def __lt__(self, other: "CallstackKey") -> bool:
        if not isinstance(other, CallstackKey):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def _sort_key(self):
        return len(self.frames), tuple(frame.name for frame in self.frames)

    def __len__(self) -> int:
        return len(self.frames)

    def __iter__(self) -> Iterator[Function]:
        return iter(self.frames)

    def __getitem__(self, index):
        return self.frames[index]

    @property
    def names(self) -> List[str]:
        return [frame.name for frame in self.frames]

    def index_of(self, function: str) -> int:
        """Index of the first frame whose name contains `function`, or -1."""
        for index, frame in enumerate(self.frames):
            if function in frame.name:
                return index
        return -1

    def contains(self, function: str) -> bool:
        """Returns True if any frame of the callstack contains the text."""
        return self.index_of(function) >= 0

    def contains_pair(self, callee: str, caller: str) -> bool:
        """
        Returns True if the first frame containing `callee` is directly
        called by a frame containing `caller`.
        """
        callee_index = self.index_of(callee)
        if callee_index < 0 or callee_index == len(self.frames) - 1:
            return False
        return caller in self.frames[callee_index + 1].name

    def contains_any_pair(self, caller: str, *callees: str) -> bool:
        """Returns True if any of `callees` is called by `caller`."""
        return any(self.contains_pair(callee, caller) for callee in callees)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.names!r})"


class Callstack(CallstackKey):
    """A deduplicated callstack together with the number of times it was seen."""
    __slots__ = ('hit_count',)

    def __init__(self, frames: Iterable[Function]):
        super().__init__(frames)
        self.hit_count = 1

    def __repr__(self) -> str:
        return f"Callstack(hit_count={self.hit_count}, frames={self.names!r})"


CallstackFilter = Callable[[CallstackKey], bool]


class CallstackTable:
    """Distinct callstacks in first-occurrence order."""

    def __init__(self):
        self.stacks: List[Callstack] = []
        self._map: Dict[CallstackKey, Callstack] = {}

    def add(self, key: CallstackKey) -> Callstack:
        return add_callstack(self.stacks, self._map, key)

    @property
    def total_hits(self) -> int:
        return sum(stack.hit_count for stack in self.stacks)

    def __len__(self) -> int:
        return len(self.stacks)

    def __iter__(self) -> Iterator[Callstack]:
        return iter(self.stacks)


def add_callstack(stacks: List[Callstack], callstack_map: Dict[CallstackKey, Callstack],
                  key: CallstackKey) -> Callstack:
    """
    Count one more occurrence of `key`.

    Args:
        stacks: Distinct callstacks in first-occurrence order, appended to on a new key
        callstack_map: Lookup from key to its Callstack
        key: The callstack that was just read

    Returns:
        The Callstack instance for the key, with its hit count updated
    """
    callstack = callstack_map.get(key)
    if callstack is not None:
        callstack.hit_count += 1
        return callstack

    callstack = Callstack(key.frames)
    callstack_map[callstack] = callstack
    stacks.append(callstack)
    return callstack
