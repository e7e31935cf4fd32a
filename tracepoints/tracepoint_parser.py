"""
Parser for the debugger output window text produced by AddRef/Release tracepoints.

Each tracepoint hit looks like:

    3:	mymodule.dll!CFoo::AddRef
    	mymodule.dll!CFoo::AddRef
    	mymodule.dll!CBar::Init
    	mymodule.dll!wmain

The first line carries the new reference count. The tracepoint itself is the
top frame of the logged stack, so the line after it is the real first frame
and decides whether the hit is an AddRef or a Release. A blank line ends the
stack.
"""
import logging
import re
from typing import Iterable, Iterator, List, Optional, Tuple

from tracepoints.call_tree import CallTree
from tracepoints.callstack import CallstackFilter, CallstackKey, CallstackTable
from tracepoints.errors import MalformedLogError, RefCountMismatch
from tracepoints.function_registry import FunctionRegistry
from tracepoints.kinds import EventKind, classify_frame, refcount_step

logger = logging.getLogger(__name__)

CALLSTACK_START_PATTERN = re.compile(r'[0-9]+: ?\t.+(\.dll|\.exe)!.+')

DEFAULT_MAX_CALLSTACK_DEPTH = 100


def is_only_whitespace(line: str) -> bool:
    return not line.strip()


class TracepointLogParser:
    """Turns tracepoint log lines into callstack keys."""

    def __init__(self,
                 registry: FunctionRegistry,
                 max_callstack_depth: int = DEFAULT_MAX_CALLSTACK_DEPTH,
                 callstack_filter: Optional[CallstackFilter] = None,
                 strict: bool = True):
        """
        Args:
            registry: Registry that interns every frame name
            max_callstack_depth: Frames beyond this depth are dropped before keying
            callstack_filter: Optional predicate; stacks it rejects are discarded
            strict: Raise MalformedLogError on malformed hits instead of skipping them
        """
        if max_callstack_depth < 1:
            raise ValueError(f"max_callstack_depth must be positive, got {max_callstack_depth}")
        self.registry = registry
        self.max_callstack_depth = max_callstack_depth
        self.callstack_filter = callstack_filter
        self.strict = strict

        self.mismatches: List[RefCountMismatch] = []
        self.skipped_hits: List[Tuple[int, str]] = []
        self.hit_count = 0
        self.filtered_count = 0
        self._refcount: Optional[int] = None

    def _malformed(self, message: str, line_number: int, line: str) -> None:
        if self.strict:
            raise MalformedLogError(message, line_number, line)
        logger.warning(f"Skipping tracepoint hit at line {line_number}: {message}: {line!r}")
        self.skipped_hits.append((line_number, line))

    def _check_refcount(self, new_refcount: int, kind: EventKind, line_number: int, frame: str) -> None:
        if self._refcount is not None:
            expected = self._refcount + refcount_step(kind)
            if new_refcount != expected:
                mismatch = RefCountMismatch(line_number, new_refcount, expected, frame)
                logger.warning(f"Refcount sequence mismatch at {mismatch}")
                self.mismatches.append(mismatch)
        self._refcount = new_refcount

    def _finish(self, frame_names: List[str]) -> Optional[CallstackKey]:
        key = CallstackKey(self.registry.get_objects(frame_names, self.max_callstack_depth))
        if self.callstack_filter is not None and not self.callstack_filter(key):
            self.filtered_count += 1
            logger.debug(f"Filtered out callstack starting at {frame_names[0]}")
            return None
        return key

    def iter_callstacks(self, lines: Iterable[str]) -> Iterator[CallstackKey]:
        """
        Lazily yield the accepted callstack of every tracepoint hit.

        Args:
            lines: The log text, one line per item (trailing newlines are ignored)

        Yields:
            CallstackKey objects, innermost frame first, already truncated and filtered

        Raises:
            MalformedLogError: in strict mode, when a hit's first frame is neither an
                AddRef nor a Release, or the input ends right after a hit-start line
        """
        self._refcount = None
        numbered = enumerate(lines, 1)
        current: Optional[List[str]] = None
        skipping = False

        for line_number, line in numbered:
            line = line.rstrip('\r\n')

            if current is not None:
                if is_only_whitespace(line):
                    key = self._finish(current)
                    current = None
                    if key is not None:
                        yield key
                    continue
                if line.startswith('\t'):
                    if len(line) > 1:
                        current.append(line[1:])
                    continue
                # Untabbed text ends the stack and may start the next hit
                key = self._finish(current)
                current = None
                if key is not None:
                    yield key
            elif skipping:
                if is_only_whitespace(line):
                    skipping = False
                    continue
                if line.startswith('\t'):
                    continue
                skipping = False

            if not CALLSTACK_START_PATTERN.match(line):
                continue

            new_refcount = int(line[:line.index(':')])
            try:
                frame_line_number, frame_line = next(numbered)
            except StopIteration:
                self._malformed("input ended after tracepoint hit", line_number, line)
                break

            frame_line = frame_line.rstrip('\r\n')
            frame = frame_line[frame_line.find('\t') + 1:].strip()
            kind = classify_frame(frame)
            if kind == EventKind.UNKNOWN:
                self._malformed("first frame is neither an AddRef nor a Release",
                                frame_line_number, frame_line)
                skipping = True
                continue

            self.hit_count += 1
            self._check_refcount(new_refcount, kind, line_number, frame)
            current = [frame]

        if current is not None:
            key = self._finish(current)
            if key is not None:
                yield key

    def parse(self, lines: Iterable[str],
              table: Optional[CallstackTable] = None,
              tree: Optional[CallTree] = None) -> Tuple[CallstackTable, CallTree]:
        """Feed every accepted callstack to the dedup table and the call tree."""
        table = table if table is not None else CallstackTable()
        tree = tree if tree is not None else CallTree()
        for key in self.iter_callstacks(lines):
            table.add(key)
            tree.add(key)
        logger.info(f"Read {self.hit_count} tracepoint hits: {len(table)} distinct callstacks, "
                    f"{self.filtered_count} filtered, {len(self.skipped_hits)} skipped, "
                    f"{len(self.mismatches)} refcount mismatches")
        return table, tree

    def parse_file(self, path: str, **kwargs) -> Tuple[CallstackTable, CallTree]:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            return self.parse(f, **kwargs)
