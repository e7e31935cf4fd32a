import logging
from typing import Dict, Iterable, List, Optional

from tracepoints.call_tree import CallTree, CallTreeNode
from tracepoints.callstack import Callstack, CallstackFilter, CallstackTable
from tracepoints.config import AnalysisConfig
from tracepoints.errors import RefCountMismatch
from tracepoints.function_registry import Function, FunctionRegistry
from tracepoints.ref_deltas import RefDeltaCalculator
from tracepoints.tracepoint_parser import TracepointLogParser

logger = logging.getLogger(__name__)


class TracepointAnalysis:
    """One analysis run over a saved tracepoint log."""

    def __init__(self, input_path: Optional[str] = None, config: Optional[AnalysisConfig] = None,
                 callstack_filter: Optional[CallstackFilter] = None):
        """
        Initialize the analysis.

        Args:
            input_path: Path to a file containing the saved debugger output window text
            config: Analysis settings (defaults to AnalysisConfig())
            callstack_filter: Optional predicate to drop callstacks that are unrelated to the leak
        """
        self.input_path = input_path
        self.config = config if config is not None else AnalysisConfig()
        self._callstack_filter = self.config.build_filter(callstack_filter)
        self.registry = FunctionRegistry()
        self.table = CallstackTable()
        self.call_tree = CallTree()
        self.deltas = RefDeltaCalculator(self.registry)
        self._parser = self._new_parser(self.registry)
        self._is_processed = False

    def _new_parser(self, registry: FunctionRegistry) -> TracepointLogParser:
        return TracepointLogParser(
            registry,
            max_callstack_depth=self.config.max_callstack_depth,
            callstack_filter=self._callstack_filter,
            strict=self.config.strict,
        )

    def _parse(self, read) -> None:
        # Parse into fresh containers; a failed parse leaves the previous state untouched
        registry = FunctionRegistry()
        parser = self._new_parser(registry)
        table, tree = read(parser, CallstackTable(), CallTree())
        self.registry = registry
        self.table = table
        self.call_tree = tree
        self.deltas = RefDeltaCalculator(registry)
        self._parser = parser
        self._is_processed = True

    def process(self) -> None:
        """Read the input file into the callstack table and call tree."""
        if self._is_processed:
            return
        if self.input_path is None:
            raise ValueError("No input path to process")
        logger.info(f"Reading tracepoint log {self.input_path}")
        self._parse(lambda parser, table, tree: parser.parse_file(self.input_path, table=table, tree=tree))

    def process_lines(self, lines: Iterable[str]) -> None:
        """Read already loaded log text instead of input_path."""
        if self._is_processed:
            return
        self._parse(lambda parser, table, tree: parser.parse(lines, table=table, tree=tree))

    def _ensure_processed(self) -> None:
        if not self._is_processed:
            self.process()

    @property
    def stacks(self) -> List[Callstack]:
        self._ensure_processed()
        return self.table.stacks

    @property
    def call_tree_roots(self) -> List[CallTreeNode]:
        self._ensure_processed()
        return self.call_tree.roots

    @property
    def mismatches(self) -> List[RefCountMismatch]:
        return self._parser.mismatches

    @property
    def skipped_hits(self):
        return self._parser.skipped_hits

    def compute_deltas(self) -> Dict[int, int]:
        """Compute the AddRef/Release delta of every function. Can only run once."""
        self._ensure_processed()
        return self.deltas.compute(self.call_tree.roots)

    def function_delta(self, name: str) -> int:
        return self.deltas.delta_by_name(name)

    def functions_with_delta(self, expected_delta: int) -> List[Function]:
        return self.deltas.functions_with_delta(expected_delta)

    def total_delta(self) -> int:
        return self.deltas.total_delta()
