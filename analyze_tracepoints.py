#!/usr/bin/env python3

import argparse
import logging
import sys
from dotenv import load_dotenv

from tracepoints.analysis import TracepointAnalysis
from tracepoints.config import AnalysisConfig
from tracepoints.errors import TracepointError
from tracepoints import report
from utils.log_utils import setup_logging

logger = logging.getLogger(__name__)


def build_config(args) -> AnalysisConfig:
    """TRACEPOINT_* environment variables first, then the YAML config, then command line flags."""
    config = AnalysisConfig.from_env()
    if args.config:
        config.apply_yaml(args.config)
    if args.max_depth is not None:
        config.max_callstack_depth = args.max_depth
    if args.permissive:
        config.strict = False
    if args.exclude:
        config.exclude.extend(args.exclude)
    if args.exclude_pattern:
        config.exclude_patterns.extend(args.exclude_pattern)
    if args.expected_delta is not None:
        config.expected_delta = args.expected_delta
    config.validate()
    return config


def run(args) -> int:
    config = build_config(args)
    analysis = TracepointAnalysis(args.input_path, config)

    try:
        analysis.process()
        analysis.compute_deltas()
    except TracepointError as e:
        logger.error(f"❌ {e}")
        return 1

    if analysis.mismatches:
        logger.warning(f"⚠️ {len(analysis.mismatches)} refcount sequence mismatches")
        logger.debug("\n" + report.format_mismatches(analysis.mismatches))

    total_delta = analysis.total_delta()
    print(f"\nTotal AddRef/Release delta: {report.format_delta(total_delta)}")

    if config.expected_delta is not None:
        if total_delta != config.expected_delta:
            if total_delta <= 0:
                print("AddRef/Release problem went away")
            else:
                print("AddRef/Release problem is bigger than expected")
            return 0
        print(report.format_functions_with_delta(analysis.deltas, config.expected_delta))
    else:
        print(report.format_delta_table(analysis.deltas))

    if args.show_stacks or config.expected_delta is not None:
        print()
        print(report.format_callstacks(analysis.stacks, analysis.deltas))

    if args.show_tree:
        print()
        print(report.format_call_tree(analysis.call_tree_roots, analysis.deltas))

    if args.plot:
        from utils.graph_utils import CallTreeGraph
        graph = CallTreeGraph.from_call_tree(analysis.call_tree_roots, analysis.deltas)
        graph.plot(title=args.input_path)

    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Analyze AddRef/Release tracepoint logs for reference count leaks')
    parser.add_argument('input_path',
                        help='Path to a file containing the saved debugger output window text')
    parser.add_argument('--config', type=str, default=None,
                        help='YAML file with analysis settings')
    parser.add_argument('--max-depth', type=int, default=None,
                        help='Maximum callstack depth (default: 100)')
    parser.add_argument('--permissive', action='store_true',
                        help='Skip malformed tracepoint hits instead of failing')
    parser.add_argument('--exclude', action='append', default=[],
                        help='Ignore callstacks with a frame containing this text (repeatable)')
    parser.add_argument('--exclude-pattern', action='append', default=[],
                        help='Ignore callstacks with a frame matching this regex (repeatable)')
    parser.add_argument('--expected-delta', type=int, default=None,
                        help='Total delta the leak is expected to show')
    parser.add_argument('--show-stacks', action='store_true',
                        help='Display every distinct callstack with its hit count (always shown when --expected-delta matches)')
    parser.add_argument('--show-tree', action='store_true',
                        help='Display the merged call tree')
    parser.add_argument('--plot', action='store_true',
                        help='Plot the call tree with matplotlib')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')
    return parser.parse_args(argv)


def main(argv=None):
    load_dotenv()
    args = parse_args(argv)
    setup_logging(args.input_path, logging.DEBUG if args.debug else logging.INFO)
    try:
        return run(args)
    except (ValueError, OSError) as e:
        logger.error(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
