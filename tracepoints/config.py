import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml

from tracepoints.callstack import CallstackFilter
from tracepoints.filters import all_of, exclude_functions, exclude_patterns
from tracepoints.tracepoint_parser import DEFAULT_MAX_CALLSTACK_DEPTH

ENV_MAX_CALLSTACK_DEPTH = "TRACEPOINT_MAX_CALLSTACK_DEPTH"
ENV_STRICT = "TRACEPOINT_STRICT"
ENV_EXPECTED_DELTA = "TRACEPOINT_EXPECTED_DELTA"

_TRUE_STRINGS = ("1", "true", "yes", "on")
_FALSE_STRINGS = ("0", "false", "no", "off")


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_STRINGS:
        return True
    if lowered in _FALSE_STRINGS:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _parse_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass
class AnalysisConfig:
    """
    Settings for one tracepoint log analysis.

    Attributes:
        max_callstack_depth: Frames beyond this depth are dropped from every callstack
        strict: Abort on malformed hits; when False they are logged and skipped
        exclude: Callstacks with a frame containing any of these strings are ignored
        exclude_patterns: Same as exclude, with regular expressions
        expected_delta: Total AddRef/Release delta the leak is expected to show
    """
    max_callstack_depth: int = DEFAULT_MAX_CALLSTACK_DEPTH
    strict: bool = True
    exclude: List[str] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=list)
    expected_delta: Optional[int] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        self.max_callstack_depth = _parse_int("max_callstack_depth", self.max_callstack_depth)
        if self.max_callstack_depth < 1:
            raise ValueError(f"max_callstack_depth must be positive, got {self.max_callstack_depth}")
        if self.expected_delta is not None:
            self.expected_delta = _parse_int("expected_delta", self.expected_delta)
        if isinstance(self.exclude, str):
            self.exclude = [self.exclude]
        if isinstance(self.exclude_patterns, str):
            self.exclude_patterns = [self.exclude_patterns]

    @staticmethod
    def _check_keys(values: Dict[str, Any]) -> None:
        known = {f.name for f in fields(AnalysisConfig)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    @staticmethod
    def _load_yaml(path: str) -> Dict[str, Any]:
        with open(path, 'r') as f:
            values = yaml.safe_load(f) or {}
        if not isinstance(values, dict):
            raise ValueError(f"{path}: expected a mapping of configuration keys")
        return values

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "AnalysisConfig":
        cls._check_keys(values)
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str) -> "AnalysisConfig":
        return cls.from_dict(cls._load_yaml(path))

    def apply_yaml(self, path: str) -> "AnalysisConfig":
        """Override the settings present in a YAML file, keeping the others."""
        values = self._load_yaml(path)
        self._check_keys(values)
        for name, value in values.items():
            setattr(self, name, value)
        self.validate()
        return self

    def apply_env(self, environ: Optional[Dict[str, str]] = None) -> "AnalysisConfig":
        """Override settings from TRACEPOINT_* environment variables."""
        environ = os.environ if environ is None else environ
        if environ.get(ENV_MAX_CALLSTACK_DEPTH):
            self.max_callstack_depth = _parse_int(ENV_MAX_CALLSTACK_DEPTH, environ[ENV_MAX_CALLSTACK_DEPTH])
        if environ.get(ENV_STRICT):
            self.strict = _parse_bool(ENV_STRICT, environ[ENV_STRICT])
        if environ.get(ENV_EXPECTED_DELTA):
            self.expected_delta = _parse_int(ENV_EXPECTED_DELTA, environ[ENV_EXPECTED_DELTA])
        self.validate()
        return self

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "AnalysisConfig":
        return cls().apply_env(environ)

    def build_filter(self, extra: Optional[CallstackFilter] = None) -> Optional[CallstackFilter]:
        """Combine the configured exclusions and an optional predicate into one filter."""
        return all_of(
            exclude_functions(*self.exclude) if self.exclude else None,
            exclude_patterns(self.exclude_patterns) if self.exclude_patterns else None,
            extra,
        )
