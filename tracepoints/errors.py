from dataclasses import dataclass
from typing import Optional


class TracepointError(Exception):
    """Base class for errors raised while analysing a tracepoint log."""


class MalformedLogError(TracepointError, ValueError):
    """The log does not follow the tracepoint hit format."""

    def __init__(self, message: str, line_number: Optional[int] = None, line: Optional[str] = None):
        self.line_number = line_number
        self.line = line
        if line_number is not None:
            message = f"line {line_number}: {message}"
        if line is not None:
            message = f"{message}: {line!r}"
        super().__init__(message)


class CallTreeShapeError(TracepointError, ValueError):
    """The call tree roots are not one AddRef root and one Release root."""

    def __init__(self, detail: str = ""):
        message = "expected one AddRef root and one Release root"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class DeltasAlreadyComputedError(TracepointError, RuntimeError):
    def __init__(self):
        super().__init__("AddRef/Release deltas already computed")


class DeltasNotComputedError(TracepointError, RuntimeError):
    def __init__(self):
        super().__init__("AddRef/Release deltas have not been computed")


@dataclass(frozen=True)
class RefCountMismatch:
    """A hit whose asserted reference count disagrees with the running count."""
    line_number: int
    asserted: int
    expected: int
    frame: str

    def __str__(self) -> str:
        return (f"line {self.line_number}: refcount {self.asserted}, "
                f"expected {self.expected} after {self.frame}")
