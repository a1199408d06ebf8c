"""
Diagnostics for the parser.

Syntax errors are collected as Diagnostic records and never raised; the
parser keeps going after them. Engine bugs and the nesting guard are fatal:
they raise internally and the orchestrator turns them into a fatal
Diagnostic plus a failed result.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, List, Optional, Tuple


class ParseErrorCode(Enum):
    UNEXPECTED_TOKEN = auto()
    MISSING_TERMINATOR = auto()
    EMPTY_REQUIRED_ELEMENT = auto()
    TOKENIZER_ERROR = auto()

    # Fatal
    NESTING_TOO_DEEP = auto()
    INTERNAL_INVARIANT_VIOLATION = auto()

    @property
    def fatal(self) -> bool:
        return self in FATAL_CODES


FATAL_CODES = frozenset({
    ParseErrorCode.NESTING_TOO_DEEP,
    ParseErrorCode.INTERNAL_INVARIANT_VIOLATION,
})


@dataclass(frozen=True)
class Diagnostic:
    """One error: what went wrong and the source span that triggered it."""

    code: ParseErrorCode
    text: str
    source_start: int
    source_length: int

    @property
    def fatal(self) -> bool:
        return self.code.fatal

    @property
    def source_end(self) -> int:
        return self.source_start + self.source_length

    def describe(self, source: str) -> str:
        """Return the message with a caret line under the offending span."""
        line_no, column, line_text = line_at(source, self.source_start)
        width = max(1, min(self.source_length, len(line_text) - column + 1))
        caret = " " * (column - 1) + "^" + "~" * (width - 1)
        return f"{line_no}:{column}: {self.text}\n{line_text}\n{caret}"

    def __str__(self) -> str:
        return f"{self.text} at offset {self.source_start}"


def line_at(source: str, offset: int) -> Tuple[int, int, str]:
    """(1-based line, 1-based column, line text) for a source offset"""
    offset = max(0, min(offset, len(source)))
    line_start = source.rfind("\n", 0, offset) + 1
    line_end = source.find("\n", offset)
    if line_end < 0:
        line_end = len(source)
    line_no = source.count("\n", 0, line_start) + 1
    return line_no, offset - line_start + 1, source[line_start:line_end]


class ErrorCollector:
    """
    Accumulates diagnostics in arrival order.

    A diagnostic that starts where the previous one started is dropped:
    after a failure the enclosing productions tend to trip over the same
    token again, and only the first report is useful.
    """

    def __init__(self) -> None:
        self._errors: List[Diagnostic] = []

    def record(self, code: ParseErrorCode, text: str, source_start: int, source_length: int = 0) -> bool:
        """Append a diagnostic. Returns False if it was suppressed as a cascade."""
        last = self._errors[-1] if self._errors else None
        if last is not None and last.source_start == source_start and not code.fatal:
            return False

        self._errors.append(Diagnostic(code, text, source_start, source_length))
        return True

    def has_fatal(self) -> bool:
        return any(err.fatal for err in self._errors)

    def freeze(self) -> Tuple[Diagnostic, ...]:
        return tuple(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)


class InternalParseError(RuntimeError):
    """
    Engine bug / violated tree invariant.
    Not for user mistakes (those are Diagnostics).
    """

    def __init__(self, message: str, source_start: int = 0, source_length: int = 0):
        super().__init__(message)
        self.message = message
        self.source_start = source_start
        self.source_length = source_length

    def format(self) -> str:
        return f"internal parser error at offset {self.source_start}: {self.message}"


class ParseAbort(Exception):
    """Raised inside the engine once a fatal diagnostic has been recorded"""

    def __init__(self, diagnostic: Optional[Diagnostic] = None):
        super().__init__(diagnostic.text if diagnostic else "parse aborted")
        self.diagnostic = diagnostic
