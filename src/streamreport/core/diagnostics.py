"""Failure diagnostics: pick the first user frame and show its source.

Call stacks are lists of ``Frame`` objects, outermost first. Frames
belonging to the test framework (pytest, pluggy, unittest, this package)
are dropped using a configurable regular expression; the first frame left
over is the anchor for the source snippet.

Extraction never raises. A stack made only of framework frames yields
``None``; an unreadable source file yields a diagnostic whose snippet is
empty, so a moved or deleted file can never break report generation.
"""
from __future__ import annotations

import logging
import os
import re
import unittest
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Iterable, Optional, Pattern, Union

logger = logging.getLogger(__name__)

_UNITTEST_DIR = os.path.dirname(unittest.__file__)
_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Framework frames only: installed packages, the stdlib unittest package and
# this package's own directory. User directories named "unittest" or
# "pytest" are not matched.
DEFAULT_EXCLUDE_PATTERN = (
    r"(?:site|dist)-packages[\\/](?:_pytest|pytest|pluggy|streamreport)[\\/]"
    r"|[\\/][Ll]ib[\\/]python\d(?:\.\d+)?[\\/]unittest[\\/]"
    rf"|^{re.escape(_UNITTEST_DIR)}[\\/]"
    rf"|^{re.escape(_PACKAGE_DIR)}[\\/]"
    r"|<frozen [\w.]+>"
)

DEFAULT_CONTEXT_LINES = 2

# "path:12", "path:12:in `method'", "path:12 in method"
_COLON_FRAME_RE = re.compile(r"^(?P<path>.+?):(?P<lineno>\d+)(?::?\s*in\s+[`'\"]?(?P<function>[^`'\"]+)[`'\"]?)?$")
# 'File "path", line 12, in method'
_PY_FRAME_RE = re.compile(r'^File "(?P<path>.+)", line (?P<lineno>\d+)(?:, in (?P<function>.+))?$')


@dataclass(frozen=True)
class Frame:
    """One call stack entry."""

    path: str
    lineno: int
    function: Optional[str] = None

    def __str__(self) -> str:
        location = f"{self.path}:{self.lineno}"
        if self.function:
            return f"{location} in {self.function}"
        return location

    @classmethod
    def parse(cls, line: str) -> Optional["Frame"]:
        """Parse a textual backtrace line, or return None if unrecognised."""
        line = line.strip()
        match = _PY_FRAME_RE.match(line) or _COLON_FRAME_RE.match(line)
        if not match:
            return None
        function = match.group("function")
        return cls(
            path=match.group("path"),
            lineno=int(match.group("lineno")),
            function=function.strip() if function else None,
        )


@dataclass(frozen=True)
class SnippetLine:
    lineno: int
    text: str
    is_focus: bool = False


@dataclass(frozen=True)
class FailureDiagnostic:
    """Anchor frame plus a short source window around it."""

    frame: Frame
    snippet: tuple[SnippetLine, ...] = field(default_factory=tuple)

    @property
    def has_snippet(self) -> bool:
        return bool(self.snippet)

    @property
    def text(self) -> str:
        """Plain-text rendering with line numbers, focus line marked."""
        width = max((len(str(s.lineno)) for s in self.snippet), default=0)
        return "\n".join(
            f"{'>' if s.is_focus else ' '} {s.lineno:>{width}}  {s.text}"
            for s in self.snippet
        )


def frames_from_traceback(tb: Optional[TracebackType]) -> list[Frame]:
    """Convert a traceback object into frames, outermost first."""
    frames: list[Frame] = []
    while tb is not None:
        code = tb.tb_frame.f_code
        frames.append(Frame(path=code.co_filename, lineno=tb.tb_lineno, function=code.co_name))
        tb = tb.tb_next
    return frames


def compile_exclude_pattern(pattern: Union[str, Pattern[str], None]) -> Pattern[str]:
    """Compile an exclusion pattern, falling back to the default."""
    if pattern is None:
        pattern = DEFAULT_EXCLUDE_PATTERN
    if isinstance(pattern, str):
        return re.compile(pattern)
    return pattern


class DiagnosticExtractor:
    """Locate the first user frame of a failure and read its source.

    Args:
        exclude_pattern: Regex matched against ``str(frame)``; matching
            frames are treated as framework internals.
        context_lines: Lines shown on each side of the failing line.
        encoding: Source file encoding.
    """

    def __init__(
        self,
        exclude_pattern: Union[str, Pattern[str], None] = None,
        context_lines: int = DEFAULT_CONTEXT_LINES,
        encoding: str = "utf-8",
    ) -> None:
        if context_lines < 0:
            raise ValueError("context_lines must be >= 0")
        self.exclude_pattern = compile_exclude_pattern(exclude_pattern)
        self.context_lines = context_lines
        self.encoding = encoding

    def is_excluded(self, frame: Frame) -> bool:
        return self.exclude_pattern.search(str(frame)) is not None

    def filter_frames(self, frames: Iterable[Frame]) -> list[Frame]:
        """Drop framework frames, keeping order."""
        return [f for f in frames if not self.is_excluded(f)]

    def anchor(self, frames: Iterable[Frame]) -> Optional[Frame]:
        for frame in frames:
            if not self.is_excluded(frame):
                return frame
        return None

    def extract(self, frames: Iterable[Frame]) -> Optional[FailureDiagnostic]:
        """Build the diagnostic for a failure's call stack."""
        frame = self.anchor(frames)
        if frame is None:
            return None
        return FailureDiagnostic(frame=frame, snippet=self.snippet(frame.path, frame.lineno))

    def snippet(self, path: str, lineno: int) -> tuple[SnippetLine, ...]:
        """Source lines around ``lineno`` (1-based), or () when unavailable."""
        try:
            source = Path(path).read_text(encoding=self.encoding, errors="replace")
        except (OSError, ValueError) as e:
            logger.debug("No snippet for %s:%d: %s", path, lineno, e)
            return ()

        lines = source.splitlines()
        if lineno < 1 or lineno > len(lines):
            logger.debug("Line %d outside %s (%d lines)", lineno, path, len(lines))
            return ()

        first = max(1, lineno - self.context_lines)
        last = min(len(lines), lineno + self.context_lines)
        return tuple(
            SnippetLine(lineno=n, text=lines[n - 1], is_focus=(n == lineno))
            for n in range(first, last + 1)
        )
