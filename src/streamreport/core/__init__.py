"""Reporting state machine: nesting, timing and failure diagnostics.

Nothing in this package renders output; it only computes the facts the
renderer needs.
"""
from __future__ import annotations

from streamreport.core.diagnostics import (
    DEFAULT_CONTEXT_LINES,
    DEFAULT_EXCLUDE_PATTERN,
    DiagnosticExtractor,
    FailureDiagnostic,
    Frame,
    SnippetLine,
    frames_from_traceback,
)
from streamreport.core.logsink import LogSink, SinkHandler
from streamreport.core.nesting import GroupNode, OpKind, StackTracker, StructuralOp
from streamreport.core.outcome import FailureInfo, FailureKind, Outcome, classify
from streamreport.core.timers import TimerLedger

__all__ = [
    "DEFAULT_CONTEXT_LINES",
    "DEFAULT_EXCLUDE_PATTERN",
    "DiagnosticExtractor",
    "FailureDiagnostic",
    "FailureInfo",
    "FailureKind",
    "Frame",
    "GroupNode",
    "LogSink",
    "OpKind",
    "Outcome",
    "SinkHandler",
    "SnippetLine",
    "StackTracker",
    "StructuralOp",
    "TimerLedger",
    "classify",
    "frames_from_traceback",
]
