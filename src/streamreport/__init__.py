"""Streaming hierarchical HTML test reports.

A ``ReportSession`` consumes test lifecycle events (session started,
group entered, example started/finished, session finished) and writes
the report incrementally through a renderer.
"""
from __future__ import annotations

__version__ = "2.2.0"

from streamreport.config import ReportConfig, load_config
from streamreport.core import (
    DiagnosticExtractor,
    FailureInfo,
    FailureKind,
    Frame,
    LogSink,
    Outcome,
    StackTracker,
    TimerLedger,
)
from streamreport.errors import ProtocolError, StreamReportError
from streamreport.render import HtmlRenderer
from streamreport.session import ReportSession, SessionSummary

__all__ = [
    "DiagnosticExtractor",
    "FailureInfo",
    "FailureKind",
    "Frame",
    "HtmlRenderer",
    "LogSink",
    "Outcome",
    "ProtocolError",
    "ReportConfig",
    "ReportSession",
    "SessionSummary",
    "StackTracker",
    "StreamReportError",
    "TimerLedger",
    "__version__",
    "load_config",
]
