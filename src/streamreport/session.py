"""Report session: routes lifecycle events to the tracker, ledger and renderer.

A session handles exactly one sequential event stream. Each callback
writes its fragment to ``output`` and flushes, so a run that dies halfway
leaves a truncated but well-formed prefix of the report.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, TextIO

from streamreport.config import ReportConfig
from streamreport.core.diagnostics import DiagnosticExtractor, FailureDiagnostic
from streamreport.core.logsink import LogSink
from streamreport.core.nesting import StackTracker, StructuralOp
from streamreport.core.outcome import FailureInfo, Outcome, classify
from streamreport.core.timers import TimerLedger
from streamreport.errors import ErrorCode, ProtocolError
from streamreport.events import (
    Event,
    ExampleFinished,
    ExampleStarted,
    GroupEntered,
    SessionFinished,
    SessionStarted,
)
from streamreport.render.base import ExampleFragment, Renderer, SummaryFragment

logger = logging.getLogger(__name__)


@dataclass
class ExampleRecord:
    """Outcome of one example, kept for the JSON summary."""

    example_number: int
    example_id: str
    description: str
    outcome: Outcome
    elapsed: float
    failure_number: Optional[int] = None
    failure_message: Optional[str] = None
    diagnostic_location: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "example_number": self.example_number,
            "id": self.example_id,
            "description": self.description,
            "outcome": self.outcome.value,
            "elapsed": self.elapsed,
            "failure_number": self.failure_number,
            "failure_message": self.failure_message,
            "diagnostic_location": self.diagnostic_location,
        }


@dataclass
class SessionSummary:
    """Totals for a finished (or interrupted) session."""

    title: str
    expected_count: int = 0
    duration: float = 0.0
    examples: list[ExampleRecord] = field(default_factory=list)
    finished: bool = False

    @property
    def example_count(self) -> int:
        return len(self.examples)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for e in self.examples if e.outcome is outcome)

    @property
    def failure_count(self) -> int:
        """Failures, including pending examples that unexpectedly passed."""
        return self.count(Outcome.FAILED) + self.count(Outcome.PENDING_FIXED)

    @property
    def all_passed(self) -> bool:
        return self.failure_count == 0 and self.example_count > 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "title": self.title,
            "finished": self.finished,
            "duration": self.duration,
            "summary": {
                "expected": self.expected_count,
                "total": self.example_count,
                "passed": self.count(Outcome.PASSED),
                "failed": self.count(Outcome.FAILED),
                "pending": self.count(Outcome.PENDING),
                "pending_fixed": self.count(Outcome.PENDING_FIXED),
            },
            "examples": [e.to_dict() for e in self.examples],
        }


class ReportSession:
    """Drives one report from a host engine's lifecycle callbacks.

    Args:
        renderer: Produces the text fragments.
        output: Writable text stream; flushed after every event.
        config: Report options (exclusion pattern, snippet size, nesting
            strictness, title).
        log_sink: Sink collecting log messages for the running example.
            A private sink is created when omitted.
        clock: Time source for example durations.
    """

    def __init__(
        self,
        renderer: Renderer,
        output: TextIO,
        config: Optional[ReportConfig] = None,
        log_sink: Optional[LogSink] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.config = config or ReportConfig()
        self.renderer = renderer
        self.output = output
        self.log_sink = log_sink if log_sink is not None else LogSink()
        self.tracker = StackTracker(strict=self.config.strict_nesting)
        self.timers = TimerLedger(clock)
        self.extractor = DiagnosticExtractor(
            exclude_pattern=self.config.exclude_pattern,
            context_lines=self.config.context_lines,
        )
        self.example_number = 0
        self.failure_number = 0
        self.summary = SessionSummary(title=self.config.title)
        self._started = False
        self._descriptions: dict[str, str] = {}

    # -- helpers ----------------------------------------------------------

    def _write(self, text: str) -> None:
        if text:
            self.output.write(text)
        self.output.flush()

    def _require_running(self, event: str) -> None:
        if not self._started:
            raise ProtocolError(f"{event} before session_started", ErrorCode.E106)
        if self.summary.finished:
            raise ProtocolError(f"{event} after session_finished", ErrorCode.E106)

    def _write_ops(self, ops: list[StructuralOp]) -> None:
        self._write("".join(
            self.renderer.open_group(op) if op.is_open else self.renderer.close_group(op)
            for op in ops
        ))

    # -- lifecycle callbacks ----------------------------------------------

    def session_started(self, example_count: int) -> None:
        """Start the page by rendering the header."""
        if self._started:
            raise ProtocolError("session_started received twice", ErrorCode.E106)
        self._started = True
        self.summary.expected_count = example_count
        self._write(self.renderer.header(example_count))

    def group_entered(self, depth: int, description: str, name: Optional[str] = None) -> None:
        """Close finished groups and open the entered one."""
        self._require_running("group_entered")
        self._write_ops(self.tracker.group_entered(depth, name or description, description))

    def example_started(self, example_id: str, description: Optional[str] = None) -> None:
        self._require_running("example_started")
        self.example_number += 1
        self._descriptions[example_id] = description or example_id
        self.timers.start()
        self.log_sink.clear()

    def example_passed(
        self,
        example_id: str,
        description: Optional[str] = None,
        log_messages: Iterable[str] = (),
    ) -> None:
        self.example_finished(ExampleFinished(
            example_id=example_id,
            outcome=Outcome.PASSED,
            description=description,
            log_messages=tuple(log_messages),
        ))

    def example_failed(
        self,
        example_id: str,
        failure: FailureInfo,
        description: Optional[str] = None,
        log_messages: Iterable[str] = (),
    ) -> None:
        self.example_finished(ExampleFinished(
            example_id=example_id,
            outcome=Outcome.FAILED,
            description=description,
            failure=failure,
            log_messages=tuple(log_messages),
        ))

    def example_pending(
        self,
        example_id: str,
        pending_message: Optional[str] = None,
        description: Optional[str] = None,
        log_messages: Iterable[str] = (),
    ) -> None:
        self.example_finished(ExampleFinished(
            example_id=example_id,
            outcome=Outcome.PENDING,
            description=description,
            pending_message=pending_message,
            log_messages=tuple(log_messages),
        ))

    def example_finished(self, event: ExampleFinished) -> None:
        """Render a terminal example event (passed, failed or pending)."""
        self._require_running("example_finished")
        elapsed = self.timers.stop()
        description = event.description or self._descriptions.pop(event.example_id, event.example_id)
        self._descriptions.pop(event.example_id, None)

        outcome = classify(event.outcome, event.failure)
        failure_number: Optional[int] = None
        diagnostic: Optional[FailureDiagnostic] = None
        failure = event.failure
        if event.outcome is Outcome.FAILED:
            self.failure_number += 1
            failure_number = self.failure_number
            if failure is None:
                failure = FailureInfo()
            diagnostic = self._diagnose(failure)

        fragment = ExampleFragment(
            outcome=outcome,
            example_number=self.example_number,
            description=description,
            elapsed=elapsed,
            failure_number=failure_number,
            failure=failure,
            diagnostic=diagnostic,
            pending_message=event.pending_message,
            log_messages=self.log_sink.messages + tuple(event.log_messages),
        )
        self.summary.examples.append(ExampleRecord(
            example_number=self.example_number,
            example_id=event.example_id,
            description=description,
            outcome=outcome,
            elapsed=elapsed,
            failure_number=failure_number,
            failure_message=failure.message if failure is not None else None,
            diagnostic_location=str(diagnostic.frame) if diagnostic is not None else None,
        ))
        self._write(self._render_example(fragment))

    def session_finished(
        self,
        duration: float,
        example_count: int,
        failure_count: int,
        pending_count: int,
    ) -> None:
        """Close every open group and render the footer."""
        self._require_running("session_finished")
        if self.timers.pending:
            logger.warning("%d example(s) started but never finished", self.timers.pending)
        if example_count != self.summary.example_count:
            logger.warning(
                "Engine reported %d examples, %d were rendered",
                example_count, self.summary.example_count,
            )

        self._write_ops(self.tracker.session_finished())
        self.summary.duration = duration
        self.summary.finished = True
        self._write(self.renderer.footer(SummaryFragment(
            duration=duration,
            example_count=example_count,
            failure_count=failure_count,
            pending_count=pending_count,
        )))

    # -- dispatch ---------------------------------------------------------

    def dispatch(self, event: Event) -> None:
        """Route an event object to its callback."""
        if isinstance(event, SessionStarted):
            self.session_started(event.example_count)
        elif isinstance(event, GroupEntered):
            self.group_entered(event.depth, event.description, event.name)
        elif isinstance(event, ExampleStarted):
            self.example_started(event.example_id, event.description)
        elif isinstance(event, ExampleFinished):
            self.example_finished(event)
        elif isinstance(event, SessionFinished):
            self.session_finished(
                event.duration, event.example_count, event.failure_count, event.pending_count
            )
        else:
            raise ProtocolError(f"unsupported event {event!r}", ErrorCode.E105)

    def replay(self, events: Iterable[Event]) -> SessionSummary:
        """Dispatch a whole recorded stream and return the summary."""
        for event in events:
            self.dispatch(event)
        return self.summary

    # -- failure handling -------------------------------------------------

    def _diagnose(self, failure: FailureInfo) -> Optional[FailureDiagnostic]:
        try:
            return self.extractor.extract(failure.frames)
        except Exception:
            logger.exception("Could not extract a diagnostic for %s", failure.exception_class)
            return None

    def _render_example(self, fragment: ExampleFragment) -> str:
        try:
            return self.renderer.example(fragment)
        except Exception:
            logger.exception("Rendering example %d failed", fragment.example_number)
            return self.renderer.example_fallback(fragment)
