"""Renderer interface used by the report session."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

from streamreport.core.diagnostics import FailureDiagnostic
from streamreport.core.nesting import StructuralOp
from streamreport.core.outcome import FailureInfo, Outcome


@dataclass(frozen=True)
class ExampleFragment:
    """Everything the renderer needs to draw one finished example.

    Attributes:
        outcome: Rendered outcome (pending-fixed already classified).
        example_number: 1-based sequence number within the session.
        description: Example label.
        elapsed: Seconds between start and finish.
        failure_number: 1-based failure sequence number, failures only.
        failure: Captured failure, failures only.
        diagnostic: Source diagnostic, when one could be derived.
        pending_message: Reason for pending examples.
        log_messages: Messages logged while the example ran.
    """

    outcome: Outcome
    example_number: int
    description: str
    elapsed: float
    failure_number: Optional[int] = None
    failure: Optional[FailureInfo] = None
    diagnostic: Optional[FailureDiagnostic] = None
    pending_message: Optional[str] = None
    log_messages: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SummaryFragment:
    duration: float
    example_count: int
    failure_count: int
    pending_count: int


class Renderer(Protocol):
    """Turns session facts into document fragments.

    Each method returns the text to append to the output stream.
    """

    def header(self, example_count: int) -> str: ...

    def open_group(self, op: StructuralOp) -> str: ...

    def close_group(self, op: StructuralOp) -> str: ...

    def example(self, fragment: ExampleFragment) -> str: ...

    def example_fallback(self, fragment: ExampleFragment) -> str: ...

    def footer(self, summary: SummaryFragment) -> str: ...
