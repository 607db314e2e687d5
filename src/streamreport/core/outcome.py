"""Example outcomes and failure classification."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from streamreport.core.diagnostics import Frame, frames_from_traceback


class Outcome(str, Enum):
    """Outcome of a finished example, as rendered."""

    PASSED = "passed"
    FAILED = "failed"
    PENDING = "pending"
    PENDING_FIXED = "pending_fixed"


class FailureKind(str, Enum):
    """Declared kind of a captured failure.

    ``PENDING_FIXED`` marks an example that was expected to be pending
    but passed.
    """

    FAILURE = "failure"
    PENDING_FIXED = "pending_fixed"


@dataclass
class FailureInfo:
    """A failure captured by the host engine.

    Attributes:
        kind: Declared failure kind; drives fragment selection.
        exception_class: Name of the exception type, for display.
        message: Exception message.
        frames: Call stack, outermost first.
    """

    kind: FailureKind = FailureKind.FAILURE
    exception_class: Optional[str] = None
    message: str = ""
    frames: list[Frame] = field(default_factory=list)

    @property
    def is_pending_fixed(self) -> bool:
        return self.kind is FailureKind.PENDING_FIXED

    @classmethod
    def from_exception(cls, exc: BaseException, kind: FailureKind = FailureKind.FAILURE) -> "FailureInfo":
        return cls(
            kind=kind,
            exception_class=type(exc).__name__,
            message=str(exc),
            frames=frames_from_traceback(exc.__traceback__),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FailureInfo":
        frames: list[Frame] = []
        for raw in data.get("backtrace", []):
            if isinstance(raw, dict):
                frames.append(Frame(path=raw["path"], lineno=int(raw["line"]), function=raw.get("function")))
            else:
                frame = Frame.parse(raw)
                if frame is not None:
                    frames.append(frame)
        return cls(
            kind=FailureKind(data.get("kind", FailureKind.FAILURE.value)),
            exception_class=data.get("exception_class"),
            message=data.get("message", ""),
            frames=frames,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "backtrace": [
                {"path": f.path, "line": f.lineno, **({"function": f.function} if f.function else {})}
                for f in self.frames
            ],
        }
        if self.exception_class:
            result["exception_class"] = self.exception_class
        return result


def classify(outcome: Outcome, failure: Optional[FailureInfo] = None) -> Outcome:
    """Pick the rendered outcome for a terminal example event.

    A failed example whose failure is tagged ``PENDING_FIXED`` renders as
    pending-fixed. Only the kind tag is inspected, never the message.
    """
    if outcome is Outcome.FAILED and failure is not None and failure.is_pending_fixed:
        return Outcome.PENDING_FIXED
    return outcome
