"""Lifecycle events consumed by a report session.

The host test engine emits, in order::

    session_started
    (group_entered | example_started example_finished)*
    session_finished

Events can be delivered live (the pytest plugin calls the session
directly) or recorded to a JSONL/YAML file and replayed with
``streamreport render``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from streamreport.core.outcome import FailureInfo, Outcome
from streamreport.errors import ErrorCode, EventStreamError
from streamreport.validation import check_event_dict, iter_records


@dataclass(frozen=True)
class SessionStarted:
    example_count: int

    def to_dict(self) -> dict[str, Any]:
        return {"event": "session_started", "example_count": self.example_count}


@dataclass(frozen=True)
class GroupEntered:
    """A group was entered; ``depth`` counts the group and its ancestors."""

    depth: int
    description: str
    name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"event": "group_entered", "depth": self.depth, "description": self.description}
        if self.name:
            result["name"] = self.name
        return result


@dataclass(frozen=True)
class ExampleStarted:
    example_id: str
    description: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"event": "example_started", "id": self.example_id}
        if self.description:
            result["description"] = self.description
        return result


@dataclass(frozen=True)
class ExampleFinished:
    """Terminal event for an example.

    Attributes:
        outcome: PASSED, FAILED or PENDING as reported by the engine.
        failure: Captured failure for FAILED examples.
        pending_message: Reason given for a pending example.
        log_messages: Messages captured outside the session's own sink.
    """

    example_id: str
    outcome: Outcome
    description: Optional[str] = None
    failure: Optional[FailureInfo] = None
    pending_message: Optional[str] = None
    log_messages: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "event": "example_finished",
            "id": self.example_id,
            "outcome": self.outcome.value,
        }
        if self.description:
            result["description"] = self.description
        if self.failure is not None:
            result["failure"] = self.failure.to_dict()
        if self.pending_message:
            result["pending_message"] = self.pending_message
        if self.log_messages:
            result["log_messages"] = list(self.log_messages)
        return result


@dataclass(frozen=True)
class SessionFinished:
    duration: float
    example_count: int
    failure_count: int
    pending_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": "session_finished",
            "duration": self.duration,
            "example_count": self.example_count,
            "failure_count": self.failure_count,
            "pending_count": self.pending_count,
        }


Event = Union[SessionStarted, GroupEntered, ExampleStarted, ExampleFinished, SessionFinished]


def event_from_dict(data: dict[str, Any]) -> Event:
    """Build an event from its dict form.

    Raises:
        EventStreamError: If the record does not match the event schema.
    """
    errors = check_event_dict(data)
    if errors:
        first = errors[0]
        code = ErrorCode.E105 if first.path == "$.event" else ErrorCode.E104
        raise EventStreamError(f"{first.path}: {first.message}", code)

    kind = data["event"]
    if kind == "session_started":
        return SessionStarted(example_count=data["example_count"])
    if kind == "group_entered":
        return GroupEntered(depth=data["depth"], description=data["description"], name=data.get("name"))
    if kind == "example_started":
        return ExampleStarted(example_id=data["id"], description=data.get("description"))
    if kind == "example_finished":
        failure = data.get("failure")
        return ExampleFinished(
            example_id=data["id"],
            outcome=Outcome(data["outcome"]),
            description=data.get("description"),
            failure=FailureInfo.from_dict(failure) if failure is not None else None,
            pending_message=data.get("pending_message"),
            log_messages=tuple(data.get("log_messages", ())),
        )
    return SessionFinished(
        duration=float(data["duration"]),
        example_count=data["example_count"],
        failure_count=data["failure_count"],
        pending_count=data["pending_count"],
    )


def load_events(stream_path: str | Path) -> list[Event]:
    """Load and validate a recorded event stream.

    Raises:
        EventStreamError: On a missing file or the first invalid record.
    """
    stream_path = Path(stream_path)
    if not stream_path.exists():
        raise EventStreamError(str(stream_path), ErrorCode.E301)

    events: list[Event] = []
    try:
        for record in iter_records(stream_path):
            if record.parse_error:
                raise EventStreamError(record.parse_error, line_number=record.line_number)
            try:
                events.append(event_from_dict(record.data))
            except EventStreamError as e:
                raise EventStreamError(e.details, e.code, line_number=record.line_number) from e
    except (OSError, UnicodeDecodeError) as e:
        raise EventStreamError(f"{stream_path}: {e}", ErrorCode.E302) from e
    return events
