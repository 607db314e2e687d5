"""Tests for event stream validation and loading."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from streamreport.core.outcome import FailureKind, Outcome
from streamreport.errors import ErrorCode, EventStreamError
from streamreport.events import (
    ExampleFinished,
    ExampleStarted,
    GroupEntered,
    SessionFinished,
    SessionStarted,
    event_from_dict,
    load_events,
)
from streamreport.validation import check_event_dict, event_types, validate_events


def _write_jsonl(path: Path, records: list) -> Path:
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n", encoding="utf-8")
    return path


# =============================================================================
# Schema checks
# =============================================================================


class TestCheckEventDict:
    """Tests for per-record schema validation."""

    def test_event_types(self) -> None:
        assert set(event_types()) == {
            "session_started",
            "group_entered",
            "example_started",
            "example_finished",
            "session_finished",
        }

    def test_valid_group_entered(self) -> None:
        assert check_event_dict({"event": "group_entered", "depth": 1, "description": "Calc"}) == []

    def test_unknown_event(self) -> None:
        errors = check_event_dict({"event": "group_left"})
        assert len(errors) == 1
        assert errors[0].path == "$.event"
        assert "group_left" in errors[0].message

    def test_not_an_object(self) -> None:
        errors = check_event_dict(["session_started"])
        assert errors[0].path == "$"
        assert "list" in errors[0].message

    def test_missing_required_field(self) -> None:
        errors = check_event_dict({"event": "group_entered", "depth": 1})
        assert any("description" in e.message for e in errors)

    def test_unknown_field(self) -> None:
        errors = check_event_dict({"event": "session_started", "example_count": 1, "extra": True})
        assert errors

    def test_bad_outcome(self) -> None:
        errors = check_event_dict({"event": "example_finished", "id": "a", "outcome": "exploded"})
        assert [e.path for e in errors] == ["$.outcome"]

    def test_nested_failure_path(self) -> None:
        errors = check_event_dict({
            "event": "example_finished",
            "id": "a",
            "outcome": "failed",
            "failure": {"message": "x", "backtrace": [42]},
        })
        assert errors[0].path == "$.failure.backtrace[0]"


class TestValidateEvents:
    """Tests for validate_events()."""

    def test_sample_stream_is_valid(self, sample_stream_path: Path) -> None:
        result = validate_events(sample_stream_path)
        assert result.valid, result.summary()
        assert result.record_count == 16

    def test_yaml_stream_is_valid(self, examples_dir: Path) -> None:
        result = validate_events(examples_dir / "calculator.yaml")
        assert result.valid, result.summary()
        assert result.record_count == 7

    def test_missing_file(self, tmp_path: Path) -> None:
        result = validate_events(tmp_path / "missing.jsonl")
        assert not result.valid
        assert "File not found" in result.errors[0].message

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.jsonl"
        path.write_text("\n", encoding="utf-8")
        result = validate_events(path)
        assert not result.valid
        assert result.errors[0].message == "Event stream is empty"

    def test_collects_errors_with_line_numbers(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.jsonl"
        path.write_text(
            '{"event": "session_started", "example_count": 1}\n'
            "{not json\n"
            '{"event": "group_entered", "depth": "one", "description": "x"}\n',
            encoding="utf-8",
        )

        result = validate_events(path)

        assert not result.valid
        assert [e.line_number for e in result.errors] == [2, 3]
        assert "Invalid JSON" in result.errors[0].message

    def test_yaml_must_be_a_list(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("event: session_started\n", encoding="utf-8")
        result = validate_events(path)
        assert not result.valid
        assert "must be a list" in result.errors[0].message

    def test_summary(self, sample_stream_path: Path, tmp_path: Path) -> None:
        assert validate_events(sample_stream_path).summary().startswith("✓ ")

        path = _write_jsonl(tmp_path / "bad.jsonl", [{"event": "nope"}])
        summary = validate_events(path).summary()
        assert summary.startswith("✗ ")
        assert "Line 1: $.event" in summary


# =============================================================================
# Event objects
# =============================================================================


class TestEventFromDict:
    """Tests for building event objects."""

    def test_session_started(self) -> None:
        assert event_from_dict({"event": "session_started", "example_count": 3}) == SessionStarted(3)

    def test_group_entered(self) -> None:
        event = event_from_dict({"event": "group_entered", "depth": 2, "description": "adds", "name": "Calc adds"})
        assert event == GroupEntered(depth=2, description="adds", name="Calc adds")

    def test_example_started(self) -> None:
        event = event_from_dict({"event": "example_started", "id": "a"})
        assert event == ExampleStarted("a")

    def test_example_finished_with_failure(self) -> None:
        event = event_from_dict({
            "event": "example_finished",
            "id": "a",
            "outcome": "failed",
            "failure": {"kind": "pending_fixed", "message": ""},
            "log_messages": ["hello"],
        })

        assert isinstance(event, ExampleFinished)
        assert event.outcome is Outcome.FAILED
        assert event.failure.kind is FailureKind.PENDING_FIXED
        assert event.log_messages == ("hello",)

    def test_session_finished(self) -> None:
        event = event_from_dict({
            "event": "session_finished",
            "duration": 1,
            "example_count": 2,
            "failure_count": 0,
            "pending_count": 1,
        })
        assert event == SessionFinished(1.0, 2, 0, 1)

    def test_to_dict_is_accepted_by_schema(self) -> None:
        event = ExampleFinished("a", Outcome.PENDING, description="later", pending_message="soon")
        assert check_event_dict(event.to_dict()) == []
        assert event_from_dict(event.to_dict()) == event

    def test_unknown_event_code(self) -> None:
        with pytest.raises(EventStreamError) as excinfo:
            event_from_dict({"event": "group_left"})
        assert excinfo.value.code is ErrorCode.E105

    def test_invalid_record_code(self) -> None:
        with pytest.raises(EventStreamError) as excinfo:
            event_from_dict({"event": "session_started"})
        assert excinfo.value.code is ErrorCode.E104


class TestLoadEvents:
    """Tests for load_events()."""

    def test_load_sample(self, sample_stream_path: Path) -> None:
        events = load_events(sample_stream_path)

        assert len(events) == 16
        assert events[0] == SessionStarted(5)
        assert isinstance(events[-1], SessionFinished)

    def test_load_yaml(self, examples_dir: Path) -> None:
        events = load_events(examples_dir / "calculator.yaml")
        failed = events[5]
        assert failed.failure.frames[0].lineno == 10

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(EventStreamError) as excinfo:
            load_events(tmp_path / "missing.jsonl")
        assert excinfo.value.code is ErrorCode.E301

    def test_bad_record_reports_line(self, tmp_path: Path) -> None:
        path = _write_jsonl(tmp_path / "bad.jsonl", [
            {"event": "session_started", "example_count": 1},
            {"event": "example_started"},
        ])

        with pytest.raises(EventStreamError) as excinfo:
            load_events(path)

        assert excinfo.value.line_number == 2
        assert "line 2:" in str(excinfo.value)

    def test_bad_json_reports_line(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.jsonl"
        path.write_text('{"event": "session_started", "example_count": 1}\n{oops\n', encoding="utf-8")

        with pytest.raises(EventStreamError) as excinfo:
            load_events(path)
        assert excinfo.value.line_number == 2
