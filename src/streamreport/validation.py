"""Schema validation for recorded event streams.

A recorded stream is either JSON Lines (one event object per line) or a
YAML document holding a list of event objects.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator

import jsonschema
import yaml

SCHEMA_NAME = "event.schema.json"


@dataclass
class ValidationError:
    """A single validation error."""

    path: str
    message: str
    line_number: int | None = None  # JSONL line or YAML list position


@dataclass
class ValidationResult:
    """Result of validating a file."""

    valid: bool
    errors: list[ValidationError] = field(default_factory=list)
    file_path: str = ""
    record_count: int = 0

    def summary(self) -> str:
        """Return a human-readable summary."""
        if self.valid:
            return f"✓ {self.file_path}: Valid ({self.record_count} events)"
        lines = [f"✗ {self.file_path}: {len(self.errors)} error(s)"]
        for err in self.errors:
            if err.line_number is not None:
                lines.append(f"  Line {err.line_number}: {err.path} - {err.message}")
            else:
                lines.append(f"  {err.path} - {err.message}")
        return "\n".join(lines)


@dataclass
class RawRecord:
    """One undecoded record of a stream file."""

    line_number: int
    data: Any = None
    parse_error: str | None = None


def _get_schema_dir() -> Path:
    """Get the directory containing schemas."""
    return Path(__file__).parent / "schemas"


@lru_cache(maxsize=None)
def _load_schema(schema_name: str = SCHEMA_NAME) -> dict[str, Any]:
    """Load a JSON schema by name."""
    schema_path = _get_schema_dir() / schema_name
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")
    return json.loads(schema_path.read_text(encoding="utf-8"))


def event_types() -> tuple[str, ...]:
    """Event names defined by the schema."""
    return tuple(k for k in _load_schema()["$defs"] if k != "failure")


@lru_cache(maxsize=None)
def _validator_for(event_type: str) -> jsonschema.Draft202012Validator:
    schema = _load_schema()
    return jsonschema.Draft202012Validator(
        {"$defs": schema["$defs"], "$ref": f"#/$defs/{event_type}"}
    )


def _format_path(path: list[Any]) -> str:
    """Format a jsonschema path as a dotted string."""
    if not path:
        return "$"
    parts = ["$"]
    for p in path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(f".{p}")
    return "".join(parts)


def check_event_dict(data: Any) -> list[ValidationError]:
    """Validate one decoded event record; returns errors (empty if valid)."""
    if not isinstance(data, dict):
        return [ValidationError(path="$", message=f"Expected object, got {type(data).__name__}")]
    event_type = data.get("event")
    if event_type not in event_types():
        return [ValidationError(path="$.event", message=f"Unknown event type: {event_type!r}")]
    return [
        ValidationError(path=_format_path(list(err.absolute_path)), message=err.message)
        for err in _validator_for(event_type).iter_errors(data)
    ]


def iter_records(stream_path: Path) -> Iterator[RawRecord]:
    """Yield raw records from a JSONL or YAML stream file.

    Raises:
        OSError: If the file cannot be read.
    """
    content = stream_path.read_text(encoding="utf-8")

    if stream_path.suffix.lower() in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            yield RawRecord(line_number=0, parse_error=f"Invalid YAML: {e}")
            return
        if data is None:
            return
        if not isinstance(data, list):
            yield RawRecord(line_number=0, parse_error="YAML stream must be a list of events")
            return
        for index, item in enumerate(data, start=1):
            yield RawRecord(line_number=index, data=item)
        return

    for line_num, line in enumerate(content.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            yield RawRecord(line_number=line_num, data=json.loads(line))
        except json.JSONDecodeError as e:
            yield RawRecord(line_number=line_num, parse_error=f"Invalid JSON: {e}")


def validate_events(stream_path: str | Path) -> ValidationResult:
    """Validate a recorded event stream against event.schema.json.

    Each record is validated separately and all errors are collected.

    Args:
        stream_path: Path to the JSONL or YAML stream file.

    Returns:
        ValidationResult with any errors found.
    """
    stream_path = Path(stream_path)
    result = ValidationResult(valid=True, file_path=str(stream_path))

    if not stream_path.exists():
        result.valid = False
        result.errors.append(ValidationError(path="$", message=f"File not found: {stream_path}"))
        return result

    try:
        records = list(iter_records(stream_path))
    except (OSError, UnicodeDecodeError) as e:
        result.valid = False
        result.errors.append(ValidationError(path="$", message=f"Cannot read file: {e}"))
        return result

    if not records:
        result.valid = False
        result.errors.append(ValidationError(path="$", message="Event stream is empty", line_number=0))
        return result

    for record in records:
        if record.parse_error:
            result.valid = False
            result.errors.append(
                ValidationError(path="$", message=record.parse_error, line_number=record.line_number)
            )
            continue
        result.record_count += 1
        for err in check_event_dict(record.data):
            result.valid = False
            err.line_number = record.line_number
            result.errors.append(err)

    return result
