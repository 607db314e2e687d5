"""streamreport error code registry.

Provides structured error codes with helpful messages and next steps.
Each error has:
- Code: SR-EXXX format
- Message: Human-readable description
- Next step: Actionable command or instruction

Exceptions raised by the library carry one of these codes so the CLI can
print the matching guidance.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import sys


class ErrorCode(Enum):
    """streamreport error codes."""

    # Configuration errors (E001-E099)
    E001 = "E001"  # Config file not found
    E002 = "E002"  # Invalid config file format
    E003 = "E003"  # Invalid exclusion pattern
    E004 = "E004"  # Invalid config value

    # Protocol / event stream errors (E100-E199)
    E100 = "E100"  # Nesting depth out of order
    E101 = "E101"  # Invalid nesting depth
    E102 = "E102"  # Timer ledger underflow
    E103 = "E103"  # Clock went backwards
    E104 = "E104"  # Event stream record invalid
    E105 = "E105"  # Unknown event type
    E106 = "E106"  # Event out of order

    # Rendering errors (E200-E299)
    E200 = "E200"  # Asset not found
    E201 = "E201"  # Fragment rendering failed

    # File/IO errors (E300-E399)
    E300 = "E300"  # Output path not writable
    E301 = "E301"  # Event stream file not found
    E302 = "E302"  # Cannot read file


@dataclass
class ReportErrorInfo:
    """Structured error with code, message, and next step."""

    code: ErrorCode
    message: str
    next_step: str
    details: Optional[str] = None

    def __str__(self) -> str:
        lines = [
            f"SR-{self.code.value}: {self.message}",
        ]
        if self.details:
            lines.append(f"  Details: {self.details}")
        lines.append(f"  Next step: {self.next_step}")
        return "\n".join(lines)

    def print(self, file=None) -> None:
        """Print the error to stderr (or specified file)."""
        print(str(self), file=file or sys.stderr)


# Pre-defined error templates
ERROR_TEMPLATES: dict[ErrorCode, tuple[str, str]] = {
    # (message_template, next_step)
    ErrorCode.E001: (
        "Config file not found: {details}",
        "Check the --config path"
    ),
    ErrorCode.E002: (
        "Invalid config file format: {details}",
        "The config file must be a YAML mapping of option names to values"
    ),
    ErrorCode.E003: (
        "Invalid backtrace exclusion pattern: {details}",
        "Fix STREAMREPORT_EXCLUDE_PATTERN or --exclude-pattern (Python regex syntax)"
    ),
    ErrorCode.E004: (
        "Invalid config value: {details}",
        "Run 'streamreport show-config' to inspect the resolved configuration"
    ),
    ErrorCode.E100: (
        "Group nesting depth out of order: {details}",
        "A group may only nest one level deeper than the group entered before it"
    ),
    ErrorCode.E101: (
        "Invalid group nesting depth: {details}",
        "Group depths start at 1 for top-level groups"
    ),
    ErrorCode.E102: (
        "Example finished without a matching start",
        "Every example_finished event must follow an example_started event"
    ),
    ErrorCode.E103: (
        "Clock went backwards while timing an example",
        "Use a monotonic clock such as time.perf_counter"
    ),
    ErrorCode.E104: (
        "Event stream record is invalid: {details}",
        "Run 'streamreport validate --events <file>' to see all errors"
    ),
    ErrorCode.E105: (
        "Unknown event type: {details}",
        "Valid events: session_started, group_entered, example_started, "
        "example_finished, session_finished"
    ),
    ErrorCode.E106: (
        "Event out of order: {details}",
        "Events must follow session_started, groups/examples, session_finished"
    ),
    ErrorCode.E200: (
        "Report asset not found: {details}",
        "Check STREAMREPORT_DATADIR or reinstall the package"
    ),
    ErrorCode.E201: (
        "Fragment rendering failed: {details}",
        "Run with --verbose to see the full traceback"
    ),
    ErrorCode.E300: (
        "Output path not writable: {details}",
        "Check permissions or use a different --out path"
    ),
    ErrorCode.E301: (
        "Event stream file not found: {details}",
        "Check the --events path"
    ),
    ErrorCode.E302: (
        "Cannot read file: {details}",
        "Check file permissions and path"
    ),
}


def make_error(code: ErrorCode, details: Optional[str] = None) -> ReportErrorInfo:
    """Create a ReportErrorInfo from a code with optional details.

    Args:
        code: The error code
        details: Optional details to include in the message

    Returns:
        ReportErrorInfo instance ready to print
    """
    template = ERROR_TEMPLATES.get(code, ("Unknown error", "Run with --verbose"))
    message_template, next_step = template

    # Format message with details if present
    if details and "{details}" in message_template:
        message = message_template.format(details=details)
    elif details:
        message = f"{message_template}: {details}"
    else:
        message = message_template.replace(": {details}", "")

    return ReportErrorInfo(
        code=code,
        message=message,
        next_step=next_step,
        details=details if "{details}" not in message_template else None,
    )


class StreamReportError(Exception):
    """Base class for errors raised by streamreport.

    Attributes:
        code: Registry code describing the failure.
        details: Free-form details substituted into the message template.
    """

    default_code: ErrorCode = ErrorCode.E201

    def __init__(self, details: Optional[str] = None, code: Optional[ErrorCode] = None) -> None:
        self.code = code or self.default_code
        self.details = details
        self.info = make_error(self.code, details)
        super().__init__(f"SR-{self.code.value}: {self.info.message}")


class ProtocolError(StreamReportError):
    """The host engine broke the event contract.

    Raised for ledger underflow, invalid nesting depths and events
    delivered out of order.
    """

    default_code = ErrorCode.E102


class EventStreamError(StreamReportError):
    """A recorded event stream could not be parsed."""

    default_code = ErrorCode.E104

    def __init__(
        self,
        details: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        line_number: Optional[int] = None,
    ) -> None:
        self.line_number = line_number
        if line_number is not None and details:
            details = f"line {line_number}: {details}"
        super().__init__(details, code)


class ConfigError(StreamReportError):
    """Configuration could not be loaded or is invalid."""

    default_code = ErrorCode.E004


class AssetError(StreamReportError):
    """A stylesheet, script or image asset is missing."""

    default_code = ErrorCode.E200


def error_exit(code: ErrorCode, details: Optional[str] = None, exit_code: int = 1) -> None:
    """Print an error and exit with the specified code.

    Args:
        code: The error code
        details: Optional details
        exit_code: Exit code (default: 1)
    """
    err = make_error(code, details)
    err.print()
    sys.exit(exit_code)


# Verbose mode flag (set by CLI)
_verbose_mode: bool = False


def set_verbose(verbose: bool) -> None:
    """Set verbose mode for error output."""
    global _verbose_mode
    _verbose_mode = verbose


def is_verbose() -> bool:
    """Check if verbose mode is enabled."""
    return _verbose_mode


def handle_exception(exc: Exception, code: Optional[ErrorCode] = None, details: Optional[str] = None) -> None:
    """Handle an exception with proper error formatting.

    In verbose mode, prints the full traceback.
    Otherwise, prints a formatted error message. Library exceptions
    supply their own code when none is given.

    Args:
        exc: The exception that occurred
        code: The error code to use
        details: Optional additional details
    """
    import traceback

    if isinstance(exc, StreamReportError) and code is None:
        err = exc.info
    else:
        err = make_error(code or ErrorCode.E201, details or str(exc))
    err.print()

    if _verbose_mode:
        print("\n--- Full Traceback ---", file=sys.stderr)
        traceback.print_exception(type(exc), exc, exc.__traceback__)
