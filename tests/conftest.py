"""streamreport test configuration and fixtures."""
from __future__ import annotations

import io
import sys
from pathlib import Path
from typing import Callable

import pytest

# Add src to path for imports
SRC_DIR = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_DIR))

from streamreport.config import ReportConfig  # noqa: E402
from streamreport.render.html import HtmlRenderer  # noqa: E402
from streamreport.session import ReportSession  # noqa: E402


class FakeClock:
    """Manually advanced clock for deterministic durations."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def examples_dir() -> Path:
    """Return the path to the examples directory."""
    return Path(__file__).parent.parent / "examples"


@pytest.fixture
def sample_stream_path(examples_dir: Path) -> Path:
    """Return the path to calculator.jsonl."""
    return examples_dir / "calculator.jsonl"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def report_config() -> ReportConfig:
    return ReportConfig(title="Unit Report")


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def html_session(report_config: ReportConfig, output: io.StringIO, clock: FakeClock) -> ReportSession:
    """A session writing HTML into an in-memory stream."""
    return ReportSession(HtmlRenderer(report_config), output, report_config, clock=clock)


@pytest.fixture
def write_source(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a source file under tmp_path and return its path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
