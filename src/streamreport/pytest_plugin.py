"""pytest plugin writing a streaming HTML report.

Enable with ``pytest --webkit-report=report.html``.

Modules and test classes become groups; each test item becomes one
example. Outcomes map onto the report as follows:

==========================  ==============
pytest                      report
==========================  ==============
passed                      passed
failed (setup/call/teardown) failed
skipped, xfailed            pending
xpassed (strict or not)     pending fixed
==========================  ==============

Under pytest-xdist only the controller writes the report, from the
reports its workers send back.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import pytest

from streamreport.config import load_config
from streamreport.core.diagnostics import Frame
from streamreport.core.outcome import FailureInfo, FailureKind, Outcome
from streamreport.events import ExampleFinished
from streamreport.render.html import HtmlRenderer
from streamreport.session import ReportSession

logger = logging.getLogger(__name__)

PLUGIN_NAME = "streamreport-html"


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("streamreport", "streaming HTML report")
    group.addoption(
        "--webkit-report",
        action="store",
        dest="webkit_report",
        metavar="PATH",
        default=None,
        help="Write a streaming HTML test report to PATH.",
    )
    group.addoption(
        "--webkit-report-title",
        action="store",
        dest="webkit_report_title",
        default=None,
        help="Title of the HTML report.",
    )
    group.addoption(
        "--webkit-report-config",
        action="store",
        dest="webkit_report_config",
        metavar="FILE",
        default=None,
        help="YAML file with report options.",
    )


def pytest_configure(config: pytest.Config) -> None:
    path = config.getoption("webkit_report", None)
    # xdist workers report through the controller
    if not path or hasattr(config, "workerinput"):
        return
    report_config = load_config(
        config_file=config.getoption("webkit_report_config", None),
        cli_overrides={"title": config.getoption("webkit_report_title", None)},
    )
    plugin = WebKitReportPlugin(Path(path), HtmlRenderer(report_config), report_config)
    logger.debug("Writing HTML report to %s", path)
    config.pluginmanager.register(plugin, PLUGIN_NAME)


def pytest_unconfigure(config: pytest.Config) -> None:
    plugin = config.pluginmanager.get_plugin(PLUGIN_NAME)
    if plugin is not None:
        plugin.close()
        config.pluginmanager.unregister(plugin)


def group_chain(item: pytest.Item) -> list[tuple[str, str]]:
    """(node id, description) of module and class collectors containing ``item``, outermost first."""
    return [
        (node.nodeid, node.nodeid if isinstance(node, pytest.Module) else node.name)
        for node in item.listchain()
        if isinstance(node, (pytest.Module, pytest.Class))
    ]


def nodeid_chain(nodeid: str) -> list[tuple[str, str]]:
    """Same as ``group_chain`` but worked out from the node id alone.

    Used when reports arrive without collected items (xdist controller).
    """
    parts = nodeid.split("[", 1)[0].split("::")
    return [("::".join(parts[:n]), parts[0] if n == 1 else parts[n - 1]) for n in range(1, len(parts))]


class _PhaseClock:
    """Clock driven by the durations pytest measured for each phase."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@dataclass
class _ItemResult:
    """Outcome assembled from an item's setup, call and teardown reports."""

    outcome: Outcome = Outcome.PASSED
    failure: Optional[FailureInfo] = None
    pending_message: Optional[str] = None
    duration: float = 0.0
    log_lines: list[str] = field(default_factory=list)

    def record_failure(self, failure: FailureInfo) -> None:
        # first failure wins; teardown errors after a failed call are dropped
        if self.outcome is not Outcome.FAILED:
            self.outcome = Outcome.FAILED
            self.failure = failure
            self.pending_message = None

    def record_pending(self, message: Optional[str]) -> None:
        if self.outcome is Outcome.PASSED:
            self.outcome = Outcome.PENDING
            self.pending_message = message

    def record(self, report: pytest.TestReport) -> None:
        self.duration += getattr(report, "duration", 0.0) or 0.0
        if report.failed:
            if report.when == "call" and _is_strict_xpass(report):
                self.record_failure(FailureInfo(kind=FailureKind.PENDING_FIXED, message=str(report.longrepr)))
            else:
                self.record_failure(failure_from_report(report))
        elif report.skipped:
            reason = getattr(report, "wasxfail", None)
            if reason is not None:
                self.record_pending(f"xfail: {reason}" if reason else "xfail")
            else:
                self.record_pending(_skip_reason(report))
        elif report.when == "call" and hasattr(report, "wasxfail"):
            self.record_failure(FailureInfo(kind=FailureKind.PENDING_FIXED, message=report.wasxfail or ""))

        # later phase reports repeat earlier sections; keep this phase's only
        for name, content in report.sections:
            if name == f"Captured log {report.when}":
                self.log_lines.extend(content.splitlines())


class WebKitReportPlugin:
    """Translates pytest's run hooks into report session events.

    Outcomes are taken from ``pytest_runtest_logreport``, which also fires
    on an xdist controller for reports sent by its workers. Each example
    is written once its ``pytest_runtest_logfinish`` arrives.
    """

    def __init__(self, path: Path, renderer: HtmlRenderer, config) -> None:
        self.path = path
        self.renderer = renderer
        self.config = config
        self.session: Optional[ReportSession] = None
        self._stream = None
        self._clock = _PhaseClock()
        self._items: dict[str, pytest.Item] = {}
        self._results: dict[str, _ItemResult] = {}
        self._current_chain: list[str] = []
        self._start_time = time.time()

    # -- session ----------------------------------------------------------

    def _open(self, example_count: int) -> ReportSession:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._stream = self.path.open("w", encoding="utf-8")
        self.session = ReportSession(self.renderer, self._stream, self.config, clock=self._clock)
        self.session.session_started(example_count)
        return self.session

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def pytest_sessionstart(self, session: pytest.Session) -> None:
        self._start_time = time.time()

    def pytest_collection_finish(self, session: pytest.Session) -> None:
        self._items = {item.nodeid: item for item in session.items}
        if self.session is None:
            self._open(len(session.items))

    @pytest.hookimpl(optionalhook=True)
    def pytest_xdist_node_collection_finished(self, node, ids: list[str]) -> None:
        # every worker collects the full suite; the first one sets the count
        if self.session is None:
            self._open(len(ids))

    def pytest_sessionfinish(self, session: pytest.Session) -> None:
        if self.session is None:
            self._open(0)
        summary = self.session.summary
        self.session.session_finished(
            duration=time.time() - self._start_time,
            example_count=summary.example_count,
            failure_count=summary.failure_count,
            pending_count=summary.count(Outcome.PENDING),
        )
        self.close()

    def pytest_terminal_summary(self, terminalreporter) -> None:
        terminalreporter.write_sep("-", f"generated html report: {self.path}")

    # -- groups -----------------------------------------------------------

    def _enter_groups(self, chain: list[tuple[str, str]]) -> None:
        ids = [node_id for node_id, _ in chain]

        common = 0
        for old, new in zip(self._current_chain, ids):
            if old != new:
                break
            common += 1
        if common == len(ids) and len(ids) < len(self._current_chain) and ids:
            # back in a parent after a nested class: reopen the parent
            common -= 1
        for depth, (node_id, description) in enumerate(chain[common:], start=common + 1):
            self.session.group_entered(depth, description, node_id)
        self._current_chain = ids

    # -- examples ---------------------------------------------------------

    def pytest_runtest_logstart(self, nodeid: str, location) -> None:
        self._results[nodeid] = _ItemResult()

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        self._results.setdefault(report.nodeid, _ItemResult()).record(report)

    def pytest_runtest_logfinish(self, nodeid: str, location) -> None:
        result = self._results.pop(nodeid, None)
        if result is None:
            return
        if self.session is None:
            self._open(0)

        item = self._items.get(nodeid)
        if item is not None:
            self._enter_groups(group_chain(item))
            description = item.name
        else:
            self._enter_groups(nodeid_chain(nodeid))
            description = _example_name(nodeid)

        self._clock.now = 0.0
        self.session.example_started(nodeid, description)
        self.session.log_sink.extend(result.log_lines)
        self._clock.now = result.duration
        self.session.example_finished(ExampleFinished(
            example_id=nodeid,
            outcome=result.outcome,
            failure=result.failure,
            pending_message=result.pending_message,
        ))


def failure_from_report(report: pytest.TestReport) -> FailureInfo:
    """Build a failure record from a report's exception representation.

    Works on reports deserialized from xdist workers, where no traceback
    object exists: frames come from the representation's file locations.
    """
    longrepr = report.longrepr
    reprtraceback = getattr(longrepr, "reprtraceback", None)
    if reprtraceback is None:
        return FailureInfo(message=report.longreprtext)

    frames: list[Frame] = []
    exception_class = None
    for entry in reprtraceback.reprentries:
        fileloc = getattr(entry, "reprfileloc", None)
        if fileloc is not None:
            frames.append(Frame(path=str(fileloc.path), lineno=fileloc.lineno))
            # long style puts the exception type on the last entry, short style "in <name>"
            if fileloc.message and not fileloc.message.startswith("in "):
                exception_class = fileloc.message
        else:
            # --tb=native entries hold formatted traceback text
            for chunk in getattr(entry, "lines", ()):
                for line in chunk.splitlines():
                    if line.strip().startswith('File "'):
                        frame = Frame.parse(line)
                        if frame is not None:
                            frames.append(frame)

    reprcrash = getattr(longrepr, "reprcrash", None)
    message = reprcrash.message if reprcrash is not None else report.longreprtext
    if exception_class and message.startswith(f"{exception_class}: "):
        message = message[len(exception_class) + 2:]
    return FailureInfo(
        kind=FailureKind.FAILURE,
        exception_class=exception_class,
        message=message,
        frames=frames,
    )


def _example_name(nodeid: str) -> str:
    head, bracket, params = nodeid.partition("[")
    return head.rsplit("::", 1)[-1] + bracket + params


def _is_strict_xpass(report: pytest.TestReport) -> bool:
    return isinstance(report.longrepr, str) and report.longrepr.startswith("[XPASS(strict)]")


def _skip_reason(report: pytest.TestReport) -> Optional[str]:
    longrepr = report.longrepr
    if isinstance(longrepr, (tuple, list)) and len(longrepr) == 3:
        reason = str(longrepr[2])
        return reason[len("Skipped: "):] if reason.startswith("Skipped: ") else reason
    return None
