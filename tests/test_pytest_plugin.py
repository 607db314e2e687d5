"""Tests for the pytest plugin, run against throwaway test suites."""
from __future__ import annotations

from pathlib import Path

import pytest

from streamreport.config import ReportConfig
from streamreport.pytest_plugin import WebKitReportPlugin, _example_name, nodeid_chain
from streamreport.render.html import HtmlRenderer

PLUGIN_ARGS = ("-p", "streamreport.pytest_plugin")

SUITE = """
    import logging
    import pytest

    def add(a, b):
        return a + b

    def test_adds():
        assert add(1, 2) == 3

    def test_adds_negatives():
        assert add(-1, -2) == 3

    @pytest.mark.skip(reason="not ready")
    def test_divides():
        pass

    @pytest.mark.xfail(reason="rounding", strict=True)
    def test_rounds():
        pass

    class TestFormatter:
        def test_pads(self):
            logging.getLogger("formatter").warning("width=8")

        class TestUnicode:
            def test_wide_chars(self):
                pass

        def test_truncates(self):
            pass
"""


@pytest.fixture(autouse=True)
def isolated_plugins(monkeypatch: pytest.MonkeyPatch) -> None:
    """Load the plugin only through -p, never through entry points."""
    monkeypatch.setenv("PYTEST_DISABLE_PLUGIN_AUTOLOAD", "1")


@pytest.fixture
def report_run(pytester: pytest.Pytester) -> tuple[pytest.RunResult, str]:
    pytester.makepyfile(test_calc=SUITE)
    report = pytester.path / "out" / "report.html"
    result = pytester.runpytest(*PLUGIN_ARGS, f"--webkit-report={report}", "--webkit-report-title=Calc suite")
    return result, report.read_text(encoding="utf-8")


class TestReportGeneration:
    """Tests for a full run writing an HTML report."""

    def test_pytest_outcomes_unchanged(self, report_run: tuple[pytest.RunResult, str]) -> None:
        result, _ = report_run
        result.assert_outcomes(passed=4, failed=2, skipped=1)
        result.stdout.fnmatch_lines(["*generated html report:*report.html*"])

    def test_document(self, report_run: tuple[pytest.RunResult, str]) -> None:
        _, html = report_run

        assert "<title>Calc suite</title>" in html
        assert "Running 7 examples&hellip;" in html
        assert html.rstrip().endswith("</html>")
        assert html.count('<section class="example-group">') == html.count("</section>")

    def test_groups_follow_modules_and_classes(self, report_run: tuple[pytest.RunResult, str]) -> None:
        _, html = report_run
        markers = [line for line in html.splitlines() if line.startswith("<!-- nesting:")]

        # module, TestFormatter, TestUnicode, then TestFormatter again
        assert markers == [
            "<!-- nesting: 1 -->",
            "<!-- nesting: 2 -->",
            "<!-- nesting: 3 -->",
            "<!-- nesting: 2 -->",
        ]
        assert ">test_calc.py</dt>" in html
        assert ">TestUnicode</dt>" in html

    def test_failure_snippet(self, report_run: tuple[pytest.RunResult, str]) -> None:
        _, html = report_run

        assert 'id="failure-1"' in html
        assert "assert add(-1, -2) == 3</span>" in html
        assert "_pytest" not in html.split('id="failure-1"')[1].split("</dd>")[0]

    def test_skip_is_pending(self, report_run: tuple[pytest.RunResult, str]) -> None:
        _, html = report_run
        assert "(PENDING: not ready)" in html

    def test_strict_xpass_is_pending_fixed(self, report_run: tuple[pytest.RunResult, str]) -> None:
        _, html = report_run
        assert 'class="example pending-fixed"' in html
        assert "Expected pending example to fail. No error was raised." in html

    def test_captured_logs(self, report_run: tuple[pytest.RunResult, str]) -> None:
        _, html = report_run
        assert "width=8" in html.split(">test_pads<")[1].split("</dd>")[0]

    def test_summary(self, report_run: tuple[pytest.RunResult, str]) -> None:
        _, html = report_run
        assert "7 examples, 2 failures, 1 pending in" in html


class TestPluginOptions:
    """Tests for option handling and edge cases."""

    def test_no_report_without_option(self, pytester: pytest.Pytester) -> None:
        pytester.makepyfile("def test_ok(): pass")
        result = pytester.runpytest(*PLUGIN_ARGS)

        result.assert_outcomes(passed=1)
        assert "generated html report" not in result.stdout.str()

    def test_setup_error_is_failure(self, pytester: pytest.Pytester) -> None:
        pytester.makepyfile("""
            import pytest

            @pytest.fixture
            def db():
                raise RuntimeError("no database")

            def test_query(db):
                pass
        """)
        report = pytester.path / "report.html"
        result = pytester.runpytest(*PLUGIN_ARGS, f"--webkit-report={report}")

        result.assert_outcomes(errors=1)
        html = report.read_text(encoding="utf-8")
        assert 'class="example failed"' in html
        assert "RuntimeError: no database" in html

    def test_non_strict_xpass(self, pytester: pytest.Pytester) -> None:
        pytester.makepyfile("""
            import pytest

            @pytest.mark.xfail(reason="flaky")
            def test_lucky():
                pass

            @pytest.mark.xfail(reason="known bug")
            def test_unlucky():
                assert False
        """)
        report = pytester.path / "report.html"
        pytester.runpytest(*PLUGIN_ARGS, f"--webkit-report={report}")

        html = report.read_text(encoding="utf-8")
        assert 'class="example pending-fixed"' in html
        assert "(PENDING: xfail: known bug)" in html

    def test_config_file(self, pytester: pytest.Pytester) -> None:
        pytester.makepyfile("def test_ok(): pass")
        config = pytester.path / "report.yaml"
        config.write_text("title: From file\nshow_runtime: false\n", encoding="utf-8")
        report = pytester.path / "report.html"

        pytester.runpytest(*PLUGIN_ARGS, f"--webkit-report={report}", f"--webkit-report-config={config}")

        html = report.read_text(encoding="utf-8")
        assert "<title>From file</title>" in html
        assert 'class="duration"' not in html

    def test_empty_suite(self, pytester: pytest.Pytester) -> None:
        report = pytester.path / "report.html"
        pytester.runpytest(*PLUGIN_ARGS, f"--webkit-report={report}")

        html = report.read_text(encoding="utf-8")
        assert "0 examples, 0 failures, 0 pending" in html


def test_report_path_created(pytester: pytest.Pytester) -> None:
    pytester.makepyfile("def test_ok(): pass")
    report = Path(pytester.path) / "deep" / "nested" / "report.html"
    pytester.runpytest(*PLUGIN_ARGS, f"--webkit-report={report}")
    assert report.exists()


class TestWithoutCollectedItems:
    """Reports arriving with no collected items, as on an xdist controller."""

    @pytest.fixture
    def controller_html(self, pytester: pytest.Pytester) -> str:
        pytester.makepyfile(test_calc=SUITE)
        reprec = pytester.inline_run()
        # serialize like xdist does between worker and controller
        reports = [
            pytest.TestReport._from_json(report._to_json())
            for report in reprec.getreports("pytest_runtest_logreport")
        ]

        path = pytester.path / "controller.html"
        config = ReportConfig(title="Controller")
        plugin = WebKitReportPlugin(path, HtmlRenderer(config), config)
        nodeids = list(dict.fromkeys(report.nodeid for report in reports))
        plugin.pytest_xdist_node_collection_finished(node=None, ids=nodeids)
        for nodeid in nodeids:
            plugin.pytest_runtest_logstart(nodeid, None)
            for report in reports:
                if report.nodeid == nodeid:
                    plugin.pytest_runtest_logreport(report)
            plugin.pytest_runtest_logfinish(nodeid, None)
        plugin.pytest_sessionfinish(session=None)
        return path.read_text(encoding="utf-8")

    def test_totals(self, controller_html: str) -> None:
        assert "Running 7 examples&hellip;" in controller_html
        assert "7 examples, 2 failures, 1 pending in" in controller_html

    def test_groups_from_node_ids(self, controller_html: str) -> None:
        markers = [line for line in controller_html.splitlines() if line.startswith("<!-- nesting:")]
        assert markers == [
            "<!-- nesting: 1 -->",
            "<!-- nesting: 2 -->",
            "<!-- nesting: 3 -->",
            "<!-- nesting: 2 -->",
        ]
        assert ">test_calc.py</dt>" in controller_html
        assert ">TestUnicode</dt>" in controller_html
        assert '<span class="description">test_wide_chars</span>' in controller_html

    def test_failure_from_representation(self, controller_html: str) -> None:
        failure = controller_html.split('id="failure-1"')[1].split("</dd>")[0]

        assert "AssertionError: assert" in failure
        assert 'class="backtrace"' in failure
        assert "test_calc.py:" in failure
        assert "assert add(-1, -2) == 3</span>" in failure

    def test_pending_and_pending_fixed(self, controller_html: str) -> None:
        assert "(PENDING: not ready)" in controller_html
        assert 'class="example pending-fixed"' in controller_html

    def test_logs(self, controller_html: str) -> None:
        assert controller_html.count("width=8") == 1


def test_example_name_keeps_params() -> None:
    assert _example_name("test_calc.py::TestA::test_b[x::y]") == "test_b[x::y]"
    assert nodeid_chain("test_calc.py::TestA::test_b[x::y]") == [
        ("test_calc.py", "test_calc.py"),
        ("test_calc.py::TestA", "TestA"),
    ]


def test_xdist_run(pytester: pytest.Pytester) -> None:
    pytest.importorskip("xdist")
    pytester.makepyfile(test_calc="""
        def test_ok():
            assert 1 + 1 == 2

        def test_broken():
            assert 1 + 1 == 3
    """)
    report = pytester.path / "r.html"
    result = pytester.runpytest(*PLUGIN_ARGS, "-p", "xdist.plugin", "-n", "2", f"--webkit-report={report}")

    result.assert_outcomes(passed=1, failed=1)
    html = report.read_text(encoding="utf-8")
    assert 'class="example failed"' in html
    assert "2 examples, 1 failure, 0 pending" in html


def test_user_directory_named_unittest(pytester: pytest.Pytester) -> None:
    (pytester.path / "tests" / "unittest").mkdir(parents=True)
    (pytester.path / "tests" / "unittest" / "test_calc.py").write_text(
        "def test_adds():\n"
        "    total = 1 + 1\n"
        "    assert total == 3\n",
        encoding="utf-8",
    )
    report = pytester.path / "r.html"
    pytester.runpytest(*PLUGIN_ARGS, f"--webkit-report={report}", "tests/unittest")

    html = report.read_text(encoding="utf-8")
    assert 'class="backtrace"' in html
    assert '<pre class="python">' in html
    assert "assert total == 3</span>" in html


def test_legacy_no_runtime_any_value(pytester: pytest.Pytester, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NO_RUNTIME", "yes please")
    pytester.makepyfile("def test_ok(): pass")
    report = pytester.path / "r.html"

    result = pytester.runpytest(*PLUGIN_ARGS, f"--webkit-report={report}")

    assert result.ret == pytest.ExitCode.OK
    assert 'class="duration"' not in report.read_text(encoding="utf-8")
