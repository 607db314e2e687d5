"""HTML renderer for the streaming report.

The document is written in pieces as the run progresses:

    header                      once, at session start
    <section> ... <dl> <dt>     per group opened
    <dd class="example ...">    per finished example
    </dl> </section>            per group closed
    footer                      once, at session end

Groups nested below the top level are wrapped in
``<dd class="nested-group">`` inside their parent's ``<dl>``. A document
cut off mid-run is still readable by a browser.
"""
from __future__ import annotations

import html
import json
import os
from typing import Optional, Pattern

from streamreport.config import ReportConfig
from streamreport.core.diagnostics import FailureDiagnostic, Frame, compile_exclude_pattern
from streamreport.core.nesting import OpKind, StructuralOp
from streamreport.core.outcome import FailureInfo, Outcome
from streamreport.render.assets import AssetLoader
from streamreport.render.base import ExampleFragment, SummaryFragment

STYLESHEET = "report.css"
SCRIPT = "report.js"

_OUTCOME_CLASSES = {
    Outcome.PASSED: "passed",
    Outcome.FAILED: "failed",
    Outcome.PENDING: "pending",
    Outcome.PENDING_FIXED: "pending-fixed",
}


def format_run_time(seconds: float) -> str:
    """Format an example duration: ms below 1s, s up to a minute, m above."""
    seconds = float(seconds)
    if seconds > 60.0:
        return f"({round(seconds / 60.0, 2)} m)"
    if seconds > 1.0:
        return f"({round(seconds, 2)} s)"
    return f"({round(seconds * 1000.0, 2)} ms)"


def _pluralize(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


class HtmlRenderer:
    """WebKit-style HTML report renderer.

    Args:
        config: Report options; defaults are used when omitted.
        assets: Asset loader; built from ``config.datadir`` when omitted.
    """

    def __init__(self, config: Optional[ReportConfig] = None, assets: Optional[AssetLoader] = None) -> None:
        self.config = config or ReportConfig()
        self.assets = assets or AssetLoader(self.config.datadir)
        self.exclude_pattern: Pattern[str] = compile_exclude_pattern(self.config.exclude_pattern)

    # -- document ---------------------------------------------------------

    def header(self, example_count: int) -> str:
        title = html.escape(self.config.title)
        return f'''<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>
{self.assets.css(STYLESHEET)}
  </style>
  <script>{self.assets.js(SCRIPT)}
  </script>
</head>
<body>
<header id="header">
  <div>
    <h1>{title}</h1>
    <p id="totals">Running {_pluralize(example_count, "example")}&hellip;</p>
  </div>
  <button id="failures-only" class="filter-btn" type="button">Failures only</button>
</header>
<div id="results">
'''

    def footer(self, summary: SummaryFragment) -> str:
        totals = (
            f"{_pluralize(summary.example_count, 'example')}, "
            f"{_pluralize(summary.failure_count, 'failure')}, "
            f"{summary.pending_count} pending"
        )
        text = f"{totals} in {summary.duration:.3f} seconds"
        failed = "true" if summary.failure_count else "false"
        return f'''</div>
<footer>
  <p id="summary">{html.escape(text)}</p>
</footer>
<script>updateTotals({json.dumps(text)}, {failed});</script>
</body>
</html>
'''

    # -- structure --------------------------------------------------------

    def open_group(self, op: StructuralOp) -> str:
        group = op.group
        if group is None:
            raise ValueError("open_group requires an op carrying a group")

        lines = [f"<!-- nesting: {op.depth} -->"]
        if op.kind is OpKind.OPEN_TOP:
            lines.append('<section class="example-group">')
        else:
            lines.append('<dd class="nested-group"><section class="example-group">')
        lines.append(f'<a name="{html.escape(group.anchor)}"></a>')
        lines.append("  <dl>")
        lines.append(f'  <dt id="{html.escape(group.identifier)}">{html.escape(group.description)}</dt>')
        return "\n".join(lines) + "\n"

    def close_group(self, op: StructuralOp) -> str:
        lines = ["  </dl>", "</section>"]
        if op.depth != 1:
            lines.append("  </dd>")
        return "\n".join(lines) + "\n"

    # -- examples ---------------------------------------------------------

    def elapsed(self, seconds: float) -> str:
        if not self.config.show_runtime:
            return ""
        return format_run_time(seconds)

    def example(self, fragment: ExampleFragment) -> str:
        css_class = _OUTCOME_CLASSES[fragment.outcome]
        attrs = f'class="example {css_class}" id="example-{fragment.example_number}"'
        parts = [
            f"<dd {attrs}>",
            f'  <span class="description">{html.escape(fragment.description)}</span>',
        ]

        duration = self.elapsed(fragment.elapsed)
        if duration:
            parts.append(f'  <span class="duration">{duration}</span>')

        if fragment.outcome is Outcome.PENDING:
            message = fragment.pending_message or "Not yet implemented"
            parts.append(f'  <span class="pending-message">(PENDING: {html.escape(message)})</span>')
        elif fragment.outcome in (Outcome.FAILED, Outcome.PENDING_FIXED):
            parts.append(self.failure_block(fragment))

        if fragment.log_messages:
            parts.append(self.log_block(fragment.log_messages))

        parts.append("</dd>")
        return "\n".join(parts) + "\n"

    def example_fallback(self, fragment: ExampleFragment) -> str:
        """Minimal fragment used when the full one could not be rendered."""
        css_class = _OUTCOME_CLASSES[fragment.outcome]
        return (
            f'<dd class="example {css_class}" id="example-{fragment.example_number}">'
            f'<span class="description">{html.escape(fragment.description)}</span></dd>\n'
        )

    def failure_block(self, fragment: ExampleFragment) -> str:
        failure = fragment.failure or FailureInfo()
        anchor = f"failure-{fragment.failure_number}" if fragment.failure_number else "failure"

        if fragment.outcome is Outcome.PENDING_FIXED:
            message = "Expected pending example to fail. No error was raised."
            if failure.message:
                message = f"{message} {failure.message}"
        elif failure.exception_class:
            message = f"{failure.exception_class}: {failure.message}"
        else:
            message = failure.message or "Failed"

        lines = [
            f'  <div class="failure" id="{anchor}">',
            f'    <div class="message"><pre>{html.escape(message)}</pre></div>',
        ]
        backtrace = self.backtrace_block(failure.frames)
        if backtrace:
            lines.append(backtrace)
        if fragment.diagnostic is not None and fragment.diagnostic.has_snippet:
            lines.append(self.snippet_block(fragment.diagnostic))
        lines.append("  </div>")
        return "\n".join(lines)

    def backtrace_line(self, frame: Frame) -> Optional[str]:
        """Format one frame with an editor link, or None if excluded."""
        if self.exclude_pattern.search(str(frame)):
            return None

        location = html.escape(f"{frame.path}:{frame.lineno}", quote=False)
        if frame.path.endswith(".py"):
            url = self.config.editor_url_template.format(path=os.path.abspath(frame.path), line=frame.lineno)
            location = f'<a href="{html.escape(url)}">{location}</a>'
        if frame.function:
            return f"{location} in {html.escape(frame.function, quote=False)}"
        return location

    def backtrace_block(self, frames: list[Frame]) -> str:
        items = [line for line in (self.backtrace_line(f) for f in frames) if line]
        if not items:
            return ""
        body = "\n".join(f"        <li>{item}</li>" for item in items)
        return f'    <div class="backtrace">\n      <ol>\n{body}\n      </ol>\n    </div>'

    def snippet_block(self, diagnostic: FailureDiagnostic) -> str:
        rows = []
        for line in diagnostic.snippet:
            text = f'<span class="linenum">{line.lineno}</span>{html.escape(line.text)}'
            if line.is_focus:
                text = f'<span class="offending">{text}</span>'
            rows.append(text)
        return '    <pre class="python"><code>' + "\n".join(rows) + "</code></pre>"

    def log_block(self, messages: tuple[str, ...]) -> str:
        items = "\n".join(f"    <li>{html.escape(m)}</li>" for m in messages)
        return f'  <ul class="log-messages">\n{items}\n  </ul>'
