"""Report renderers."""
from __future__ import annotations

from streamreport.render.base import ExampleFragment, Renderer, SummaryFragment
from streamreport.render.html import HtmlRenderer, format_run_time

__all__ = [
    "ExampleFragment",
    "HtmlRenderer",
    "Renderer",
    "SummaryFragment",
    "format_run_time",
]
