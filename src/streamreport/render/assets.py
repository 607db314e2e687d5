"""Stylesheet, script and image inlining for the HTML report.

Assets live under the data directory (``css/``, ``js/``) and are read
once per loader; repeated requests return the cached text.
"""
from __future__ import annotations

import base64
import mimetypes
import re
from pathlib import Path

from streamreport.errors import AssetError

_CSS_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_BLANK_LINE_RE = re.compile(r"^[ \t]*\n", re.MULTILINE)
_CSS_URL_RE = re.compile(r"url\(\s*['\"]?([^'\")]+?)['\"]?\s*\)")


def compress_css(css: str) -> str:
    """Strip comments and blank lines."""
    return _BLANK_LINE_RE.sub("", _CSS_COMMENT_RE.sub("", css))


def data_uri(path: Path) -> str:
    """Encode a file as a base64 data URI."""
    mime_type, _ = mimetypes.guess_type(path.name)
    if mime_type is None:
        mime_type = f"image/{path.suffix.lstrip('.').lower()}"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


class AssetLoader:
    """Loads report assets from ``datadir`` with caching."""

    def __init__(self, datadir: Path) -> None:
        self.datadir = Path(datadir)
        self._cache: dict[tuple[str, str], str] = {}

    def _read(self, subdir: str, filename: str) -> str:
        path = self.datadir / subdir / filename
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise AssetError(str(path)) from e

    def inline_urls(self, css: str) -> str:
        """Replace ``url(file)`` references with data URIs.

        Absolute URLs and existing data URIs are left alone.
        """

        def _replace(match: re.Match[str]) -> str:
            target = match.group(1)
            if re.match(r"^(?:data:|[a-z]+://|#)", target):
                return match.group(0)
            path = self.datadir / "css" / target
            if not path.exists():
                raise AssetError(str(path))
            return f"url({data_uri(path)})"

        return _CSS_URL_RE.sub(_replace, css)

    def css(self, filename: str) -> str:
        key = ("css", filename)
        if key not in self._cache:
            self._cache[key] = compress_css(self.inline_urls(self._read("css", filename)))
        return self._cache[key]

    def js(self, filename: str) -> str:
        key = ("js", filename)
        if key not in self._cache:
            self._cache[key] = "\n//<![CDATA[\n" + self._read("js", filename) + "\n//]]>"
        return self._cache[key]
