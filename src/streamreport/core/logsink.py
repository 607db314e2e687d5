"""Per-example log capture.

The session owns one ``LogSink`` and clears it whenever an example starts.
Messages collected while the example runs are handed to the renderer with
that example's fragment. ``SinkHandler`` lets code that uses the standard
``logging`` module feed the same sink.
"""
from __future__ import annotations

import logging
from typing import Iterable


class LogSink:
    """Messages logged during the current example."""

    def __init__(self) -> None:
        self._messages: list[str] = []

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: str) -> None:
        self._messages.append(message)

    def extend(self, messages: Iterable[str]) -> None:
        self._messages.extend(messages)

    def clear(self) -> None:
        self._messages.clear()

    @property
    def messages(self) -> tuple[str, ...]:
        return tuple(self._messages)


class SinkHandler(logging.Handler):
    """Logging handler that appends formatted records to a ``LogSink``."""

    def __init__(self, sink: LogSink, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.sink = sink
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.sink.append(self.format(record))
        except Exception:
            self.handleError(record)
