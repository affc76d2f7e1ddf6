"""
Diagnostic tracing for preview calls.

A trace sink is any callable taking ``(state, message)``. The orchestrator is
given one at construction; the default discards everything.
"""

import logging
from typing import Callable

from rich.console import Console
from rich.logging import RichHandler

from .models import PreviewState

TraceSink = Callable[[PreviewState, str], None]

TRACE_LOGGER_NAME = "termpreview.trace"


def null_trace(state: PreviewState, message: str) -> None:
    pass


class LoggingTrace:
    """Forwards trace events to the ``termpreview.trace`` logger at DEBUG."""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger(TRACE_LOGGER_NAME)

    def __call__(self, state: PreviewState, message: str) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(f"preview: [{state.value}] {message}")


class RecordingTrace:
    """Keeps trace events in memory, for `--debug` summaries and tests."""

    def __init__(self):
        self.events: list[tuple[PreviewState, str]] = []

    def __call__(self, state: PreviewState, message: str) -> None:
        self.events.append((state, message))

    @property
    def states(self) -> list[PreviewState]:
        return [state for state, _ in self.events]


def make_trace(debug: bool) -> TraceSink:
    """Pick a sink for the given debug flag."""
    return LoggingTrace() if debug else null_trace


def setup_logging(debug: bool = False) -> None:
    """Configure logging for the application.

    Log records go to stderr so they never interleave with image data on
    stdout.
    """
    level = logging.DEBUG if debug else logging.WARNING
    root = logging.getLogger("termpreview")
    root.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
