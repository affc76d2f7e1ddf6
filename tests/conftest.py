"""Shared fixtures for termpreview tests."""

import io

import pytest
from PIL import Image as PILImage

DETECTION_VARS = (
    "KITTY_WINDOW_ID",
    "TERM",
    "TERM_PROGRAM",
    "ITERM_SESSION_ID",
    "KONSOLE_VERSION",
    "WT_SESSION",
    "SIXEL_PREVIEW",
    "PREVIEW_DEBUG",
    "KITTY_PREVIEW_COLS",
    "KITTY_PREVIEW_ROWS",
)


class FailingStream(io.BytesIO):
    """BytesIO whose writes raise OSError on the given (0-based) write calls."""

    def __init__(self, fail_on=None):
        super().__init__()
        self.fail_on = fail_on  # None fails every write
        self.calls = 0

    def write(self, data):
        call = self.calls
        self.calls += 1
        if self.fail_on is None or call in self.fail_on:
            raise OSError("broken pipe")
        return super().write(data)


class BrokenTerminal(io.BytesIO):
    """BytesIO with a real-looking file descriptor whose flush fails."""

    def fileno(self):
        return 1

    def flush(self):
        raise BrokenPipeError("broken pipe")


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the probe and settings read."""
    for name in DETECTION_VARS:
        # setenv first so the original state is restored even for unset names
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


@pytest.fixture
def stream():
    return io.BytesIO()


@pytest.fixture
def png_bytes():
    """A small real PNG."""
    out = io.BytesIO()
    PILImage.new("RGB", (8, 8), (200, 30, 30)).save(out, format="PNG")
    return out.getvalue()
