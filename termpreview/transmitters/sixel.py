"""
Sixel transmitter.

There is no Sixel encoder here: the PNG is piped to an external renderer
(``img2sixel``, then ``chafa``) whose output goes straight to the terminal.
If neither renderer works the bitmap is sent as an OSC 1337 inline image as
a last resort, which many terminals silently ignore.

Without a timeout a hung renderer blocks the caller indefinitely.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import BinaryIO, Optional

from ..config import TRAILING_LINES
from ..errors import PreviewError, SubprocessFailed, SubprocessUnavailable
from ..models import Bitmap, Protocol
from . import Transmitter
from .inline import inline_sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Renderer:
    """An external command that reads PNG on stdin and draws it on stdout."""

    command: str
    args: tuple = ()

    def argv(self, executable: str) -> list[str]:
        return [executable, *self.args]


RENDERERS = (
    Renderer("img2sixel", ("-",)),
    Renderer("chafa", ("--fill=block", "--symbols=block", "-s", "auto", "-")),
)


class SixelTransmitter(Transmitter):
    """Renders PNG bitmaps through external Sixel-capable tools."""

    protocol = Protocol.SIXEL

    def __init__(
        self,
        stream: Optional[BinaryIO] = None,
        renderers: tuple = RENDERERS,
        timeout: Optional[float] = None,
        inline_fallback: bool = True,
        trailing_lines: int = TRAILING_LINES,
    ):
        super().__init__(stream)
        self.renderers = renderers
        self.timeout = timeout
        self.inline_fallback = inline_fallback
        self.trailing_lines = trailing_lines

    def _stream_fd(self) -> Optional[int]:
        try:
            return self.stream.fileno()
        except (OSError, ValueError, AttributeError):
            return None

    def _run(self, renderer: Renderer, bitmap: Bitmap) -> None:
        """Run one renderer, sending its stdout to the terminal.

        Raises:
            SubprocessUnavailable: If the tool is not on PATH or won't start
            SubprocessFailed: If it exits non-zero or times out
        """
        executable = shutil.which(renderer.command)
        if not executable:
            raise SubprocessUnavailable(f"{renderer.command} not found on PATH")

        fd = self._stream_fd()
        if fd is not None:
            # Anything we buffered must reach the terminal before the tool writes
            self._flush()

        try:
            result = subprocess.run(
                renderer.argv(executable),
                input=bitmap.data,
                stdout=fd if fd is not None else subprocess.PIPE,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise SubprocessFailed(f"{renderer.command} timed out after {self.timeout}s") from e
        except OSError as e:
            raise SubprocessUnavailable(f"{renderer.command} could not be started: {e}") from e

        if result.returncode != 0:
            raise SubprocessFailed(f"{renderer.command} exited with status {result.returncode}")

        if fd is None and result.stdout:
            self._write(result.stdout)

    def send(self, bitmap: Bitmap) -> None:
        self._check(bitmap)
        logger.debug(f"sixel: rendering {len(bitmap)} bytes via external tools")

        last_error: Optional[PreviewError] = None
        for renderer in self.renderers:
            try:
                self._run(renderer, bitmap)
            except (SubprocessUnavailable, SubprocessFailed) as e:
                logger.debug(f"sixel: {e}")
                last_error = e
                continue
            logger.debug(f"sixel: {renderer.command} succeeded")
            self._newlines(self.trailing_lines)
            return

        if not self.inline_fallback:
            raise last_error or SubprocessUnavailable("no sixel renderers configured")

        logger.debug("sixel: falling back to inline PNG sequence as last resort")
        self._write(inline_sequence(bitmap))
        self._newlines(self.trailing_lines)
