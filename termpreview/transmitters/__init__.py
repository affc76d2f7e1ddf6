"""
Transmitters that put a bitmap on the terminal for termpreview.
"""

import base64
import sys
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional

from ..errors import EmptyBitmap, WriteFailed
from ..models import Bitmap, Protocol


def default_stream() -> BinaryIO:
    """The terminal's binary stdout."""
    return sys.stdout.buffer


def encode_payload(bitmap: Bitmap) -> str:
    return base64.b64encode(bitmap.data).decode("ascii")


class Transmitter(ABC):
    """Abstract base class for protocol transmitters."""

    protocol: Protocol

    def __init__(self, stream: Optional[BinaryIO] = None):
        self.stream = stream if stream is not None else default_stream()

    @abstractmethod
    def send(self, bitmap: Bitmap) -> None:
        """Send a bitmap to the terminal.

        Args:
            bitmap: PNG bitmap to display

        Raises:
            EmptyBitmap: If the bitmap has no data (nothing is written)
            PreviewError: If transmission fails
        """
        pass

    def name(self) -> str:
        return self.protocol.value

    def _check(self, bitmap: Bitmap) -> None:
        if bitmap.is_empty:
            raise EmptyBitmap()

    def _write(self, data: bytes) -> int:
        """Write and flush raw bytes, mapping I/O errors to WriteFailed."""
        try:
            written = self.stream.write(data)
        except (OSError, ValueError) as e:
            raise WriteFailed(f"{self.name()} write failed: {e}") from e
        self._flush()
        return written if written is not None else len(data)

    def _flush(self) -> None:
        try:
            self.stream.flush()
        except (OSError, ValueError) as e:
            raise WriteFailed(f"{self.name()} flush failed: {e}") from e

    def _newlines(self, count: int) -> None:
        self._write(b"\n" * count)
