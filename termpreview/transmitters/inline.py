"""
iTerm2-style inline image transmitter (OSC 1337).

Many terminals implement a compatible inline-image OSC (iTerm2, WezTerm,
Warp, Tabby, VSCode, ...). Format:

    ESC ] 1337 ; File=inline=1;size=<n> : <base64> BEL

where ``size`` is the raw byte length, not the base64 length.
"""

import logging
from typing import BinaryIO, Optional

from ..config import TRAILING_LINES
from ..models import Bitmap, Protocol
from . import Transmitter, encode_payload

logger = logging.getLogger(__name__)


def inline_sequence(bitmap: Bitmap) -> bytes:
    header = f"\x1b]1337;File=inline=1;size={len(bitmap)}:"
    return header.encode("ascii") + encode_payload(bitmap).encode("ascii") + b"\x07"


class InlineOSCTransmitter(Transmitter):
    """Sends PNG bitmaps as a single OSC 1337 File sequence."""

    protocol = Protocol.INLINE

    def __init__(self, stream: Optional[BinaryIO] = None, trailing_lines: int = TRAILING_LINES):
        super().__init__(stream)
        self.trailing_lines = trailing_lines

    def send(self, bitmap: Bitmap) -> None:
        self._check(bitmap)
        logger.debug(f"inline: sending {len(bitmap)} bytes")
        written = self._write(inline_sequence(bitmap))
        logger.debug(f"inline: wrote {written} bytes to stream")

        # The protocol doesn't report the rendered height, so push the cursor
        # a fixed distance clear of the image.
        self._newlines(self.trailing_lines)
