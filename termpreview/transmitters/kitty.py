"""
Kitty graphics protocol transmitter.

The PNG is sent as base64 inside APC sequences (``ESC _G ... ESC \\``),
split into chunks of at most 4096 characters. The first chunk carries the
control keys:

    a=T    transmit and display
    f=100  PNG payload
    t=d    payload is direct base64
    q=2    suppress terminal replies
    c, r   columns and rows to render over
    m      1 if more chunks follow, else 0

Continuation chunks carry only ``m``.
"""

import logging
from typing import BinaryIO, Iterator, Mapping, Optional

from ..config import DEFAULT_KITTY_COLS, DEFAULT_KITTY_ROWS, parse_positive_int
from ..errors import WriteFailed
from ..models import Bitmap, Protocol, TransmissionChunk
from . import Transmitter, encode_payload

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096  # protocol ceiling for one chunk's payload
APC_OPEN = b"\x1b_G"
ST = b"\x1b\\"


def iter_chunks(encoded: str, size: int = CHUNK_SIZE) -> Iterator[TransmissionChunk]:
    """Split base64 text into chunks flagged with whether more follow."""
    total = len(encoded)
    for pos in range(0, total, size):
        end = min(pos + size, total)
        yield TransmissionChunk(payload=encoded[pos:end], more=end < total)


def control_sequence(keys: str, payload: str) -> bytes:
    """Frame one complete APC graphics command."""
    return APC_OPEN + keys.encode("ascii") + b";" + payload.encode("ascii") + ST


class KittyTransmitter(Transmitter):
    """Sends PNG bitmaps with the Kitty graphics protocol."""

    protocol = Protocol.KITTY

    def __init__(
        self,
        stream: Optional[BinaryIO] = None,
        cols: int = DEFAULT_KITTY_COLS,
        rows: int = DEFAULT_KITTY_ROWS,
    ):
        super().__init__(stream)
        self.cols = cols
        self.rows = rows

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str],
        stream: Optional[BinaryIO] = None,
    ) -> "KittyTransmitter":
        """Build with placement size from KITTY_PREVIEW_COLS / KITTY_PREVIEW_ROWS."""
        return cls(
            stream=stream,
            cols=parse_positive_int(environ.get("KITTY_PREVIEW_COLS")) or DEFAULT_KITTY_COLS,
            rows=parse_positive_int(environ.get("KITTY_PREVIEW_ROWS")) or DEFAULT_KITTY_ROWS,
        )

    def frame(self, index: int, chunk: TransmissionChunk) -> bytes:
        if index == 0:
            keys = f"a=T,f=100,t=d,q=2,c={self.cols},r={self.rows},m={chunk.flag}"
        else:
            keys = f"m={chunk.flag}"
        return control_sequence(keys, chunk.payload)

    def send(self, bitmap: Bitmap) -> None:
        self._check(bitmap)
        logger.debug(
            f"kitty: sending {len(bitmap)} bytes (raw PNG), placement cols={self.cols} rows={self.rows}"
        )

        pending = False  # a m=1 chunk is out and the terminal awaits more
        try:
            for i, chunk in enumerate(iter_chunks(encode_payload(bitmap))):
                self._write(self.frame(i, chunk))
                pending = chunk.more
        except WriteFailed:
            if pending:
                self._abort()
            raise

        # Move the cursor below the image area
        self._newlines(1)

    def _abort(self) -> None:
        """Close an unfinished chunked transmission with an empty final chunk."""
        try:
            self._write(control_sequence("m=0", ""))
        except WriteFailed as e:
            logger.debug(f"kitty: could not terminate chunked transmission: {e}")
