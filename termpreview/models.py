"""
Data models for termpreview.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Protocol(str, Enum):
    """Terminal graphics protocols, in preference order."""

    KITTY = "kitty"
    INLINE = "inline"
    SIXEL = "sixel"


class PreviewState(str, Enum):
    """States a single preview call moves through."""

    IDLE = "idle"
    PROBE_DONE = "probe_done"
    TRYING_KITTY = "trying_kitty"
    TRYING_INLINE = "trying_inline"
    TRYING_SIXEL = "trying_sixel"
    DELIVERED = "delivered"
    EXHAUSTED = "exhausted"

    @classmethod
    def trying(cls, protocol: Protocol) -> "PreviewState":
        return {
            Protocol.KITTY: cls.TRYING_KITTY,
            Protocol.INLINE: cls.TRYING_INLINE,
            Protocol.SIXEL: cls.TRYING_SIXEL,
        }[protocol]


@dataclass(frozen=True)
class TerminalCapabilities:
    """Which graphics protocols the terminal is believed to support."""

    kitty: bool = False
    inline: bool = False
    sixel: bool = False

    def supported(self) -> bool:
        return self.kitty or self.inline or self.sixel

    def supports(self, protocol: Protocol) -> bool:
        return getattr(self, protocol.value)

    def to_dict(self) -> dict:
        return {
            "kitty": self.kitty,
            "inline": self.inline,
            "sixel": self.sixel,
            "supported": self.supported(),
        }


@dataclass(frozen=True)
class Bitmap:
    """An encoded image ready to be sent to the terminal."""

    data: bytes
    encoding: str = "png"

    def __len__(self) -> int:
        return len(self.data)

    @property
    def is_empty(self) -> bool:
        return not self.data


@dataclass(frozen=True)
class TransmissionChunk:
    """A slice of base64 payload and whether more slices follow."""

    payload: str
    more: bool

    @property
    def flag(self) -> str:
        return "1" if self.more else "0"


@dataclass(frozen=True)
class PreviewOutcome:
    """Result of one preview call.

    Either delivered through ``protocol`` or failed with ``error``.
    ``attempted`` lists the protocols tried, in order.
    """

    protocol: Optional[Protocol] = None
    error: Optional[Exception] = None
    attempted: tuple = ()

    @classmethod
    def delivered_by(cls, protocol: Protocol, attempted: tuple = ()) -> "PreviewOutcome":
        return cls(protocol=protocol, attempted=attempted or (protocol,))

    @classmethod
    def failed(cls, error: Exception, attempted: tuple = ()) -> "PreviewOutcome":
        return cls(error=error, attempted=attempted)

    @property
    def delivered(self) -> bool:
        return self.protocol is not None

    @property
    def reason(self) -> str:
        return str(self.error) if self.error is not None else ""

    @property
    def failover_occurred(self) -> bool:
        return self.delivered and len(self.attempted) > 1

    def __bool__(self) -> bool:
        return self.delivered

    def to_dict(self) -> dict:
        return {
            "delivered": self.delivered,
            "protocol": self.protocol.value if self.protocol else None,
            "reason": self.reason,
            "attempted": [p.value for p in self.attempted],
        }
