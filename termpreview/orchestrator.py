"""
Preview orchestrator: protocol selection and failover.

Candidates are tried in a fixed order:
1. Kitty graphics protocol (if the terminal looks kitty-compatible)
2. OSC 1337 inline images (if the terminal looks iTerm2-compatible)
3. Sixel via external renderers (if the terminal looks Sixel-capable)

Candidates whose capability flag is off are skipped, the first success wins,
and no protocol is tried twice in one call.
"""

import logging
from typing import BinaryIO, Mapping, Optional

from .config import Config
from .errors import NoProtocolDetected, PreviewError
from .models import Bitmap, PreviewOutcome, PreviewState, Protocol, TerminalCapabilities
from .probe import CapabilityProbe
from .trace import TraceSink, null_trace
from .transmitters import Transmitter
from .transmitters.inline import InlineOSCTransmitter
from .transmitters.kitty import KittyTransmitter
from .transmitters.sixel import SixelTransmitter

logger = logging.getLogger(__name__)

PRIORITY = (Protocol.KITTY, Protocol.INLINE, Protocol.SIXEL)


class PreviewOrchestrator:
    """Picks a protocol for each preview and fails over to the others.

    Usage:
        orchestrator = PreviewOrchestrator(trace=LoggingTrace())
        outcome = orchestrator.preview(Bitmap(png_bytes))
        if not outcome.delivered:
            print(f"No preview: {outcome.reason}")

    The orchestrator holds no state between calls: the environment is probed
    again on every ``preview``.
    """

    def __init__(
        self,
        transmitters: Optional[Mapping[Protocol, Transmitter]] = None,
        trace: TraceSink = null_trace,
        probe: Optional[CapabilityProbe] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            transmitters: Transmitter per protocol; missing ones are built
                from the environment on each call
            trace: Sink for state transition events
            probe: Fixed capability probe; a fresh one per call if None
        """
        self._transmitters = dict(transmitters or {})
        self.trace = trace
        self._probe = probe

    @classmethod
    def from_config(
        cls,
        config: Config,
        stream: Optional[BinaryIO] = None,
        trace: TraceSink = null_trace,
        probe: Optional[CapabilityProbe] = None,
        max_width: Optional[int] = None,
    ) -> "PreviewOrchestrator":
        """Build transmitters from loaded settings.

        ``max_width`` overrides the Kitty placement columns.
        """
        settings = config.preview
        return cls(
            transmitters={
                Protocol.KITTY: KittyTransmitter(
                    stream, cols=max_width or settings.kitty_cols, rows=settings.kitty_rows
                ),
                Protocol.INLINE: InlineOSCTransmitter(stream),
                Protocol.SIXEL: SixelTransmitter(stream, timeout=settings.sixel_timeout),
            },
            trace=trace,
            probe=probe,
        )

    def _transmitter(self, protocol: Protocol, environ: Mapping[str, str]) -> Transmitter:
        if protocol not in self._transmitters:
            if protocol == Protocol.KITTY:
                return KittyTransmitter.from_env(environ)
            if protocol == Protocol.INLINE:
                return InlineOSCTransmitter()
            return SixelTransmitter()
        return self._transmitters[protocol]

    def candidates(self, capabilities: TerminalCapabilities) -> list[Protocol]:
        """Protocols to attempt, in priority order."""
        return [p for p in PRIORITY if capabilities.supports(p)]

    def preview(self, bitmap: Bitmap) -> PreviewOutcome:
        """
        Show a bitmap with the best available protocol.

        Never raises PreviewError: failures come back as a failed outcome
        carrying the last error seen.
        """
        self.trace(PreviewState.IDLE, f"preview called with {len(bitmap)} bytes")

        probe = self._probe or CapabilityProbe()
        capabilities = probe.detect()
        self.trace(
            PreviewState.PROBE_DONE,
            f"supported={capabilities.supported()} kitty={capabilities.kitty} "
            f"inline={capabilities.inline} sixel={capabilities.sixel}",
        )

        if not capabilities.supported():
            error = NoProtocolDetected()
            self.trace(PreviewState.EXHAUSTED, str(error))
            return PreviewOutcome.failed(error)

        attempted: list[Protocol] = []
        last_error: Optional[PreviewError] = None

        for protocol in self.candidates(capabilities):
            attempted.append(protocol)
            state = PreviewState.trying(protocol)
            if last_error is None:
                self.trace(state, f"attempting {protocol.value} protocol")
            else:
                self.trace(state, f"falling back to {protocol.value} after: {last_error}")

            try:
                self._transmitter(protocol, probe.environ).send(bitmap)
            except PreviewError as e:
                last_error = e
                self.trace(state, f"{protocol.value} failed: {e}")
                logger.info(f"Preview via {protocol.value} failed: {e}")
                continue

            if len(attempted) > 1:
                logger.info(
                    f"Preview delivered via {protocol.value} after "
                    f"{', '.join(p.value for p in attempted[:-1])} failed"
                )
            self.trace(PreviewState.DELIVERED, f"{protocol.value} succeeded")
            return PreviewOutcome.delivered_by(protocol, tuple(attempted))

        self.trace(
            PreviewState.EXHAUSTED,
            f"all protocols failed (attempted: {', '.join(p.value for p in attempted)}); last error: {last_error}",
        )
        return PreviewOutcome.failed(last_error, tuple(attempted))
