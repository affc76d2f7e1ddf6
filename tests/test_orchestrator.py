"""Tests for PreviewOrchestrator protocol selection and failover."""

import io

import pytest

from termpreview.config import Config
from termpreview.errors import EmptyBitmap, NoProtocolDetected, SubprocessFailed, WriteFailed
from termpreview.models import Bitmap, PreviewState, Protocol
from termpreview.orchestrator import PreviewOrchestrator
from termpreview.probe import CapabilityProbe
from termpreview.trace import RecordingTrace
from termpreview.transmitters import Transmitter
from termpreview.transmitters import sixel
from termpreview.transmitters.inline import InlineOSCTransmitter
from termpreview.transmitters.kitty import KittyTransmitter
from termpreview.transmitters.sixel import SixelTransmitter

from conftest import BrokenTerminal, FailingStream

ALL_CAPABLE = {"KITTY_WINDOW_ID": "1", "TERM_PROGRAM": "WezTerm", "SIXEL_PREVIEW": "1"}
PLAIN = {"TERM": "xterm-256color"}


class FakeTransmitter(Transmitter):
    """Records calls; raises ``error`` if given."""

    def __init__(self, protocol, error=None, log=None):
        super().__init__(io.BytesIO())
        self.protocol = protocol
        self.error = error
        self.log = log if log is not None else []

    def send(self, bitmap):
        self.log.append(self.protocol)
        if self.error is not None:
            raise self.error
        self._write(b"<" + self.protocol.value.encode() + b">")


def make(env, failures=None, trace=None):
    """Orchestrator over fake transmitters sharing one call log."""
    failures = failures or {}
    log = []
    transmitters = {
        p: FakeTransmitter(p, failures.get(p), log) for p in Protocol
    }
    orchestrator = PreviewOrchestrator(
        transmitters=transmitters,
        trace=trace or RecordingTrace(),
        probe=CapabilityProbe(env),
    )
    return orchestrator, transmitters, log


BITMAP = Bitmap(b"\x89PNG" + bytes(196))


class TestSelection:
    def test_kitty_preferred(self):
        orchestrator, _, log = make(ALL_CAPABLE)
        outcome = orchestrator.preview(BITMAP)
        assert outcome.protocol == Protocol.KITTY
        assert log == [Protocol.KITTY]

    def test_inline_when_no_kitty(self):
        orchestrator, _, log = make({"TERM_PROGRAM": "iTerm.app", "WT_SESSION": "x"})
        outcome = orchestrator.preview(BITMAP)
        assert outcome.protocol == Protocol.INLINE
        assert log == [Protocol.INLINE]

    def test_sixel_only(self):
        orchestrator, _, log = make({"SIXEL_PREVIEW": "1"})
        outcome = orchestrator.preview(BITMAP)
        assert outcome.protocol == Protocol.SIXEL
        assert log == [Protocol.SIXEL]

    def test_candidates_follow_capabilities(self):
        orchestrator, _, _ = make(PLAIN)
        caps = CapabilityProbe({"KITTY_WINDOW_ID": "1", "WT_SESSION": "x"}).detect()
        assert orchestrator.candidates(caps) == [Protocol.KITTY, Protocol.SIXEL]


class TestFailover:
    def test_kitty_failure_falls_to_inline_not_sixel(self):
        orchestrator, _, log = make(ALL_CAPABLE, {Protocol.KITTY: WriteFailed("kitty write")})
        outcome = orchestrator.preview(BITMAP)
        assert outcome.protocol == Protocol.INLINE
        assert outcome.attempted == (Protocol.KITTY, Protocol.INLINE)
        assert log == [Protocol.KITTY, Protocol.INLINE]

    def test_kitty_and_inline_fail_then_sixel(self):
        orchestrator, _, log = make(
            ALL_CAPABLE,
            {Protocol.KITTY: WriteFailed("k"), Protocol.INLINE: WriteFailed("i")},
        )
        outcome = orchestrator.preview(BITMAP)
        assert outcome.protocol == Protocol.SIXEL
        assert log == [Protocol.KITTY, Protocol.INLINE, Protocol.SIXEL]

    def test_all_fail_returns_last_error(self):
        sixel_error = SubprocessFailed("renderer died")
        orchestrator, _, log = make(
            ALL_CAPABLE,
            {
                Protocol.KITTY: WriteFailed("k"),
                Protocol.INLINE: WriteFailed("i"),
                Protocol.SIXEL: sixel_error,
            },
        )
        outcome = orchestrator.preview(BITMAP)
        assert not outcome.delivered
        assert outcome.error is sixel_error
        assert outcome.attempted == (Protocol.KITTY, Protocol.INLINE, Protocol.SIXEL)

    def test_kitty_failure_skips_to_sixel_when_no_inline(self):
        orchestrator, _, log = make(
            {"KITTY_WINDOW_ID": "1", "SIXEL_PREVIEW": "1"}, {Protocol.KITTY: WriteFailed("k")}
        )
        outcome = orchestrator.preview(BITMAP)
        assert outcome.protocol == Protocol.SIXEL
        assert log == [Protocol.KITTY, Protocol.SIXEL]

    def test_kitty_only_failure_keeps_kitty_error(self):
        error = WriteFailed("kitty write")
        orchestrator, _, log = make({"KITTY_WINDOW_ID": "1"}, {Protocol.KITTY: error})
        outcome = orchestrator.preview(BITMAP)
        assert outcome.error is error
        assert log == [Protocol.KITTY]

    def test_inline_failure_falls_to_sixel(self):
        orchestrator, _, log = make(
            {"TERM_PROGRAM": "vscode", "SIXEL_PREVIEW": "1"}, {Protocol.INLINE: WriteFailed("i")}
        )
        outcome = orchestrator.preview(BITMAP)
        assert outcome.protocol == Protocol.SIXEL
        assert log == [Protocol.INLINE, Protocol.SIXEL]

    def test_no_protocol_attempted_twice(self):
        orchestrator, _, log = make(
            ALL_CAPABLE,
            {p: WriteFailed(p.value) for p in Protocol},
        )
        orchestrator.preview(BITMAP)
        assert len(log) == len(set(log)) == 3

    def test_only_successful_output_written(self):
        orchestrator, transmitters, _ = make(ALL_CAPABLE, {Protocol.KITTY: WriteFailed("k")})
        orchestrator.preview(BITMAP)
        assert transmitters[Protocol.KITTY].stream.getvalue() == b""
        assert transmitters[Protocol.INLINE].stream.getvalue() == b"<inline>"
        assert transmitters[Protocol.SIXEL].stream.getvalue() == b""

    def test_empty_bitmap_fails_every_level(self, stream):
        orchestrator = PreviewOrchestrator(
            transmitters={
                Protocol.KITTY: KittyTransmitter(stream),
                Protocol.INLINE: InlineOSCTransmitter(stream),
                Protocol.SIXEL: SixelTransmitter(stream),
            },
            probe=CapabilityProbe(ALL_CAPABLE),
        )
        outcome = orchestrator.preview(Bitmap(b""))
        assert isinstance(outcome.error, EmptyBitmap)
        assert stream.getvalue() == b""


class TestUnsupported:
    def test_no_protocol_detected(self):
        orchestrator, _, log = make(PLAIN)
        outcome = orchestrator.preview(BITMAP)
        assert not outcome.delivered
        assert isinstance(outcome.error, NoProtocolDetected)
        assert outcome.reason == "no supported protocol detected"
        assert outcome.attempted == ()
        assert log == []

    def test_no_bytes_written(self, stream):
        orchestrator = PreviewOrchestrator(
            transmitters={
                Protocol.KITTY: KittyTransmitter(stream),
                Protocol.INLINE: InlineOSCTransmitter(stream),
                Protocol.SIXEL: SixelTransmitter(stream),
            },
            probe=CapabilityProbe(PLAIN),
        )
        orchestrator.preview(BITMAP)
        assert stream.getvalue() == b""


class TestTrace:
    def test_success_path(self):
        trace = RecordingTrace()
        orchestrator, _, _ = make(ALL_CAPABLE, trace=trace)
        orchestrator.preview(BITMAP)
        assert trace.states == [
            PreviewState.IDLE,
            PreviewState.PROBE_DONE,
            PreviewState.TRYING_KITTY,
            PreviewState.DELIVERED,
        ]

    def test_failover_path(self):
        trace = RecordingTrace()
        orchestrator, _, _ = make(ALL_CAPABLE, {Protocol.KITTY: WriteFailed("k")}, trace=trace)
        orchestrator.preview(BITMAP)
        assert trace.states == [
            PreviewState.IDLE,
            PreviewState.PROBE_DONE,
            PreviewState.TRYING_KITTY,
            PreviewState.TRYING_KITTY,
            PreviewState.TRYING_INLINE,
            PreviewState.DELIVERED,
        ]
        assert "kitty failed: k" in trace.events[3][1]
        assert "falling back to inline" in trace.events[4][1]

    def test_unsupported_path(self):
        trace = RecordingTrace()
        orchestrator, _, _ = make(PLAIN, trace=trace)
        orchestrator.preview(BITMAP)
        assert trace.states == [PreviewState.IDLE, PreviewState.PROBE_DONE, PreviewState.EXHAUSTED]

    def test_exhausted_path(self):
        trace = RecordingTrace()
        orchestrator, _, _ = make(
            {"KITTY_WINDOW_ID": "1"}, {Protocol.KITTY: WriteFailed("k")}, trace=trace
        )
        orchestrator.preview(BITMAP)
        assert trace.states[-1] == PreviewState.EXHAUSTED


class TestRealTransmitters:
    def test_kitty_write_error_falls_back_to_inline(self, stream):
        orchestrator = PreviewOrchestrator(
            transmitters={
                Protocol.KITTY: KittyTransmitter(FailingStream()),
                Protocol.INLINE: InlineOSCTransmitter(stream),
                Protocol.SIXEL: SixelTransmitter(stream),
            },
            probe=CapabilityProbe(ALL_CAPABLE),
        )
        outcome = orchestrator.preview(BITMAP)
        assert outcome.protocol == Protocol.INLINE
        assert stream.getvalue().startswith(b"\x1b]1337;File=inline=1;size=200:")

    def test_sixel_end_to_end(self, stream, monkeypatch):
        monkeypatch.setattr(sixel.shutil, "which", lambda name: f"/usr/bin/{name}")
        monkeypatch.setattr(
            sixel.subprocess,
            "run",
            lambda argv, **kw: sixel.subprocess.CompletedProcess(argv, 0, stdout=b"\x1bPqSIXEL\x1b\\"),
        )
        bitmap = Bitmap(bytes(200))
        orchestrator = PreviewOrchestrator(
            transmitters={Protocol.SIXEL: SixelTransmitter(stream)},
            probe=CapabilityProbe({"SIXEL_PREVIEW": "1"}),
        )

        outcome = orchestrator.preview(bitmap)

        assert outcome.protocol == Protocol.SIXEL
        output = stream.getvalue()
        assert output == b"\x1bPqSIXEL\x1b\\" + b"\n" * 20
        assert output[len(b"\x1bPqSIXEL\x1b\\"):].count(b"\n") == 20

    def test_from_config_uses_settings(self, stream):
        config = Config()
        config.preview.kitty_cols = 72
        orchestrator = PreviewOrchestrator.from_config(
            config, stream=stream, probe=CapabilityProbe({"TERM": "xterm-kitty"})
        )
        outcome = orchestrator.preview(BITMAP)
        assert outcome.protocol == Protocol.KITTY
        assert b"c=72,r=20" in stream.getvalue()

    def test_missing_transmitter_built_from_environment(self, monkeypatch):
        captured = io.BytesIO()
        monkeypatch.setattr("termpreview.transmitters.default_stream", lambda: captured)
        orchestrator = PreviewOrchestrator(
            probe=CapabilityProbe({"KITTY_WINDOW_ID": "1", "KITTY_PREVIEW_COLS": "33"})
        )
        outcome = orchestrator.preview(BITMAP)
        assert outcome.protocol == Protocol.KITTY
        assert b"c=33,r=20" in captured.getvalue()

    def test_sixel_flush_failure_becomes_outcome(self, monkeypatch):
        monkeypatch.setattr(sixel.shutil, "which", lambda name: f"/usr/bin/{name}")
        orchestrator = PreviewOrchestrator(
            transmitters={Protocol.SIXEL: SixelTransmitter(BrokenTerminal())},
            probe=CapabilityProbe({"SIXEL_PREVIEW": "1"}),
        )

        outcome = orchestrator.preview(BITMAP)

        assert not outcome.delivered
        assert isinstance(outcome.error, WriteFailed)
        assert outcome.attempted == (Protocol.SIXEL,)
