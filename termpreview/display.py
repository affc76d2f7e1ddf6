"""Terminal inline image display with automatic protocol detection."""

import logging
import os
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Mapping, Optional

import yaml
from PIL import Image as PILImage

from .config import Config
from .models import Bitmap, PreviewOutcome
from .orchestrator import PreviewOrchestrator
from .probe import CapabilityProbe
from .trace import TraceSink, make_trace, setup_logging

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def to_png(data: bytes) -> bytes:
    """Re-encode image bytes as PNG unless they already are."""
    if not data or data.startswith(PNG_SIGNATURE):
        return data
    with PILImage.open(BytesIO(data)) as image:
        out = BytesIO()
        image.save(out, format="PNG")
        return out.getvalue()


def bitmap_from_file(image_path: Path) -> Bitmap:
    return Bitmap(to_png(Path(image_path).read_bytes()))


class TerminalDisplay:
    """Handles terminal image display with automatic protocol detection.

    Settings and capabilities are re-read on every call, since the
    environment may change between previews.
    """

    def __init__(
        self,
        stream: Optional[BinaryIO] = None,
        config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        trace: Optional[TraceSink] = None,
    ):
        self.stream = stream
        self.config_path = config_path
        self._environ = environ
        self._trace = trace

    def _snapshot(self, config: Config) -> dict:
        env = dict(os.environ if self._environ is None else self._environ)
        if config.preview.force_sixel and env.get("SIXEL_PREVIEW") != "1":
            env["SIXEL_PREVIEW"] = "1"
        return env

    def _load_config(self) -> Config:
        """Load settings, falling back to defaults if the file can't be read."""
        env = self._environ if self._environ is not None else os.environ
        try:
            return Config.load(self.config_path, environ=env)
        except (yaml.YAMLError, OSError) as e:
            logger.warning(f"Ignoring unreadable config file: {e}")
            config = Config(environ=env)
            config.preview = config.preview.merge_env(env)
            return config

    def orchestrator(self, max_width: Optional[int] = None) -> PreviewOrchestrator:
        """Build an orchestrator from a fresh config and environment snapshot."""
        config = self._load_config()
        if self._trace is not None:
            trace = self._trace
        else:
            if config.preview.debug:
                setup_logging(True)
            trace = make_trace(config.preview.debug)

        return PreviewOrchestrator.from_config(
            config,
            stream=self.stream,
            trace=trace,
            probe=CapabilityProbe(self._snapshot(config)),
            max_width=max_width,
        )

    def preview(self, bitmap: Bitmap, max_width: Optional[int] = None) -> PreviewOutcome:
        """Preview an encoded bitmap. Never raises for preview failures."""
        return self.orchestrator(max_width).preview(bitmap)

    def preview_bytes(self, png_bytes: bytes, max_width: Optional[int] = None) -> PreviewOutcome:
        return self.preview(Bitmap(png_bytes), max_width=max_width)

    def display_image(self, image_path: Path, max_width: Optional[int] = None) -> bool:
        """Display image inline if terminal supports it.

        Args:
            image_path: Path to image file
            max_width: Maximum width in terminal columns (Kitty placement)

        Returns:
            True if image was displayed inline, False if fallback needed.
        """
        return self.preview(bitmap_from_file(image_path), max_width=max_width).delivered

    @property
    def can_display_images(self) -> bool:
        """Check if terminal can display images inline."""
        config = self._load_config()
        return CapabilityProbe(self._snapshot(config)).detect().supported()


# Singleton instance
display = TerminalDisplay()
