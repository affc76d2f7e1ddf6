"""
termpreview - inline image previews for Kitty, iTerm2-style and Sixel terminals.

Detects which graphics protocol the current terminal speaks and sends a PNG
through the best one, falling back to the others when transmission fails.
"""

from pathlib import Path

# Read version from VERSION file (single source of truth)
_version_file = Path(__file__).parent.parent / "VERSION"
if _version_file.exists():
    __version__ = _version_file.read_text().strip()
else:
    __version__ = "0.3.0"  # Fallback for installed builds

from termpreview.models import Bitmap, PreviewOutcome, Protocol, TerminalCapabilities
from termpreview.probe import CapabilityProbe
from termpreview.orchestrator import PreviewOrchestrator
from termpreview.display import TerminalDisplay
from termpreview.config import Config

__all__ = [
    "__version__",
    "Bitmap",
    "PreviewOutcome",
    "Protocol",
    "TerminalCapabilities",
    "CapabilityProbe",
    "PreviewOrchestrator",
    "TerminalDisplay",
    "Config",
]
