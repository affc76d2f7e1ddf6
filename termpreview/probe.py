"""Terminal graphics capability detection from environment variables.

Terminals identify themselves unreliably, so these rules are heuristics. The
only guarantee is determinism: the same environment always gives the same
answer.
"""

import os
from typing import Mapping, Optional

from .models import Protocol, TerminalCapabilities


INLINE_TERM_PROGRAMS = frozenset({
    "iTerm.app",
    "WezTerm",
    "Warp",
    "Hyper",
    "vscode",
    "VSCode",
    "Tabby",
    "Bobcat",
})

KITTY_TERM_HINTS = ("kitty", "ghostty", "ghost")
INLINE_TERM_HINTS = ("wezterm", "warp", "tabby", "vscode", "wez")
# "st" and "linux" over-match (the Linux console has no Sixel support). Kept
# so existing setups that rely on them keep working.
SIXEL_TERM_HINTS = ("foot", "st", "linux")


class CapabilityProbe:
    """Classifies the terminal from a single snapshot of the environment."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._env = dict(os.environ if environ is None else environ)

    @property
    def environ(self) -> Mapping[str, str]:
        return self._env

    def _get(self, name: str) -> str:
        return self._env.get(name, "") or ""

    @property
    def _term(self) -> str:
        return self._get("TERM").lower()

    def _kitty_rules(self) -> list[str]:
        matched = []
        if self._get("KITTY_WINDOW_ID"):
            matched.append("KITTY_WINDOW_ID set")
        term = self._term
        for hint in KITTY_TERM_HINTS:
            if hint in term:
                matched.append(f"TERM contains {hint!r}")
                break
        if self._get("KONSOLE_VERSION"):
            matched.append("KONSOLE_VERSION set")
        return matched

    def _inline_rules(self) -> list[str]:
        matched = []
        term_program = self._get("TERM_PROGRAM")
        if term_program in INLINE_TERM_PROGRAMS:
            matched.append(f"TERM_PROGRAM={term_program}")
        term = self._term
        for hint in INLINE_TERM_HINTS:
            if hint in term:
                matched.append(f"TERM contains {hint!r}")
                break
        if self._get("ITERM_SESSION_ID"):
            matched.append("ITERM_SESSION_ID set")
        return matched

    def _sixel_rules(self) -> list[str]:
        matched = []
        if self._get("SIXEL_PREVIEW") == "1":
            matched.append("SIXEL_PREVIEW=1")
        term = self._term
        for hint in SIXEL_TERM_HINTS:
            if hint in term:
                matched.append(f"TERM contains {hint!r}")
                break
        if self._get("WT_SESSION"):
            matched.append("WT_SESSION set")
        return matched

    def reasons(self) -> dict[Protocol, list[str]]:
        """Names of the rules that matched, per protocol."""
        return {
            Protocol.KITTY: self._kitty_rules(),
            Protocol.INLINE: self._inline_rules(),
            Protocol.SIXEL: self._sixel_rules(),
        }

    def detect(self) -> TerminalCapabilities:
        reasons = self.reasons()
        return TerminalCapabilities(
            kitty=bool(reasons[Protocol.KITTY]),
            inline=bool(reasons[Protocol.INLINE]),
            sixel=bool(reasons[Protocol.SIXEL]),
        )


def detect(environ: Optional[Mapping[str, str]] = None) -> TerminalCapabilities:
    """Detect capabilities of the current (or given) environment."""
    return CapabilityProbe(environ).detect()
