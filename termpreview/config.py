"""
Configuration management for termpreview.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
import yaml
from dotenv import find_dotenv, load_dotenv


GLOBAL_CONFIG_DIR = Path.home() / ".termpreview"
GLOBAL_CONFIG_FILE = GLOBAL_CONFIG_DIR / "config.yaml"

DEFAULT_KITTY_COLS = 40
DEFAULT_KITTY_ROWS = 20
TRAILING_LINES = 20  # blank lines after protocols that don't report image height

_INT_RE = re.compile(r"[+-]?[0-9]+")


def parse_positive_int(value) -> Optional[int]:
    """Return value as a positive int, or None if it isn't one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        n = value
    elif isinstance(value, str) and _INT_RE.fullmatch(value):
        n = int(value)
    else:
        return None
    return n if n > 0 else None


def parse_timeout(value) -> Optional[float]:
    """Return value as a positive number of seconds, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds > 0 else None


def is_truthy(value: Optional[str]) -> bool:
    return value in ("1", "true")


@dataclass
class PreviewSettings:
    """Preview settings."""

    debug: bool = False
    force_sixel: bool = False
    kitty_cols: int = DEFAULT_KITTY_COLS
    kitty_rows: int = DEFAULT_KITTY_ROWS
    sixel_timeout: Optional[float] = None  # seconds; None waits forever

    @classmethod
    def from_dict(cls, data: dict) -> "PreviewSettings":
        return cls(
            debug=bool(data.get("debug", False)),
            force_sixel=bool(data.get("force_sixel", False)),
            kitty_cols=parse_positive_int(data.get("kitty_cols")) or DEFAULT_KITTY_COLS,
            kitty_rows=parse_positive_int(data.get("kitty_rows")) or DEFAULT_KITTY_ROWS,
            sixel_timeout=parse_timeout(data.get("sixel_timeout")),
        )

    def merge_env(self, environ: Optional[Mapping[str, str]] = None) -> "PreviewSettings":
        """Merge with environment variables (env takes precedence)."""
        env = os.environ if environ is None else environ
        return PreviewSettings(
            debug=is_truthy(env.get("PREVIEW_DEBUG")) or self.debug,
            force_sixel=env.get("SIXEL_PREVIEW") == "1" or self.force_sixel,
            kitty_cols=parse_positive_int(env.get("KITTY_PREVIEW_COLS")) or self.kitty_cols,
            kitty_rows=parse_positive_int(env.get("KITTY_PREVIEW_ROWS")) or self.kitty_rows,
            sixel_timeout=self.sixel_timeout,
        )

    def to_dict(self) -> dict:
        return {
            "debug": self.debug,
            "force_sixel": self.force_sixel,
            "kitty_cols": self.kitty_cols,
            "kitty_rows": self.kitty_rows,
            "sixel_timeout": self.sixel_timeout,
        }


@dataclass
class Config:
    """Complete configuration."""

    preview: PreviewSettings = field(default_factory=PreviewSettings)
    environ: Optional[Mapping[str, str]] = field(default=None, repr=False, compare=False)

    @classmethod
    def load(
        cls,
        config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Config":
        """Load configuration from file and environment."""
        config_path = config_path or GLOBAL_CONFIG_FILE

        # Start with defaults
        config = cls()

        # Load from file if exists
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            section = data.get("preview") if isinstance(data, dict) else None
            config.preview = PreviewSettings.from_dict(section if isinstance(section, dict) else {})

        # Merge environment variables (they take precedence)
        config.environ = environ
        config.preview = config.preview.merge_env(environ)

        return config

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        config_path = config_path or GLOBAL_CONFIG_FILE
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {"preview": self.preview.to_dict()}

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if self.preview.sixel_timeout is not None and self.preview.sixel_timeout <= 0:
            issues.append("sixel_timeout must be a positive number of seconds")

        env = os.environ if self.environ is None else self.environ
        for name in ("KITTY_PREVIEW_COLS", "KITTY_PREVIEW_ROWS"):
            raw = env.get(name)
            if raw is not None and parse_positive_int(raw) is None:
                issues.append(f"{name}={raw!r} is not a positive integer and is ignored")

        return issues


def load_env_file(path: Optional[Path] = None) -> bool:
    """Load a .env file without overriding variables already set."""
    return load_dotenv(path or find_dotenv(usecwd=True), override=False)
