"""
Process configuration.

Settings are read from the environment once at startup and passed
explicitly to the transports and tools that need them.
"""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .base import ConfigurationError

DEFAULT_PORT = 3333
TRANSPORTS = ("stdio", "http")


def _default_journal_dir(environ: Mapping[str, str]) -> Path:
    home = environ.get("HOME") or environ.get("USERPROFILE") or str(Path.home())
    return Path(home) / "Documents" / "journal"


def _int_setting(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class JournalSettings:
    directory: Path
    filename_prefix: str = "journal"
    file_extension: str = ".md"

    def path_for(self, day: str) -> Path:
        return self.directory / f"{self.filename_prefix}_{day}{self.file_extension}"


@dataclass(frozen=True)
class ScreenshotSettings:
    base_url: str = "http://localhost:3000"
    output_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))


@dataclass(frozen=True)
class CodeReviewSettings:
    base_branch: str = "main"
    max_diff_chars: int = 20000


@dataclass(frozen=True)
class Settings:
    journal: JournalSettings
    screenshot: ScreenshotSettings = field(default_factory=ScreenshotSettings)
    code_review: CodeReviewSettings = field(default_factory=CodeReviewSettings)
    transport: str = "stdio"
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables (os.environ by default)."""
        env = os.environ if environ is None else environ

        transport = env.get("MCP_TRANSPORT", "stdio").lower()
        if transport not in TRANSPORTS:
            raise ConfigurationError(
                f"MCP_TRANSPORT must be one of {', '.join(TRANSPORTS)}, got {transport!r}"
            )

        port = _int_setting(env, "PORT", DEFAULT_PORT)
        if not 0 <= port <= 65535:
            raise ConfigurationError(f"PORT out of range: {port}")

        journal_dir = env.get("JOURNAL_DIR")
        journal = JournalSettings(
            directory=Path(journal_dir).expanduser() if journal_dir else _default_journal_dir(env),
            filename_prefix=env.get("FILENAME_PREFIX") or "journal",
            file_extension=env.get("FILE_EXTENSION") or ".md",
        )

        screenshot_dir = env.get("SCREENSHOT_DIR")
        screenshot = ScreenshotSettings(
            base_url=(env.get("SCREENSHOT_BASE_URL") or "http://localhost:3000").rstrip("/"),
            output_dir=Path(screenshot_dir).expanduser() if screenshot_dir else Path(tempfile.gettempdir()),
        )

        code_review = CodeReviewSettings(
            base_branch=env.get("CODE_REVIEW_BASE_BRANCH") or "main",
            max_diff_chars=_int_setting(env, "CODE_REVIEW_MAX_DIFF_CHARS", 20000),
        )

        return cls(
            journal=journal,
            screenshot=screenshot,
            code_review=code_review,
            transport=transport,
            host=env.get("HOST") or "0.0.0.0",
            port=port,
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
