"""
Shared fixtures for the cursor_tools test suite.
"""

from datetime import datetime
from pathlib import Path

import pytest

from cursor_tools.config import (
    CodeReviewSettings,
    JournalSettings,
    ScreenshotSettings,
    Settings,
)
from cursor_tools.dispatcher import Dispatcher
from cursor_tools.registry import build_default_registry


class FixedClock:
    """Callable clock returning a settable datetime."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def journal_dir(tmp_path) -> Path:
    return tmp_path / "journal"


@pytest.fixture
def settings(tmp_path, journal_dir) -> Settings:
    return Settings(
        journal=JournalSettings(directory=journal_dir),
        screenshot=ScreenshotSettings(output_dir=tmp_path / "shots"),
        code_review=CodeReviewSettings(),
        transport="http",
        host="127.0.0.1",
        port=0,
    )


@pytest.fixture
def registry(settings):
    return build_default_registry(settings)


@pytest.fixture
def dispatcher(registry) -> Dispatcher:
    return Dispatcher(registry)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 3, 14, 9, 26, 53))


def text_of(result) -> str:
    """Join the text items of a ToolCallResult."""
    return "\n".join(item["text"] for item in result["content"])
