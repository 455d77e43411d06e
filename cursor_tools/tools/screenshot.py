"""
Screenshot Tool
Captures a full-page PNG of a URL (or a route on the local dev server)
with headless Chromium.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from playwright.async_api import async_playwright

from ..base import ExecutionError, MCPTool, ToolParameter
from ..config import ScreenshotSettings

logger = logging.getLogger(__name__)

NAVIGATION_TIMEOUT_MS = 30000


class ScreenshotTool(MCPTool):
    """Take a screenshot of a web page and save it to disk."""

    def __init__(self, settings: ScreenshotSettings):
        self.settings = settings

    @property
    def name(self) -> str:
        return "screenshot"

    @property
    def description(self) -> str:
        return (
            "Take a screenshot of a URL or a local path "
            f"(relative URL appended to {self.settings.base_url})."
        )

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="url",
                type="string",
                description="Full URL to screenshot",
                required=False,
            ),
            ToolParameter(
                name="relativePath",
                type="string",
                description=f"Relative path appended to {self.settings.base_url}",
                required=False,
            ),
            ToolParameter(
                name="fullPathToScreenshot",
                type="string",
                description=(
                    "Path to where the screenshot file should be saved. This should be a "
                    "cwd-style full path to the file (not relative to the current working "
                    "directory) including the file name and extension."
                ),
                required=False,
            ),
        ]

    def resolve_url(self, url: Optional[str], relative_path: Optional[str]) -> str:
        if url:
            return url
        if relative_path:
            return f"{self.settings.base_url}/{relative_path.lstrip('/')}"
        raise ExecutionError("Either url or relativePath must be provided", self.name)

    def resolve_output_path(self, full_path: Optional[str]) -> Path:
        if full_path:
            return Path(full_path).expanduser()
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        return self.settings.output_dir / f"screenshot-{stamp}.png"

    async def capture(self, url: str, output_path: Path) -> None:
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True)
            try:
                page = await browser.new_page()
                page.set_default_navigation_timeout(NAVIGATION_TIMEOUT_MS)
                await page.goto(url, wait_until="networkidle")
                await page.screenshot(path=str(output_path), full_page=True)
            finally:
                await browser.close()

    async def execute(
        self,
        url: Optional[str] = None,
        relativePath: Optional[str] = None,
        fullPathToScreenshot: Optional[str] = None,
    ) -> str:
        target = self.resolve_url(url, relativePath)
        output_path = self.resolve_output_path(fullPathToScreenshot)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Capturing {target} -> {output_path}")
        await self.capture(target, output_path)
        return f"Screenshot saved to {output_path}"
