"""
Journaling Tool
Keeps one Markdown journal per day: a conversation log of timestamped
entries and an optional trailing summary.
"""

import asyncio
import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..base import ExecutionError, MCPTool, ToolParameter
from ..config import JournalSettings

logger = logging.getLogger(__name__)

ACTIONS = ("start_session", "record", "summary", "recent")
SUMMARY_HEADING = "## Summary"
RECENT_LIMIT = 5
PREVIEW_LINES = 5

_BLANK_RUN = re.compile(r"\n{3,}")


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def read_journal(path: Path) -> str:
    """Read a journal file with line endings normalized to \\n; '' if missing."""
    if not path.exists():
        return ""
    return normalize_newlines(path.read_text(encoding="utf-8"))


def write_journal(path: Path, content: str) -> None:
    """
    Write a journal file.

    Runs of three or more newlines collapse to a single blank line and
    line endings are converted to the host convention.
    """
    normalized = _BLANK_RUN.sub("\n\n", normalize_newlines(content))
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(os.linesep.join(normalized.split("\n")))


def journal_template(day: str) -> str:
    return "\n".join([f"# Journal Entry - {day}", "", "## Conversation", ""])


class JournalingTool(MCPTool):
    """Interactive journaling backed by one Markdown file per day."""

    def __init__(self, settings: JournalSettings, clock: Callable[[], datetime] = datetime.now):
        self.settings = settings
        self.clock = clock
        self._locks: Dict[Path, asyncio.Lock] = {}

    @property
    def name(self) -> str:
        return "journaling"

    @property
    def description(self) -> str:
        return "Interactive journaling with conversation saving and analysis."

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="action",
                type="string",
                description="The journaling action to perform",
                required=True,
                enum=ACTIONS,
            ),
            ToolParameter(
                name="message",
                type="string",
                description="Message to record in the journal",
                required=False,
            ),
            ToolParameter(
                name="summary",
                type="string",
                description="Summary to add to the journal entry",
                required=False,
            ),
        ]

    # ------------------------------------------------------------------ actions

    def start_session(self, day: str, path: Path) -> str:
        if read_journal(path):
            return f"Journal session for {day} already exists"

        write_journal(path, journal_template(day))
        logger.info(f"Started journal {path}")
        return f"Started new journaling session for {day}"

    def record(self, day: str, path: Path, message: Optional[str], timestamp: str) -> str:
        if not message:
            raise ExecutionError("Message is required for recording", self.name)

        content = read_journal(path) or journal_template(day)
        entry = f"[{timestamp}] {message}"

        # entries stay in the conversation section, ahead of any summary
        before, heading, after = content.partition(SUMMARY_HEADING)
        if heading:
            content = "\n\n".join([before.strip(), entry, heading + after])
        else:
            content = "\n\n".join([content.strip(), entry])

        write_journal(path, content)
        return f"Recorded message at {timestamp}"

    def summarize(self, path: Path, summary: Optional[str]) -> str:
        if not summary:
            raise ExecutionError("Summary is required", self.name)

        content = read_journal(path)
        if not content:
            raise ExecutionError("No journal entry exists for today", self.name)

        content = content.partition(SUMMARY_HEADING)[0].strip()
        write_journal(path, "\n\n".join([content, SUMMARY_HEADING, summary]))
        return "Added summary to journal entry"

    def recent(self) -> str:
        directory = self.settings.directory
        files = sorted(
            (p.name for p in directory.iterdir()
             if p.is_file() and p.name.startswith(self.settings.filename_prefix)),
            reverse=True,
        )[:RECENT_LIMIT]

        if not files:
            return f"No journal entries found in {directory}"

        parts = ["Recent journal entries:\n\n"]
        for name in files:
            preview = "\n".join(read_journal(directory / name).split("\n")[:PREVIEW_LINES])
            parts.append(f"- {name}\n{preview}\n...\n\n")
        return "".join(parts)

    # ---------------------------------------------------------------- dispatch

    def _lock_for(self, path: Path) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            # one file per day; idle locks for earlier days are dropped
            self._locks = {p: held for p, held in self._locks.items() if held.locked()}
            lock = self._locks[path] = asyncio.Lock()
        return lock

    async def execute(self, action: str, message: Optional[str] = None,
                      summary: Optional[str] = None) -> str:
        self.settings.directory.mkdir(parents=True, exist_ok=True)

        if action == "recent":
            return await asyncio.to_thread(self.recent)

        now = self.clock()
        day = now.date().isoformat()
        path = self.settings.path_for(day)

        async with self._lock_for(path):
            if action == "start_session":
                return await asyncio.to_thread(self.start_session, day, path)
            if action == "record":
                return await asyncio.to_thread(
                    self.record, day, path, message, now.strftime("%H:%M:%S")
                )
            if action == "summary":
                return await asyncio.to_thread(self.summarize, path, summary)

        raise ExecutionError(f"Unknown action: {action}", self.name)
