"""
Code Review Tool
Builds a diff-derived review report for a repository against a base branch.
"""

import asyncio
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..base import ExecutionError, MCPTool, ToolParameter
from ..config import CodeReviewSettings

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 60


@dataclass
class FileChange:
    path: str
    insertions: int
    deletions: int
    binary: bool = False


def parse_numstat(output: str) -> List[FileChange]:
    """Parse ``git diff --numstat`` output; binary files report ``-``."""
    changes = []
    for line in output.splitlines():
        parts = line.split("\t", 2)
        if len(parts) != 3:
            continue
        added, removed, path = parts
        if added == "-" or removed == "-":
            changes.append(FileChange(path, 0, 0, binary=True))
        else:
            changes.append(FileChange(path, int(added), int(removed)))
    return changes


def format_report(folder: Path, base_branch: str, changes: List[FileChange],
                  diff: str, max_diff_chars: int) -> str:
    if not changes:
        return f"No changes in {folder} against {base_branch}"

    insertions = sum(c.insertions for c in changes)
    deletions = sum(c.deletions for c in changes)
    lines = [
        f"Code Review for {folder} against {base_branch}",
        "",
        f"Files changed: {len(changes)} (+{insertions}/-{deletions})",
    ]
    for change in changes:
        if change.binary:
            lines.append(f"- {change.path} (binary)")
        else:
            lines.append(f"- {change.path} (+{change.insertions}/-{change.deletions})")

    if len(diff) > max_diff_chars:
        omitted = len(diff) - max_diff_chars
        diff = diff[:max_diff_chars] + f"\n... [diff truncated, {omitted} more characters]"

    lines.extend(["", "Diff:", diff.rstrip("\n")])
    return "\n".join(lines)


class CodeReviewTool(MCPTool):
    """Diff a repository against its base branch and summarize the changes."""

    def __init__(self, settings: CodeReviewSettings):
        self.settings = settings

    @property
    def name(self) -> str:
        return "code_review"

    @property
    def description(self) -> str:
        return (
            "Runs a git diff of the given repository against the "
            f"{self.settings.base_branch} branch and returns a review report."
        )

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="folderPath",
                type="string",
                description=(
                    "Path to the full root directory of the repository to diff "
                    f"against {self.settings.base_branch}"
                ),
                required=True,
                min_length=1,
            ),
        ]

    def _git(self, folder: Path, *args: str) -> str:
        try:
            result = subprocess.run(
                ["git", "-C", str(folder), *args],
                capture_output=True,
                text=True,
                timeout=GIT_TIMEOUT_SECONDS,
            )
        except FileNotFoundError:
            raise ExecutionError("git executable not found", self.name)
        except subprocess.TimeoutExpired:
            raise ExecutionError(f"git {args[0]} timed out", self.name)

        if result.returncode != 0:
            stderr = result.stderr.strip() or "unknown error"
            raise ExecutionError(f"git {args[0]} failed: {stderr}", self.name)
        return result.stdout

    def review(self, folder: Path) -> str:
        base = self.settings.base_branch
        numstat = self._git(folder, "diff", "--numstat", base, "--")
        changes = parse_numstat(numstat)
        diff = self._git(folder, "diff", base, "--") if changes else ""
        logger.info(f"Reviewed {folder}: {len(changes)} changed file(s) against {base}")
        return format_report(folder, base, changes, diff, self.settings.max_diff_chars)

    async def execute(self, folderPath: str) -> str:
        folder = Path(folderPath).expanduser()
        if not folder.is_dir():
            raise ExecutionError(f"Folder not found: {folderPath}", self.name)

        return await asyncio.to_thread(self.review, folder)
