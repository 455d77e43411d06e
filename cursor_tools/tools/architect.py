"""
Architect Tool
Outlines implementation steps for a task from a quick look at the code.
No model call is made; the analysis is a plain structural summary.
"""

from typing import List

from ..base import MCPTool, ToolParameter

SUGGESTED_STEPS = [
    "Review the existing code structure",
    "Identify areas for improvement",
    "Plan implementation changes",
    "Test the modifications",
]


def _flag(value: bool) -> str:
    return "true" if value else "false"


def analyze_code(task: str, code: str) -> str:
    """Render the task analysis text for a task and a code blob."""
    line_count = len(code.split("\n"))
    lines = [
        f"Task Analysis for: {task}",
        "",
        "Code Analysis:",
        f"- Lines of code: {line_count}",
        f"- Contains functions: {_flag('function' in code)}",
        f"- Contains classes: {_flag('class' in code)}",
        "",
        "Suggested Steps:",
    ]
    lines.extend(f"{i}. {step}" for i, step in enumerate(SUGGESTED_STEPS, start=1))
    return "\n".join(lines)


class ArchitectTool(MCPTool):
    """Analyze a task description plus code and outline steps."""

    @property
    def name(self) -> str:
        return "architect"

    @property
    def description(self) -> str:
        return "Analyzes a task description plus some code, then outlines steps for an AI coding agent."

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="task",
                type="string",
                description="Description of the task",
                required=True,
                min_length=1,
            ),
            ToolParameter(
                name="code",
                type="string",
                description="Concatenated code from one or more files",
                required=True,
                min_length=1,
            ),
        ]

    async def execute(self, task: str, code: str) -> str:
        return analyze_code(task, code)
