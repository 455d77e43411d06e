"""
Cursor Tools MCP Server

Exposes screenshot, architect, code review and journaling tools to an
agent host over MCP stdio or HTTP.
"""

__version__ = "2.0.1"

from .base import MCPTool, ToolParameter, text_result
from .dispatcher import Dispatcher
from .registry import ToolRegistry, build_default_registry

__all__ = [
    "Dispatcher",
    "MCPTool",
    "ToolParameter",
    "ToolRegistry",
    "build_default_registry",
    "text_result",
]
