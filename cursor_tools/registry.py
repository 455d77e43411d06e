"""
MCP Tool Registry

Single Source of Truth (SSOT) for the tool catalog.
Tools are registered explicitly at startup; the catalog is frozen once it
is handed to the dispatcher.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from .base import ConfigurationError, MCPTool, ToolDefinition

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Ordered, append-only catalog of tool definitions."""

    def __init__(self, tools: Iterable[MCPTool] = ()):
        self._tools: Dict[str, ToolDefinition] = {}
        self._frozen = False
        for tool in tools:
            self.register(tool)

    def register(self, tool: MCPTool) -> ToolDefinition:
        """
        Add a tool to the catalog.
        Raises ConfigurationError on a duplicate name or a frozen registry.
        """
        if self._frozen:
            raise ConfigurationError(
                f"Cannot register {tool.name}: registry is frozen"
            )

        definition = tool.to_definition()
        if definition.name in self._tools:
            raise ConfigurationError(
                f"Duplicate tool name: {definition.name}"
            )

        self._tools[definition.name] = definition
        logger.info(f"Registered tool: {definition.name}")
        return definition

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        """
        Get a specific tool by name.
        Returns None if tool not found.
        """
        return self._tools.get(name)

    def list_tools(self) -> List[ToolDefinition]:
        """All registered tools, in registration order."""
        return list(self._tools.values())

    def list_tool_names(self) -> List[str]:
        return list(self._tools.keys())

    def list_descriptors(self) -> List[Dict[str, Any]]:
        """Catalog in capability-discovery form."""
        return [definition.to_descriptor() for definition in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def build_default_registry(settings: "Settings") -> ToolRegistry:
    """Register the four built-in tools with their injected settings."""
    from .tools.architect import ArchitectTool
    from .tools.code_review import CodeReviewTool
    from .tools.journaling import JournalingTool
    from .tools.screenshot import ScreenshotTool

    registry = ToolRegistry([
        ScreenshotTool(settings.screenshot),
        ArchitectTool(),
        CodeReviewTool(settings.code_review),
        JournalingTool(settings.journal),
    ])
    logger.info(f"Tool registration complete. Total tools: {len(registry)}")
    return registry
