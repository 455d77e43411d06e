"""
MCP Tool Base Classes

Provides the tool definition objects, input validation, error taxonomy and
the uniform content envelope shared by every tool.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

logger = logging.getLogger(__name__)

# {"content": [{"type": "text", "text": "..."}]}
ToolCallResult = Dict[str, List[Dict[str, str]]]

ERROR_PREFIX = "Error:"

_JSON_TYPES = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list, tuple),
}


@dataclass(frozen=True)
class ToolParameter:
    """Definition of a tool parameter."""
    name: str
    type: str
    description: str
    required: bool = True
    default: Any = None
    enum: Optional[Sequence[str]] = None
    min_length: Optional[int] = None

    def to_schema(self) -> Dict[str, Any]:
        prop: Dict[str, Any] = {
            "type": self.type,
            "description": self.description,
        }
        if self.enum is not None:
            prop["enum"] = list(self.enum)
        if self.min_length is not None:
            prop["minLength"] = self.min_length
        if self.default is not None:
            prop["default"] = self.default
        return prop


@dataclass(frozen=True)
class ToolDefinition:
    """Complete definition of an MCP tool."""
    name: str
    description: str
    parameters: List[ToolParameter] = field(default_factory=list)
    handler: Optional[Callable] = None

    def input_schema(self) -> Dict[str, Any]:
        """Render the parameters as a JSON schema object."""
        return {
            "type": "object",
            "properties": {p.name: p.to_schema() for p in self.parameters},
            "required": [p.name for p in self.parameters if p.required],
        }

    def to_descriptor(self) -> Dict[str, Any]:
        """Capability-discovery form: name, description, inputSchema."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }


class MCPToolError(Exception):
    """Base exception for MCP tool errors."""
    def __init__(self, message: str, tool_name: str = None, details: Dict = None):
        self.message = message
        self.tool_name = tool_name
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(MCPToolError):
    """Raised when tool input validation fails."""
    pass


class ExecutionError(MCPToolError):
    """Raised when tool execution fails."""
    pass


class UnknownToolError(MCPToolError):
    """Raised when a call names a tool that is not registered."""
    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}", tool_name=tool_name)


class ConfigurationError(Exception):
    """Startup-time configuration problem (duplicate tool, bad setting)."""
    pass


class ProtocolError(Exception):
    """An inbound message could not be decoded as a known envelope."""
    pass


def text_content(text: str) -> Dict[str, str]:
    return {"type": "text", "text": text}


def text_result(*texts: str) -> ToolCallResult:
    """Build a ToolCallResult from one or more text items."""
    return {"content": [text_content(t) for t in texts]}


def error_result(message: str) -> ToolCallResult:
    return text_result(f"{ERROR_PREFIX} {message}")


def normalize_result(tool_name: str, result: Any) -> ToolCallResult:
    """
    Coerce whatever a tool returned into the content envelope.

    Accepts a ready envelope, a plain string, or a sequence of strings.
    An empty result still yields one explanatory text item.
    """
    if isinstance(result, dict) and "content" in result:
        content = list(result["content"])
    elif isinstance(result, str):
        content = [text_content(result)] if result else []
    elif result is None:
        content = []
    else:
        content = [text_content(str(item)) for item in result]

    if not content:
        content = [text_content(f"Tool {tool_name} completed with no output")]
    return {"content": content}


def _matches_type(value: Any, expected: str) -> bool:
    types = _JSON_TYPES.get(expected)
    if types is None:
        return True
    # bool is a subclass of int but never a JSON number
    if expected in ("integer", "number") and isinstance(value, bool):
        return False
    return isinstance(value, types)


def validate_arguments(
    tool_name: str,
    parameters: Sequence[ToolParameter],
    arguments: Optional[Mapping[str, Any]],
) -> Dict[str, Any]:
    """
    Check raw call arguments against a tool's parameter list.

    Returns validated/normalized arguments with defaults filled in.
    Raises ValidationError naming the offending field.
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, Mapping):
        raise ValidationError(
            "Arguments must be an object", tool_name=tool_name
        )

    known = {p.name for p in parameters}
    extra = [key for key in arguments if key not in known]
    if extra:
        logger.debug(f"Ignoring unknown arguments for {tool_name}: {extra}")

    validated = {}
    for param in parameters:
        value = arguments.get(param.name)

        if value is None:
            if param.required:
                raise ValidationError(
                    f"Missing required parameter: {param.name}",
                    tool_name=tool_name,
                    details={"field": param.name},
                )
            validated[param.name] = param.default
            continue

        if not _matches_type(value, param.type):
            raise ValidationError(
                f"Invalid type for parameter '{param.name}': expected {param.type}",
                tool_name=tool_name,
                details={"field": param.name},
            )

        if param.enum is not None and value not in param.enum:
            raise ValidationError(
                f"Invalid value for parameter '{param.name}': "
                f"expected one of {', '.join(param.enum)}",
                tool_name=tool_name,
                details={"field": param.name, "value": value},
            )

        if param.min_length is not None and len(value) < param.min_length:
            raise ValidationError(
                f"Parameter '{param.name}' must be at least "
                f"{param.min_length} character(s)",
                tool_name=tool_name,
                details={"field": param.name},
            )

        validated[param.name] = value

    return validated


class MCPTool(ABC):
    """
    Abstract base class for MCP tools.

    All tools must inherit from this class and implement:
    - name: Tool identifier
    - description: What the tool does
    - parameters: List of ToolParameter definitions
    - execute(): The actual tool logic, returning text
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for the tool."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        pass

    @property
    def parameters(self) -> List[ToolParameter]:
        """List of parameters the tool accepts."""
        return []

    @abstractmethod
    async def execute(self, **kwargs) -> Union[str, List[str], ToolCallResult]:
        """
        Execute the tool with validated parameters.
        This method should contain the actual tool logic.
        """
        pass

    async def run(self, **kwargs) -> ToolCallResult:
        """
        Execute already-validated arguments.
        Returns the content envelope; failures become "Error:" text.
        """
        try:
            result = await self.execute(**kwargs)
            return normalize_result(self.name, result)
        except ExecutionError as e:
            logger.error(f"Execution error in {self.name}: {e.message}")
            return error_result(e.message)
        except Exception as e:
            logger.exception(f"Unexpected error in {self.name}")
            return error_result(str(e) or e.__class__.__name__)

    def to_definition(self) -> ToolDefinition:
        """Convert tool to ToolDefinition for registry."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
            handler=self.run,
        )
