"""
Tool Dispatcher

Routes a tool call to its handler and normalizes every outcome into the
content envelope. Tool-level failures (unknown tool, invalid arguments,
handler faults) never escape as exceptions; only malformed messages do.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from mcp.types import LATEST_PROTOCOL_VERSION
from pydantic import BaseModel, Field
from pydantic import ValidationError as EnvelopeError

from . import __version__
from .base import (
    MCPToolError,
    ProtocolError,
    ToolCallResult,
    UnknownToolError,
    ValidationError,
    error_result,
    validate_arguments,
)
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

SERVER_NAME = "cursor-tools"

# JSON-RPC 2.0 error codes
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


class ToolCallRequest(BaseModel):
    """Invocation envelope: a tool name plus raw, unvalidated arguments."""

    name: str = Field(min_length=1)
    arguments: Any = None


class Dispatcher:
    """
    Stateless router from tool name to handler.

    The registry is frozen on construction; the same instance serves every
    call from every transport.
    """

    def __init__(self, registry: ToolRegistry):
        registry.freeze()
        self.registry = registry

    def list_tools(self) -> Dict[str, Any]:
        """Capability discovery: the full catalog."""
        return {"tools": self.registry.list_descriptors()}

    async def handle(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> ToolCallResult:
        """
        Execute a tool by name with given arguments.
        Always returns a ToolCallResult.
        """
        try:
            definition = self.registry.get_tool(name)
            if definition is None or definition.handler is None:
                raise UnknownToolError(name)

            validated = validate_arguments(name, definition.parameters, arguments)
        except UnknownToolError as e:
            logger.warning(e.message)
            return error_result(e.message)
        except ValidationError as e:
            logger.warning(f"Validation error in {name}: {e.message}")
            return error_result(e.message)

        logger.debug(f"Dispatching {name}")
        try:
            return await definition.handler(**validated)
        except MCPToolError as e:
            logger.error(f"Tool error in {name}: {e.message}")
            return error_result(e.message)
        except Exception as e:
            logger.exception(f"Unexpected error in {name}")
            return error_result(str(e) or e.__class__.__name__)

    async def handle_message(self, message: Any) -> Dict[str, Any]:
        """
        Message-handler callback bound to a transport.

        Accepts an invocation envelope ``{name, arguments}``, an empty or
        ``{"method": "tools/list"}`` discovery request, or a JSON-RPC 2.0
        request. Raises ProtocolError for anything else.
        """
        if not isinstance(message, dict):
            raise ProtocolError("Request body must be a JSON object")

        if message.get("jsonrpc") is not None:
            return await self._handle_jsonrpc(message)

        if "name" in message:
            return await self._call_from_params(message)

        method = message.get("method")
        if not message or method == "tools/list":
            return self.list_tools()
        if method == "tools/call":
            return await self._call_from_params(message.get("params") or {})

        raise ProtocolError("Request must contain a tool name")

    async def _call_from_params(self, params: Any) -> ToolCallResult:
        try:
            request = ToolCallRequest.model_validate(params)
        except EnvelopeError as e:
            raise ProtocolError(f"Invalid tool call envelope: {e.errors()[0]['msg']}") from e
        return await self.handle(request.name, request.arguments)

    async def _handle_jsonrpc(self, message: Dict[str, Any]) -> Dict[str, Any]:
        method = message.get("method")
        request_id = message.get("id")

        if not isinstance(method, str):
            raise ProtocolError("JSON-RPC message is missing a method")

        # notifications carry no id and expect no result
        if request_id is None:
            logger.debug(f"Received notification: {method}")
            return {}

        if method == "initialize":
            result: Dict[str, Any] = {
                "protocolVersion": LATEST_PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": SERVER_NAME, "version": __version__},
            }
        elif method == "ping":
            result = {}
        elif method == "tools/list":
            result = self.list_tools()
        elif method == "tools/call":
            try:
                result = await self._call_from_params(message.get("params") or {})
            except ProtocolError as e:
                return _jsonrpc_error(request_id, INVALID_PARAMS, str(e))
        else:
            return _jsonrpc_error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _jsonrpc_error(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": {"code": code, "message": message},
    }
