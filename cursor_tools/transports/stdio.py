"""
Stdio transport.

Speaks MCP JSON-RPC over stdin/stdout using the SDK's low-level Server.
Messages are handled one at a time; logs must go to stderr.
"""

import asyncio
import logging
import os
import sys
import threading
from io import TextIOWrapper
from typing import Any, BinaryIO, Dict, List, Optional

import anyio
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .. import __version__
from .base import MessageHandler, TransportError

logger = logging.getLogger(__name__)

READ_CHUNK_BYTES = 65536
CLOSE_TIMEOUT_SECONDS = 5.0


class StdinLines:
    """
    Async iterator over newline-framed text read from a file descriptor.

    Reads happen on a daemon thread with ``os.read`` so that a blocked read
    neither delays cancellation nor keeps the interpreter alive at exit.
    """

    def __init__(self, fd: int):
        self.fd = fd
        self._queue: Optional[asyncio.Queue] = None

    def __aiter__(self) -> "StdinLines":
        return self

    async def __anext__(self) -> str:
        if self._queue is None:
            self._queue = asyncio.Queue()
            threading.Thread(
                target=self._pump,
                args=(asyncio.get_running_loop(), self._queue),
                name="stdin-reader",
                daemon=True,
            ).start()
        line = await self._queue.get()
        if line is None:
            raise StopAsyncIteration
        return line

    def _pump(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue) -> None:
        pending = b""
        try:
            while True:
                try:
                    chunk = os.read(self.fd, READ_CHUNK_BYTES)
                except OSError as e:
                    logger.debug(f"stdin read failed: {e}")
                    chunk = b""
                if not chunk:
                    break
                *lines, pending = (pending + chunk).split(b"\n")
                for raw in lines:
                    loop.call_soon_threadsafe(queue.put_nowait, raw.decode("utf-8", errors="replace"))
            if pending:
                loop.call_soon_threadsafe(queue.put_nowait, pending.decode("utf-8", errors="replace"))
            loop.call_soon_threadsafe(queue.put_nowait, None)
        except RuntimeError:
            # event loop closed before stdin did
            pass


class StdioTransport:
    """MCP stdio binding for a single message handler."""

    def __init__(self, server_name: str = "cursor-tools",
                 stdin_fd: Optional[int] = None, stdout: Optional[BinaryIO] = None):
        self.server = Server(server_name, version=__version__)
        self.stdin_fd = stdin_fd
        self.stdout = stdout
        self._handler: Optional[MessageHandler] = None
        self._task: Optional[asyncio.Task] = None

        self.server.list_tools()(self.list_tools)
        # the dispatcher validates arguments and reports failures as content
        self.server.call_tool(validate_input=False)(self.call_tool)

    def bind(self, handler: MessageHandler) -> None:
        self._handler = handler

    def _require_handler(self) -> MessageHandler:
        if self._handler is None:
            raise TransportError("Message handler not initialized")
        return self._handler

    async def list_tools(self) -> List[Tool]:
        response = await self._require_handler()({"method": "tools/list"})
        return [
            Tool(
                name=item["name"],
                description=item["description"],
                inputSchema=item["inputSchema"],
            )
            for item in response["tools"]
        ]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> List[TextContent]:
        response = await self._require_handler()({"name": name, "arguments": arguments or {}})
        return [TextContent(type="text", text=item["text"]) for item in response["content"]]

    async def _serve(self) -> None:
        stdin_fd = self.stdin_fd if self.stdin_fd is not None else sys.stdin.fileno()
        stdout = self.stdout if self.stdout is not None else sys.stdout.buffer
        async with stdio_server(
            stdin=StdinLines(stdin_fd),
            stdout=anyio.wrap_file(TextIOWrapper(stdout, encoding="utf-8")),
        ) as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )

    async def start(self) -> None:
        self._require_handler()
        if self._task is not None:
            raise TransportError("Transport already started")
        self._task = asyncio.create_task(self._serve())
        logger.info("MCP Server running on stdio")

    async def connect(self, handler: MessageHandler) -> None:
        self.bind(handler)
        await self.start()

    async def send(self, message: Dict[str, Any]) -> None:
        # responses are written by the SDK session
        logger.debug("send() is a no-op on the stdio transport")

    async def wait(self) -> None:
        if self._task is not None:
            # a cancelled waiter must not tear down the server task
            await asyncio.shield(self._task)

    async def close(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        if not task.done():
            task.cancel()
        done, _ = await asyncio.wait({task}, timeout=CLOSE_TIMEOUT_SECONDS)
        if not done:
            logger.warning(f"Stdio transport did not stop within {CLOSE_TIMEOUT_SECONDS}s, abandoning it")
            return
        try:
            task.result()
        except asyncio.CancelledError:
            pass
        logger.info("Stdio transport closed")
