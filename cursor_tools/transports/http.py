"""
HTTP transport.

Serves the message handler over FastAPI + uvicorn:
  - POST /mcp     envelope in, result out (500 {"error": ...} on failure)
  - GET  /health  liveness probe
"""

import asyncio
import logging
import socket
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from .base import MessageHandler, TransportError

logger = logging.getLogger(__name__)


class HttpTransport:
    """HTTP binding; one shared message handler for all requests."""

    def __init__(self, host: str = "0.0.0.0", port: int = 3333, log_level: str = "info"):
        self.host = host
        self.port = port
        self.log_level = log_level.lower()
        self._handler: Optional[MessageHandler] = None
        self._socket: Optional[socket.socket] = None
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None
        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        app = FastAPI(
            title="Cursor Tools MCP Server",
            description="Model Context Protocol server for coding-agent tools",
            version=__version__,
        )
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

        @app.post("/mcp")
        async def handle_mcp(request: Request):
            try:
                if self._handler is None:
                    raise TransportError("Message handler not initialized")
                body = await request.json()
                response = await self._handler(body)
                return JSONResponse(content=response)
            except Exception as e:
                logger.error(f"Error handling request: {e}")
                return JSONResponse(
                    status_code=500,
                    content={"error": str(e) or "Internal server error"},
                )

        @app.get("/health")
        async def health():
            return {"status": "ok"}

        return app

    @property
    def bound_port(self) -> Optional[int]:
        """Actual listening port (useful when configured with port 0)."""
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    def bind(self, handler: MessageHandler) -> None:
        self._handler = handler

    def _open_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise TransportError(f"Could not bind {self.host}:{self.port}: {e}") from e
        sock.set_inheritable(True)
        return sock

    async def start(self) -> None:
        if self._task is not None:
            raise TransportError("Transport already started")

        self._socket = self._open_socket()
        # log_config=None keeps uvicorn on the root logging setup
        config = uvicorn.Config(self.app, log_level=self.log_level, log_config=None, lifespan="off")
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[self._socket]))

        while not self._server.started:
            if self._task.done():
                task, self._task = self._task, None
                self._close_socket()
                raise TransportError(f"HTTP server failed to start: {task.exception()}")
            await asyncio.sleep(0.01)

        logger.info(f"MCP Server running on http://localhost:{self.bound_port}")
        logger.info("Available endpoints:")
        logger.info("  - POST /mcp - MCP request endpoint")
        logger.info("  - GET /health - Health check endpoint")

    async def connect(self, handler: MessageHandler) -> None:
        self.bind(handler)
        await self.start()

    async def send(self, message: Dict[str, Any]) -> None:
        # request/response only; nothing to push
        logger.debug("send() is a no-op on the HTTP transport")

    async def wait(self) -> None:
        if self._task is not None:
            # a cancelled waiter must not tear down the server task
            await asyncio.shield(self._task)

    def _close_socket(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    async def close(self) -> None:
        """Stop accepting connections and wait for in-flight requests to drain."""
        if self._task is None:
            return
        task, self._task = self._task, None
        self._server.should_exit = True
        try:
            await task
        finally:
            self._close_socket()
        logger.info("HTTP transport closed")
