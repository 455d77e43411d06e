"""
Tests for the HTTP and stdio transports.
"""

import asyncio
import json
import os
import signal
import socket
import subprocess
import sys
import threading
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient
from mcp import types
from mcp.shared.memory import create_connected_server_and_client_session

from cursor_tools.transports import (
    HttpTransport,
    StdioTransport,
    Transport,
    TransportError,
    create_transport,
    stdio,
)

from conftest import text_of

ROOT = Path(__file__).resolve().parents[1]

INITIALIZE = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {
        "protocolVersion": types.LATEST_PROTOCOL_VERSION,
        "capabilities": {},
        "clientInfo": {"name": "pytest", "version": "0"},
    },
}


@pytest.fixture
def http_transport(dispatcher) -> HttpTransport:
    transport = HttpTransport(host="127.0.0.1", port=0)
    transport.bind(dispatcher.handle_message)
    return transport


@pytest.fixture
def client(http_transport) -> TestClient:
    return TestClient(http_transport.app)


class TestHttpRoutes:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_health_without_handler(self):
        response = TestClient(HttpTransport().app).get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_architect_call(self, client):
        response = client.post(
            "/mcp",
            json={"name": "architect", "arguments": {"task": "t", "code": "function f(){}"}},
        )

        assert response.status_code == 200
        text = text_of(response.json())
        assert "Lines of code: 1" in text
        assert "Contains functions: true" in text

    def test_unknown_tool_is_200(self, client):
        response = client.post("/mcp", json={"name": "nope", "arguments": {}})

        assert response.status_code == 200
        assert "Unknown tool" in text_of(response.json())

    def test_capability_discovery(self, client):
        response = client.post("/mcp", json={})

        assert response.status_code == 200
        assert len(response.json()["tools"]) == 4

    def test_jsonrpc_call(self, client):
        response = client.post("/mcp", json={
            "jsonrpc": "2.0",
            "id": 1,
            "method": "tools/call",
            "params": {"name": "architect", "arguments": {"task": "t", "code": "c"}},
        })

        body = response.json()
        assert body["id"] == 1
        assert "Task Analysis for: t" in text_of(body["result"])

    def test_malformed_envelope_is_500(self, client):
        response = client.post("/mcp", json=["not", "an", "object"])

        assert response.status_code == 500
        assert "error" in response.json()

    def test_invalid_json_is_500(self, client):
        response = client.post(
            "/mcp", content=b"{not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 500
        assert response.json()["error"]

    def test_handler_not_initialized(self):
        client = TestClient(HttpTransport().app)

        response = client.post("/mcp", json={"name": "architect", "arguments": {}})

        assert response.status_code == 500
        assert response.json() == {"error": "Message handler not initialized"}


class TestHttpLifecycle:

    @pytest.mark.asyncio
    async def test_start_serve_close(self, dispatcher):
        transport = HttpTransport(host="127.0.0.1", port=0)
        await transport.connect(dispatcher.handle_message)
        try:
            port = transport.bound_port
            assert port

            async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{port}", trust_env=False) as client:
                health = await client.get("/health")
                call = await client.post("/mcp", json={"name": "nope"})

            assert health.json() == {"status": "ok"}
            assert "Unknown tool" in text_of(call.json())
        finally:
            await transport.close()

        assert transport.bound_port is None

    @pytest.mark.asyncio
    async def test_bind_failure(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen()
            port = busy.getsockname()[1]

            transport = HttpTransport(host="127.0.0.1", port=port)
            with pytest.raises(TransportError, match="Could not bind"):
                await transport.start()

    @pytest.mark.asyncio
    async def test_close_before_start_is_noop(self):
        await HttpTransport().close()


class TestStdioTransport:

    def test_handlers_registered(self):
        transport = StdioTransport()

        assert types.ListToolsRequest in transport.server.request_handlers
        assert types.CallToolRequest in transport.server.request_handlers

    @pytest.mark.asyncio
    async def test_list_tools(self, dispatcher):
        transport = StdioTransport()
        transport.bind(dispatcher.handle_message)

        tools = await transport.list_tools()

        assert [t.name for t in tools] == ["screenshot", "architect", "code_review", "journaling"]
        assert tools[1].inputSchema["required"] == ["task", "code"]

    @pytest.mark.asyncio
    async def test_call_tool(self, dispatcher):
        transport = StdioTransport()
        transport.bind(dispatcher.handle_message)

        content = await transport.call_tool("architect", {"task": "t", "code": "class X"})

        assert len(content) == 1
        assert content[0].type == "text"
        assert "Contains classes: true" in content[0].text

    @pytest.mark.asyncio
    async def test_call_tool_none_arguments(self, dispatcher):
        transport = StdioTransport()
        transport.bind(dispatcher.handle_message)

        content = await transport.call_tool("journaling", None)

        assert content[0].text == "Error: Missing required parameter: action"

    @pytest.mark.asyncio
    async def test_requires_handler(self):
        with pytest.raises(TransportError):
            await StdioTransport().list_tools()

    @pytest.mark.asyncio
    async def test_start_requires_handler(self):
        with pytest.raises(TransportError):
            await StdioTransport().start()

    @pytest.mark.asyncio
    async def test_sdk_session(self, dispatcher):
        transport = StdioTransport()
        transport.bind(dispatcher.handle_message)

        async with create_connected_server_and_client_session(transport.server) as session:
            listed = await session.list_tools()
            ok = await session.call_tool("architect", {"task": "t", "code": "def f(): pass"})
            invalid = await session.call_tool("architect", {"task": "t"})

        assert [t.name for t in listed.tools] == ["screenshot", "architect", "code_review", "journaling"]
        assert "Contains functions: true" in ok.content[0].text
        assert invalid.isError is False
        assert invalid.content[0].text == "Error: Missing required parameter: code"

    @pytest.mark.asyncio
    async def test_close_abandons_stuck_task(self, dispatcher, monkeypatch):
        async def stuck():
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                await asyncio.sleep(60)

        monkeypatch.setattr(stdio, "CLOSE_TIMEOUT_SECONDS", 0.1)
        transport = StdioTransport()
        transport.bind(dispatcher.handle_message)
        monkeypatch.setattr(transport, "_serve", stuck)
        await transport.start()
        task = transport._task
        await asyncio.sleep(0)

        await asyncio.wait_for(transport.close(), 5)

        assert not task.done()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)


@pytest.fixture
def pipes():
    in_r, in_w = os.pipe()
    out_r, out_w = os.pipe()
    yield in_r, in_w, out_r, out_w
    # closing the write end first lets the reader thread see EOF
    for fd in (in_w, in_r):
        try:
            os.close(fd)
        except OSError:
            pass


class TestStdioFraming:

    @pytest.mark.asyncio
    async def test_exchange_then_close_with_stdin_open(self, dispatcher, pipes):
        in_r, in_w, out_r, out_w = pipes
        transport = StdioTransport(stdin_fd=in_r, stdout=open(out_w, "wb"))
        replies = open(out_r, "rb")

        def send(message):
            os.write(in_w, (json.dumps(message) + "\n").encode("utf-8"))

        async def receive():
            line = await asyncio.wait_for(asyncio.to_thread(replies.readline), 10)
            return json.loads(line)

        try:
            await transport.connect(dispatcher.handle_message)

            send(INITIALIZE)
            initialized = await receive()
            send({"jsonrpc": "2.0", "method": "notifications/initialized"})
            send({"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
            listed = await receive()
            send({
                "jsonrpc": "2.0",
                "id": 3,
                "method": "tools/call",
                "params": {"name": "architect", "arguments": {"task": "t"}},
            })
            called = await receive()

            loop = asyncio.get_running_loop()
            started = loop.time()
            await asyncio.wait_for(transport.close(), 10)
            elapsed = loop.time() - started
        finally:
            replies.close()

        assert initialized["id"] == 1
        assert initialized["result"]["serverInfo"]["name"] == "cursor-tools"
        assert listed["id"] == 2
        assert len(listed["result"]["tools"]) == 4
        assert called["id"] == 3
        assert called["result"]["content"][0]["text"] == "Error: Missing required parameter: code"
        assert not called["result"].get("isError")
        assert elapsed < stdio.CLOSE_TIMEOUT_SECONDS

    @pytest.mark.asyncio
    async def test_stdin_eof_ends_transport(self, dispatcher):
        in_r, in_w = os.pipe()
        out_r, out_w = os.pipe()
        transport = StdioTransport(stdin_fd=in_r, stdout=open(out_w, "wb"))
        try:
            await transport.connect(dispatcher.handle_message)
            os.close(in_w)

            await asyncio.wait_for(transport.wait(), 10)
            await transport.close()
        finally:
            os.close(in_r)
            os.close(out_r)


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
class TestStdioProcess:

    def test_sigterm_exits_with_stdin_open(self, tmp_path):
        env = dict(
            os.environ,
            MCP_TRANSPORT="stdio",
            JOURNAL_DIR=str(tmp_path),
            PYTHONPATH=str(ROOT),
        )
        proc = subprocess.Popen(
            [sys.executable, "-m", "cursor_tools"],
            cwd=ROOT,
            env=env,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        # unblocks readline if the server never answers
        watchdog = threading.Timer(60, proc.kill)
        watchdog.start()
        try:
            proc.stdin.write(json.dumps(INITIALIZE).encode("utf-8") + b"\n")
            proc.stdin.flush()
            reply = json.loads(proc.stdout.readline())

            proc.send_signal(signal.SIGTERM)
            returncode = proc.wait(timeout=10)
            stderr = proc.stderr.read().decode("utf-8", errors="replace")
        finally:
            watchdog.cancel()
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            for stream in (proc.stdin, proc.stdout, proc.stderr):
                stream.close()

        assert reply["id"] == 1
        assert returncode == 0
        assert "Stdio transport closed" in stderr


class TestCreateTransport:

    def test_kinds(self):
        assert isinstance(create_transport("stdio"), StdioTransport)
        http = create_transport("http", host="127.0.0.1", port=4444)
        assert isinstance(http, HttpTransport)
        assert http.port == 4444

    def test_both_satisfy_interface(self):
        assert isinstance(StdioTransport(), Transport)
        assert isinstance(HttpTransport(), Transport)

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_transport("carrier-pigeon")
