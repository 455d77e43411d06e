#!/usr/bin/env python3
"""
MCP Server Entrypoint

Builds the tool registry and dispatcher, then serves them over the chosen
transport until the transport ends or the process is asked to stop.
"""

import argparse
import asyncio
import logging
import signal
import sys
from dataclasses import replace
from typing import List, Optional

from dotenv import load_dotenv

from .base import ConfigurationError
from .config import TRANSPORTS, Settings
from .dispatcher import Dispatcher
from .registry import build_default_registry
from .transports import Transport, TransportError, create_transport

logger = logging.getLogger("cursor_tools")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cursor-tools",
        description="Serve screenshot, architect, code review and journaling tools over MCP.",
    )
    parser.add_argument("--transport", choices=TRANSPORTS, help="stdio (default) or http")
    parser.add_argument("--host", help="HTTP listen host")
    parser.add_argument("--port", type=int, help="HTTP listen port (default 3333)")
    parser.add_argument("--log-level", help="Logging level (default INFO)")
    return parser.parse_args(argv)


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Command-line flags take precedence over the environment."""
    overrides = {
        "transport": args.transport,
        "host": args.host,
        "port": args.port,
        "log_level": args.log_level.upper() if args.log_level else None,
    }
    return replace(settings, **{k: v for k, v in overrides.items() if v is not None})


def _install_stop_handlers(loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> List[int]:
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # not available on Windows event loops
            pass
    return installed


async def _run_until_stopped(transport: Transport, stop: asyncio.Event) -> None:
    finished = asyncio.create_task(transport.wait())
    stopping = asyncio.create_task(stop.wait())
    try:
        await asyncio.wait({finished, stopping}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stopping.cancel()

    if finished.done():
        # surface a transport that died on its own
        finished.result()
    else:
        logger.info("Shutdown requested, closing transport")
        finished.cancel()


async def serve(transport: Transport, dispatcher: Dispatcher) -> None:
    """Run the transport until it finishes or SIGINT/SIGTERM arrives."""
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    installed = _install_stop_handlers(loop, stop)
    try:
        await transport.connect(dispatcher.handle_message)
        await _run_until_stopped(transport, stop)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        await transport.close()


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)

    try:
        settings = apply_overrides(Settings.from_env(), args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT, stream=sys.stderr)

    try:
        registry = build_default_registry(settings)
        dispatcher = Dispatcher(registry)
        transport = create_transport(
            settings.transport,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level,
        )
        logger.info(f"MCP Server starting with {len(registry)} tools on {settings.transport}")
        asyncio.run(serve(transport, dispatcher))
    except (ConfigurationError, TransportError) as e:
        logger.error(f"Fatal error: {e}")
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
