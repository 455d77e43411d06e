#!/usr/bin/env python3
"""
Supervising launcher.

Runs the server as a child process sharing this process's stdio, forwards
SIGINT/SIGTERM to it, and exits with the child's exit code. Agent hosts
that only accept a single command can point at this entry point.
"""

import logging
import os
import signal
import subprocess
import sys
from typing import List, Optional

logger = logging.getLogger("cursor_tools.launcher")

FORWARDED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def server_command(argv: List[str]) -> List[str]:
    return [sys.executable, "-m", "cursor_tools", *argv]


def exit_code_for(returncode: int) -> int:
    """Map a Popen return code to a process exit status."""
    if returncode < 0:
        logger.error(f"Server was killed with signal {-returncode}")
        return 128 - returncode
    if returncode != 0:
        logger.error(f"Server process exited with code {returncode}")
    return returncode


def run(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    env = {**os.environ, "PYTHONUNBUFFERED": "1"}

    try:
        child = subprocess.Popen(server_command(argv), env=env)
    except OSError as e:
        logger.error(f"Failed to start server: {e}")
        return 1

    def forward(signum, frame):
        if child.poll() is None:
            child.send_signal(signum)

    previous = {sig: signal.signal(sig, forward) for sig in FORWARDED_SIGNALS}
    try:
        returncode = child.wait()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    return exit_code_for(returncode)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    sys.exit(run())


if __name__ == "__main__":
    main()
