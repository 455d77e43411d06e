"""
Transport interface.

A transport carries envelopes between the agent host and a single
message handler (normally Dispatcher.handle_message).
"""

from typing import Any, Awaitable, Callable, Dict, Protocol, runtime_checkable

MessageHandler = Callable[[Any], Awaitable[Dict[str, Any]]]


class TransportError(Exception):
    """Transport-level failure: bind errors, missing handler, closed stream."""
    pass


@runtime_checkable
class Transport(Protocol):
    async def start(self) -> None:
        """Begin accepting messages."""
        ...

    async def connect(self, handler: MessageHandler) -> None:
        """Bind the message handler for the session's lifetime, then start."""
        ...

    async def send(self, message: Dict[str, Any]) -> None:
        ...

    async def wait(self) -> None:
        """Resolve when the transport stops on its own (e.g. stdin closed)."""
        ...

    async def close(self) -> None:
        ...
