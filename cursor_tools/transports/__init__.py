"""
Transports carrying envelopes between the agent host and the dispatcher.
"""

from .base import MessageHandler, Transport, TransportError
from .http import HttpTransport
from .stdio import StdioTransport


def create_transport(kind: str, host: str = "0.0.0.0", port: int = 3333,
                     log_level: str = "info") -> Transport:
    """Select a transport implementation by name ("stdio" or "http")."""
    if kind == "stdio":
        return StdioTransport()
    if kind == "http":
        return HttpTransport(host=host, port=port, log_level=log_level)
    raise ValueError(f"Unknown transport: {kind}")


__all__ = [
    "HttpTransport",
    "MessageHandler",
    "StdioTransport",
    "Transport",
    "TransportError",
    "create_transport",
]
