"""LLM streaming relay."""

from .base import ChatResponse, ChatTurn, RelaySettings, StreamChunk, StreamListener
from .errors import (
    ConfigurationError,
    RelayError,
    RemoteError,
    StreamCancelledError,
    TransportReadError,
    TransportSendError,
)
from .relay import ChatRelay
from .sse import LineReassembler

__all__ = [
    "ChatRelay",
    "ChatResponse",
    "ChatTurn",
    "ConfigurationError",
    "LineReassembler",
    "RelayError",
    "RelaySettings",
    "RemoteError",
    "StreamCancelledError",
    "StreamChunk",
    "StreamListener",
    "TransportReadError",
    "TransportSendError",
]
