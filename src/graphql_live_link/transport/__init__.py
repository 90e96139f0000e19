"""Transport layer.

Provides the push-channel abstractions and their SSE implementation:
- RequestEncoder - operation + credential to a GET request
- ResilientEventSource - auto-reconnecting SSE client
"""

from .base import (
    ConnectionState,
    DataEvent,
    ErrorEvent,
    EventSource,
    EventSourceConfig,
    RawEvent,
    TerminalEvent,
)
from .encoder import RequestEncoder, TransportRequest, bearer
from .sse import ResilientEventSource, ServerSentEvent, SSEDecoder

__all__ = [
    # Base abstractions
    "ConnectionState",
    "DataEvent",
    "ErrorEvent",
    "EventSource",
    "EventSourceConfig",
    "RawEvent",
    "TerminalEvent",
    # Request encoding
    "RequestEncoder",
    "TransportRequest",
    "bearer",
    # SSE implementation
    "ResilientEventSource",
    "ServerSentEvent",
    "SSEDecoder",
]
