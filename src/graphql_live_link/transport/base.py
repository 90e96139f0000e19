"""Transport abstraction base classes.

Defines the event vocabulary shared by every event source and the
protocol the stream bridge consumes, so the SSE source can be swapped
for another push transport (or a fake in tests) without changing the
reconciliation code.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class ConnectionState(str, Enum):
    """Connection state machine."""

    CONNECTING = "connecting"
    OPEN = "open"
    ERRORED = "errored"
    CLOSED = "closed"


@dataclass(frozen=True)
class DataEvent:
    """A parsed JSON message from the server."""

    value: Any


@dataclass(frozen=True)
class ErrorEvent:
    """A fatal failure. Always the last event of a stream."""

    cause: Exception


@dataclass(frozen=True)
class TerminalEvent:
    """The server ended the stream gracefully."""


RawEvent = DataEvent | ErrorEvent | TerminalEvent


@runtime_checkable
class EventSource(Protocol):
    """Protocol for a push channel delivering RawEvents.

    Implementations:
    - ResilientEventSource: Server-Sent Events over httpx
    """

    def __aiter__(self) -> AsyncIterator[RawEvent]:
        """Iterate over events from the channel."""
        ...

    def close(self) -> None:
        """Close the channel. Idempotent; nothing is delivered afterwards."""
        ...


@dataclass
class EventSourceConfig:
    """Event source configuration."""

    # Connection settings
    timeout: float = 30.0

    # Reconnection settings (for intermittent connectivity)
    reconnect: bool = True
    reconnect_delay: float = 1.0
    max_reconnect_delay: float = 30.0
    reconnect_backoff: float = 2.0
    # Consecutive failed attempts before giving up; None retries forever
    max_retries: int | None = 10
