"""Server-Sent Events (SSE) transport implementation.

Client side only: a resilient, auto-reconnecting event source that
turns an SSE response into RawEvents for the reconciler.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx

from ..errors import MalformedPayloadError, TransportError
from .base import (
    ConnectionState,
    DataEvent,
    ErrorEvent,
    EventSourceConfig,
    RawEvent,
    TerminalEvent,
)
from .encoder import TransportRequest

logger = logging.getLogger(__name__)

EVENT_STREAM_MEDIA_TYPE = "text/event-stream"
COMPLETE_EVENT = "complete"
TRANSIENT_STATUS_CODES = frozenset({408, 429})


@dataclass
class ServerSentEvent:
    """One dispatched SSE event."""

    event: str = "message"
    data: str = ""
    id: str | None = None


class SSEDecoder:
    """Incremental line decoder for the SSE wire format.

    Handles:
    - `data:` lines (several lines are joined with newlines)
    - `event:`, `id:` and `retry:` fields
    - `:` comment lines (keep-alives)

    An event is dispatched on a blank line. `last_event_id` and `retry`
    persist across events, as they do for a browser EventSource.
    """

    def __init__(self, last_event_id: str | None = None) -> None:
        self.last_event_id = last_event_id
        self.retry: int | None = None
        self._event = ""
        self._data: list[str] = []

    def decode(self, line: str) -> ServerSentEvent | None:
        """Feed one line; return an event when the line completes one."""
        if not line:
            if not self._data and not self._event:
                return None
            sse = ServerSentEvent(
                event=self._event or "message",
                data="\n".join(self._data),
                id=self.last_event_id,
            )
            self._event = ""
            self._data = []
            return sse

        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event = value
        elif name == "id":
            # Ids containing NULL are ignored
            if "\0" not in value:
                self.last_event_id = value
        elif name == "retry":
            if value.isdigit():
                self.retry = int(value)

        return None


class ResilientEventSource:
    """Client-side SSE event source with transparent reconnection.

    Handles:
    - Parsing each message as JSON into a DataEvent
    - Automatic reconnection on transient failures, with backoff
    - Surfacing fatal failures as a single, final ErrorEvent
    - Remote completion (`event: complete` or HTTP 204) as a TerminalEvent

    Reconnects are invisible to the consumer: nothing is yielded for
    them. The source can be iterated once.
    """

    def __init__(
        self,
        request: TransportRequest,
        config: EventSourceConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.request = request
        self.config = config or EventSourceConfig()
        self._client = client
        self._owns_client = client is None
        self._response: httpx.Response | None = None
        self._state = ConnectionState.CONNECTING
        self._closed = False
        self._started = False
        self._last_event_id: str | None = None
        self._reconnect_delay = self.config.reconnect_delay

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure client is initialized."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout, read=None),  # No read timeout for SSE
            )
        return self._client

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "Accept": EVENT_STREAM_MEDIA_TYPE,
            "Cache-Control": "no-cache",
        }
        if self._last_event_id is not None:
            headers["Last-Event-ID"] = self._last_event_id
        return headers

    def _check_response(self, response: httpx.Response) -> None:
        """Raise a TransportError unless the response is an open event stream."""
        status = response.status_code
        if status in TRANSIENT_STATUS_CODES or status >= 500:
            raise TransportError(
                f"Event stream returned HTTP {status}", status_code=status, transient=True
            )
        if not response.is_success:
            raise TransportError(f"Event stream returned HTTP {status}", status_code=status)

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith(EVENT_STREAM_MEDIA_TYPE):
            raise TransportError(
                f"Expected {EVENT_STREAM_MEDIA_TYPE}, got {content_type or 'no content type'}",
                status_code=status,
            )

    def _parse(self, data: str) -> Any:
        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            raise MalformedPayloadError(f"Invalid JSON in event stream: {e}", data) from e

    async def __aiter__(self) -> AsyncIterator[RawEvent]:
        """Iterate over events from the SSE stream."""
        if self._started:
            raise RuntimeError("ResilientEventSource can only be iterated once")
        self._started = True

        client = self._ensure_client()
        failures = 0

        try:
            while not self._closed:
                self._state = ConnectionState.CONNECTING
                error: TransportError

                try:
                    async with client.stream(
                        "GET", self.request.url, headers=self._build_headers()
                    ) as response:
                        self._response = response

                        if response.status_code == 204:
                            logger.debug("Event stream ended by server (HTTP 204)")
                            yield TerminalEvent()
                            return

                        self._check_response(response)
                        self._state = ConnectionState.OPEN
                        failures = 0
                        self._reconnect_delay = self.config.reconnect_delay  # Reset on success
                        logger.debug(f"Event stream open: {self.request.endpoint}")

                        decoder = SSEDecoder(self._last_event_id)
                        async for line in response.aiter_lines():
                            if self._closed:
                                return

                            sse = decoder.decode(line)
                            self._last_event_id = decoder.last_event_id
                            if decoder.retry is not None:
                                self._reconnect_delay = decoder.retry / 1000
                                decoder.retry = None

                            if sse is None:
                                continue
                            if sse.event == COMPLETE_EVENT:
                                logger.debug("Event stream completed by server")
                                yield TerminalEvent()
                                return
                            if not sse.data:
                                continue

                            if self._closed:
                                return
                            try:
                                value = self._parse(sse.data)
                            except MalformedPayloadError as e:
                                self._state = ConnectionState.ERRORED
                                logger.error(str(e))
                                yield ErrorEvent(e)
                                return

                            if self._closed:
                                return
                            yield DataEvent(value)

                    error = TransportError("Event stream ended unexpectedly", transient=True)
                except TransportError as e:
                    error = e
                except httpx.HTTPError as e:
                    error = TransportError(f"Connection failed: {e}", transient=True)
                finally:
                    self._response = None

                if self._closed:
                    return

                self._state = ConnectionState.ERRORED
                failures += 1
                retries_exhausted = (
                    self.config.max_retries is not None and failures > self.config.max_retries
                )

                if not error.transient or not self.config.reconnect or retries_exhausted:
                    if error.transient and retries_exhausted:
                        error = TransportError(
                            f"Gave up after {failures} failed connection attempts: {error}",
                            status_code=error.status_code,
                        )
                    logger.error(f"SSE connection failed: {error}")
                    yield ErrorEvent(error)
                    return

                logger.warning(
                    f"SSE connection lost: {error}. Reconnecting in {self._reconnect_delay}s..."
                )
                await asyncio.sleep(self._reconnect_delay)
                self._reconnect_delay = min(
                    self._reconnect_delay * self.config.reconnect_backoff,
                    self.config.max_reconnect_delay,
                )
        finally:
            if self._owns_client:
                await client.aclose()

    def close(self) -> None:
        """Close the event source.

        Synchronous and idempotent. Nothing is yielded after this call;
        the open response is released when iteration unwinds.
        """
        if self._closed:
            return
        self._closed = True
        self._state = ConnectionState.CLOSED
        logger.debug(f"Event source closed: {self.request.endpoint}")

    async def aclose(self) -> None:
        """Close the event source and release the connection now."""
        self.close()
        if self._response is not None:
            await self._response.aclose()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
