"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from graphql_live_link.operation import Operation
from graphql_live_link.transport.encoder import RequestEncoder, TransportRequest

ENDPOINT = "http://api.test/graphql"
LIVE_QUERY = "query Counter @live { count }"


@pytest.fixture
def sse_response() -> Callable[..., httpx.Response]:
    """Factory for text/event-stream responses.

    Each payload becomes one `data:` message; `complete=True` appends the
    server's completion event.
    """

    def make(
        *payloads: Any,
        complete: bool = False,
        status_code: int = 200,
        prefix: str = "",
    ) -> httpx.Response:
        body = prefix + "".join(f"data: {json.dumps(p)}\n\n" for p in payloads)
        if complete:
            body += "event: complete\ndata:\n\n"
        return httpx.Response(
            status_code,
            headers={"content-type": "text/event-stream"},
            content=body.encode("utf-8"),
        )

    return make


@pytest.fixture
def live_operation() -> Operation:
    return Operation(query=LIVE_QUERY, operation_name="Counter")


@pytest.fixture
def live_request(live_operation: Operation) -> TransportRequest:
    return RequestEncoder(ENDPOINT).encode(live_operation, "secret")
