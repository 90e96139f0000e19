"""Streaming request encoding.

The event stream is opened with a plain GET, so nothing can travel in
a body or in headers: the document, its variables and the credential
are all encoded as query parameters.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx

from ..operation import Operation

BEARER_PREFIX = "Bearer "


def _encode_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def bearer(credential: str) -> str:
    """Format a credential as a bearer authorization value."""
    if credential.startswith(BEARER_PREFIX):
        return credential
    return f"{BEARER_PREFIX}{credential}"


@dataclass(frozen=True)
class TransportRequest:
    """Endpoint plus the ordered query parameters of a streaming request."""

    endpoint: str
    params: tuple[tuple[str, str], ...]

    @property
    def url(self) -> httpx.URL:
        """Full request URL, keeping any parameters already on the endpoint."""
        base = httpx.URL(self.endpoint)
        merged = list(base.params.multi_items()) + list(self.params)
        return base.copy_with(params=httpx.QueryParams(merged))

    def get(self, key: str) -> str | None:
        """First value of a parameter, if present."""
        for name, value in self.params:
            if name == key:
                return value
        return None


class RequestEncoder:
    """Builds TransportRequests for one endpoint.

    Parameter order is fixed so identical inputs always produce an
    identical URL: authorization, query, operationName, variables,
    extensions. `operationName` and `extensions` are separate keys and
    each appears at most once.
    """

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint

    def encode(self, operation: Operation, credential: str | None = None) -> TransportRequest:
        params: list[tuple[str, str]] = []

        if credential:
            params.append(("authorization", bearer(credential)))

        params.append(("query", operation.printed_query))

        if operation.operation_name:
            params.append(("operationName", operation.operation_name))

        params.append(("variables", _encode_json(operation.variables)))

        if operation.extensions:
            params.append(("extensions", _encode_json(operation.extensions)))

        return TransportRequest(endpoint=self.endpoint, params=tuple(params))
