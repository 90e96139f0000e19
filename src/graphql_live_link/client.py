"""Client - runs operations through a link pipeline.

Usage:
    client = create_client(LinkConfig.from_env(), token_provider)

    async for result in client.stream(Operation(query="query Posts @live { ... }")):
        print(result["data"])
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx

from .bridge import Observer, Subscription
from .config import LinkConfig
from .link import (
    AuthLink,
    HttpLink,
    Link,
    LiveLink,
    ResultStream,
    TokenProvider,
    from_links,
    split,
)
from .operation import Operation
from .routing import is_streaming

logger = logging.getLogger(__name__)


@dataclass
class LiveClient:
    """Executes operations through a link pipeline."""

    link: Link

    def stream(self, operation: Operation) -> AsyncIterator[dict[str, Any]]:
        """Every result of `operation`, in arrival order.

        Streaming operations return a ResultStream; its `cancel()` closes
        the live connection at once.
        """
        return self.link.request(operation)

    def subscribe(self, operation: Operation, observer: Observer) -> Subscription:
        """Push results of `operation` to `observer`; returns the cancellation handle."""
        results = self.stream(operation)
        on_cancel = results.cancel if isinstance(results, ResultStream) else None
        return Subscription(results, observer, on_cancel=on_cancel)

    async def execute(self, operation: Operation) -> dict[str, Any] | None:
        """Run `operation` to completion and return its last result."""
        last: dict[str, Any] | None = None
        async for result in self.stream(operation):
            last = result
        return last


def create_client(
    config: LinkConfig | None = None,
    token_provider: TokenProvider | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> LiveClient:
    """Create a client with the default pipeline.

    Args:
        config: Endpoint and reconnection settings (default: LinkConfig())
        token_provider: Optional bearer token source
        http_client: Shared httpx client, mostly for tests

    Returns:
        LiveClient routing live operations to SSE and the rest to HTTP POST
    """
    config = config or LinkConfig()

    terminal = split(
        is_streaming,
        LiveLink(config.endpoint, config.to_event_source_config(), client=http_client),
        HttpLink(config.request_endpoint, timeout=config.timeout, client=http_client),
    )

    links: list[Link] = []
    if token_provider is not None:
        links.append(
            AuthLink(
                token_provider,
                options=config.token_options(),
                require_token=config.require_token,
            )
        )
    links.append(terminal)

    logger.debug(f"Created client for {config.endpoint}")
    return LiveClient(link=from_links(links))
