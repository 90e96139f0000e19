"""Link composition pipeline.

A link takes an Operation and produces an async stream of results.
Links are chained with `from_links`; each non-terminal link receives
a `forward` callable that runs the rest of the chain.

The default pipeline is:

    from_links([AuthLink(provider), split(is_streaming, LiveLink(url), HttpLink(url))])

AuthLink resolves the bearer token into the `authorization` header,
then SplitLink sends live queries and subscriptions to the event
stream and everything else to a plain POST.

Streaming links return a ResultStream. Its `cancel()` reaches the
live connection synchronously through every wrapping link.
"""

from __future__ import annotations

import contextlib
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any, Protocol, runtime_checkable

import httpx

from .bridge import StreamBridge
from .errors import AuthError, MalformedPayloadError, TransportError
from .operation import Operation
from .reconcile import PatchReconciler
from .transport.base import EventSourceConfig
from .transport.encoder import RequestEncoder, bearer
from .transport.sse import ResilientEventSource

logger = logging.getLogger(__name__)

Result = dict[str, Any]
NextLink = Callable[[Operation], AsyncIterator[Result]]

AUTHORIZATION_HEADER = "authorization"


class ResultStream:
    """Async iterator of results with synchronous cancellation.

    `cancel()` runs the `on_cancel` hook at most once; closing the
    underlying resources is the hook's job.
    """

    def __init__(
        self,
        results: AsyncIterator[Result],
        on_cancel: Callable[[], None] | None = None,
    ) -> None:
        self._results = results
        self._on_cancel = on_cancel
        self._cancelled = False

    @classmethod
    def wrap(cls, results: AsyncIterator[Result]) -> ResultStream:
        """Return `results` itself if already a ResultStream."""
        if isinstance(results, ResultStream):
            return results
        return cls(results)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop the stream now. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()

    def __aiter__(self) -> ResultStream:
        return self

    async def __anext__(self) -> Result:
        return await anext(self._results)

    async def aclose(self) -> None:
        aclose = getattr(self._results, "aclose", None)
        if aclose is not None:
            await aclose()


@runtime_checkable
class TokenProvider(Protocol):
    """Source of bearer tokens. Caching and refresh are its own business."""

    async def fetch_token(self, options: dict[str, Any] | None = None) -> str | None: ...


class StaticTokenProvider:
    """Token provider returning a fixed token."""

    def __init__(self, token: str | None) -> None:
        self.token = token

    async def fetch_token(self, options: dict[str, Any] | None = None) -> str | None:
        return self.token


class Link(ABC):
    """One stage of the pipeline."""

    @abstractmethod
    def request(
        self, operation: Operation, forward: NextLink | None = None
    ) -> AsyncIterator[Result]:
        """Run `operation`, optionally delegating to `forward`."""
        ...

    def concat(self, next_link: Link) -> Link:
        """Chain `next_link` after this one."""
        return ChainLink(self, next_link)


class ChainLink(Link):
    """Two links run in sequence."""

    def __init__(self, first: Link, second: Link) -> None:
        self.first = first
        self.second = second

    def request(
        self, operation: Operation, forward: NextLink | None = None
    ) -> AsyncIterator[Result]:
        def run_second(op: Operation) -> AsyncIterator[Result]:
            return self.second.request(op, forward)

        return self.first.request(operation, run_second)


class SplitLink(Link):
    """Routes each operation to exactly one of two links."""

    def __init__(
        self,
        test: Callable[[Operation], bool],
        left: Link,
        right: Link,
    ) -> None:
        self.test = test
        self.left = left
        self.right = right

    def request(
        self, operation: Operation, forward: NextLink | None = None
    ) -> AsyncIterator[Result]:
        chosen = self.left if self.test(operation) else self.right
        name = operation.operation_name or "anonymous"
        logger.debug(f"Routing {name} to {type(chosen).__name__}")
        return chosen.request(operation, forward)


class AuthLink(Link):
    """Attaches a bearer token to the operation's headers.

    The token is fetched before anything downstream runs, so a failed
    lookup never reaches the network.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        options: dict[str, Any] | None = None,
        require_token: bool = False,
    ) -> None:
        self.token_provider = token_provider
        self.options = options or {}
        self.require_token = require_token

    async def _fetch_token(self) -> str | None:
        try:
            token = await self.token_provider.fetch_token(self.options)
        except Exception as e:
            raise AuthError(f"Failed to retrieve credential: {e}") from e

        if not token and self.require_token:
            raise AuthError("No credential available")
        return token

    def request(self, operation: Operation, forward: NextLink | None = None) -> ResultStream:
        if forward is None:
            raise ValueError("AuthLink cannot be the last link in a chain")

        downstream: ResultStream | None = None

        def cancel_downstream() -> None:
            if downstream is not None:
                downstream.cancel()

        async def results() -> AsyncIterator[Result]:
            nonlocal downstream
            token = await self._fetch_token()
            if stream.cancelled:
                return
            authorized = operation
            if token:
                authorized = operation.with_headers(**{AUTHORIZATION_HEADER: bearer(token)})

            downstream = ResultStream.wrap(forward(authorized))
            async with contextlib.aclosing(downstream):
                async for result in downstream:
                    yield result

        stream = ResultStream(results(), on_cancel=cancel_downstream)
        return stream


class HttpLink(Link):
    """Request/response execution with a JSON POST."""

    def __init__(
        self,
        endpoint: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client

    async def request(
        self, operation: Operation, forward: NextLink | None = None
    ) -> AsyncIterator[Result]:
        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        try:
            try:
                response = await client.post(
                    self.endpoint,
                    json=operation.to_json_body(),
                    headers={"Accept": "application/json", **operation.headers},
                )
            except httpx.HTTPError as e:
                raise TransportError(f"Request failed: {e}", transient=True) from e

            if not response.is_success:
                raise TransportError(
                    f"Request returned HTTP {response.status_code}",
                    status_code=response.status_code,
                )
            try:
                result = response.json()
            except json.JSONDecodeError as e:
                raise MalformedPayloadError(f"Invalid JSON response: {e}", response.text) from e
        finally:
            if self._client is None:
                await client.aclose()

        yield result


class LiveLink(Link):
    """Streaming execution over a resilient SSE channel.

    Uses the operation's `authorization` header as the credential; it
    travels as a query parameter since the event stream carries no
    custom headers.
    """

    def __init__(
        self,
        endpoint: str,
        config: EventSourceConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.encoder = RequestEncoder(endpoint)
        self.config = config or EventSourceConfig()
        self._client = client

    def open(self, operation: Operation) -> StreamBridge:
        """Create the bridge for one subscription."""
        credential = operation.headers.get(AUTHORIZATION_HEADER)
        transport_request = self.encoder.encode(operation, credential)
        source = ResilientEventSource(transport_request, self.config, client=self._client)
        return StreamBridge(source, PatchReconciler())

    def request(self, operation: Operation, forward: NextLink | None = None) -> ResultStream:
        bridge = self.open(operation)
        return ResultStream(aiter(bridge), on_cancel=bridge.cancel)


def split(test: Callable[[Operation], bool], left: Link, right: Link) -> SplitLink:
    """Route operations matching `test` to `left`, all others to `right`."""
    return SplitLink(test, left, right)


def from_links(links: Sequence[Link]) -> Link:
    """Chain links in order."""
    if not links:
        raise ValueError("from_links needs at least one link")
    chain = links[0]
    for link in links[1:]:
        chain = chain.concat(link)
    return chain
