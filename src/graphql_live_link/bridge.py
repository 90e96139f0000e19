"""Stream bridge - subscribe/cancel over a live event source.

The bridge ties one event source to one reconciler and exposes the
resulting snapshots two ways:

- pull: `async for snapshot in bridge`
- push: `bridge.subscribe(observer)` returns a Subscription handle

Both are backpressured: the next wire event is read only after the
consumer has taken (and, for async observers, acknowledged) the
previous snapshot, so at most one snapshot is ever in flight.

Cancellation is synchronous. It marks the bridge closed and closes the
source (exactly once, shared with natural termination). A read pending
on the network in another task is interrupted, so the consumer's loop
ends without waiting for the server; any event read afterwards is
dropped unparsed.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .reconcile import PatchReconciler
from .transport.base import EventSource, RawEvent

logger = logging.getLogger(__name__)

SourceOpener = Callable[[], Awaitable[EventSource]]


@dataclass
class Observer:
    """Callbacks receiving a stream's results.

    Each callback may be a plain function or a coroutine function; an
    async `on_next` is awaited before the next result is produced.
    """

    on_next: Callable[[dict[str, Any]], Any] | None = None
    on_error: Callable[[Exception], Any] | None = None
    on_complete: Callable[[], Any] | None = None


async def _notify(callback: Callable[..., Any] | None, *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class Subscription:
    """Handle for one observer delivery.

    Delivers every result to `on_next`, then exactly one of
    `on_complete` or `on_error`, unless cancelled first. An exception
    raised by `on_next` ends the delivery through `on_error`.
    Must be created inside a running event loop.
    """

    def __init__(
        self,
        results: AsyncIterable[dict[str, Any]],
        observer: Observer,
        on_cancel: Callable[[], None] | None = None,
    ) -> None:
        self._observer = observer
        self._on_cancel = on_cancel
        self._closed = False
        self._task = asyncio.create_task(self._pump(results))

    @property
    def closed(self) -> bool:
        """True once cancelled or once delivery has finished."""
        return self._closed

    def cancel(self) -> None:
        """Stop delivery. Idempotent."""
        if self._closed:
            return
        self._closed = True

        if self._on_cancel is not None:
            self._on_cancel()

        # From inside a callback the pump is the current task; the closed
        # flag stops it once the callback returns.
        if not self._task.done() and self._task is not _current_task():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait until delivery has finished or been cancelled."""
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _pump(self, results: AsyncIterable[dict[str, Any]]) -> None:
        iterator = aiter(results)
        try:
            async for result in iterator:
                if self._closed:
                    return
                await _notify(self._observer.on_next, result)
                if self._closed:
                    return
        except Exception as e:
            if self._closed:
                return
            self._closed = True
            logger.debug(f"Subscription ended with error: {e}")
            await self._safe_notify(self._observer.on_error, e)
            return
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

        if not self._closed:
            self._closed = True
            await self._safe_notify(self._observer.on_complete)

    async def _safe_notify(self, callback: Callable[..., Any] | None, *args: Any) -> None:
        try:
            await _notify(callback, *args)
        except Exception:
            logger.exception("Error in subscription observer")


class StreamBridge:
    """One live subscription: event source + reconciler + consumer contract.

    `source` is either an EventSource or a coroutine function returning
    one. The latter runs when consumption starts, so credential lookup
    and request encoding happen before the connection is opened. The
    bridge can be consumed once.
    """

    def __init__(
        self,
        source: EventSource | SourceOpener,
        reconciler: PatchReconciler | None = None,
    ) -> None:
        self._source_arg = source
        # Sources are not callable; openers are
        self._source: EventSource | None = None if callable(source) else source
        self.reconciler = reconciler or PatchReconciler()
        self._closed = False
        self._source_closed = False
        self._started = False
        self._subscription: Subscription | None = None
        self._reader: asyncio.Task[Any] | None = None
        self._interrupted = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def source(self) -> EventSource | None:
        """The event source; None until an opener has produced one."""
        return self._source

    async def _open(self) -> EventSource:
        if self._source is not None:
            return self._source
        return await self._source_arg()

    async def _guard(self, events: AsyncIterator[RawEvent]) -> AsyncIterator[RawEvent]:
        """Read events until cancelled, dropping everything read afterwards.

        While a read is pending the reading task is recorded, so `cancel()`
        from another task can interrupt it.
        """
        while not self._closed:
            reader = asyncio.current_task()
            self._reader = reader
            try:
                event = await anext(events)
            except StopAsyncIteration:
                return
            except asyncio.CancelledError:
                # Only our own interruption ends the stream quietly
                if self._interrupted and reader is not None and reader.uncancel() == 0:
                    return
                raise
            finally:
                self._reader = None

            if self._closed:
                return
            yield event

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        """Iterate over reconciled snapshots."""
        if self._started:
            raise RuntimeError("StreamBridge can only be consumed once")
        self._started = True

        try:
            source = await self._open()
            self._source = source
            if self._closed:
                return

            events = aiter(source)
            snapshots = self.reconciler.stream(self._guard(events))
            try:
                async for snapshot in snapshots:
                    if self._closed:
                        return
                    yield snapshot
            finally:
                await snapshots.aclose()
                aclose = getattr(events, "aclose", None)
                if aclose is not None:
                    await aclose()
        finally:
            self._finish()

    def _close_source(self) -> None:
        if self._source is None or self._source_closed:
            return
        self._source_closed = True
        self._source.close()

    def _finish(self) -> None:
        self._closed = True
        self._close_source()

    def subscribe(self, observer: Observer) -> Subscription:
        """Deliver snapshots to `observer`; returns the cancellation handle."""
        if self._subscription is not None:
            raise RuntimeError("StreamBridge already has a subscriber")
        self._subscription = Subscription(self, observer, on_cancel=self.cancel)
        return self._subscription

    def cancel(self) -> None:
        """Close the stream now. Idempotent."""
        if self._closed and self._source_closed:
            return
        if not self._closed:
            logger.debug("Live subscription cancelled")
        self._finish()
        self._interrupt_read()
        if self._subscription is not None:
            self._subscription.cancel()

    def _interrupt_read(self) -> None:
        reader = self._reader
        if self._interrupted or reader is None or reader.done():
            return
        # A read cannot be pending in the task calling us
        if reader is _current_task():
            return
        self._interrupted = True
        reader.cancel()
