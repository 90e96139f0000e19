"""Error taxonomy for the live transport.

Every fatal failure of a subscription is one of these. Transient
connection failures are retried inside the event source and never
reach the consumer.
"""

from __future__ import annotations

from typing import Any


class LiveLinkError(Exception):
    """Base class for all transport errors."""

    pass


class TransportError(LiveLinkError):
    """Connection-level failure.

    Raised when a connection fails with a non-transient status, or
    when transient retries have been exhausted.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        transient: bool = False,
    ) -> None:
        self.status_code = status_code
        self.transient = transient
        super().__init__(message)


class MalformedPayloadError(LiveLinkError):
    """An inbound message could not be decoded."""

    def __init__(self, message: str, payload: Any = None) -> None:
        self.payload = payload
        super().__init__(message)


class PatchApplicationError(LiveLinkError):
    """A patch list could not be applied to the current snapshot."""

    def __init__(self, message: str, operation: dict[str, Any] | None = None) -> None:
        self.operation = operation
        super().__init__(message)


class AuthError(LiveLinkError):
    """Credential retrieval failed before any connection was attempted."""

    pass
