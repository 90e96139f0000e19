"""GraphQL live link - live queries and subscriptions over Server-Sent Events.

Routes each operation to a request/response path or to a resilient
event stream, and rebuilds live results from JSON Patch updates.
"""

from .bridge import Observer, StreamBridge, Subscription
from .client import LiveClient, create_client
from .config import LinkConfig
from .errors import (
    AuthError,
    LiveLinkError,
    MalformedPayloadError,
    PatchApplicationError,
    TransportError,
)
from .link import (
    AuthLink,
    HttpLink,
    Link,
    LiveLink,
    ResultStream,
    SplitLink,
    StaticTokenProvider,
    TokenProvider,
    from_links,
    split,
)
from .operation import Operation
from .reconcile import (
    Baseline,
    PatchList,
    PatchOperation,
    PatchReconciler,
    RevisionedPatch,
    decode_payload,
)
from .routing import TransportKind, is_streaming, select_transport

__all__ = [
    # Client
    "LiveClient",
    "create_client",
    "LinkConfig",
    # Operations and routing
    "Operation",
    "TransportKind",
    "is_streaming",
    "select_transport",
    # Links
    "Link",
    "AuthLink",
    "HttpLink",
    "LiveLink",
    "ResultStream",
    "SplitLink",
    "TokenProvider",
    "StaticTokenProvider",
    "from_links",
    "split",
    # Streaming
    "StreamBridge",
    "Subscription",
    "Observer",
    "PatchReconciler",
    "PatchOperation",
    "Baseline",
    "PatchList",
    "RevisionedPatch",
    "decode_payload",
    # Errors
    "LiveLinkError",
    "TransportError",
    "MalformedPayloadError",
    "PatchApplicationError",
    "AuthError",
]
