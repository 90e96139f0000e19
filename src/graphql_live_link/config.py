"""Link configuration.

Values come from constructor arguments or, via `LinkConfig.from_env`,
from GRAPHQL_LIVE_* environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .transport.base import EventSourceConfig

DEFAULT_ENDPOINT = "http://localhost:4000/graphql"


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e


def _env_retries(name: str, default: int | None) -> int | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    if value.lower() in ("none", "unlimited"):
        return None
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer or 'unlimited', got {value!r}") from e


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes")


@dataclass
class LinkConfig:
    """Configuration for the default link pipeline."""

    # Endpoints
    endpoint: str = DEFAULT_ENDPOINT
    http_endpoint: str | None = None  # Defaults to endpoint
    timeout: float = 30.0

    # Event stream reconnection
    reconnect: bool = True
    reconnect_delay: float = 1.0
    max_reconnect_delay: float = 30.0
    reconnect_backoff: float = 2.0
    max_retries: int | None = 10

    # Credentials
    token_template: str | None = None
    require_token: bool = False

    @property
    def request_endpoint(self) -> str:
        """Endpoint for request/response operations."""
        return self.http_endpoint or self.endpoint

    def to_event_source_config(self) -> EventSourceConfig:
        return EventSourceConfig(
            timeout=self.timeout,
            reconnect=self.reconnect,
            reconnect_delay=self.reconnect_delay,
            max_reconnect_delay=self.max_reconnect_delay,
            reconnect_backoff=self.reconnect_backoff,
            max_retries=self.max_retries,
        )

    def token_options(self) -> dict[str, str]:
        """Options passed to the token provider."""
        return {"template": self.token_template} if self.token_template else {}

    @classmethod
    def from_env(cls) -> LinkConfig:
        """Build a config from GRAPHQL_LIVE_* environment variables."""
        defaults = cls()
        return cls(
            endpoint=os.getenv("GRAPHQL_LIVE_API_URL", defaults.endpoint),
            http_endpoint=os.getenv("GRAPHQL_LIVE_HTTP_URL") or None,
            timeout=_env_float("GRAPHQL_LIVE_TIMEOUT", defaults.timeout),
            max_retries=_env_retries("GRAPHQL_LIVE_MAX_RETRIES", defaults.max_retries),
            token_template=os.getenv("GRAPHQL_LIVE_TOKEN_TEMPLATE") or None,
            require_token=_env_flag("GRAPHQL_LIVE_REQUIRE_TOKEN"),
        )
