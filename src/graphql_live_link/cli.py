"""graphql-live CLI.

Usage:
    graphql-live classify 'query Posts @live { posts { id } }'
    graphql-live encode @posts.graphql --url https://api.example.com/graphql
    graphql-live run @posts.graphql --url https://api.example.com/graphql --var first=10

QUERY is document text, or @path to read it from a file.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from graphql import GraphQLSyntaxError

from .config import LinkConfig
from .errors import LiveLinkError
from .link import StaticTokenProvider
from .operation import Operation
from .routing import select_transport
from .transport.encoder import RequestEncoder

LOG_LEVELS = ["debug", "info", "warning", "error"]


def load_query(value: str) -> str:
    """Return document text, reading it from a file for `@path` values."""
    if value.startswith("@"):
        return Path(value[1:]).read_text(encoding="utf-8")
    return value


def parse_variables(pairs: tuple[str, ...]) -> dict[str, Any]:
    """Parse `key=value` pairs; values are JSON when they parse, else strings."""
    variables: dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected key=value, got {pair!r}", param_hint="--var")
        try:
            variables[key] = json.loads(raw)
        except json.JSONDecodeError:
            variables[key] = raw
    return variables


def _build_operation(
    query: str, operation_name: str | None, variables: tuple[str, ...]
) -> Operation:
    operation = Operation(
        query=load_query(query),
        operation_name=operation_name,
        variables=parse_variables(variables),
    )
    try:
        operation.document
    except GraphQLSyntaxError as e:
        raise click.BadParameter(str(e), param_hint="QUERY") from e
    return operation


query_argument = click.argument("query")
operation_name_option = click.option("--operation-name", "-o", help="Operation to run")
var_option = click.option("--var", "variables", multiple=True, help="Variable as key=value")
url_option = click.option(
    "--url",
    envvar="GRAPHQL_LIVE_API_URL",
    help="GraphQL endpoint (default: $GRAPHQL_LIVE_API_URL)",
)
token_option = click.option(
    "--token",
    envvar="GRAPHQL_LIVE_TOKEN",
    help="Bearer token (default: $GRAPHQL_LIVE_TOKEN)",
)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS),
    default="warning",
    help="Logging verbosity (logs go to stderr)",
)
def main(log_level: str) -> None:
    """Route GraphQL operations over HTTP or a live SSE stream."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@main.command()
@query_argument
@operation_name_option
@var_option
def classify(query: str, operation_name: str | None, variables: tuple[str, ...]) -> None:
    """Print which transport an operation would use.

    Examples:

        graphql-live classify 'subscription { ticks }'
        graphql-live classify 'query Q($on: Boolean) @live(if: $on) { a }' --var on=false
    """
    operation = _build_operation(query, operation_name, variables)
    click.echo(select_transport(operation).value)


@main.command()
@query_argument
@operation_name_option
@var_option
@url_option
@token_option
def encode(
    query: str,
    operation_name: str | None,
    variables: tuple[str, ...],
    url: str | None,
    token: str | None,
) -> None:
    """Print the event stream URL for an operation."""
    operation = _build_operation(query, operation_name, variables)
    endpoint = url or LinkConfig.from_env().endpoint
    click.echo(str(RequestEncoder(endpoint).encode(operation, token).url))


@main.command()
@query_argument
@operation_name_option
@var_option
@url_option
@token_option
@click.option("--max-retries", type=int, default=None, help="Reconnection attempts before failing")
def run(
    query: str,
    operation_name: str | None,
    variables: tuple[str, ...],
    url: str | None,
    token: str | None,
    max_retries: int | None,
) -> None:
    """Execute an operation and print each result as a JSON line.

    Live queries and subscriptions keep printing until the server ends
    the stream or the command is interrupted.
    """
    from .client import create_client

    operation = _build_operation(query, operation_name, variables)

    config = LinkConfig.from_env()
    if url:
        config.endpoint = url
    if max_retries is not None:
        config.max_retries = max_retries

    provider = StaticTokenProvider(token) if token else None
    client = create_client(config, provider)

    async def execute() -> None:
        async for result in client.stream(operation):
            click.echo(json.dumps(result))

    try:
        asyncio.run(execute())
    except LiveLinkError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
