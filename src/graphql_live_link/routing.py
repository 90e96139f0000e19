"""Transport selection.

Decides, per operation, whether it needs the persistent event stream
or the ordinary request/response path. Subscriptions always stream;
queries stream when they carry an active `@live` directive.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from graphql import (
    BooleanValueNode,
    GraphQLBoolean,
    OperationDefinitionNode,
    OperationType,
    Undefined,
    value_from_ast,
)

from .operation import Operation

LIVE_DIRECTIVE = "live"


class TransportKind(str, Enum):
    """Which path an operation takes."""

    STREAMING = "streaming"
    REQUEST_RESPONSE = "request-response"


def is_live_query_definition(
    definition: OperationDefinitionNode,
    variables: dict[str, Any] | None = None,
) -> bool:
    """Check whether a query definition carries an active `@live` directive.

    `@live` takes an optional `if: Boolean = true` argument, given either
    as a literal or as a variable. A variable that is not provided falls
    back to the default; an explicit null disables it.
    """
    if definition.operation != OperationType.QUERY:
        return False

    directive = next(
        (d for d in definition.directives or () if d.name.value == LIVE_DIRECTIVE),
        None,
    )
    if directive is None:
        return False

    for argument in directive.arguments or ():
        if argument.name.value != "if":
            continue
        if isinstance(argument.value, BooleanValueNode):
            return argument.value.value
        value = value_from_ast(argument.value, GraphQLBoolean, variables or {})
        if value is Undefined:
            return True
        return value is True

    return True


def select_transport(operation: Operation) -> TransportKind:
    """Classify an operation as streaming or request/response."""
    definition = operation.definition
    if definition is None:
        return TransportKind.REQUEST_RESPONSE

    if definition.operation == OperationType.SUBSCRIPTION:
        return TransportKind.STREAMING

    if is_live_query_definition(definition, operation.variables):
        return TransportKind.STREAMING

    return TransportKind.REQUEST_RESPONSE


def is_streaming(operation: Operation) -> bool:
    """Predicate form of `select_transport`, usable as a split test."""
    return select_transport(operation) is TransportKind.STREAMING
