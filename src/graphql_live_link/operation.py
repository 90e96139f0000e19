"""GraphQL operation descriptor.

An Operation is what flows through the link pipeline: the document
text plus everything needed to execute it. It is immutable; links that
need to change headers derive a new Operation with `with_headers`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from functools import cached_property
from typing import Any

from graphql import (
    DocumentNode,
    OperationDefinitionNode,
    get_operation_ast,
    parse,
    print_ast,
)


@dataclass(frozen=True)
class Operation:
    """Immutable request descriptor."""

    query: str
    operation_name: str | None = None
    variables: dict[str, Any] = field(default_factory=dict)
    extensions: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)

    @cached_property
    def document(self) -> DocumentNode:
        """Parsed document. Raises GraphQLSyntaxError on invalid text."""
        return parse(self.query)

    @cached_property
    def definition(self) -> OperationDefinitionNode | None:
        """The operation definition selected by `operation_name`.

        None when the document holds several operations and no name
        picks one, or when the name matches nothing.
        """
        return get_operation_ast(self.document, self.operation_name)

    @property
    def printed_query(self) -> str:
        """Normalized document text."""
        return print_ast(self.document)

    def with_headers(self, **headers: str) -> Operation:
        """Return a copy with `headers` merged over the current ones."""
        return replace(self, headers={**self.headers, **headers})

    def to_json_body(self) -> dict[str, Any]:
        """Standard GraphQL-over-HTTP request body."""
        body: dict[str, Any] = {"query": self.printed_query, "variables": self.variables}
        if self.operation_name:
            body["operationName"] = self.operation_name
        if self.extensions:
            body["extensions"] = self.extensions
        return body
