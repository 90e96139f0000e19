"""Unit tests for the Operation descriptor."""

from __future__ import annotations

import dataclasses

import pytest

from graphql_live_link.operation import Operation


class TestOperation:
    """Tests for Operation."""

    def test_is_immutable(self) -> None:
        op = Operation(query="{ a }")
        with pytest.raises(dataclasses.FrozenInstanceError):
            op.query = "{ b }"  # type: ignore[misc]

    def test_with_headers_returns_new_operation(self) -> None:
        """with_headers merges without touching the original."""
        op = Operation(query="{ a }", headers={"x-trace": "1"})
        updated = op.with_headers(authorization="Bearer t")

        assert updated is not op
        assert op.headers == {"x-trace": "1"}
        assert updated.headers == {"x-trace": "1", "authorization": "Bearer t"}

    def test_definition_resolves_named_operation(self) -> None:
        op = Operation(query="query A { a } query B { b }", operation_name="B")
        assert op.definition is not None
        assert op.definition.name is not None
        assert op.definition.name.value == "B"

    def test_printed_query_is_normalized(self) -> None:
        op = Operation(query="query   A {a   b}")
        assert op.printed_query == "query A {\n  a\n  b\n}"

    def test_json_body_minimal(self) -> None:
        op = Operation(query="{ a }")
        assert op.to_json_body() == {"query": "{\n  a\n}", "variables": {}}

    def test_json_body_full(self) -> None:
        op = Operation(
            query="query A($n: Int) { a(n: $n) }",
            operation_name="A",
            variables={"n": 1},
            extensions={"persistedQuery": {"version": 1}},
        )
        body = op.to_json_body()
        assert body["operationName"] == "A"
        assert body["variables"] == {"n": 1}
        assert body["extensions"] == {"persistedQuery": {"version": 1}}
