"""Unit tests for the graphql-live CLI."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import click
import httpx
import pytest
from click.testing import CliRunner

from graphql_live_link.cli import load_query, main, parse_variables
from graphql_live_link.errors import TransportError


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestHelpers:
    def test_parse_variables_json_and_strings(self) -> None:
        assert parse_variables(("n=3", "live=true", "name=ada")) == {
            "n": 3,
            "live": True,
            "name": "ada",
        }

    def test_parse_variables_rejects_missing_equals(self) -> None:
        with pytest.raises(click.BadParameter):
            parse_variables(("oops",))

    def test_load_query_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "q.graphql"
        path.write_text("query Q { a }", encoding="utf-8")
        assert load_query(f"@{path}") == "query Q { a }"

    def test_load_query_inline(self) -> None:
        assert load_query("{ a }") == "{ a }"


class TestCommands:
    """Tests for classify, encode and run."""

    def test_classify_live(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["classify", "query Q @live { a }"])
        assert result.exit_code == 0
        assert result.output.strip() == "streaming"

    def test_classify_with_variable(self, runner: CliRunner) -> None:
        query = "query Q($on: Boolean) @live(if: $on) { a }"
        result = runner.invoke(main, ["classify", query, "--var", "on=false"])
        assert result.output.strip() == "request-response"

    def test_classify_syntax_error(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["classify", "query {"])
        assert result.exit_code == 2

    def test_encode(self, runner: CliRunner) -> None:
        result = runner.invoke(
            main,
            [
                "encode",
                "query Q @live { a }",
                "--operation-name",
                "Q",
                "--url",
                "https://api.test/graphql",
                "--token",
                "tok",
            ],
        )

        assert result.exit_code == 0
        url = httpx.URL(result.output.strip())
        assert url.host == "api.test"
        assert url.params["authorization"] == "Bearer tok"
        assert url.params["operationName"] == "Q"

    def test_run_prints_json_lines(self, runner: CliRunner) -> None:
        async def fake_stream(self, operation):
            yield {"data": {"count": 1}}
            yield {"data": {"count": 2}}

        with patch("graphql_live_link.client.LiveClient.stream", fake_stream):
            result = runner.invoke(
                main, ["run", "query Q @live { count }", "--url", "http://api.test/graphql"]
            )

        assert result.exit_code == 0
        lines = [json.loads(line) for line in result.output.splitlines()]
        assert lines == [{"data": {"count": 1}}, {"data": {"count": 2}}]

    def test_run_reports_fatal_error(self, runner: CliRunner) -> None:
        async def failing_stream(self, operation):
            raise TransportError("Event stream returned HTTP 401", status_code=401)
            yield  # pragma: no cover

        with patch("graphql_live_link.client.LiveClient.stream", failing_stream):
            result = runner.invoke(
                main, ["run", "query Q @live { count }", "--url", "http://api.test/graphql"]
            )

        assert result.exit_code == 1
        assert "HTTP 401" in result.output
