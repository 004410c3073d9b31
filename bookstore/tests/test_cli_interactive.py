"""Tests for interactive CLI loop functionality.

Covers:
- _run_cli_interactive: REPL-like command loop
- EOF/KeyboardInterrupt handling
- JSON command parsing
- _execute_cli_command dispatch
"""

import json
from unittest.mock import patch

import pytest

from bookstore.adapters.cli.commands import CLICommandHandler
from bookstore.core.catalog_service import CatalogService
from bookstore.core.fulfillment_service import FulfillmentService
from bookstore.core.schema_reporter import SchemaReporter
from bookstore.main import _execute_cli_command, _run_cli_interactive
from bookstore.tests.fakes import FakeCatalogStorePort


@pytest.fixture
def store() -> FakeCatalogStorePort:
    return FakeCatalogStorePort()


@pytest.fixture
def handler(store: FakeCatalogStorePort) -> CLICommandHandler:
    return CLICommandHandler(
        CatalogService(store),
        FulfillmentService(store),
        SchemaReporter(store),
    )


def _printed_results(output: str) -> list[dict]:
    """Decode the JSON documents printed by the loop, one per command."""
    decoder = json.JSONDecoder()
    results = []
    index = 0
    while True:
        start = output.find("{", index)
        if start == -1:
            return results
        result, index = decoder.raw_decode(output, start)
        results.append(result)


@pytest.mark.asyncio
class TestInteractiveCLILoop:
    """Test suite for interactive CLI loop."""

    async def test_cli_reads_and_executes_commands(
        self, handler: CLICommandHandler, store: FakeCatalogStorePort, capsys
    ) -> None:
        """Test that CLI reads commands in 'command args_json' format and executes them."""
        commands = [
            'add-customer {"name": "Surkhay Fatullayev"}',
            'add-book {"title": "Game Over", "stock_quantity": 30}',
            'order {"customer_id": 1, "book_id": 1, "quantity": 2}',
            "exit",
        ]

        with patch("builtins.input", side_effect=commands):
            await _run_cli_interactive(handler)

        results = _printed_results(capsys.readouterr().out)
        assert [r["status"] for r in results] == ["success"] * 3
        assert results[-1]["order_id"] == 1
        assert store.books[1].stock_quantity == 28

    async def test_cli_handles_json_parse_errors(
        self, handler: CLICommandHandler, store: FakeCatalogStorePort
    ) -> None:
        """Test that CLI handles malformed JSON gracefully."""
        commands = [
            "add-author not-valid-json",
            'add-author ["B.Evenson"]',
            "exit",
        ]

        with patch("builtins.input", side_effect=commands):
            await _run_cli_interactive(handler)

        assert store.authors == {}

    async def test_cli_reports_missing_parameters(
        self, handler: CLICommandHandler, capsys
    ) -> None:
        commands = ['order {"customer_id": 1}', "exit"]

        with patch("builtins.input", side_effect=commands):
            await _run_cli_interactive(handler)

        results = _printed_results(capsys.readouterr().out)
        assert results == [
            {"status": "error", "message": "Missing required parameter: book_id"}
        ]

    async def test_cli_handles_eof(self, handler: CLICommandHandler) -> None:
        """Test that CLI handles EOF (Ctrl+D) gracefully."""

        def input_with_eof(_: str) -> str:
            raise EOFError()

        with patch("builtins.input", side_effect=input_with_eof):
            # Should exit gracefully without exception
            await _run_cli_interactive(handler)

    async def test_cli_handles_keyboard_interrupt(
        self, handler: CLICommandHandler
    ) -> None:
        """Test that CLI handles KeyboardInterrupt (Ctrl+C) gracefully."""
        call_count = [0]

        def input_with_interrupt(_: str) -> str:
            call_count[0] += 1
            if call_count[0] == 1:
                raise KeyboardInterrupt()
            return "exit"

        with patch("builtins.input", side_effect=input_with_interrupt):
            # Should handle interrupt and continue, then exit gracefully
            await _run_cli_interactive(handler)

        assert call_count[0] == 2

    async def test_cli_help_and_blank_lines(
        self, handler: CLICommandHandler, capsys
    ) -> None:
        with patch("builtins.input", side_effect=["", "help", "exit"]):
            await _run_cli_interactive(handler)

        assert "Available Commands" in capsys.readouterr().out


@pytest.mark.asyncio
class TestExecuteCommand:
    """Tests for command dispatch."""

    async def test_schema_commands(self, handler: CLICommandHandler) -> None:
        tables = await _execute_cli_command(handler, "tables", {})
        columns = await _execute_cli_command(handler, "columns", {"table": "Books"})
        keys = await _execute_cli_command(handler, "keys", {"table": "Orders"})
        schema = await _execute_cli_command(handler, "schema", {"format": "text"})

        assert tables["data"] == ["Authors", "Books", "Customers", "Orders"]
        assert len(columns["data"]) == 4
        assert len(keys["data"]["foreign_keys"]) == 2
        assert schema["data"].startswith("Table: Authors")

    async def test_book_commands(self, handler: CLICommandHandler) -> None:
        await _execute_cli_command(handler, "add-author", {"name": "D.Sheff"})
        await _execute_cli_command(
            handler,
            "add-book",
            {"title": "Game Over", "author_id": 1, "stock_quantity": 30},
        )

        updated = await _execute_cli_command(
            handler,
            "update-book",
            {"book_id": 1, "title": "Game Over", "stock_quantity": 10},
        )
        listing = await _execute_cli_command(handler, "list-books", {})
        removed = await _execute_cli_command(handler, "remove-book", {"book_id": 1})

        assert updated["data"]["stock_quantity"] == 10
        assert listing["data"][0]["author_name"] == "D.Sheff"
        assert removed["status"] == "success"

    async def test_unknown_command(self, handler: CLICommandHandler) -> None:
        with pytest.raises(ValueError, match="Unknown command"):
            await _execute_cli_command(handler, "restock", {})

    async def test_missing_table_parameter(self, handler: CLICommandHandler) -> None:
        with pytest.raises(ValueError, match="table"):
            await _execute_cli_command(handler, "columns", {})
