"""CLI command implementations for the bookstore catalog.

Provides human-initiated actions through command-line interface.

This adapter maps CLI commands to CatalogService, FulfillmentPort and
SchemaReportPort operations. It handles CLI-specific formatting and
error reporting: every command returns a dictionary with a "status" of
"success" or "error" instead of raising.
"""

import logging
from dataclasses import asdict
from typing import Any

from bookstore.core.catalog_service import CatalogService
from bookstore.core.errors import CatalogValidationError, StoreError
from bookstore.core.models import TableReport
from bookstore.core.ports import FulfillmentPort, SchemaReportPort

logger = logging.getLogger(__name__)


def _error(operation: str, message: str, **fields: Any) -> dict[str, Any]:
    return {"status": "error", "operation": operation, "message": message, **fields}


class CLICommandHandler:
    """Handles CLI commands by delegating to the core services.

    Provides a command-line interface for catalog edits, order placement
    and schema reports.
    """

    def __init__(
        self,
        catalog: CatalogService,
        fulfillment: FulfillmentPort,
        schema: SchemaReportPort,
    ):
        """Initialize the CLI command handler.

        Args:
            catalog: CatalogService for row-level catalog operations.
            fulfillment: FulfillmentPort implementation for placing orders.
            schema: SchemaReportPort implementation for introspection.
        """
        self.catalog = catalog
        self.fulfillment = fulfillment
        self.schema = schema

    # ------------------------------------------------------------------
    # Catalog rows
    # ------------------------------------------------------------------

    async def add_author(self, name: str) -> dict[str, Any]:
        try:
            author = await self.catalog.add_author(name)
        except (CatalogValidationError, StoreError) as e:
            logger.error(f"Failed to add author: {e}")
            return _error("add_author", str(e))
        return {
            "status": "success",
            "operation": "add_author",
            "data": asdict(author),
            "message": f"Author {author.author_id} added",
        }

    async def add_book(
        self, title: str, author_id: int | None, stock_quantity: int
    ) -> dict[str, Any]:
        try:
            book = await self.catalog.add_book(title, author_id, stock_quantity)
        except (CatalogValidationError, StoreError) as e:
            logger.error(f"Failed to add book: {e}")
            return _error("add_book", str(e))
        return {
            "status": "success",
            "operation": "add_book",
            "data": asdict(book),
            "message": f"Book {book.book_id} added",
        }

    async def add_customer(self, name: str) -> dict[str, Any]:
        try:
            customer = await self.catalog.add_customer(name)
        except (CatalogValidationError, StoreError) as e:
            logger.error(f"Failed to add customer: {e}")
            return _error("add_customer", str(e))
        return {
            "status": "success",
            "operation": "add_customer",
            "data": asdict(customer),
            "message": f"Customer {customer.customer_id} added",
        }

    async def list_books(self, output_format: str = "json") -> dict[str, Any]:
        """List all books with their authors and stock.

        Args:
            output_format: Output format ('json', 'text'). Default 'json'.

        Returns:
            Dictionary with the book listing or status/message on error.
        """
        try:
            books = await self.catalog.list_books()
        except StoreError as e:
            logger.error(f"Failed to list books: {e}")
            return _error("list_books", str(e))

        if output_format == "json":
            data: Any = [asdict(book) for book in books]
        elif output_format == "text":
            data = "\n".join(
                f"Book ID: {book.book_id}, Title: {book.title}, "
                f"Author: {book.author_name or '-'}, "
                f"Stock Quantity: {book.stock_quantity}"
                for book in books
            )
        else:
            return _error("list_books", f"Unsupported format: {output_format}")

        return {"status": "success", "operation": "list_books", "data": data}

    async def update_book(
        self, book_id: int, title: str, stock_quantity: int
    ) -> dict[str, Any]:
        try:
            book = await self.catalog.update_book(book_id, title, stock_quantity)
        except (CatalogValidationError, StoreError) as e:
            logger.error(f"Failed to update book {book_id}: {e}")
            return _error("update_book", str(e), book_id=book_id)
        return {
            "status": "success",
            "operation": "update_book",
            "data": asdict(book),
            "message": f"Book {book_id} updated",
        }

    async def remove_book(self, book_id: int) -> dict[str, Any]:
        try:
            await self.catalog.remove_book(book_id)
        except (CatalogValidationError, StoreError) as e:
            logger.error(f"Failed to remove book {book_id}: {e}")
            return _error("remove_book", str(e), book_id=book_id)
        return {
            "status": "success",
            "operation": "remove_book",
            "book_id": book_id,
            "message": f"Book {book_id} removed",
        }

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def place_order(
        self, customer_id: int, book_id: int, quantity: int
    ) -> dict[str, Any]:
        """Place an order via CLI.

        Args:
            customer_id: Customer placing the order.
            book_id: Book being ordered.
            quantity: Number of copies.

        Returns:
            Dictionary with the new order id, or the error kind and message
            when the order was not placed.
        """
        result = await self.fulfillment.fulfill_order(customer_id, book_id, quantity)
        if result.error is not None:
            return _error(
                "place_order",
                str(result.error),
                reason=result.error.kind.value,
                book_id=book_id,
            )
        return {
            "status": "success",
            "operation": "place_order",
            "order_id": result.order_id,
            "message": "Order placed successfully.",
        }

    # ------------------------------------------------------------------
    # Schema reports
    # ------------------------------------------------------------------

    async def list_tables(self) -> dict[str, Any]:
        try:
            tables = await self.schema.list_tables()
        except StoreError as e:
            logger.error(f"Failed to list tables: {e}")
            return _error("list_tables", str(e))
        return {
            "status": "success",
            "operation": "list_tables",
            "data": [table.name for table in tables],
        }

    async def list_columns(self, table_name: str) -> dict[str, Any]:
        try:
            columns = await self.schema.list_columns(table_name)
        except StoreError as e:
            logger.error(f"Failed to list columns of {table_name}: {e}")
            return _error("list_columns", str(e), table=table_name)
        return {
            "status": "success",
            "operation": "list_columns",
            "table": table_name,
            "data": [asdict(column) for column in columns],
        }

    async def list_keys(self, table_name: str) -> dict[str, Any]:
        try:
            keys = await self.schema.list_keys(table_name)
        except StoreError as e:
            logger.error(f"Failed to list keys of {table_name}: {e}")
            return _error("list_keys", str(e), table=table_name)
        return {
            "status": "success",
            "operation": "list_keys",
            "table": table_name,
            "data": asdict(keys),
        }

    async def describe_schema(self, output_format: str = "json") -> dict[str, Any]:
        """Report columns and keys for every user table.

        Args:
            output_format: Output format ('json', 'text'). Default 'json'.
        """
        try:
            reports = await self.schema.describe_schema()
        except StoreError as e:
            logger.error(f"Failed to describe schema: {e}")
            return _error("describe_schema", str(e))

        if output_format == "json":
            data: Any = [asdict(report) for report in reports]
        elif output_format == "text":
            data = "\n\n".join(self._format_report_as_text(r) for r in reports)
        else:
            return _error("describe_schema", f"Unsupported format: {output_format}")

        return {"status": "success", "operation": "describe_schema", "data": data}

    def _format_report_as_text(self, report: TableReport) -> str:
        """Format one table report as human-readable text."""
        lines = [f"Table: {report.table.name}"]

        for column in report.columns:
            lines.append(
                f" - Column Name: {column.column_name}, Data Type: {column.declared_type}"
            )

        for key in report.keys.primary_keys:
            lines.append(f" - Primary Key: {key.column_name}")

        for fk in report.keys.foreign_keys:
            lines.append(
                f" - Foreign Key: {fk.column_name} references "
                f"{fk.referenced_table}({fk.referenced_column})"
            )

        return "\n".join(lines)
