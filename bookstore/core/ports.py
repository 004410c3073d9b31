"""Port interfaces for the bookstore catalog.

These abstract base classes define the boundaries between core
domain logic and external adapters. Implementations live in the
adapters/ package.

Port Interface Categories:

1. **Driven Ports** (core calls out to adapters)
   - CatalogStorePort: Persist catalog rows, open transactional scopes,
     and expose catalog metadata
   - CatalogTransaction: Operations available inside one atomic scope

2. **Driving Ports** (adapters/external systems call into core)
   - FulfillmentPort: Entry point for placing orders
   - SchemaReportPort: Read-only schema introspection
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager

from .models import (
    Author,
    Book,
    BookListing,
    ColumnInfo,
    Customer,
    ForeignKey,
    FulfillmentResult,
    PrimaryKey,
    TableInfo,
    TableKeys,
    TableReport,
)


# ============================================================================
# DRIVEN PORTS (Core calls out to adapters)
# ============================================================================


class CatalogTransaction(ABC):
    """Operations bound to a single open atomic scope.

    Every write issued through a transaction becomes visible to other
    readers only when the owning scope commits. Implementations must raise
    StoreError for any data-access fault.
    """

    @abstractmethod
    async def get_stock_for_update(self, book_id: int) -> int | None:
        """Read a book's stock and lock it against concurrent writers.

        Args:
            book_id: Primary key of the book.

        Returns:
            Current stock_quantity, or None if no such book exists.

        Raises:
            StoreError: If the read or lock fails.
        """

    @abstractmethod
    async def insert_order(
        self, customer_id: int, book_id: int, quantity: int
    ) -> int:
        """Insert an order row.

        Returns:
            The generated order_id.

        Raises:
            StoreError: On constraint violation or connection fault.
        """

    @abstractmethod
    async def decrement_stock(self, book_id: int, quantity: int) -> bool:
        """Atomically subtract quantity from a book's stock.

        The update only applies when stock_quantity >= quantity.

        Returns:
            True if the row was updated, False if stock was insufficient
            or the book vanished.

        Raises:
            StoreError: On connection fault.
        """


class CatalogStorePort(ABC):
    """Port for the relational catalog store.

    Implementations must:
    - Translate driver exceptions into StoreError
    - Give every transaction() call its own connection
    - Exclude internal/system tables from metadata results
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create the catalog tables if they do not exist. Idempotent."""

    @abstractmethod
    async def close_pool(self) -> None:
        """Release all pooled connections."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[CatalogTransaction]:
        """Open an independent atomic scope.

        The scope commits when the block exits normally and rolls back
        when it exits with any exception (including cancellation). The
        underlying connection is released on every exit path.

        Raises:
            StoreError: If the scope cannot be opened, committed, or the
                connection fails mid-scope.
        """

    # ------------------------------------------------------------------
    # Catalog rows
    # ------------------------------------------------------------------

    @abstractmethod
    async def add_author(self, name: str) -> Author:
        """Insert an author and return it with its generated id."""

    @abstractmethod
    async def add_book(
        self, title: str, author_id: int | None, stock_quantity: int
    ) -> Book:
        """Insert a book and return it with its generated id."""

    @abstractmethod
    async def add_customer(self, name: str) -> Customer:
        """Insert a customer and return it with its generated id."""

    @abstractmethod
    async def get_book(self, book_id: int) -> Book | None:
        """Look up a book by id. Returns None if it does not exist."""

    @abstractmethod
    async def list_books(self) -> list[BookListing]:
        """Return all books joined with their author names, ordered by id."""

    @abstractmethod
    async def update_book(
        self, book_id: int, title: str, stock_quantity: int
    ) -> bool:
        """Overwrite a book's title and stock.

        Returns:
            True if a row was updated, False if the book does not exist.
        """

    @abstractmethod
    async def remove_book(self, book_id: int) -> bool:
        """Delete a book.

        Returns:
            True if a row was deleted, False if the book does not exist.

        Raises:
            StoreError: If the book is still referenced by orders.
        """

    @abstractmethod
    async def count_orders(self, book_id: int | None = None) -> int:
        """Count committed orders, optionally for a single book."""

    # ------------------------------------------------------------------
    # Catalog metadata
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_tables(self) -> list[TableInfo]:
        """Return every user-visible table. System tables are excluded."""

    @abstractmethod
    async def list_columns(self, table_name: str) -> list[ColumnInfo]:
        """Return the columns of a table in catalog-definition order.

        Returns an empty list if the table does not exist.
        """

    @abstractmethod
    async def list_primary_keys(self, table_name: str) -> list[PrimaryKey]:
        """Return the primary-key columns of a table, in key order."""

    @abstractmethod
    async def list_foreign_keys(self, table_name: str) -> list[ForeignKey]:
        """Return the foreign-key columns of a table with their targets."""


# ============================================================================
# DRIVING PORTS (External systems call into core)
# ============================================================================


class FulfillmentPort(ABC):
    """Port for placing orders against finite stock."""

    @abstractmethod
    async def fulfill_order(
        self, customer_id: int, book_id: int, quantity: int
    ) -> FulfillmentResult:
        """Atomically record an order and decrement stock.

        Args:
            customer_id: Customer placing the order.
            book_id: Book being ordered.
            quantity: Number of copies, must be a positive integer.

        Returns:
            FulfillmentResult holding the new order id on success, or a
            FulfillmentError describing why nothing was written.
        """


class SchemaReportPort(ABC):
    """Port for read-only schema introspection."""

    @abstractmethod
    async def list_tables(self) -> tuple[TableInfo, ...]:
        """Return every user-visible table."""

    @abstractmethod
    async def list_columns(self, table_name: str) -> tuple[ColumnInfo, ...]:
        """Return a table's columns in catalog order."""

    @abstractmethod
    async def list_keys(self, table_name: str) -> TableKeys:
        """Return a table's primary and foreign keys."""

    @abstractmethod
    async def describe_schema(self) -> tuple[TableReport, ...]:
        """Return columns and keys for every user-visible table."""
