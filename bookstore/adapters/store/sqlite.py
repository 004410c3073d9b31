"""SQLite catalog store adapter.

Implements CatalogStorePort using SQLite with aiosqlite for async access.
Provides ACID guarantees for catalog state with zero operational overhead.

Connections are opened in autocommit mode (isolation_level=None) so that
transactional scopes are always explicit: transaction() issues
BEGIN IMMEDIATE on a connection of its own, which takes the database write
lock before the stock read and serializes competing fulfillments.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any

import aiosqlite

from bookstore.core.errors import IntrospectionError, StoreError
from bookstore.core.models import (
    Author,
    Book,
    BookListing,
    ColumnInfo,
    Customer,
    ForeignKey,
    PrimaryKey,
    TableInfo,
)
from bookstore.core.ports import CatalogStorePort, CatalogTransaction

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS Authors (
        author_id INTEGER PRIMARY KEY AUTOINCREMENT,
        author_name VARCHAR(255) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Books (
        book_id INTEGER PRIMARY KEY AUTOINCREMENT,
        title VARCHAR(255) NOT NULL,
        author_id INTEGER REFERENCES Authors(author_id),
        stock_quantity INTEGER NOT NULL CHECK (stock_quantity >= 0)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Customers (
        customer_id INTEGER PRIMARY KEY AUTOINCREMENT,
        customer_name VARCHAR(255) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Orders (
        order_id INTEGER PRIMARY KEY AUTOINCREMENT,
        customer_id INTEGER NOT NULL REFERENCES Customers(customer_id),
        book_id INTEGER NOT NULL REFERENCES Books(book_id),
        quantity INTEGER NOT NULL CHECK (quantity > 0)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_orders_book ON Orders(book_id)",
)


@contextmanager
def _store_errors(operation: str, error_cls: type[StoreError] = StoreError) -> Iterator[None]:
    """Translate aiosqlite exceptions raised in the block into StoreError."""
    try:
        yield
    except aiosqlite.IntegrityError as e:
        logger.error(f"SQLite integrity error during {operation}: {e}")
        raise error_cls(f"Integrity constraint violated: {e}", operation) from e
    except aiosqlite.OperationalError as e:
        logger.error(f"SQLite operational error during {operation}: {e}")
        raise error_cls(f"Connection or operational error: {e}", operation) from e
    except aiosqlite.Error as e:
        logger.error(f"SQLite error during {operation}: {e}")
        raise error_cls(f"Database operation failed: {e}", operation) from e


class _SQLiteTransaction(CatalogTransaction):
    """Operations bound to one connection holding an open write transaction."""

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    async def get_stock_for_update(self, book_id: int) -> int | None:
        # BEGIN IMMEDIATE already holds the write lock for this scope
        with _store_errors("read_stock"):
            cursor = await self._conn.execute(
                "SELECT stock_quantity FROM Books WHERE book_id = ?", (book_id,)
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return int(row[0])

    async def insert_order(
        self, customer_id: int, book_id: int, quantity: int
    ) -> int:
        with _store_errors("insert_order"):
            cursor = await self._conn.execute(
                "INSERT INTO Orders (customer_id, book_id, quantity) VALUES (?, ?, ?)",
                (customer_id, book_id, quantity),
            )
        if cursor.lastrowid is None:
            raise StoreError("Order insert returned no row id", "insert_order")
        return cursor.lastrowid

    async def decrement_stock(self, book_id: int, quantity: int) -> bool:
        with _store_errors("decrement_stock"):
            cursor = await self._conn.execute(
                """
                UPDATE Books SET stock_quantity = stock_quantity - ?
                WHERE book_id = ? AND stock_quantity >= ?
                """,
                (quantity, book_id, quantity),
            )
        return cursor.rowcount == 1


class SQLiteCatalogStore(CatalogStorePort):
    """SQLite-backed catalog store with connection pooling and async access."""

    def __init__(
        self,
        db_path: str,
        pool_size: int = 5,
        busy_timeout_seconds: float = 5.0,
    ):
        """Initialize SQLite store with connection pooling.

        Args:
            db_path: Path to SQLite database file.
            pool_size: Number of connections to maintain in the pool.
            busy_timeout_seconds: How long a connection waits for the
                database write lock before failing.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._pool: list[aiosqlite.Connection] = []
        self._pool_lock = asyncio.Lock()
        self._pool_size = pool_size
        self._busy_timeout_seconds = busy_timeout_seconds
        self._schema_lock = asyncio.Lock()
        self._schema_initialized = False
        self._closing: set[asyncio.Task[None]] = set()

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get a connection from the pool or create a new one."""
        async with self._pool_lock:
            if self._pool:
                return self._pool.pop()

        with _store_errors("connect"):
            conn = await aiosqlite.connect(
                str(self.db_path),
                timeout=self._busy_timeout_seconds,
                isolation_level=None,
            )
            try:
                # Enable foreign keys
                await conn.execute("PRAGMA foreign_keys = ON")
            except BaseException:
                await conn.close()
                raise
        return conn

    async def _return_connection(self, conn: aiosqlite.Connection) -> None:
        """Return a connection to the pool."""
        async with self._pool_lock:
            if len(self._pool) < self._pool_size and not conn.in_transaction:
                self._pool.append(conn)
                return
        await conn.close()

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        conn = await self._get_connection()
        try:
            yield conn
        finally:
            await self._return_connection(conn)

    def _discard(self, conn: aiosqlite.Connection) -> None:
        """Close a connection whose state is unknown, without waiting for it.

        The close is queued behind any statement still running in the
        connection's worker thread, so a transaction that statement opens
        is rolled back when the connection closes.
        """
        task = asyncio.ensure_future(conn.close())
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def close_pool(self) -> None:
        """Close all pooled connections and wait for discarded ones."""
        async with self._pool_lock:
            for conn in self._pool:
                await conn.close()
            self._pool.clear()

        if self._closing:
            results = await asyncio.gather(*self._closing, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Failed to close discarded connection: {result}")

    async def initialize(self) -> None:
        await self._init_schema()

    async def _init_schema(self) -> None:
        """Initialize database schema on first use.

        Only runs once per instance. Subsequent calls are no-ops.
        Protected by _schema_lock to prevent concurrent schema initialization.
        """
        if self._schema_initialized:
            return

        async with self._schema_lock:
            # Check again after acquiring lock to prevent race
            if self._schema_initialized:
                return

            async with self._connection() as conn:
                with _store_errors("create_schema"):
                    await conn.execute("BEGIN")
                    try:
                        for statement in SCHEMA_STATEMENTS:
                            await conn.execute(statement)
                        await conn.execute("COMMIT")
                    except aiosqlite.Error:
                        await conn.execute("ROLLBACK")
                        raise
            self._schema_initialized = True
            logger.info(f"Catalog schema ready at {self.db_path}")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[CatalogTransaction]:
        await self._init_schema()

        conn = await self._get_connection()
        reusable = False
        try:
            try:
                with _store_errors("begin"):
                    await conn.execute("BEGIN IMMEDIATE")
            except StoreError:
                # BEGIN ran to completion and failed, nothing is open
                reusable = True
                raise
            # Cancelled while waiting for the write lock: BEGIN keeps running
            # in the worker thread and the connection is discarded.

            try:
                yield _SQLiteTransaction(conn)
                with _store_errors("commit"):
                    await self._commit(conn)
            except BaseException:
                reusable = await self._rollback(conn)
                raise
            reusable = True
        finally:
            if reusable:
                await self._return_connection(conn)
            else:
                self._discard(conn)

    @staticmethod
    async def _commit(conn: aiosqlite.Connection) -> None:
        """Run COMMIT to completion even if the awaiting task is cancelled.

        A cancellation that arrives mid-commit is re-raised only after the
        commit has finished, so the connection's state is known. The
        committed writes stay durable.
        """
        commit = asyncio.ensure_future(conn.execute("COMMIT"))
        try:
            await asyncio.shield(commit)
        except asyncio.CancelledError:
            await asyncio.wait([commit])
            if not commit.cancelled() and commit.exception() is not None:
                logger.error(f"COMMIT failed after cancellation: {commit.exception()}")
            raise

    @staticmethod
    async def _rollback(conn: aiosqlite.Connection) -> bool:
        """Roll back an open scope without masking the error that aborted it.

        Returns:
            False if the connection must be discarded rather than reused.
        """
        if not conn.in_transaction:
            return True
        try:
            await conn.execute("ROLLBACK")
        except aiosqlite.Error as e:
            logger.error(f"Rollback failed, discarding connection: {e}")
            return False
        return True

    # ------------------------------------------------------------------
    # Catalog rows
    # ------------------------------------------------------------------

    async def add_author(self, name: str) -> Author:
        await self._init_schema()

        async with self._connection() as conn:
            with _store_errors("add_author"):
                cursor = await conn.execute(
                    "INSERT INTO Authors (author_name) VALUES (?)", (name,)
                )
            assert cursor.lastrowid is not None
            return Author(author_id=cursor.lastrowid, name=name)

    async def add_book(
        self, title: str, author_id: int | None, stock_quantity: int
    ) -> Book:
        await self._init_schema()

        async with self._connection() as conn:
            with _store_errors("add_book"):
                cursor = await conn.execute(
                    """
                    INSERT INTO Books (title, author_id, stock_quantity)
                    VALUES (?, ?, ?)
                    """,
                    (title, author_id, stock_quantity),
                )
            assert cursor.lastrowid is not None
            return Book(
                book_id=cursor.lastrowid,
                title=title,
                author_id=author_id,
                stock_quantity=stock_quantity,
            )

    async def add_customer(self, name: str) -> Customer:
        await self._init_schema()

        async with self._connection() as conn:
            with _store_errors("add_customer"):
                cursor = await conn.execute(
                    "INSERT INTO Customers (customer_name) VALUES (?)", (name,)
                )
            assert cursor.lastrowid is not None
            return Customer(customer_id=cursor.lastrowid, name=name)

    async def get_book(self, book_id: int) -> Book | None:
        """Look up a book by its ID."""
        await self._init_schema()

        async with self._connection() as conn:
            with _store_errors("get_book"):
                cursor = await conn.execute(
                    """
                    SELECT book_id, title, author_id, stock_quantity
                    FROM Books WHERE book_id = ?
                    """,
                    (book_id,),
                )
                row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_book(row)

    async def list_books(self) -> list[BookListing]:
        """Return all books with author names, ordered by ID."""
        await self._init_schema()

        async with self._connection() as conn:
            with _store_errors("list_books"):
                cursor = await conn.execute(
                    """
                    SELECT b.book_id, b.title, a.author_name, b.stock_quantity
                    FROM Books b LEFT JOIN Authors a ON b.author_id = a.author_id
                    ORDER BY b.book_id
                    """
                )
                rows = await cursor.fetchall()
            return [
                BookListing(
                    book_id=row[0],
                    title=row[1],
                    author_name=row[2],
                    stock_quantity=row[3],
                )
                for row in rows
            ]

    async def update_book(
        self, book_id: int, title: str, stock_quantity: int
    ) -> bool:
        await self._init_schema()

        async with self._connection() as conn:
            with _store_errors("update_book"):
                cursor = await conn.execute(
                    "UPDATE Books SET title = ?, stock_quantity = ? WHERE book_id = ?",
                    (title, stock_quantity, book_id),
                )
            return cursor.rowcount > 0

    async def remove_book(self, book_id: int) -> bool:
        await self._init_schema()

        async with self._connection() as conn:
            with _store_errors("remove_book"):
                cursor = await conn.execute(
                    "DELETE FROM Books WHERE book_id = ?", (book_id,)
                )
            return cursor.rowcount > 0

    async def count_orders(self, book_id: int | None = None) -> int:
        await self._init_schema()

        async with self._connection() as conn:
            with _store_errors("count_orders"):
                if book_id is None:
                    cursor = await conn.execute("SELECT COUNT(*) FROM Orders")
                else:
                    cursor = await conn.execute(
                        "SELECT COUNT(*) FROM Orders WHERE book_id = ?", (book_id,)
                    )
                row = await cursor.fetchone()
            return int(row[0]) if row else 0

    # ------------------------------------------------------------------
    # Catalog metadata
    # ------------------------------------------------------------------

    async def list_tables(self) -> list[TableInfo]:
        """Return user tables, excluding SQLite's internal sqlite_* tables."""
        await self._init_schema()

        async with self._connection() as conn:
            with _store_errors("list_tables", IntrospectionError):
                cursor = await conn.execute(
                    r"""
                    SELECT name FROM sqlite_master
                    WHERE type = 'table' AND name NOT LIKE 'sqlite\_%' ESCAPE '\'
                    ORDER BY name
                    """
                )
                rows = await cursor.fetchall()
            return [TableInfo(name=row[0]) for row in rows]

    async def list_columns(self, table_name: str) -> list[ColumnInfo]:
        await self._init_schema()

        async with self._connection() as conn:
            with _store_errors("list_columns", IntrospectionError):
                cursor = await conn.execute(
                    "SELECT name, type FROM pragma_table_info(?) ORDER BY cid",
                    (table_name,),
                )
                rows = await cursor.fetchall()
            return [ColumnInfo(column_name=row[0], declared_type=row[1]) for row in rows]

    async def list_primary_keys(self, table_name: str) -> list[PrimaryKey]:
        await self._init_schema()

        async with self._connection() as conn:
            with _store_errors("list_primary_keys", IntrospectionError):
                cursor = await conn.execute(
                    "SELECT name FROM pragma_table_info(?) WHERE pk > 0 ORDER BY pk",
                    (table_name,),
                )
                rows = await cursor.fetchall()
            return [PrimaryKey(column_name=row[0]) for row in rows]

    async def list_foreign_keys(self, table_name: str) -> list[ForeignKey]:
        """Return foreign keys of a table.

        A REFERENCES clause without a column list targets the referenced
        table's primary key; SQLite reports such targets as NULL, so they
        are resolved here.
        """
        await self._init_schema()

        async with self._connection() as conn:
            with _store_errors("list_foreign_keys", IntrospectionError):
                cursor = await conn.execute(
                    """
                    SELECT "from", "table", "to", seq
                    FROM pragma_foreign_key_list(?)
                    ORDER BY id, seq
                    """,
                    (table_name,),
                )
                rows = await cursor.fetchall()

        foreign_keys = []
        for column, referenced_table, referenced_column, seq in rows:
            if referenced_column is None:
                target_keys = await self.list_primary_keys(referenced_table)
                if seq >= len(target_keys):
                    raise IntrospectionError(
                        f"Cannot resolve implicit key of {referenced_table}",
                        "list_foreign_keys",
                    )
                referenced_column = target_keys[seq].column_name
            foreign_keys.append(
                ForeignKey(
                    column_name=column,
                    referenced_table=referenced_table,
                    referenced_column=referenced_column,
                )
            )
        return foreign_keys

    @staticmethod
    def _row_to_book(row: tuple[Any, ...]) -> Book:
        """Convert a database row to a Book object.

        Raises:
            ValueError: If row is malformed or contains invalid data.
        """
        try:
            book_id, title, author_id, stock_quantity = row
            return Book(
                book_id=int(book_id),
                title=title,
                author_id=author_id,
                stock_quantity=int(stock_quantity),
            )
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to parse book row: {e}")
            raise ValueError(f"Row parsing failed: {e}") from e
