"""PostgreSQL catalog store adapter.

Implements CatalogStorePort using PostgreSQL with asyncpg for async access.
Provides ACID guarantees for catalog state with scalability for production use.

Each transaction() call acquires its own pooled connection and runs inside
an asyncpg transaction block. The stock read takes a row-level lock
(SELECT ... FOR UPDATE) so concurrent orders for the same book serialize.
Unquoted identifiers are folded to lower case by PostgreSQL, so metadata
lookups compare table names case-insensitively.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager

import asyncpg

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
        author_id SERIAL PRIMARY KEY,
        author_name VARCHAR(255) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Books (
        book_id SERIAL PRIMARY KEY,
        title VARCHAR(255) NOT NULL,
        author_id INT REFERENCES Authors(author_id),
        stock_quantity INT NOT NULL CHECK (stock_quantity >= 0)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Customers (
        customer_id SERIAL PRIMARY KEY,
        customer_name VARCHAR(255) NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Orders (
        order_id SERIAL PRIMARY KEY,
        customer_id INT NOT NULL REFERENCES Customers(customer_id),
        book_id INT NOT NULL REFERENCES Books(book_id),
        quantity INT NOT NULL CHECK (quantity > 0)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_orders_book ON Orders(book_id)",
)

_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


@contextmanager
def _store_errors(operation: str, error_cls: type[StoreError] = StoreError) -> Iterator[None]:
    """Translate asyncpg and connection exceptions raised in the block."""
    try:
        yield
    except asyncpg.IntegrityConstraintViolationError as e:
        logger.error(f"PostgreSQL integrity error during {operation}: {e}")
        raise error_cls(f"Integrity constraint violated: {e}", operation) from e
    except asyncpg.PostgresError as e:
        logger.error(f"PostgreSQL error during {operation}: {e}")
        raise error_cls(f"Database operation failed: {e}", operation) from e
    except (asyncpg.InterfaceError, OSError) as e:
        logger.error(f"PostgreSQL connection error during {operation}: {e}")
        raise error_cls(f"Connection or operational error: {e}", operation) from e


class _PostgreSQLTransaction(CatalogTransaction):
    """Operations bound to one connection inside an open transaction block."""

    def __init__(self, conn: asyncpg.Connection):
        self._conn = conn

    async def get_stock_for_update(self, book_id: int) -> int | None:
        with _store_errors("read_stock"):
            row = await self._conn.fetchrow(
                "SELECT stock_quantity FROM books WHERE book_id = $1 FOR UPDATE",
                book_id,
            )
        if row is None:
            return None
        return int(row["stock_quantity"])

    async def insert_order(
        self, customer_id: int, book_id: int, quantity: int
    ) -> int:
        with _store_errors("insert_order"):
            order_id = await self._conn.fetchval(
                """
                INSERT INTO orders (customer_id, book_id, quantity)
                VALUES ($1, $2, $3)
                RETURNING order_id
                """,
                customer_id,
                book_id,
                quantity,
            )
        return int(order_id)

    async def decrement_stock(self, book_id: int, quantity: int) -> bool:
        with _store_errors("decrement_stock"):
            updated = await self._conn.fetchval(
                """
                UPDATE books SET stock_quantity = stock_quantity - $2
                WHERE book_id = $1 AND stock_quantity >= $2
                RETURNING book_id
                """,
                book_id,
                quantity,
            )
        return updated is not None


class PostgreSQLCatalogStore(CatalogStorePort):
    """PostgreSQL-backed catalog store with connection pooling and async access."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "bookstore",
        user: str = "bookstore",
        password: str = "",
        pool_size: int = 10,
    ):
        """Initialize PostgreSQL store with connection pooling.

        Args:
            host: PostgreSQL server hostname.
            port: PostgreSQL server port.
            database: Database name.
            user: Database user.
            password: Database password.
            pool_size: Number of connections to maintain in the pool.
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self._pool: asyncpg.Pool | None = None
        self._pool_size = pool_size
        self._pool_lock = asyncio.Lock()
        self._schema_lock = asyncio.Lock()
        self._schema_initialized = False

    async def _init_pool(self) -> asyncpg.Pool:
        """Initialize the connection pool on first use."""
        if self._pool is not None:
            return self._pool

        async with self._pool_lock:
            if self._pool is None:
                with _store_errors("connect"):
                    self._pool = await asyncpg.create_pool(
                        host=self.host,
                        port=self.port,
                        database=self.database,
                        user=self.user,
                        password=self.password,
                        min_size=1,
                        max_size=self._pool_size,
                    )
        return self._pool

    async def close_pool(self) -> None:
        """Close all pooled connections."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def initialize(self) -> None:
        await self._init_schema()

    async def _init_schema(self) -> asyncpg.Pool:
        """Initialize database schema on first use.

        Only runs once per instance. Subsequent calls are no-ops.
        Uses dedicated _schema_lock to avoid contention with pool operations.

        Returns:
            The initialized connection pool.
        """
        pool = await self._init_pool()

        # Check first without lock to avoid unnecessary locking
        if self._schema_initialized:
            return pool

        async with self._schema_lock:
            # Check again after acquiring lock to prevent race
            if self._schema_initialized:
                return pool

            with _store_errors("create_schema"):
                async with pool.acquire() as conn:
                    async with conn.transaction():
                        for statement in SCHEMA_STATEMENTS:
                            await conn.execute(statement)

            self._schema_initialized = True
            logger.info(f"Catalog schema ready in database {self.database}")
        return pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[CatalogTransaction]:
        pool = await self._init_schema()

        # Errors raised by the caller's block pass through untouched; only
        # acquire, commit and rollback faults are translated here.
        with _store_errors("transaction"):
            async with pool.acquire() as conn:
                async with conn.transaction():
                    yield _PostgreSQLTransaction(conn)

    # ------------------------------------------------------------------
    # Catalog rows
    # ------------------------------------------------------------------

    async def add_author(self, name: str) -> Author:
        pool = await self._init_schema()

        with _store_errors("add_author"):
            async with pool.acquire() as conn:
                author_id = await conn.fetchval(
                    "INSERT INTO authors (author_name) VALUES ($1) RETURNING author_id",
                    name,
                )
        return Author(author_id=author_id, name=name)

    async def add_book(
        self, title: str, author_id: int | None, stock_quantity: int
    ) -> Book:
        pool = await self._init_schema()

        with _store_errors("add_book"):
            async with pool.acquire() as conn:
                book_id = await conn.fetchval(
                    """
                    INSERT INTO books (title, author_id, stock_quantity)
                    VALUES ($1, $2, $3)
                    RETURNING book_id
                    """,
                    title,
                    author_id,
                    stock_quantity,
                )
        return Book(
            book_id=book_id,
            title=title,
            author_id=author_id,
            stock_quantity=stock_quantity,
        )

    async def add_customer(self, name: str) -> Customer:
        pool = await self._init_schema()

        with _store_errors("add_customer"):
            async with pool.acquire() as conn:
                customer_id = await conn.fetchval(
                    """
                    INSERT INTO customers (customer_name) VALUES ($1)
                    RETURNING customer_id
                    """,
                    name,
                )
        return Customer(customer_id=customer_id, name=name)

    async def get_book(self, book_id: int) -> Book | None:
        """Look up a book by its ID."""
        pool = await self._init_schema()

        with _store_errors("get_book"):
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT book_id, title, author_id, stock_quantity
                    FROM books WHERE book_id = $1
                    """,
                    book_id,
                )
        if row is None:
            return None
        return Book(
            book_id=row["book_id"],
            title=row["title"],
            author_id=row["author_id"],
            stock_quantity=row["stock_quantity"],
        )

    async def list_books(self) -> list[BookListing]:
        pool = await self._init_schema()

        with _store_errors("list_books"):
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT b.book_id, b.title, a.author_name, b.stock_quantity
                    FROM books b LEFT JOIN authors a ON b.author_id = a.author_id
                    ORDER BY b.book_id
                    """
                )
        return [
            BookListing(
                book_id=row["book_id"],
                title=row["title"],
                author_name=row["author_name"],
                stock_quantity=row["stock_quantity"],
            )
            for row in rows
        ]

    async def update_book(
        self, book_id: int, title: str, stock_quantity: int
    ) -> bool:
        pool = await self._init_schema()

        with _store_errors("update_book"):
            async with pool.acquire() as conn:
                updated = await conn.fetchval(
                    """
                    UPDATE books SET title = $2, stock_quantity = $3
                    WHERE book_id = $1
                    RETURNING book_id
                    """,
                    book_id,
                    title,
                    stock_quantity,
                )
        return updated is not None

    async def remove_book(self, book_id: int) -> bool:
        pool = await self._init_schema()

        with _store_errors("remove_book"):
            async with pool.acquire() as conn:
                removed = await conn.fetchval(
                    "DELETE FROM books WHERE book_id = $1 RETURNING book_id",
                    book_id,
                )
        return removed is not None

    async def count_orders(self, book_id: int | None = None) -> int:
        pool = await self._init_schema()

        with _store_errors("count_orders"):
            async with pool.acquire() as conn:
                if book_id is None:
                    count = await conn.fetchval("SELECT COUNT(*) FROM orders")
                else:
                    count = await conn.fetchval(
                        "SELECT COUNT(*) FROM orders WHERE book_id = $1", book_id
                    )
        return int(count or 0)

    # ------------------------------------------------------------------
    # Catalog metadata
    # ------------------------------------------------------------------

    async def list_tables(self) -> list[TableInfo]:
        """Return base tables of the current schema, excluding pg_* tables."""
        pool = await self._init_schema()

        with _store_errors("list_tables", IntrospectionError):
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    r"""
                    SELECT table_name FROM information_schema.tables
                    WHERE table_schema = current_schema()
                      AND table_type = 'BASE TABLE'
                      AND table_name NOT LIKE 'pg\_%'
                    ORDER BY table_name
                    """
                )
        return [TableInfo(name=row["table_name"]) for row in rows]

    async def list_columns(self, table_name: str) -> list[ColumnInfo]:
        pool = await self._init_schema()

        with _store_errors("list_columns", IntrospectionError):
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT column_name, data_type
                    FROM information_schema.columns
                    WHERE table_schema = current_schema()
                      AND lower(table_name) = lower($1)
                    ORDER BY ordinal_position
                    """,
                    table_name,
                )
        return [
            ColumnInfo(column_name=row["column_name"], declared_type=row["data_type"])
            for row in rows
        ]

    async def list_primary_keys(self, table_name: str) -> list[PrimaryKey]:
        pool = await self._init_schema()

        with _store_errors("list_primary_keys", IntrospectionError):
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT kcu.column_name
                    FROM information_schema.table_constraints tc
                    JOIN information_schema.key_column_usage kcu
                      ON kcu.constraint_schema = tc.constraint_schema
                     AND kcu.constraint_name = tc.constraint_name
                    WHERE tc.constraint_type = 'PRIMARY KEY'
                      AND tc.table_schema = current_schema()
                      AND lower(tc.table_name) = lower($1)
                    ORDER BY kcu.ordinal_position
                    """,
                    table_name,
                )
        return [PrimaryKey(column_name=row["column_name"]) for row in rows]

    async def list_foreign_keys(self, table_name: str) -> list[ForeignKey]:
        pool = await self._init_schema()

        with _store_errors("list_foreign_keys", IntrospectionError):
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT kcu.column_name,
                           target.table_name AS referenced_table,
                           target.column_name AS referenced_column
                    FROM information_schema.referential_constraints rc
                    JOIN information_schema.key_column_usage kcu
                      ON kcu.constraint_schema = rc.constraint_schema
                     AND kcu.constraint_name = rc.constraint_name
                    JOIN information_schema.key_column_usage target
                      ON target.constraint_schema = rc.unique_constraint_schema
                     AND target.constraint_name = rc.unique_constraint_name
                     AND target.ordinal_position = kcu.position_in_unique_constraint
                    WHERE kcu.table_schema = current_schema()
                      AND lower(kcu.table_name) = lower($1)
                    ORDER BY kcu.constraint_name, kcu.ordinal_position
                    """,
                    table_name,
                )
        return [
            ForeignKey(
                column_name=row["column_name"],
                referenced_table=row["referenced_table"],
                referenced_column=row["referenced_column"],
            )
            for row in rows
        ]
