"""End-to-end fulfillment tests against a real SQLite database.

These tests wire FulfillmentService and SchemaReporter to
SQLiteCatalogStore on a temporary file and verify commit, rollback and
serialization of concurrent orders.
"""

import asyncio
import sqlite3
import tempfile
from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from bookstore.adapters.store.sqlite import SQLiteCatalogStore
from bookstore.core.errors import (
    BookNotFound,
    InsufficientStock,
    TransactionFailed,
)
from bookstore.core.fulfillment_service import FulfillmentService
from bookstore.core.schema_reporter import SchemaReporter


@pytest.fixture
async def store() -> AsyncIterator[SQLiteCatalogStore]:
    """Create a seeded catalog: customer 1, book 1 (stock 50), book 2 (stock 0)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = SQLiteCatalogStore(str(Path(tmpdir) / "catalog.db"))
        await store.initialize()
        await store.add_customer("Surkhay Fatullayev")
        author = await store.add_author("B.Evenson")
        await store.add_book("Dead Space : Martyr", author.author_id, 50)
        await store.add_book("Game Over", author.author_id, 0)
        yield store
        await store.close_pool()


@pytest.fixture
def service(store: SQLiteCatalogStore) -> FulfillmentService:
    return FulfillmentService(store, timeout_seconds=30)


async def _stock(store: SQLiteCatalogStore, book_id: int) -> int:
    book = await store.get_book(book_id)
    assert book is not None
    return book.stock_quantity


class TestFulfillmentScenarios:
    @pytest.mark.asyncio
    async def test_order_commits_and_decrements(
        self, service: FulfillmentService, store: SQLiteCatalogStore
    ) -> None:
        result = await service.fulfill_order(customer_id=1, book_id=1, quantity=2)

        assert result.ok
        assert result.order_id == 1
        assert await _stock(store, 1) == 48
        assert await store.count_orders(book_id=1) == 1

    @pytest.mark.asyncio
    async def test_zero_stock_is_untouched(
        self, service: FulfillmentService, store: SQLiteCatalogStore
    ) -> None:
        result = await service.fulfill_order(customer_id=1, book_id=2, quantity=1)

        assert isinstance(result.error, InsufficientStock)
        assert await _stock(store, 2) == 0
        assert await store.count_orders(book_id=2) == 0

    @pytest.mark.asyncio
    async def test_missing_book(self, service: FulfillmentService) -> None:
        result = await service.fulfill_order(customer_id=1, book_id=999, quantity=1)

        assert isinstance(result.error, BookNotFound)

    @pytest.mark.asyncio
    async def test_stock_may_reach_zero(
        self, service: FulfillmentService, store: SQLiteCatalogStore
    ) -> None:
        assert (await service.fulfill_order(1, 1, 50)).ok
        assert await _stock(store, 1) == 0

        again = await service.fulfill_order(1, 1, 1)
        assert isinstance(again.error, InsufficientStock)

    @pytest.mark.asyncio
    async def test_unknown_customer_rolls_back(
        self, service: FulfillmentService, store: SQLiteCatalogStore
    ) -> None:
        """A foreign-key violation leaves no order and no stock change."""
        result = await service.fulfill_order(customer_id=77, book_id=1, quantity=3)

        assert isinstance(result.error, TransactionFailed)
        assert "Integrity" in str(result.error.cause)
        assert await _stock(store, 1) == 50
        assert await store.count_orders() == 0

    @pytest.mark.asyncio
    async def test_connections_leave_scope_closed(
        self, service: FulfillmentService, store: SQLiteCatalogStore
    ) -> None:
        """Pooled connections never carry an open transaction after a scope."""
        await service.fulfill_order(customer_id=77, book_id=1, quantity=3)
        await service.fulfill_order(customer_id=1, book_id=2, quantity=1)
        await service.fulfill_order(customer_id=1, book_id=1, quantity=1)

        conn = await store._get_connection()
        try:
            assert not conn.in_transaction
        finally:
            await store._return_connection(conn)


class TestConcurrentFulfillment:
    @pytest.mark.asyncio
    async def test_competing_pair_never_oversells(
        self, service: FulfillmentService, store: SQLiteCatalogStore
    ) -> None:
        await store.update_book(1, "Dead Space : Martyr", 5)

        first, second = await asyncio.gather(
            service.fulfill_order(1, 1, 3),
            service.fulfill_order(1, 1, 3),
        )

        assert [first.ok, second.ok].count(True) == 1
        assert await _stock(store, 1) == 2
        assert await store.count_orders(book_id=1) == 1

    @pytest.mark.asyncio
    async def test_many_callers_exhaust_stock_exactly(
        self, service: FulfillmentService, store: SQLiteCatalogStore
    ) -> None:
        await store.update_book(1, "Dead Space : Martyr", 4)

        results = await asyncio.gather(
            *(service.fulfill_order(1, 1, 1) for _ in range(6))
        )

        assert sum(1 for r in results if r.ok) == 4
        assert await _stock(store, 1) == 0
        assert await store.count_orders(book_id=1) == 4


class TestAbortedScopes:
    """Scopes abandoned while waiting for the write lock leave the store usable."""

    @staticmethod
    def _hold_write_lock(store: SQLiteCatalogStore) -> sqlite3.Connection:
        blocker = sqlite3.connect(store.db_path, isolation_level=None)
        blocker.execute("BEGIN IMMEDIATE")
        return blocker

    @staticmethod
    async def _assert_store_usable(store: SQLiteCatalogStore) -> None:
        assert not any(conn.in_transaction for conn in store._pool)

        retry = await FulfillmentService(store).fulfill_order(1, 1, 1)

        assert retry.ok
        assert await _stock(store, 1) == 49
        assert not any(conn.in_transaction for conn in store._pool)

    @pytest.mark.asyncio
    async def test_timeout_while_waiting_for_lock(
        self, store: SQLiteCatalogStore
    ) -> None:
        impatient = SQLiteCatalogStore(str(store.db_path), busy_timeout_seconds=1.0)
        await impatient.initialize()
        service = FulfillmentService(impatient, timeout_seconds=0.2)

        blocker = self._hold_write_lock(impatient)
        try:
            result = await service.fulfill_order(1, 1, 1)
        finally:
            blocker.execute("ROLLBACK")
            blocker.close()

        try:
            assert isinstance(result.error, TransactionFailed)
            assert result.error.cause.operation == "timeout"
            await self._assert_store_usable(impatient)
        finally:
            await impatient.close_pool()

    @pytest.mark.asyncio
    async def test_caller_cancels_while_waiting_for_lock(
        self, store: SQLiteCatalogStore
    ) -> None:
        impatient = SQLiteCatalogStore(str(store.db_path), busy_timeout_seconds=1.0)
        await impatient.initialize()
        service = FulfillmentService(impatient)

        blocker = self._hold_write_lock(impatient)
        try:
            pending = asyncio.create_task(service.fulfill_order(1, 1, 1))
            await asyncio.sleep(0.2)
            pending.cancel()
            with pytest.raises(asyncio.CancelledError):
                await pending
        finally:
            blocker.execute("ROLLBACK")
            blocker.close()

        try:
            await self._assert_store_usable(impatient)
        finally:
            await impatient.close_pool()


class TestSchemaReport:
    @pytest.mark.asyncio
    async def test_describe_schema(self, store: SQLiteCatalogStore) -> None:
        reporter = SchemaReporter(store)

        reports = await reporter.describe_schema()

        by_name = {r.table.name: r for r in reports}
        assert set(by_name) == {"Authors", "Books", "Customers", "Orders"}
        assert [c.column_name for c in by_name["Books"].columns] == [
            "book_id",
            "title",
            "author_id",
            "stock_quantity",
        ]
        assert by_name["Customers"].keys.foreign_keys == ()

    @pytest.mark.asyncio
    async def test_repeated_introspection_is_identical(
        self, store: SQLiteCatalogStore
    ) -> None:
        reporter = SchemaReporter(store)

        assert await reporter.list_tables() == await reporter.list_tables()
        assert await reporter.list_keys("Orders") == await reporter.list_keys("Orders")
