"""Unit tests for fake adapter implementations.

These tests verify that fake adapters work correctly as test doubles
and can be used confidently in tests of core domain logic.
"""

import pytest

from bookstore.core.errors import StoreError
from bookstore.tests.fakes import FailingMetadataStore, FakeCatalogStorePort


@pytest.fixture
async def store() -> FakeCatalogStorePort:
    store = FakeCatalogStorePort()
    await store.add_customer("Surkhay Fatullayev")
    await store.add_book("Game Over", None, 30)
    store.calls.clear()
    return store


class TestFakeCatalogStorePort:
    """Tests for FakeCatalogStorePort."""

    @pytest.mark.asyncio
    async def test_scope_commits(self, store: FakeCatalogStorePort) -> None:
        async with store.transaction() as tx:
            await tx.insert_order(1, 1, 5)
            assert await tx.decrement_stock(1, 5)

        assert store.books[1].stock_quantity == 25
        assert len(store.orders) == 1
        assert store.commits == 1
        assert store.calls == ["begin", "insert_order", "decrement_stock", "commit"]

    @pytest.mark.asyncio
    async def test_scope_rolls_back_on_error(
        self, store: FakeCatalogStorePort
    ) -> None:
        with pytest.raises(RuntimeError):
            async with store.transaction() as tx:
                await tx.insert_order(1, 1, 5)
                await tx.decrement_stock(1, 5)
                raise RuntimeError("abort")

        assert store.books[1].stock_quantity == 30
        assert store.orders == {}
        assert store.rollbacks == 1

    @pytest.mark.asyncio
    async def test_conditional_decrement(self, store: FakeCatalogStorePort) -> None:
        async with store.transaction() as tx:
            assert not await tx.decrement_stock(1, 31)
            assert not await tx.decrement_stock(2, 1)

        assert store.books[1].stock_quantity == 30

    @pytest.mark.asyncio
    async def test_fail_on(self, store: FakeCatalogStorePort) -> None:
        store.fail_on["get_book"] = StoreError("boom", "get_book")

        with pytest.raises(StoreError, match="boom"):
            await store.get_book(1)

    @pytest.mark.asyncio
    async def test_failing_metadata_store(self) -> None:
        store = FailingMetadataStore()

        with pytest.raises(StoreError):
            await store.list_tables()
        assert await store.list_books() == []
