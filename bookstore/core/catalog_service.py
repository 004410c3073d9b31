"""Catalog service: validated single-row operations on the catalog.

Input is checked here before any store call; the store adapters are
responsible only for persistence. All changes are logged for audit.
"""

import logging

from .errors import CatalogValidationError
from .models import Author, Book, BookListing, Customer
from .ports import CatalogStorePort

logger = logging.getLogger(__name__)


def _require_name(value: str, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise CatalogValidationError(f"{field_name} must be a non-empty string")
    return value.strip()


def _require_stock(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise CatalogValidationError(
            f"stock_quantity must be a non-negative integer, got {value!r}"
        )
    return value


class CatalogService:
    """Adds, edits and removes authors, books and customers."""

    def __init__(self, store: CatalogStorePort):
        """Initialize the catalog service.

        Args:
            store: CatalogStorePort implementation for persistence.
        """
        self.store = store

    async def add_author(self, name: str) -> Author:
        author = await self.store.add_author(_require_name(name, "author name"))
        logger.info(
            f"Author {author.author_id} added",
            extra={"author_id": author.author_id, "author_name": author.name},
        )
        return author

    async def add_book(
        self, title: str, author_id: int | None, stock_quantity: int
    ) -> Book:
        """Add a book to the catalog.

        Args:
            title: Book title, must be non-empty.
            author_id: Existing author id, or None for an unattributed book.
            stock_quantity: Initial stock, must be non-negative.

        Raises:
            CatalogValidationError: If title or stock is invalid.
            StoreError: If the author does not exist or the store fails.
        """
        book = await self.store.add_book(
            _require_name(title, "title"), author_id, _require_stock(stock_quantity)
        )
        logger.info(
            f"Book {book.book_id} added",
            extra={"book_id": book.book_id, "stock_quantity": book.stock_quantity},
        )
        return book

    async def add_customer(self, name: str) -> Customer:
        customer = await self.store.add_customer(_require_name(name, "customer name"))
        logger.info(
            f"Customer {customer.customer_id} added",
            extra={"customer_id": customer.customer_id},
        )
        return customer

    async def get_book(self, book_id: int) -> Book | None:
        return await self.store.get_book(book_id)

    async def list_books(self) -> list[BookListing]:
        return await self.store.list_books()

    async def update_book(self, book_id: int, title: str, stock_quantity: int) -> Book:
        """Overwrite a book's title and stock.

        Raises:
            CatalogValidationError: If input is invalid or the book does not exist.
        """
        updated = await self.store.update_book(
            book_id, _require_name(title, "title"), _require_stock(stock_quantity)
        )
        if not updated:
            raise CatalogValidationError(f"Book {book_id} not found")

        logger.info(
            f"Book {book_id} updated",
            extra={"book_id": book_id, "stock_quantity": stock_quantity},
        )
        book = await self.store.get_book(book_id)
        if book is None:
            raise CatalogValidationError(f"Book {book_id} removed during update")
        return book

    async def remove_book(self, book_id: int) -> None:
        """Delete a book.

        Raises:
            CatalogValidationError: If the book does not exist.
            StoreError: If orders still reference the book.
        """
        if not await self.store.remove_book(book_id):
            raise CatalogValidationError(f"Book {book_id} not found")
        logger.info(f"Book {book_id} removed", extra={"book_id": book_id})
