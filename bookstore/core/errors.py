"""Error taxonomy for the bookstore core.

Adapters translate driver-specific exceptions into StoreError so the core
never imports a database driver. Fulfillment failures are classified into
FulfillmentError subclasses, each tagged with a FulfillmentErrorKind so
callers can branch without parsing message text.
"""

from enum import Enum


class StoreError(Exception):
    """A data-access fault raised by a catalog store adapter."""

    def __init__(self, message: str, operation: str = "unknown"):
        super().__init__(message)
        self.message = message
        self.operation = operation

    def __str__(self) -> str:
        return f"{self.message} (operation: {self.operation})"


class IntrospectionError(StoreError):
    """Catalog metadata could not be read."""


class CatalogValidationError(ValueError):
    """Catalog input rejected before reaching the store."""


class FulfillmentErrorKind(Enum):
    """Distinguishable reasons an order could not be fulfilled."""

    INVALID_QUANTITY = "invalid_quantity"
    BOOK_NOT_FOUND = "book_not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"
    TRANSACTION_FAILED = "transaction_failed"


class FulfillmentError(Exception):
    """Base class for order fulfillment failures."""

    kind: FulfillmentErrorKind

    def __init__(self, message: str, book_id: int | None = None):
        super().__init__(message)
        self.message = message
        self.book_id = book_id


class InvalidQuantity(FulfillmentError):
    """Requested quantity is not a positive integer."""

    kind = FulfillmentErrorKind.INVALID_QUANTITY

    def __init__(self, quantity: object):
        super().__init__(f"Quantity must be a positive integer, got {quantity!r}")
        self.quantity = quantity


class BookNotFound(FulfillmentError):
    """Referenced book has no row in the catalog."""

    kind = FulfillmentErrorKind.BOOK_NOT_FOUND

    def __init__(self, book_id: int):
        super().__init__(f"Book {book_id} not found", book_id=book_id)


class InsufficientStock(FulfillmentError):
    """Admission policy declined the order."""

    kind = FulfillmentErrorKind.INSUFFICIENT_STOCK

    def __init__(self, book_id: int, requested: int, available: int | None = None):
        if available is None:
            message = f"Not enough stock for book {book_id}: requested {requested}"
        else:
            message = (
                f"Not enough stock for book {book_id}: "
                f"requested {requested}, available {available}"
            )
        super().__init__(message, book_id=book_id)
        self.requested = requested
        self.available = available


class TransactionFailed(FulfillmentError):
    """The fulfillment scope was rolled back after a data-access fault."""

    kind = FulfillmentErrorKind.TRANSACTION_FAILED

    def __init__(self, book_id: int, cause: BaseException):
        super().__init__(
            f"Order transaction for book {book_id} failed: {cause}", book_id=book_id
        )
        self.cause = cause


__all__ = [
    "BookNotFound",
    "CatalogValidationError",
    "FulfillmentError",
    "FulfillmentErrorKind",
    "InsufficientStock",
    "IntrospectionError",
    "InvalidQuantity",
    "StoreError",
    "TransactionFailed",
]
