"""Core domain logic for the bookstore catalog.

This package contains zero external dependencies and represents
the pure business logic of the application. All adapters and
external integrations are handled by the adapters package.
"""

from .errors import (
    BookNotFound,
    CatalogValidationError,
    FulfillmentError,
    FulfillmentErrorKind,
    InsufficientStock,
    IntrospectionError,
    InvalidQuantity,
    StoreError,
    TransactionFailed,
)
from .models import (
    Author,
    Book,
    BookListing,
    ColumnInfo,
    Customer,
    ForeignKey,
    FulfillmentResult,
    Order,
    PrimaryKey,
    TableInfo,
    TableKeys,
    TableReport,
)

__all__ = [
    "Author",
    "Book",
    "BookListing",
    "BookNotFound",
    "CatalogValidationError",
    "ColumnInfo",
    "Customer",
    "ForeignKey",
    "FulfillmentError",
    "FulfillmentErrorKind",
    "FulfillmentResult",
    "InsufficientStock",
    "IntrospectionError",
    "InvalidQuantity",
    "Order",
    "PrimaryKey",
    "StoreError",
    "TableInfo",
    "TableKeys",
    "TableReport",
    "TransactionFailed",
]
