"""Domain models for the bookstore catalog.

All models in this module use only Python standard library types,
ensuring zero external dependencies in the core domain.
"""

from dataclasses import dataclass, field

from .errors import FulfillmentError


@dataclass(frozen=True)
class Author:
    """A book author."""

    author_id: int
    name: str

    def __post_init__(self) -> None:
        """Validate author invariants on creation."""
        if not self.name or not self.name.strip():
            raise ValueError("name must be a non-empty string")


@dataclass(frozen=True)
class Book:
    """A book in the catalog with its current stock count."""

    book_id: int
    title: str
    author_id: int | None
    stock_quantity: int

    def __post_init__(self) -> None:
        """Validate book invariants on creation."""
        if self.stock_quantity < 0:
            raise ValueError(
                f"stock_quantity must be non-negative, got {self.stock_quantity}"
            )


@dataclass(frozen=True)
class BookListing:
    """A book joined with its author's name for display."""

    book_id: int
    title: str
    author_name: str | None
    stock_quantity: int


@dataclass(frozen=True)
class Customer:
    """A customer who can place orders."""

    customer_id: int
    name: str


@dataclass(frozen=True)
class Order:
    """A committed order. Only created by a successful fulfillment."""

    order_id: int
    customer_id: int
    book_id: int
    quantity: int

    def __post_init__(self) -> None:
        """Validate order invariants on creation."""
        if self.quantity <= 0:
            raise ValueError(f"quantity must be positive, got {self.quantity}")


@dataclass(frozen=True)
class FulfillmentResult:
    """Outcome of one fulfillment request.

    Exactly one of order_id and error is set.
    """

    order_id: int | None = None
    error: FulfillmentError | None = None

    def __post_init__(self) -> None:
        if (self.order_id is None) == (self.error is None):
            raise ValueError("exactly one of order_id and error must be set")

    @classmethod
    def success(cls, order_id: int) -> "FulfillmentResult":
        return cls(order_id=order_id)

    @classmethod
    def failure(cls, error: FulfillmentError) -> "FulfillmentResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> int:
        """Return the order id, or raise the recorded error."""
        if self.error is not None:
            raise self.error
        assert self.order_id is not None
        return self.order_id


# ============================================================================
# Catalog metadata
# ============================================================================


@dataclass(frozen=True)
class TableInfo:
    """A user-visible table in the live schema."""

    name: str


@dataclass(frozen=True)
class ColumnInfo:
    """A column and its declared type, as reported by the catalog."""

    column_name: str
    declared_type: str


@dataclass(frozen=True)
class PrimaryKey:
    """One column of a table's primary key."""

    column_name: str


@dataclass(frozen=True)
class ForeignKey:
    """A foreign-key column and the column it references."""

    column_name: str
    referenced_table: str
    referenced_column: str


@dataclass(frozen=True)
class TableKeys:
    """Primary and foreign keys of a single table."""

    primary_keys: tuple[PrimaryKey, ...] = ()
    foreign_keys: tuple[ForeignKey, ...] = ()


@dataclass(frozen=True)
class TableReport:
    """Full structural description of one table."""

    table: TableInfo
    columns: tuple[ColumnInfo, ...] = ()
    keys: TableKeys = field(default_factory=TableKeys)
