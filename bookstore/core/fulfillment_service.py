"""Fulfillment service: implements FulfillmentPort for placing orders.

Each request runs inside its own transactional scope opened on the
catalog store. Within the scope the book's stock is read under a lock,
the admission policy is applied, and the order insert plus the
conditional stock decrement are written together. Any failure inside the
scope rolls it back, so the store is left exactly as it was.

Every outcome is returned to the caller as a FulfillmentResult; store
faults are classified at the scope boundary and never leak as raw
exceptions.
"""

import asyncio
import logging

from .errors import (
    BookNotFound,
    FulfillmentError,
    InsufficientStock,
    InvalidQuantity,
    StoreError,
    TransactionFailed,
)
from .models import FulfillmentResult
from .ports import CatalogStorePort, FulfillmentPort

logger = logging.getLogger(__name__)


class FulfillmentService(FulfillmentPort):
    """Core implementation of FulfillmentPort.

    Orders are filled in full or not at all. An order whose quantity
    equals the remaining stock is admitted and leaves the stock at zero.
    """

    def __init__(
        self,
        store: CatalogStorePort,
        timeout_seconds: float | None = None,
    ):
        """Initialize the fulfillment service.

        Args:
            store: CatalogStorePort implementation providing transactional scopes.
            timeout_seconds: Optional upper bound on one fulfillment scope.
                When exceeded the scope is rolled back and the request fails
                with TransactionFailed. None disables the bound.
        """
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.store = store
        self.timeout_seconds = timeout_seconds

    async def fulfill_order(
        self, customer_id: int, book_id: int, quantity: int
    ) -> FulfillmentResult:
        """Atomically record an order and decrement the book's stock.

        Args:
            customer_id: Customer placing the order.
            book_id: Book being ordered.
            quantity: Number of copies, must be a positive integer.

        Returns:
            FulfillmentResult with the new order id, or with one of
            InvalidQuantity, BookNotFound, InsufficientStock or
            TransactionFailed.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            return self._reject(InvalidQuantity(quantity), customer_id, book_id)

        try:
            if self.timeout_seconds is None:
                order_id = await self._fulfill_in_scope(customer_id, book_id, quantity)
            else:
                async with asyncio.timeout(self.timeout_seconds):
                    order_id = await self._fulfill_in_scope(
                        customer_id, book_id, quantity
                    )
        except (BookNotFound, InsufficientStock) as e:
            return self._reject(e, customer_id, book_id)
        except StoreError as e:
            failure = TransactionFailed(book_id, e)
            failure.__cause__ = e
            logger.error(
                f"Order transaction rolled back for book {book_id}: {e}",
                extra={
                    "customer_id": customer_id,
                    "book_id": book_id,
                    "quantity": quantity,
                    "operation": e.operation,
                },
            )
            return FulfillmentResult.failure(failure)
        except TimeoutError as e:
            failure = TransactionFailed(
                book_id,
                StoreError(
                    f"Fulfillment exceeded {self.timeout_seconds}s", "timeout"
                ),
            )
            failure.__cause__ = e
            logger.error(
                f"Order transaction timed out for book {book_id}",
                extra={
                    "customer_id": customer_id,
                    "book_id": book_id,
                    "timeout_seconds": self.timeout_seconds,
                },
            )
            return FulfillmentResult.failure(failure)

        logger.info(
            f"Order {order_id} placed for book {book_id}",
            extra={
                "order_id": order_id,
                "customer_id": customer_id,
                "book_id": book_id,
                "quantity": quantity,
            },
        )
        return FulfillmentResult.success(order_id)

    async def _fulfill_in_scope(
        self, customer_id: int, book_id: int, quantity: int
    ) -> int:
        """Run the check-reserve-commit sequence inside one scope.

        Domain failures are raised from inside the scope so that the
        store rolls it back before they reach fulfill_order.
        """
        async with self.store.transaction() as tx:
            stock = await tx.get_stock_for_update(book_id)
            if stock is None:
                raise BookNotFound(book_id)
            if stock < quantity:
                raise InsufficientStock(book_id, quantity, stock)

            order_id = await tx.insert_order(customer_id, book_id, quantity)

            # Guarded by stock_quantity >= quantity in the store
            if not await tx.decrement_stock(book_id, quantity):
                raise InsufficientStock(book_id, quantity)

        return order_id

    @staticmethod
    def _reject(
        error: FulfillmentError, customer_id: int, book_id: int
    ) -> FulfillmentResult:
        logger.warning(
            f"Order declined: {error}",
            extra={
                "customer_id": customer_id,
                "book_id": book_id,
                "reason": error.kind.value,
            },
        )
        return FulfillmentResult.failure(error)
