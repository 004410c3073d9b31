"""Schema reporter: implements SchemaReportPort over the store's metadata.

Results are returned as tuples so they can be iterated any number of
times and compared directly. A table that does not exist, or has no
columns or keys, yields empty tuples rather than an error; callers that
need to tell the two apart should consult list_tables() first.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from .errors import IntrospectionError, StoreError
from .models import ColumnInfo, TableInfo, TableKeys, TableReport
from .ports import CatalogStorePort, SchemaReportPort

logger = logging.getLogger(__name__)


@contextmanager
def _introspecting(operation: str) -> Iterator[None]:
    """Report any store fault raised in the block as IntrospectionError."""
    try:
        yield
    except IntrospectionError:
        raise
    except StoreError as e:
        logger.error(f"Schema introspection failed during {operation}: {e}")
        raise IntrospectionError(f"Introspection failed: {e.message}", operation) from e


class SchemaReporter(SchemaReportPort):
    """Read-only view of tables, columns and keys in the live schema."""

    def __init__(self, store: CatalogStorePort):
        self.store = store

    async def list_tables(self) -> tuple[TableInfo, ...]:
        with _introspecting("list_tables"):
            return tuple(await self.store.list_tables())

    async def list_columns(self, table_name: str) -> tuple[ColumnInfo, ...]:
        with _introspecting("list_columns"):
            return tuple(await self.store.list_columns(table_name))

    async def list_keys(self, table_name: str) -> TableKeys:
        with _introspecting("list_keys"):
            primary_keys = await self.store.list_primary_keys(table_name)
            foreign_keys = await self.store.list_foreign_keys(table_name)
        return TableKeys(
            primary_keys=tuple(primary_keys),
            foreign_keys=tuple(foreign_keys),
        )

    async def describe_schema(self) -> tuple[TableReport, ...]:
        """Describe every user table with its columns and keys."""
        reports = []
        for table in await self.list_tables():
            reports.append(
                TableReport(
                    table=table,
                    columns=await self.list_columns(table.name),
                    keys=await self.list_keys(table.name),
                )
            )
        logger.debug(f"Described {len(reports)} tables")
        return tuple(reports)
