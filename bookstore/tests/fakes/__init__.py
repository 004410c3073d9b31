"""Fake implementations of core ports for testing.

These in-memory implementations allow core domain logic to be tested
without a database:

- FakeCatalogStorePort: In-memory catalog with snapshot rollback
- FailingMetadataStore: Catalog whose metadata queries always fail
"""

from .store import FailingMetadataStore, FakeCatalogStorePort

__all__ = [
    "FailingMetadataStore",
    "FakeCatalogStorePort",
]
