"""Test suite for the bookstore catalog.

Organized into three categories:

1. core/: Unit tests for core domain logic
   - Minimal dependencies, fast execution
   - Uses in-memory fakes for ports

2. adapters/: Integration tests for adapter implementations
   - SQLite tests run against a temporary database file
   - PostgreSQL tests run only when BOOKSTORE_TEST_DATABASE_URL is set

3. fakes/: Port implementations for testing
   - In-memory implementation of CatalogStorePort
   - Used by core unit tests
"""
