"""External adapters for the bookstore catalog.

This package contains all external dependencies (SQLite, PostgreSQL,
the command-line interface) and provides implementations of the core
port interfaces.

Adapter Organization:

- store/: Adapters for catalog persistence and schema metadata (SQLite, PostgreSQL)
- cli/: Command-line interface for catalog, order and schema commands
"""
