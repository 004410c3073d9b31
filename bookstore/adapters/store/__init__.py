"""Catalog store adapters for persistence, transactions and introspection.

Implementations support multiple backends:
- SQLite (zero-config, single-file)
- PostgreSQL (distributed, scalable)
"""
