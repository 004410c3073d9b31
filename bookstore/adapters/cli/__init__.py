"""Command-line interface adapters.

Provides CLI commands for operating the bookstore catalog:
- add-author / add-book / add-customer: Insert catalog rows
- list-books / update-book / remove-book: Inspect and edit books
- order: Place an order against current stock
- tables / columns / keys / schema: Report on the live schema
"""
