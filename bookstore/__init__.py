"""Bookstore catalog: atomic order fulfillment and schema reporting."""
