"""SQLite document store for inventory products."""

from .products import ProductStore
from .schema import ensure_schema

__all__ = [
    "ProductStore",
    "ensure_schema",
]
