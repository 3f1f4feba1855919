"""
Repository Implementations - Infrastructure Layer

This package contains repository implementations for data access,
following the Repository pattern from Domain-Driven Design.
"""

from .catalog_repository import InMemoryCatalogRepository
from .sqlite_repository import SQLiteCatalogRepository

__all__ = [
    "InMemoryCatalogRepository",
    "SQLiteCatalogRepository",
]
