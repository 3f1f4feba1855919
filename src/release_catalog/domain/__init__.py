"""
Domain Layer - Release Catalog

Entities, repository interfaces and publication rules for the catalog,
plus the Result pattern and error taxonomy used at service boundaries.
"""

from .result import (
    Result,
    Success,
    Failure,
    success,
    failure,
    DomainError,
    ValidationError,
    ErrorKind,
    CatalogError,
    NotFoundError,
    ConflictError,
    UnavailableError,
    UnknownError,
    classify_error,
)

__all__ = [
    "Result",
    "Success",
    "Failure",
    "success",
    "failure",
    "DomainError",
    "ValidationError",
    "ErrorKind",
    "CatalogError",
    "NotFoundError",
    "ConflictError",
    "UnavailableError",
    "UnknownError",
    "classify_error",
]
