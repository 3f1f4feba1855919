"""Catalog queries."""

from .release_queries import (
    GetReleaseByIdQuery,
    GetReleaseByIdHandler,
    SearchReleasesQuery,
    SearchReleasesHandler,
    GetPublishedReleasesQuery,
    GetPublishedReleasesHandler,
)

__all__ = [
    "GetReleaseByIdQuery",
    "GetReleaseByIdHandler",
    "SearchReleasesQuery",
    "SearchReleasesHandler",
    "GetPublishedReleasesQuery",
    "GetPublishedReleasesHandler",
]
