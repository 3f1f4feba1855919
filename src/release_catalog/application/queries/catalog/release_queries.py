"""Release queries."""

from dataclasses import dataclass
from typing import List, Optional

from ...queries.base import Query, QueryHandler
from ...release_service import ReleaseService, release_cache_key
from ....domain.catalog.entities import Release


@dataclass(frozen=True, slots=True, kw_only=True)
class GetReleaseByIdQuery(Query):
    """Query to get a release by ID."""

    release_id: str


@dataclass(frozen=True, slots=True, kw_only=True)
class SearchReleasesQuery(Query):
    """Query for the admin release listing."""

    search: Optional[str] = None
    skip: int = 0
    take: int = 50


@dataclass(frozen=True, slots=True, kw_only=True)
class GetPublishedReleasesQuery(Query):
    """Query for the public listing of published releases.

    The release service already serves this listing through its own
    read-through cache, so the query carries no cache key of its own.
    """

    limit: int = 20


class GetReleaseByIdHandler(QueryHandler[GetReleaseByIdQuery, Release]):
    """Handler for getting a release by ID."""

    def __init__(self, release_service: ReleaseService):
        self.release_service = release_service

    async def handle(self, query: GetReleaseByIdQuery) -> Release:
        result = await self.release_service.get_release_by_id(query.release_id)
        return result.or_else_raise()

    def get_cache_key(self, query: GetReleaseByIdQuery) -> Optional[str]:
        return release_cache_key(query.release_id)

    def can_handle(self, query_type: type) -> bool:
        return query_type == GetReleaseByIdQuery


class SearchReleasesHandler(QueryHandler[SearchReleasesQuery, List[Release]]):
    """Handler for searching releases."""

    def __init__(self, release_service: ReleaseService):
        self.release_service = release_service

    async def handle(self, query: SearchReleasesQuery) -> List[Release]:
        result = await self.release_service.get_releases(
            skip=query.skip, take=query.take, search=query.search
        )
        return result.or_else_raise()

    def can_handle(self, query_type: type) -> bool:
        return query_type == SearchReleasesQuery


class GetPublishedReleasesHandler(QueryHandler[GetPublishedReleasesQuery, List[Release]]):
    """Handler for the published release listing."""

    def __init__(self, release_service: ReleaseService):
        self.release_service = release_service

    async def handle(self, query: GetPublishedReleasesQuery) -> List[Release]:
        result = await self.release_service.get_published_releases(limit=query.limit)
        return result.or_else_raise()

    def can_handle(self, query_type: type) -> bool:
        return query_type == GetPublishedReleasesQuery
