"""Release service.

Wraps the catalog repository for the admin and public surfaces. Every
operation returns a ``Result`` whose failure side is a classified
``CatalogError``; nothing raises across this boundary.
"""

import logging
from typing import List, Optional

from ..core.cache import TTLCache, with_cache
from ..domain.catalog.entities import Release, ReleaseChanges, ReleaseDraft, utcnow
from ..domain.catalog.repositories import CatalogRepository
from ..domain.catalog.services import PublicationCascade, PublicationOutcome
from ..domain.result import (
    CatalogError,
    ErrorKind,
    NotFoundError,
    Result,
    classify_error,
    failure,
    success,
)
from ..models.config import CatalogConfig

logger = logging.getLogger(__name__)

PUBLISHED_RELEASES_CACHE_PREFIX = "published-releases:"
RELEASE_CACHE_PREFIX = "release:"


def release_cache_key(release_id: str) -> str:
    return f"{RELEASE_CACHE_PREFIX}{release_id}"


def _release_not_found(release_id: str) -> NotFoundError:
    return NotFoundError(f"Release {release_id} not found", user_message="Release not found")


class ReleaseService:
    """Service for release reads and writes."""

    def __init__(
        self,
        repository: CatalogRepository,
        cache: Optional[TTLCache] = None,
        config: Optional[CatalogConfig] = None,
    ):
        self.repository = repository
        self.config = config or CatalogConfig.default()
        self.cache = cache or TTLCache(
            default_ttl_seconds=self.config.cache.default_ttl_seconds,
            sweep_interval_seconds=self.config.cache.sweep_interval_seconds,
        )
        self.cascade = PublicationCascade(repository)

    def _fail(self, exc: BaseException, action: str) -> Result:
        error = classify_error(exc, action)
        if error.kind is ErrorKind.UNAVAILABLE:
            logger.error(f"Database unavailable while trying to {action}: {error}")
        elif error.kind is ErrorKind.UNKNOWN:
            logger.error(f"Unexpected error while trying to {action}: {error}")
        else:
            logger.debug(f"Could not {action}: {error}")
        return failure(error)

    def invalidate_published_cache(self) -> int:
        """Drop every cached published-release listing."""
        return self.cache.invalidate(PUBLISHED_RELEASES_CACHE_PREFIX)

    def invalidate_release(self, release_id: str) -> None:
        """Drop every cached read that may include ``release_id``."""
        self.cache.delete(release_cache_key(release_id))
        self.invalidate_published_cache()

    async def create_release(self, draft: ReleaseDraft) -> Result[Release, CatalogError]:
        """Create a new release."""
        try:
            release = await self.repository.create_release(draft.to_release())
        except Exception as e:
            return self._fail(e, "create release")
        if release.is_published:
            self.invalidate_published_cache()
        return success(release)

    async def get_release_by_id(self, release_id: str) -> Result[Release, CatalogError]:
        """Get a release by ID."""
        try:
            release = await self.repository.find_release(release_id)
        except Exception as e:
            return self._fail(e, "retrieve release")
        if release is None:
            return failure(_release_not_found(release_id))
        return success(release)

    async def get_releases(
        self,
        skip: int = 0,
        take: int = 50,
        search: Optional[str] = None,
    ) -> Result[List[Release], CatalogError]:
        """Get releases, newest first, optionally filtered by a search term."""
        try:
            releases = await self.repository.list_releases(skip=skip, take=take, search=search)
        except Exception as e:
            return self._fail(e, "retrieve releases")
        return success(releases)

    async def update_release(
        self,
        release_id: str,
        changes: ReleaseChanges,
    ) -> Result[PublicationOutcome, CatalogError]:
        """Update a release.

        When this update publishes the release for the first time, all of its
        unpublished tracks are published with it in the same transaction.
        """
        result = await self.cascade.update_release(release_id, changes)
        if result.is_failure():
            return self._fail(result.error(), "update release")
        self.invalidate_release(release_id)
        return result

    async def delete_release(self, release_id: str) -> Result[Release, CatalogError]:
        """Delete a release by ID (hard delete)."""
        try:
            release = await self.repository.delete_release(release_id)
        except Exception as e:
            return self._fail(e, "delete release")
        self.invalidate_release(release_id)
        return success(release)

    async def soft_delete_release(self, release_id: str) -> Result[Release, CatalogError]:
        """Soft delete a release by setting its deletedOn timestamp."""
        try:
            release = await self.repository.update_release(
                release_id, ReleaseChanges(deleted_on=utcnow())
            )
        except Exception as e:
            return self._fail(e, "soft delete release")
        self.invalidate_release(release_id)
        return success(release)

    async def restore_release(self, release_id: str) -> Result[Release, CatalogError]:
        """Restore a soft-deleted release by clearing its deletedOn timestamp."""
        try:
            release = await self.repository.update_release(
                release_id, ReleaseChanges(deleted_on=None)
            )
        except Exception as e:
            return self._fail(e, "restore release")
        self.invalidate_release(release_id)
        return success(release)

    async def get_published_releases(self, limit: int = 20) -> Result[List[Release], CatalogError]:
        """Published, non-deleted releases, most recently published first.

        Served through the read-through cache. Failed reads are not cached.
        """
        key = f"{PUBLISHED_RELEASES_CACHE_PREFIX}{limit}"
        ttl = self.config.effective_ttl(self.config.cache.published_releases_ttl_seconds)

        async def load() -> List[Release]:
            return await self.repository.list_releases(take=limit, published_only=True)

        try:
            releases = await with_cache(self.cache, key, load, ttl)
        except Exception as e:
            return self._fail(e, "retrieve published releases")
        return success(list(releases))
