"""Catalog Context Repository Interfaces.

This module defines the repository interface for the Catalog bounded context.
Repositories provide abstraction over data storage and retrieval and are the
only place where storage rows are turned into domain entities.

Implementations raise the classified errors from ``domain.result``
(``NotFoundError``, ``ConflictError``, ``UnavailableError``) for the failure
kinds they can recognise. Anything else propagates unchanged.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncContextManager, List, Optional, Sequence, Tuple

from .entities import Artist, ArtistRelease, Release, ReleaseChanges, ReleaseTrack, Track


class CatalogRepository(ABC):
    """Repository for releases, tracks, artists and their join records."""

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """Open a transaction.

        Every repository call made by the same task inside the block is part
        of the transaction. Leaving the block normally commits; leaving it with
        an exception rolls back every write made inside it.
        """

    # Releases

    @abstractmethod
    async def find_release(self, release_id: str) -> Optional[Release]:
        """Find a release by its ID."""
        pass

    @abstractmethod
    async def list_releases(
        self,
        *,
        skip: int = 0,
        take: int = 50,
        search: Optional[str] = None,
        published_only: bool = False,
    ) -> List[Release]:
        """List releases, newest first.

        ``search`` is a case-insensitive match against title, catalog number
        and description. ``published_only`` restricts the listing to published,
        not soft-deleted releases ordered by ``published_at``.
        """
        pass

    @abstractmethod
    async def create_release(self, release: Release) -> Release:
        """Insert a new release. Raises ConflictError on a duplicate title."""
        pass

    @abstractmethod
    async def update_release(self, release_id: str, changes: ReleaseChanges) -> Release:
        """Apply field changes and return the updated release with its links."""
        pass

    @abstractmethod
    async def delete_release(self, release_id: str) -> Release:
        """Hard delete a release together with its join records."""
        pass

    # Tracks

    @abstractmethod
    async def save_track(self, track: Track) -> Track:
        """Insert or replace a track."""
        pass

    @abstractmethod
    async def find_track(self, track_id: str) -> Optional[Track]:
        """Find a track by its ID."""
        pass

    @abstractmethod
    async def link_track(self, release_id: str, track_id: str) -> ReleaseTrack:
        """Attach a track to a release."""
        pass

    @abstractmethod
    async def publish_tracks(self, track_ids: Sequence[str], published_on: datetime) -> int:
        """Set ``published_on`` on the given tracks that are still unpublished.

        Returns the number of tracks updated.
        """
        pass

    # Artists

    @abstractmethod
    async def save_artist(self, artist: Artist) -> Artist:
        """Insert or replace an artist."""
        pass

    @abstractmethod
    async def find_associations(self, release_id: str) -> List[ArtistRelease]:
        """Get the artist join records of a release."""
        pass

    @abstractmethod
    async def create_associations(self, pairs: Sequence[Tuple[str, str]]) -> int:
        """Create ``(artist_id, release_id)`` join records."""
        pass

    @abstractmethod
    async def delete_associations(self, join_ids: Sequence[str]) -> int:
        """Delete join records by their IDs."""
        pass
