"""
In-memory Catalog Repository.

Keeps catalog rows in dictionaries. Transactions snapshot the whole state on
entry and restore it if the block raises, so the repository can stand in for
a transactional store in tests and development.
"""

import asyncio
import copy
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import replace
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple

from ...domain.catalog.entities import (
    Artist,
    ArtistRelease,
    Release,
    ReleaseChanges,
    ReleaseTrack,
    Track,
    new_object_id,
)
from ...domain.catalog.repositories import CatalogRepository
from ...domain.result import ConflictError, NotFoundError

TITLE_CONFLICT_MESSAGE = "This title is already in use. Please choose a different one."


def _release_not_found(release_id: str) -> NotFoundError:
    return NotFoundError(f"Release {release_id} not found", user_message="Release not found")


class _State:
    """The mutable tables. Copied wholesale for transaction snapshots."""

    def __init__(self):
        self.releases: Dict[str, Release] = {}
        self.tracks: Dict[str, Track] = {}
        self.artists: Dict[str, Artist] = {}
        self.release_tracks: Dict[str, ReleaseTrack] = {}
        self.artist_releases: Dict[str, ArtistRelease] = {}


class InMemoryCatalogRepository(CatalogRepository):
    """In-memory implementation of CatalogRepository for testing and development."""

    def __init__(self):
        self._state = _State()
        self._lock = asyncio.Lock()
        self._in_transaction: ContextVar[bool] = ContextVar(
            f"in_memory_catalog_tx_{id(self)}", default=False
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            snapshot = copy.deepcopy(self._state)
            token = self._in_transaction.set(True)
            try:
                yield
            except BaseException:
                self._state = snapshot
                raise
            finally:
                self._in_transaction.reset(token)

    @asynccontextmanager
    async def _guard(self) -> AsyncIterator[None]:
        """Serialize a single call against open transactions of other tasks."""
        if self._in_transaction.get():
            yield
        else:
            async with self._lock:
                yield

    def _hydrate(self, release: Release) -> Release:
        state = self._state
        return replace(
            release,
            labels=list(release.labels),
            formats=list(release.formats),
            release_tracks=[
                link for link in state.release_tracks.values() if link.release_id == release.id
            ],
            artist_releases=[
                link for link in state.artist_releases.values() if link.release_id == release.id
            ],
        )

    def _check_title(self, title: str, release_id: str) -> None:
        for other in self._state.releases.values():
            if other.title == title and other.id != release_id:
                raise ConflictError(
                    f"Release with title {title!r} already exists",
                    field="title",
                    user_message=TITLE_CONFLICT_MESSAGE,
                )

    # Releases

    async def find_release(self, release_id: str) -> Optional[Release]:
        async with self._guard():
            release = self._state.releases.get(release_id)
            return self._hydrate(release) if release else None

    async def list_releases(
        self,
        *,
        skip: int = 0,
        take: int = 50,
        search: Optional[str] = None,
        published_only: bool = False,
    ) -> List[Release]:
        async with self._guard():
            releases = list(self._state.releases.values())

            if search:
                needle = search.lower()
                releases = [
                    r for r in releases
                    if any(needle in (value or "").lower()
                           for value in (r.title, r.catalog_number, r.description))
                ]

            if published_only:
                releases = [r for r in releases if r.is_published and not r.is_deleted]
                releases.sort(key=lambda r: r.published_at, reverse=True)
            else:
                releases.sort(key=lambda r: r.created_at, reverse=True)

            return [self._hydrate(r) for r in releases[skip:skip + take]]

    async def create_release(self, release: Release) -> Release:
        async with self._guard():
            if release.id in self._state.releases:
                raise ConflictError(f"Release {release.id} already exists", field="id")
            self._check_title(release.title, release.id)
            self._state.releases[release.id] = replace(
                release, release_tracks=[], artist_releases=[]
            )
            return self._hydrate(self._state.releases[release.id])

    async def update_release(self, release_id: str, changes: ReleaseChanges) -> Release:
        async with self._guard():
            release = self._state.releases.get(release_id)
            if release is None:
                raise _release_not_found(release_id)
            if "title" in changes.items():
                self._check_title(changes.title, release_id)
            updated = changes.apply_to(release)
            self._state.releases[release_id] = updated
            return self._hydrate(updated)

    async def delete_release(self, release_id: str) -> Release:
        async with self._guard():
            release = self._state.releases.get(release_id)
            if release is None:
                raise _release_not_found(release_id)
            deleted = self._hydrate(release)
            state = self._state
            del state.releases[release_id]
            for link in deleted.release_tracks:
                state.release_tracks.pop(link.id, None)
            for link in deleted.artist_releases:
                state.artist_releases.pop(link.id, None)
            return deleted

    # Tracks

    async def save_track(self, track: Track) -> Track:
        async with self._guard():
            self._state.tracks[track.id] = replace(track)
            return replace(track)

    async def find_track(self, track_id: str) -> Optional[Track]:
        async with self._guard():
            track = self._state.tracks.get(track_id)
            return replace(track) if track else None

    async def link_track(self, release_id: str, track_id: str) -> ReleaseTrack:
        async with self._guard():
            state = self._state
            if release_id not in state.releases:
                raise _release_not_found(release_id)
            if track_id not in state.tracks:
                raise NotFoundError(f"Track {track_id} not found", user_message="Track not found")
            for link in state.release_tracks.values():
                if link.release_id == release_id and link.track_id == track_id:
                    raise ConflictError(
                        f"Track {track_id} is already on release {release_id}",
                        field="track_id",
                    )
            link = ReleaseTrack(id=new_object_id(), release_id=release_id, track_id=track_id)
            state.release_tracks[link.id] = link
            return link

    async def publish_tracks(self, track_ids: Sequence[str], published_on: datetime) -> int:
        async with self._guard():
            updated = 0
            for track_id in dict.fromkeys(track_ids):
                track = self._state.tracks.get(track_id)
                if track is not None and track.published_on is None:
                    track.published_on = published_on
                    updated += 1
            return updated

    # Artists

    async def save_artist(self, artist: Artist) -> Artist:
        async with self._guard():
            self._state.artists[artist.id] = replace(artist)
            return replace(artist)

    async def find_associations(self, release_id: str) -> List[ArtistRelease]:
        async with self._guard():
            return [
                link for link in self._state.artist_releases.values()
                if link.release_id == release_id
            ]

    async def create_associations(self, pairs: Sequence[Tuple[str, str]]) -> int:
        async with self._guard():
            state = self._state
            existing = {(link.artist_id, link.release_id) for link in state.artist_releases.values()}
            new_links = []
            for artist_id, release_id in pairs:
                if artist_id not in state.artists:
                    raise NotFoundError(
                        f"Artist {artist_id} not found",
                        field="artist_ids",
                        user_message="Artist not found",
                    )
                if release_id not in state.releases:
                    raise _release_not_found(release_id)
                if (artist_id, release_id) in existing:
                    raise ConflictError(
                        f"Artist {artist_id} is already linked to release {release_id}",
                        field="artist_ids",
                    )
                existing.add((artist_id, release_id))
                new_links.append(
                    ArtistRelease(id=new_object_id(), artist_id=artist_id, release_id=release_id)
                )
            for link in new_links:
                state.artist_releases[link.id] = link
            return len(new_links)

    async def delete_associations(self, join_ids: Sequence[str]) -> int:
        async with self._guard():
            removed = 0
            for join_id in join_ids:
                if self._state.artist_releases.pop(join_id, None) is not None:
                    removed += 1
            return removed
