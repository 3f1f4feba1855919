"""Catalog Context Domain Services.

This module holds the release publication rules:

- ``reconcile_associations`` computes the minimal set of join-record writes
  needed to move a release's artists from the current set to a desired set.
- ``PublicationCascade`` updates a release and, the first time it is
  published, copies its publication timestamp onto its unpublished tracks
  inside the same transaction.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from ..result import CatalogError, NotFoundError, Result, classify_error, failure, success
from .entities import ArtistRelease, Release, ReleaseChanges
from .repositories import CatalogRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AssociationPlan:
    """Writes needed to reconcile a release's artist join records."""

    to_delete: List[str] = field(default_factory=list)  # join record ids
    to_create: List[str] = field(default_factory=list)  # artist ids

    @property
    def is_empty(self) -> bool:
        return not self.to_delete and not self.to_create


def reconcile_associations(
    current: Iterable[ArtistRelease],
    desired: Iterable[str],
) -> AssociationPlan:
    """Diff the current join records against the desired artist ids.

    Order is irrelevant and duplicates collapse, so a desired set equal to
    the current one yields an empty plan. Both lists keep first-seen order.
    """
    current = list(current)
    desired_ids = list(dict.fromkeys(desired))
    wanted = set(desired_ids)
    existing = {link.artist_id for link in current}

    return AssociationPlan(
        to_delete=[link.id for link in current if link.artist_id not in wanted],
        to_create=[artist_id for artist_id in desired_ids if artist_id not in existing],
    )


async def apply_association_plan(
    repository: CatalogRepository,
    release_id: str,
    plan: AssociationPlan,
) -> None:
    """Execute a plan's delete and create batches concurrently.

    Empty batches are skipped, so an empty plan issues no writes at all.
    """
    ops = []
    if plan.to_delete:
        ops.append(repository.delete_associations(plan.to_delete))
    if plan.to_create:
        ops.append(repository.create_associations(
            [(artist_id, release_id) for artist_id in plan.to_create]
        ))
    if ops:
        await asyncio.gather(*ops)


async def sync_release_artists(
    repository: CatalogRepository,
    release_id: str,
    artist_ids: Sequence[str],
) -> Result[AssociationPlan, CatalogError]:
    """Bring a release's artist associations in line with ``artist_ids``."""
    try:
        current = await repository.find_associations(release_id)
        plan = reconcile_associations(current, artist_ids)
        await apply_association_plan(repository, release_id, plan)
    except Exception as e:
        error = classify_error(e, "update release artists")
        logger.error(f"Artist sync failed for release {release_id}: {e}")
        return failure(error)

    if not plan.is_empty:
        logger.info(
            f"Release {release_id} artists synced: "
            f"{len(plan.to_create)} added, {len(plan.to_delete)} removed"
        )
    return success(plan)


@dataclass(frozen=True, slots=True)
class PublicationOutcome:
    """Result of a release update."""

    release: Release
    cascaded: bool = False
    tracks_published: int = 0


class PublicationCascade:
    """Atomic release update with a one-shot track publication cascade.

    The cascade fires only when this call moves the release from unpublished
    to published. The pre-read that decides this is not isolated from other
    writers; the ``published_on IS NULL`` filter on the track update keeps a
    racing second cascade from changing anything.
    """

    def __init__(self, repository: CatalogRepository):
        self.repository = repository

    async def update_release(
        self,
        release_id: str,
        changes: ReleaseChanges,
    ) -> Result[PublicationOutcome, CatalogError]:
        try:
            return success(await self._update(release_id, changes))
        except Exception as e:
            return failure(classify_error(e, "update release"))

    async def _update(self, release_id: str, changes: ReleaseChanges) -> PublicationOutcome:
        should_publish_tracks = False
        if changes.sets_published_at:
            existing = await self.repository.find_release(release_id)
            if existing is None:
                raise NotFoundError(
                    f"Release {release_id} not found",
                    user_message="Release not found",
                )
            should_publish_tracks = existing.published_at is None

        tracks_published = 0
        async with self.repository.transaction():
            release = await self.repository.update_release(release_id, changes)

            cascaded = should_publish_tracks and release.published_at is not None
            if cascaded:
                track_ids = release.track_ids
                if track_ids:
                    tracks_published = await self.repository.publish_tracks(
                        track_ids, published_on=release.published_at
                    )

        if cascaded:
            logger.info(
                f"Published release {release_id}; cascaded to "
                f"{tracks_published} of {len(release.track_ids)} tracks"
            )
        return PublicationOutcome(
            release=release,
            cascaded=cascaded,
            tracks_published=tracks_published,
        )
