"""
Catalog Context - Releases, tracks, artists and publication.

This bounded context is responsible for:
- Publishing releases and cascading publication to their tracks
- Reconciling artist-to-release associations
- Defining the repository boundary for catalog storage
"""

from .entities import (
    UNSET,
    Artist,
    ArtistRelease,
    Release,
    ReleaseChanges,
    ReleaseDraft,
    ReleaseTrack,
    Track,
    is_object_id,
    new_object_id,
)
from .repositories import CatalogRepository
from .services import (
    AssociationPlan,
    PublicationCascade,
    PublicationOutcome,
    apply_association_plan,
    reconcile_associations,
    sync_release_artists,
)

__all__ = [
    # Entities
    "UNSET",
    "Artist",
    "ArtistRelease",
    "Release",
    "ReleaseChanges",
    "ReleaseDraft",
    "ReleaseTrack",
    "Track",
    "is_object_id",
    "new_object_id",
    # Repositories
    "CatalogRepository",
    # Services
    "AssociationPlan",
    "PublicationCascade",
    "PublicationOutcome",
    "apply_association_plan",
    "reconcile_associations",
    "sync_release_artists",
]
