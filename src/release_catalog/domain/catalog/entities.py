"""Catalog Context Entities.

This module defines the core entities for the Catalog bounded context:
releases, tracks, artists and the join records that link them. Storage
backends map their rows onto these dataclasses once, at the repository
boundary, so nothing above the repositories sees storage-shaped objects.
"""

import re
import secrets
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..result import ValidationError

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")


def new_object_id() -> str:
    """Generate a 24 character hexadecimal record id."""
    return secrets.token_hex(12)


def is_object_id(value: Any) -> bool:
    """Check whether a value looks like a record id."""
    return isinstance(value, str) and bool(OBJECT_ID_PATTERN.match(value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Unset:
    """Marker for an update field that was not supplied."""

    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Unset, ())


UNSET: Any = _Unset()


@dataclass(frozen=True, slots=True)
class ReleaseTrack:
    """Join record linking a release to one of its tracks."""
    id: str
    release_id: str
    track_id: str


@dataclass(frozen=True, slots=True)
class ArtistRelease:
    """Join record linking an artist to a release.

    Unique per ``(artist_id, release_id)`` pair. Created and deleted, never
    updated in place.
    """
    id: str
    artist_id: str
    release_id: str


@dataclass(kw_only=True)
class Artist:
    """A performing artist."""

    id: str = field(default_factory=new_object_id)
    first_name: str = ""
    surname: str = ""
    display_name: Optional[str] = None

    def get_display_name(self) -> str:
        """Display name, falling back to the full name."""
        if self.display_name:
            return self.display_name
        full_name = " ".join(part for part in (self.first_name, self.surname) if part).strip()
        return full_name or "Unknown Artist"


@dataclass(kw_only=True)
class Track:
    """
    A single track in the catalog.

    ``published_on`` is filled by the publication cascade the first time a
    release containing the track is published. The cascade never resets it.
    """

    id: str = field(default_factory=new_object_id)
    title: str
    published_on: Optional[datetime] = None
    deleted_on: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_published(self) -> bool:
        return self.published_on is not None


@dataclass(kw_only=True)
class Release:
    """
    A release (album, EP, single) and its links to tracks and artists.

    ``published_at`` is None while the release is unpublished. ``deleted_on``
    is the soft-delete marker.
    """

    id: str = field(default_factory=new_object_id)
    title: str
    released_on: Optional[datetime] = None
    catalog_number: Optional[str] = None
    description: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    formats: List[str] = field(default_factory=lambda: ["DIGITAL"])

    published_at: Optional[datetime] = None
    deleted_on: Optional[datetime] = None
    featured_on: Optional[datetime] = None
    featured_until: Optional[datetime] = None
    featured_description: Optional[str] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    release_tracks: List[ReleaseTrack] = field(default_factory=list)
    artist_releases: List[ArtistRelease] = field(default_factory=list)

    @property
    def is_published(self) -> bool:
        return self.published_at is not None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_on is not None

    @property
    def track_ids(self) -> List[str]:
        return [link.track_id for link in self.release_tracks]

    @property
    def artist_ids(self) -> List[str]:
        return [link.artist_id for link in self.artist_releases]

    def to_dict(self) -> Dict[str, Any]:
        """Convert release to a JSON-friendly dictionary."""
        def _iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "title": self.title,
            "released_on": _iso(self.released_on),
            "catalog_number": self.catalog_number,
            "description": self.description,
            "labels": list(self.labels),
            "formats": list(self.formats),
            "published_at": _iso(self.published_at),
            "deleted_on": _iso(self.deleted_on),
            "featured_on": _iso(self.featured_on),
            "featured_until": _iso(self.featured_until),
            "featured_description": self.featured_description,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "track_ids": self.track_ids,
            "artist_ids": self.artist_ids,
        }


@dataclass(frozen=True, kw_only=True)
class ReleaseChanges:
    """A partial update to a release.

    Fields left as ``UNSET`` are not touched. Setting a field to None clears
    it, which is how ``published_at`` or ``deleted_on`` are removed.
    """

    title: Any = UNSET
    released_on: Any = UNSET
    catalog_number: Any = UNSET
    description: Any = UNSET
    labels: Any = UNSET
    formats: Any = UNSET
    published_at: Any = UNSET
    deleted_on: Any = UNSET
    featured_on: Any = UNSET
    featured_until: Any = UNSET
    featured_description: Any = UNSET

    def items(self) -> Dict[str, Any]:
        """The supplied fields and their new values."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }

    @property
    def is_empty(self) -> bool:
        return not self.items()

    @property
    def sets_published_at(self) -> bool:
        """Whether this update sets a non-null publication timestamp."""
        return self.published_at is not UNSET and self.published_at is not None

    def validate(self) -> None:
        if self.title is not UNSET and (not isinstance(self.title, str) or not self.title.strip()):
            raise ValidationError("Title is required", field="title")
        for name in ("labels", "formats"):
            value = getattr(self, name)
            if value is not UNSET and not isinstance(value, (list, tuple)):
                raise ValidationError(f"{name} must be a list", field=name)
        if isinstance(self.featured_on, datetime) and isinstance(self.featured_until, datetime):
            if self.featured_until < self.featured_on:
                raise ValidationError(
                    "Featured until must be after featured on", field="featured_until"
                )

    def apply_to(self, release: Release, updated_at: Optional[datetime] = None) -> Release:
        """Return a copy of ``release`` with these changes applied."""
        values = self.items()
        for name in ("labels", "formats"):
            if name in values and values[name] is not None:
                values[name] = list(values[name])
        return replace(release, updated_at=updated_at or utcnow(), **values)


@dataclass(kw_only=True)
class ReleaseDraft:
    """Input for creating a new release."""

    title: str
    released_on: Optional[datetime] = None
    catalog_number: Optional[str] = None
    description: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    formats: List[str] = field(default_factory=lambda: ["DIGITAL"])
    published_at: Optional[datetime] = None
    featured_on: Optional[datetime] = None
    featured_until: Optional[datetime] = None
    featured_description: Optional[str] = None

    def validate(self) -> None:
        if not self.title or not self.title.strip():
            raise ValidationError("Title is required", field="title")
        if self.featured_on and self.featured_until and self.featured_until < self.featured_on:
            raise ValidationError(
                "Featured until must be after featured on", field="featured_until"
            )

    def to_release(self) -> Release:
        now = utcnow()
        return Release(
            title=self.title.strip(),
            released_on=self.released_on,
            catalog_number=self.catalog_number,
            description=self.description,
            labels=list(self.labels),
            formats=list(self.formats) or ["DIGITAL"],
            published_at=self.published_at,
            featured_on=self.featured_on,
            featured_until=self.featured_until,
            featured_description=self.featured_description,
            created_at=now,
            updated_at=now,
        )
