"""Tests for catalog entities and update payloads."""

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from release_catalog.domain.catalog.entities import (
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
from release_catalog.domain.result import ValidationError

T1 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestObjectIds:
    """Test record id helpers."""

    def test_new_object_id_shape(self):
        value = new_object_id()
        assert len(value) == 24
        assert is_object_id(value)

    @pytest.mark.parametrize("value", ["", "xyz", "A" * 24, "a" * 23, None, 12])
    def test_rejects_malformed_ids(self, value):
        assert not is_object_id(value)


class TestUnset:
    """Test the UNSET marker."""

    def test_unset_is_falsy_singleton(self):
        assert not UNSET
        assert repr(UNSET) == "UNSET"
        assert type(UNSET)() is UNSET


class TestArtist:
    """Test Artist display name."""

    def test_display_name_preferred(self):
        assert Artist(first_name="Jo", surname="Doe", display_name="JD").get_display_name() == "JD"

    def test_full_name_fallback(self):
        assert Artist(first_name="Jo", surname="Doe").get_display_name() == "Jo Doe"

    def test_unknown_fallback(self):
        assert Artist().get_display_name() == "Unknown Artist"


class TestRelease:
    """Test Release entity."""

    def test_defaults(self):
        release = Release(title="Debut")

        assert release.formats == ["DIGITAL"]
        assert not release.is_published
        assert not release.is_deleted
        assert release.track_ids == []

    def test_link_ids(self):
        release = Release(
            title="Linked",
            release_tracks=[ReleaseTrack(id="j1", release_id="r", track_id="t1")],
            artist_releases=[ArtistRelease(id="j2", artist_id="a1", release_id="r")],
        )

        assert release.track_ids == ["t1"]
        assert release.artist_ids == ["a1"]

    def test_join_records_are_immutable(self):
        link = ArtistRelease(id="j", artist_id="a", release_id="r")
        with pytest.raises(FrozenInstanceError):
            link.artist_id = "b"

    def test_to_dict(self):
        data = Release(title="Dict", published_at=T1).to_dict()

        assert data["title"] == "Dict"
        assert data["published_at"] == T1.isoformat()
        assert data["deleted_on"] is None

    def test_track_published_flag(self):
        assert Track(title="t", published_on=T1).is_published
        assert not Track(title="t").is_published


class TestReleaseChanges:
    """Test partial updates."""

    def test_items_only_include_supplied_fields(self):
        changes = ReleaseChanges(title="New", published_at=None)
        assert changes.items() == {"title": "New", "published_at": None}

    def test_empty(self):
        assert ReleaseChanges().is_empty
        assert not ReleaseChanges(description=None).is_empty

    @pytest.mark.parametrize("changes,expected", [
        (ReleaseChanges(), False),
        (ReleaseChanges(published_at=None), False),
        (ReleaseChanges(published_at=T1), True),
    ])
    def test_sets_published_at(self, changes, expected):
        assert changes.sets_published_at is expected

    def test_apply_to_leaves_unset_fields(self):
        release = Release(title="Old", description="keep", published_at=T1)

        updated = ReleaseChanges(title="New", published_at=None).apply_to(release)

        assert updated.title == "New"
        assert updated.description == "keep"
        assert updated.published_at is None
        assert release.title == "Old"

    def test_apply_to_copies_lists(self):
        labels = ("A", "B")
        updated = ReleaseChanges(labels=labels).apply_to(Release(title="L"))
        assert updated.labels == ["A", "B"]

    @pytest.mark.parametrize("changes,field", [
        (ReleaseChanges(title=""), "title"),
        (ReleaseChanges(title=None), "title"),
        (ReleaseChanges(labels="Indie"), "labels"),
        (ReleaseChanges(featured_on=T1, featured_until=T1 - timedelta(days=1)), "featured_until"),
    ])
    def test_validation_errors(self, changes, field):
        with pytest.raises(ValidationError) as exc_info:
            changes.validate()
        assert exc_info.value.field == field

    def test_changes_are_frozen(self):
        with pytest.raises(FrozenInstanceError):
            ReleaseChanges().title = "x"


class TestReleaseDraft:
    """Test release drafts."""

    def test_to_release_strips_title(self):
        release = ReleaseDraft(title="  Spaced  ", formats=[]).to_release()

        assert release.title == "Spaced"
        assert release.formats == ["DIGITAL"]
        assert release.created_at == release.updated_at

    def test_blank_title_invalid(self):
        with pytest.raises(ValidationError):
            ReleaseDraft(title=" ").validate()
