"""Tests for the command line interface."""

import asyncio
import logging
from datetime import datetime, timezone

import pytest
from click.testing import CliRunner

from release_catalog.cli import cli
from release_catalog.domain.catalog.entities import Artist, Release, Track
from release_catalog.infrastructure.repositories import SQLiteCatalogRepository


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("RELEASE_CATALOG_ENV", raising=False)
    monkeypatch.delenv("RELEASE_CATALOG_DB", raising=False)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "catalog.db"


@pytest.fixture
def runner():
    return CliRunner()


def seed(db_path, title="Debut", tracks=2, artists=(), published_at=None):
    async def _seed():
        repo = SQLiteCatalogRepository(db_path)
        try:
            release = await repo.create_release(Release(title=title, published_at=published_at))
            for n in range(tracks):
                track = await repo.save_track(Track(title=f"Track {n + 1}"))
                await repo.link_track(release.id, track.id)
            for artist_id in artists:
                await repo.save_artist(Artist(id=artist_id))
            return release.id
        finally:
            repo.close()

    return asyncio.run(_seed())


def read_release(db_path, release_id):
    async def _read():
        repo = SQLiteCatalogRepository(db_path)
        try:
            return await repo.find_release(release_id)
        finally:
            repo.close()

    return asyncio.run(_read())


class TestPublish:
    """Test the publish command."""

    def test_publish_cascades(self, runner, db_path):
        release_id = seed(db_path)

        result = runner.invoke(
            cli, ["--db", str(db_path), "publish", release_id, "--at", "2024-01-01T00:00:00"]
        )

        assert result.exit_code == 0, result.output
        assert "Tracks published: 2" in result.output
        release = read_release(db_path, release_id)
        assert release.published_at == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_publish_again_leaves_tracks(self, runner, db_path):
        release_id = seed(db_path)
        runner.invoke(cli, ["--db", str(db_path), "publish", release_id])

        result = runner.invoke(cli, ["--db", str(db_path), "publish", release_id])

        assert result.exit_code == 0
        assert "already published" in result.output

    def test_publish_invalid_id(self, runner, db_path):
        result = runner.invoke(cli, ["--db", str(db_path), "publish", "nope"])

        assert result.exit_code == 1
        assert "Invalid release ID" in result.output

    def test_publish_bad_timestamp(self, runner, db_path):
        release_id = seed(db_path)

        result = runner.invoke(
            cli, ["--db", str(db_path), "publish", release_id, "--at", "yesterday"]
        )

        assert result.exit_code == 2
        assert "ISO 8601" in result.output


class TestSetArtists:
    """Test the set-artists command."""

    def test_set_artists(self, runner, db_path):
        a1, a2 = "a" * 24, "b" * 24
        release_id = seed(db_path, artists=(a1, a2))

        result = runner.invoke(cli, ["--db", str(db_path), "set-artists", release_id, a1, a2])

        assert result.exit_code == 0, result.output
        assert "Artists added: 2, removed: 0" in result.output
        assert sorted(read_release(db_path, release_id).artist_ids) == [a1, a2]

    def test_unknown_artist_is_partial(self, runner, db_path):
        release_id = seed(db_path)

        result = runner.invoke(cli, ["--db", str(db_path), "set-artists", release_id, "c" * 24])

        assert result.exit_code == 2
        assert "artist_ids" in result.output


class TestListing:
    """Test the published and show commands."""

    def test_published_empty(self, runner, db_path):
        seed(db_path)

        result = runner.invoke(cli, ["--db", str(db_path), "published"])

        assert result.exit_code == 0
        assert "No published releases" in result.output

    def test_published_lists_release(self, runner, db_path):
        seed(db_path, title="Debut", published_at=datetime(2024, 1, 1, tzinfo=timezone.utc))

        result = runner.invoke(cli, ["--db", str(db_path), "published"])

        assert result.exit_code == 0
        assert "Published Releases" in result.output
        assert "Debut" in result.output

    def test_show(self, runner, db_path):
        release_id = seed(db_path, title="Shown")

        result = runner.invoke(cli, ["--db", str(db_path), "show", release_id])

        assert result.exit_code == 0
        assert "Shown" in result.output
        assert "Status: Unpublished" in result.output

    def test_show_missing(self, runner, db_path):
        result = runner.invoke(cli, ["--db", str(db_path), "show", "0" * 24])

        assert result.exit_code == 1
        assert "Release not found" in result.output


class TestArchive:
    """Test soft-delete and restore."""

    def test_soft_delete_and_restore(self, runner, db_path):
        release_id = seed(db_path)

        deleted = runner.invoke(cli, ["--db", str(db_path), "soft-delete", release_id])
        assert deleted.exit_code == 0
        assert read_release(db_path, release_id).is_deleted

        restored = runner.invoke(cli, ["--db", str(db_path), "restore", release_id])
        assert restored.exit_code == 0
        assert not read_release(db_path, release_id).is_deleted


class TestEventLog:
    """Writes made through the CLI publish events to the log."""

    def test_soft_delete_logs_event(self, runner, db_path, caplog):
        release_id = seed(db_path)

        with caplog.at_level(logging.INFO, logger="release_catalog.application.events.base"):
            result = runner.invoke(cli, ["--db", str(db_path), "soft-delete", release_id])

        assert result.exit_code == 0
        assert "event ReleaseSoftDeleted" in caplog.text
        assert release_id in caplog.text

    def test_publish_logs_cascade_event(self, runner, db_path, caplog):
        release_id = seed(db_path, tracks=3)

        with caplog.at_level(logging.INFO, logger="release_catalog.application.events.base"):
            result = runner.invoke(cli, ["--db", str(db_path), "publish", release_id])

        assert result.exit_code == 0, result.output
        assert "event ReleasePublished" in caplog.text
        assert '"tracks_published": 3' in caplog.text
