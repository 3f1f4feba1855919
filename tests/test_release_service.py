"""Tests for ReleaseService."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from release_catalog.application.release_service import ReleaseService
from release_catalog.core.cache import TTLCache
from release_catalog.domain.catalog.entities import ReleaseChanges, ReleaseDraft, Track
from release_catalog.domain.result import ErrorKind, UnavailableError
from release_catalog.infrastructure.repositories import InMemoryCatalogRepository
from release_catalog.models.config import CatalogConfig

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
MISSING_ID = "0" * 24


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def repo():
    return InMemoryCatalogRepository()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(repo, clock):
    return ReleaseService(repo, cache=TTLCache(clock=clock))


class TestReleaseCrud:
    """Create, read, list and delete."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, service):
        created = await service.create_release(ReleaseDraft(title="  First Light  ", labels=["Indie"]))

        assert created.is_success()
        release = created.value()
        assert release.title == "First Light"
        assert release.formats == ["DIGITAL"]

        fetched = await service.get_release_by_id(release.id)
        assert fetched.value().labels == ["Indie"]

    @pytest.mark.asyncio
    async def test_get_missing_release(self, service):
        result = await service.get_release_by_id(MISSING_ID)

        assert result.is_failure()
        assert result.error().kind is ErrorKind.NOT_FOUND
        assert result.error().user_message == "Release not found"

    @pytest.mark.asyncio
    async def test_create_duplicate_title_conflicts(self, service):
        await service.create_release(ReleaseDraft(title="Same"))

        result = await service.create_release(ReleaseDraft(title="Same"))

        assert result.error().kind is ErrorKind.CONFLICT
        assert result.error().field == "title"

    @pytest.mark.asyncio
    async def test_get_releases_search_and_paging(self, service):
        for title in ("Blue Hour", "Red Shift", "Blue Moon"):
            await service.create_release(ReleaseDraft(title=title))

        blue = await service.get_releases(search="blue")
        assert sorted(r.title for r in blue.value()) == ["Blue Hour", "Blue Moon"]

        page = await service.get_releases(skip=1, take=1)
        assert len(page.value()) == 1

    @pytest.mark.asyncio
    async def test_delete_release(self, service):
        release = (await service.create_release(ReleaseDraft(title="Gone"))).value()

        deleted = await service.delete_release(release.id)

        assert deleted.value().id == release.id
        assert (await service.get_release_by_id(release.id)).is_failure()

    @pytest.mark.asyncio
    async def test_delete_missing_release(self, service):
        result = await service.delete_release(MISSING_ID)
        assert result.error().kind is ErrorKind.NOT_FOUND


class TestSoftDelete:
    """Soft delete and restore."""

    @pytest.mark.asyncio
    async def test_soft_delete_then_restore(self, service):
        release = (await service.create_release(ReleaseDraft(title="Hidden"))).value()

        soft = await service.soft_delete_release(release.id)
        assert soft.value().is_deleted

        restored = await service.restore_release(release.id)
        assert restored.value().deleted_on is None

    @pytest.mark.asyncio
    async def test_soft_deleted_release_leaves_public_listing(self, service):
        release = (await service.create_release(ReleaseDraft(title="Live", published_at=NOW))).value()
        assert len((await service.get_published_releases()).value()) == 1

        await service.soft_delete_release(release.id)

        assert (await service.get_published_releases()).value() == []

    @pytest.mark.asyncio
    async def test_restore_missing_release(self, service):
        result = await service.restore_release(MISSING_ID)
        assert result.error().kind is ErrorKind.NOT_FOUND


class TestUpdateRelease:
    """Update with the publication cascade."""

    @pytest.mark.asyncio
    async def test_publishing_cascades_to_tracks(self, service, repo):
        release = (await service.create_release(ReleaseDraft(title="Cascade"))).value()
        track = await repo.save_track(Track(title="Opener"))
        await repo.link_track(release.id, track.id)

        result = await service.update_release(release.id, ReleaseChanges(published_at=NOW))

        assert result.value().cascaded
        assert (await repo.find_track(track.id)).published_on == NOW

    @pytest.mark.asyncio
    async def test_failed_update_is_logged_and_classified(self, service, repo, caplog):
        release = (await service.create_release(ReleaseDraft(title="Flaky"))).value()

        with patch.object(repo, "update_release", side_effect=UnavailableError("refused")):
            with caplog.at_level("ERROR"):
                result = await service.update_release(release.id, ReleaseChanges(title="New"))

        assert result.error().kind is ErrorKind.UNAVAILABLE
        assert "Database unavailable" in caplog.text


class TestPublishedReleases:
    """The cached public listing."""

    @pytest.mark.asyncio
    async def test_listing_order_and_filter(self, service):
        await service.create_release(ReleaseDraft(title="Old", published_at=NOW - timedelta(days=2)))
        await service.create_release(ReleaseDraft(title="New", published_at=NOW))
        await service.create_release(ReleaseDraft(title="Draft"))

        result = await service.get_published_releases()

        assert [r.title for r in result.value()] == ["New", "Old"]

    @pytest.mark.asyncio
    async def test_second_read_is_served_from_cache(self, service, repo):
        await service.create_release(ReleaseDraft(title="Cached", published_at=NOW))

        with patch.object(repo, "list_releases", wraps=repo.list_releases) as list_releases:
            await service.get_published_releases(limit=10)
            await service.get_published_releases(limit=10)

        assert list_releases.await_count == 1

    @pytest.mark.asyncio
    async def test_cache_expires_after_ttl(self, service, repo, clock):
        await service.create_release(ReleaseDraft(title="Cached", published_at=NOW))

        with patch.object(repo, "list_releases", wraps=repo.list_releases) as list_releases:
            await service.get_published_releases()
            clock.now += 601
            await service.get_published_releases()

        assert list_releases.await_count == 2

    @pytest.mark.asyncio
    async def test_writes_invalidate_listing(self, service):
        release = (await service.create_release(ReleaseDraft(title="Draft"))).value()
        assert (await service.get_published_releases()).value() == []

        await service.update_release(release.id, ReleaseChanges(published_at=NOW))

        assert [r.id for r in (await service.get_published_releases()).value()] == [release.id]

    @pytest.mark.asyncio
    async def test_failed_read_is_not_cached(self, service, repo):
        await service.create_release(ReleaseDraft(title="Later", published_at=NOW))

        with patch.object(repo, "list_releases", side_effect=UnavailableError("refused")):
            failed = await service.get_published_releases()

        assert failed.error().kind is ErrorKind.UNAVAILABLE
        assert len((await service.get_published_releases()).value()) == 1

    @pytest.mark.asyncio
    async def test_development_mode_disables_caching(self, repo):
        service = ReleaseService(repo, config=CatalogConfig(environment="development"))
        await service.create_release(ReleaseDraft(title="Dev", published_at=NOW))

        with patch.object(repo, "list_releases", wraps=repo.list_releases) as list_releases:
            await service.get_published_releases()
            await service.get_published_releases()

        assert list_releases.await_count == 2
        assert service.cache.get_stats().size == 0
