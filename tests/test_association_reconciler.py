"""Tests for artist association reconciliation.

Property-based tests check that applying a plan always lands exactly on the
desired artist set, using the fewest writes possible.
"""

from __future__ import annotations

from typing import List
from unittest.mock import AsyncMock

import pytest
from hypothesis import given, strategies as st

from release_catalog.domain.catalog.entities import Artist, ArtistRelease, Release
from release_catalog.domain.catalog.services import (
    AssociationPlan,
    apply_association_plan,
    reconcile_associations,
    sync_release_artists,
)
from release_catalog.domain.result import ErrorKind, UnavailableError
from release_catalog.infrastructure.repositories import InMemoryCatalogRepository

RELEASE_ID = "a" * 24


def links(*artist_ids: str) -> List[ArtistRelease]:
    return [
        ArtistRelease(id=f"join-{artist_id}", artist_id=artist_id, release_id=RELEASE_ID)
        for artist_id in artist_ids
    ]


class TestReconcileAssociations:
    """Example-based reconciliation cases."""

    def test_partial_overlap(self):
        plan = reconcile_associations(links("A1", "A2"), ["A2", "A3"])

        assert plan.to_delete == ["join-A1"]
        assert plan.to_create == ["A3"]

    def test_same_set_in_different_order_is_empty(self):
        plan = reconcile_associations(links("A1", "A2"), ["A2", "A1"])
        assert plan.is_empty

    def test_empty_current(self):
        plan = reconcile_associations([], ["A1"])

        assert plan.to_delete == []
        assert plan.to_create == ["A1"]

    def test_empty_desired_removes_everything(self):
        plan = reconcile_associations(links("A1", "A2"), [])

        assert plan.to_delete == ["join-A1", "join-A2"]
        assert plan.to_create == []

    def test_duplicate_desired_ids_collapse(self):
        plan = reconcile_associations([], ["A1", "A1", "A2", "A1"])
        assert plan.to_create == ["A1", "A2"]

    def test_both_empty(self):
        assert reconcile_associations([], []).is_empty


# ============================================================================
# Property-Based Tests
# ============================================================================

artist_ids = st.lists(st.sampled_from([f"A{i}" for i in range(8)]), max_size=10)


@given(current=st.lists(st.sampled_from([f"A{i}" for i in range(8)]), unique=True), desired=artist_ids)
def test_applying_plan_yields_desired_set(current: List[str], desired: List[str]) -> None:
    """current - deleted + created is always the desired set."""
    current_links = links(*current)
    plan = reconcile_associations(current_links, desired)

    deleted = set(plan.to_delete)
    remaining = {link.artist_id for link in current_links if link.id not in deleted}

    assert remaining | set(plan.to_create) == set(desired)


@given(current=st.lists(st.sampled_from([f"A{i}" for i in range(8)]), unique=True), desired=artist_ids)
def test_plan_is_minimal(current: List[str], desired: List[str]) -> None:
    """Nothing is deleted that is wanted, nothing is created that exists."""
    current_links = links(*current)
    plan = reconcile_associations(current_links, desired)
    deleted_artists = {
        link.artist_id for link in current_links if link.id in set(plan.to_delete)
    }

    assert deleted_artists == set(current) - set(desired)
    assert set(plan.to_create) == set(desired) - set(current)
    assert len(plan.to_create) == len(set(plan.to_create))
    assert len(plan.to_delete) == len(set(plan.to_delete))


@given(current=st.lists(st.sampled_from([f"A{i}" for i in range(8)]), unique=True))
def test_permuted_current_set_is_empty_plan(current: List[str]) -> None:
    """Desiring what already exists, in any order, changes nothing."""
    plan = reconcile_associations(links(*current), list(reversed(current)))
    assert plan.is_empty


class TestApplyAssociationPlan:
    """Test plan execution against a repository."""

    @pytest.mark.asyncio
    async def test_empty_plan_issues_no_writes(self):
        repo = AsyncMock()

        await apply_association_plan(repo, RELEASE_ID, AssociationPlan())

        repo.delete_associations.assert_not_awaited()
        repo.create_associations.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_only_non_empty_batches_are_issued(self):
        repo = AsyncMock()

        await apply_association_plan(repo, RELEASE_ID, AssociationPlan(to_create=["A1", "A2"]))

        repo.delete_associations.assert_not_awaited()
        repo.create_associations.assert_awaited_once_with(
            [("A1", RELEASE_ID), ("A2", RELEASE_ID)]
        )

    @pytest.mark.asyncio
    async def test_both_batches_issued(self):
        repo = AsyncMock()

        await apply_association_plan(
            repo, RELEASE_ID, AssociationPlan(to_delete=["join-A1"], to_create=["A3"])
        )

        repo.delete_associations.assert_awaited_once_with(["join-A1"])
        repo.create_associations.assert_awaited_once_with([("A3", RELEASE_ID)])


class TestSyncReleaseArtists:
    """Test the end-to-end artist sync against the in-memory repository."""

    @pytest.fixture
    def repo(self):
        return InMemoryCatalogRepository()

    async def _seed(self, repo, *artist_ids):
        release = await repo.create_release(Release(id=RELEASE_ID, title="Sync Test"))
        for artist_id in artist_ids:
            await repo.save_artist(Artist(id=artist_id, first_name=artist_id))
        return release

    @pytest.mark.asyncio
    async def test_sync_replaces_artist_set(self, repo):
        await self._seed(repo, "A1", "A2", "A3")
        await repo.create_associations([("A1", RELEASE_ID), ("A2", RELEASE_ID)])

        result = await sync_release_artists(repo, RELEASE_ID, ["A2", "A3"])

        assert result.is_success()
        release = await repo.find_release(RELEASE_ID)
        assert sorted(release.artist_ids) == ["A2", "A3"]

    @pytest.mark.asyncio
    async def test_sync_twice_second_plan_is_empty(self, repo):
        await self._seed(repo, "A1", "A2")

        await sync_release_artists(repo, RELEASE_ID, ["A1", "A2"])
        result = await sync_release_artists(repo, RELEASE_ID, ["A2", "A1"])

        assert result.value().is_empty

    @pytest.mark.asyncio
    async def test_unknown_artist_fails_with_not_found(self, repo):
        await self._seed(repo)

        result = await sync_release_artists(repo, RELEASE_ID, ["missing"])

        assert result.is_failure()
        assert result.error().kind is ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_store_failure_is_classified(self):
        repo = AsyncMock()
        repo.find_associations.side_effect = UnavailableError("connection refused")

        result = await sync_release_artists(repo, RELEASE_ID, ["A1"])

        assert result.is_failure()
        assert result.error().kind is ErrorKind.UNAVAILABLE
        assert result.error().retryable
