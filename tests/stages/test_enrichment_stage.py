"""Tests for the enrichment stage."""

from __future__ import annotations

import pytest

from repometer.config import FailurePolicy
from repometer.models import Repository, RepositoryMetadata
from repometer.stages import EnrichmentStage, StageError
from repometer.stores import RepositoryStore
from tests._fixtures.fakes import FakePlatform


def test_enrichment_sets_metadata_fields(store: RepositoryStore) -> None:
    repo = store.create(Repository(name="a", url="org/a"))
    platform = FakePlatform(
        {
            "org/a": RepositoryMetadata(
                open_issue_count=0,
                closed_issue_count=3,
                commit_count=10,
                stargazer_count=42,
                license_key="mit",
                primary_language="Go",
                creation_date="2020-01-01T00:00:00Z",
            )
        }
    )

    [enriched] = EnrichmentStage(store, platform, max_workers=2).run([repo])

    assert enriched.open_issue_count == "0"
    assert enriched.closed_issue_count == "3"
    assert enriched.commit_count == "10"
    assert enriched.license_info == "mit"
    assert enriched.repository_type == "primary"
    assert enriched.stargazer_count == "42"
    assert enriched.primary_language == "Go"
    assert enriched.latest_release == ""
    assert store.get("org/a") == enriched


def test_enrichment_skips_already_enriched(store: RepositoryStore) -> None:
    done = store.create(Repository(name="a", url="org/a", commit_count="5"))
    pending = store.create(Repository(name="b", url="org/b"))
    platform = FakePlatform()

    EnrichmentStage(store, platform).run([done, pending])

    assert platform.calls == ["org/b"]
    assert store.get("org/a").commit_count == "5"  # type: ignore[union-attr]


def test_enrichment_failure_leaves_marker_for_retry(store: RepositoryStore) -> None:
    broken = store.create(Repository(name="broken", url="org/broken"))
    fine = store.create(Repository(name="fine", url="org/fine"))
    platform = FakePlatform(failing=["org/broken"])

    results = EnrichmentStage(store, platform, max_workers=2).run([broken, fine])

    by_url = {repo.url: repo for repo in results}
    assert by_url["org/broken"].commit_count is None
    assert by_url["org/fine"].commit_count == "0"

    # The next run retries only the failed repository.
    retry = FakePlatform()
    EnrichmentStage(store, retry).run([broken, fine])
    assert retry.calls == ["org/broken"]


def test_enrichment_fail_policy_raises(store: RepositoryStore) -> None:
    broken = store.create(Repository(name="broken", url="org/broken"))
    stage = EnrichmentStage(
        store, FakePlatform(failing=["org/broken"]), failure_policy=FailurePolicy.FAIL
    )

    with pytest.raises(StageError, match="org/broken"):
        stage.run([broken])
