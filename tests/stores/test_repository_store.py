"""Tests for the JSON-backed repository store."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from repometer.models import Repository
from repometer.stores import RepositoryStore, StoreError


def test_store_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "repos.json"
    store = RepositoryStore(path)
    created = store.create(Repository(name="a", url="org/a"))
    store.update_fields(created.id, commit_count="10", license_info="")

    reloaded = RepositoryStore(path)
    row = reloaded.get("org/a")

    assert row is not None
    assert row.id == created.id
    assert row.commit_count == "10"
    assert row.license_info == ""
    assert row.open_issue_count is None
    assert reloaded.create(Repository(name="b", url="org/b")).id == created.id + 1


def test_create_if_absent_is_atomic_per_url(store: RepositoryStore) -> None:
    def register(_: int) -> bool:
        return store.create_if_absent(Repository(name="a", url="org/a"))

    with ThreadPoolExecutor(max_workers=8) as executor:
        created = list(executor.map(register, range(32)))

    assert created.count(True) == 1
    assert len(store.list()) == 1


def test_returned_rows_are_copies(store: RepositoryStore) -> None:
    store.create(Repository(name="a", url="org/a"))
    row = store.get("org/a")
    assert row is not None
    row.commit_count = "99"

    assert store.get("org/a").commit_count is None  # type: ignore[union-attr]


def test_update_by_url_and_unknown_fields(store: RepositoryStore) -> None:
    store.create(Repository(name="a", url="org/a"))

    updated = store.update(Repository(name="a", url="org/a", stargazer_count="5"))
    assert updated.stargazer_count == "5"

    with pytest.raises(StoreError, match="Unknown repository fields"):
        store.update_fields(updated.id, stars="5")  # type: ignore[arg-type]
    with pytest.raises(StoreError):
        store.update(Repository(name="x", url="org/x"))


def test_delete_and_missing_ids(store: RepositoryStore) -> None:
    created = store.create(Repository(name="a", url="org/a"))

    store.delete(created.id)

    assert store.get_by_id(created.id) is None
    with pytest.raises(StoreError):
        store.delete(created.id)


def test_prune_duplicates_keeps_oldest(store: RepositoryStore) -> None:
    first = store.create(Repository(name="a", url="org/a", commit_count="1"))
    store.create(Repository(name="a", url="org/a"))
    store.create(Repository(name="b", url="org/b"))
    store.create(Repository(name="a", url="org/a"))

    removed = store.prune_duplicates()

    assert removed == 2
    urls = [row.url for row in store.list()]
    assert sorted(urls) == ["org/a", "org/b"]
    assert store.get("org/a").id == first.id  # type: ignore[union-attr]


def test_unreadable_store_raises(tmp_path: Path) -> None:
    path = tmp_path / "repos.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreError):
        RepositoryStore(path)


def test_version_mismatch_raises(tmp_path: Path) -> None:
    path = tmp_path / "repos.json"
    path.write_text(json.dumps({"version": 99, "repositories": []}), encoding="utf-8")

    with pytest.raises(StoreError, match="Unsupported"):
        RepositoryStore(path)


def test_in_memory_store_writes_nothing(tmp_path: Path) -> None:
    store = RepositoryStore(None)
    store.create(Repository(name="a", url="org/a"))

    assert store.path is None
    assert list(tmp_path.iterdir()) == []
