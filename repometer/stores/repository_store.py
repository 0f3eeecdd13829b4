"""Persistent store of repository records keyed by canonical URL."""

from __future__ import annotations

import json
import os
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..logging import get_logger
from ..models import METRIC_FIELDS, Repository

_STORE_VERSION = 1
_MUTABLE_FIELDS = frozenset(("name", "url", *METRIC_FIELDS))

logger = get_logger("store")


class StoreError(RuntimeError):
    """Raised when the store cannot be loaded or a record is missing."""


class RepositoryStore:
    """Thread-safe repository table persisted as a JSON document.

    Every mutation is written through immediately so an interrupted run leaves a
    consistent file behind. With ``path=None`` the store lives in memory only.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._lock = threading.RLock()
        self._rows: Dict[int, Repository] = {}
        self._next_id = 1
        if self._path is not None:
            self._load(self._path)

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def exists(self, url: str) -> bool:
        with self._lock:
            return self._find(url) is not None

    def get(self, url: str) -> Optional[Repository]:
        with self._lock:
            found = self._find(url)
            return Repository.from_dict(found.to_dict()) if found else None

    def get_by_id(self, repository_id: int) -> Optional[Repository]:
        with self._lock:
            found = self._rows.get(repository_id)
            return Repository.from_dict(found.to_dict()) if found else None

    def list(self) -> List[Repository]:
        with self._lock:
            return [Repository.from_dict(self._rows[key].to_dict()) for key in sorted(self._rows)]

    def create(self, repository: Repository) -> Repository:
        with self._lock:
            row = Repository.from_dict({**repository.to_dict(), "id": self._next_id})
            self._rows[row.id] = row  # type: ignore[index]
            self._next_id += 1
            self._persist()
            repository.id = row.id
            return Repository.from_dict(row.to_dict())

    def create_if_absent(self, repository: Repository) -> bool:
        """Insert ``repository`` unless a row with the same URL exists."""
        with self._lock:
            if self._find(repository.url) is not None:
                return False
            self.create(repository)
            return True

    def update(self, repository: Repository) -> Repository:
        if repository.id is None:
            existing = self.get(repository.url)
            if existing is None:
                raise StoreError(f"Repository {repository.url} is not stored")
            repository.id = existing.id
        values = {key: value for key, value in repository.to_dict().items() if key != "id"}
        return self.update_fields(repository.id, **values)  # type: ignore[arg-type]

    def update_fields(self, repository_id: int, **values: Any) -> Repository:
        unknown = set(values) - _MUTABLE_FIELDS
        if unknown:
            raise StoreError(f"Unknown repository fields: {', '.join(sorted(unknown))}")
        with self._lock:
            row = self._rows.get(repository_id)
            if row is None:
                raise StoreError(f"Repository with id {repository_id} does not exist")
            for key, value in values.items():
                setattr(row, key, value)
            self._persist()
            return Repository.from_dict(row.to_dict())

    def delete(self, repository_id: int) -> Repository:
        with self._lock:
            row = self._rows.pop(repository_id, None)
            if row is None:
                raise StoreError(f"Repository with id {repository_id} does not exist")
            self._persist()
            return row

    def prune_duplicates(self) -> int:
        """Delete rows sharing a canonical URL, keeping the oldest one."""
        with self._lock:
            seen: Dict[str, int] = {}
            duplicates: List[int] = []
            for key in sorted(self._rows):
                url = self._rows[key].url
                if url in seen:
                    duplicates.append(key)
                else:
                    seen[url] = key
            for key in duplicates:
                logger.info("Removing duplicate entry %s (id=%d)", self._rows[key].url, key)
                del self._rows[key]
            if duplicates:
                self._persist()
            return len(duplicates)

    # ------------------------------------------------------------------
    # Internal helpers

    def _find(self, url: str) -> Optional[Repository]:
        for row in self._rows.values():
            if row.url == url:
                return row
        return None

    def _persist(self) -> None:
        if self._path is None:
            return
        payload = {
            "version": _STORE_VERSION,
            "next_id": self._next_id,
            "updated_at": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "repositories": [self._rows[key].to_dict() for key in sorted(self._rows)],
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_name(self._path.name + ".tmp")
        temp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(temp_path, self._path)

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Unable to read repository store {path}: {exc}") from exc
        if not isinstance(data, dict) or data.get("version") != _STORE_VERSION:
            raise StoreError(f"Unsupported repository store format in {path}")
        rows = data.get("repositories")
        if not isinstance(rows, list):
            raise StoreError(f"Repository store {path} has no repository list")

        for raw in rows:
            if not isinstance(raw, dict) or not isinstance(raw.get("id"), int):
                continue
            if not isinstance(raw.get("url"), str):
                continue
            row = Repository.from_dict(raw)
            self._rows[row.id] = row  # type: ignore[index]
        next_id = data.get("next_id")
        highest = max(self._rows, default=0) + 1
        self._next_id = max(next_id, highest) if isinstance(next_id, int) else highest


__all__ = ["RepositoryStore", "StoreError"]
