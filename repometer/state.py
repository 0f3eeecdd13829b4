"""Run-scoped shared state passed between pipeline stages."""

from __future__ import annotations

import threading
from typing import Callable, Dict, Iterable, List, Optional

from .identifiers import dedupe
from .models import ManifestRecord


class DependencyMap:
    """Maps a repository key to its deduplicated dependency identifiers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, List[str]] = {}

    def merge(self, key: str, dependencies: Iterable[str]) -> List[str]:
        with self._lock:
            merged = dedupe([*self._entries.get(key, []), *dependencies])
            self._entries[key] = merged
            return list(merged)

    def get(self, key: str) -> List[str]:
        with self._lock:
            return list(self._entries.get(key, []))

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def snapshot(self) -> Dict[str, List[str]]:
        with self._lock:
            return {key: list(value) for key, value in self._entries.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class ManifestCache:
    """Parsed manifests keyed by repository."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, ManifestRecord] = {}

    def put(self, key: str, manifest: ManifestRecord) -> None:
        with self._lock:
            self._entries[key] = manifest

    def get(self, key: str) -> Optional[ManifestRecord]:
        with self._lock:
            return self._entries.get(key)


class LibraryCache:
    """Memoizes measured line counts per dependency for the whole run.

    ``get_or_compute`` serialises callers per key, so concurrent requests for the
    same dependency trigger a single computation while different keys proceed
    in parallel.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: Dict[str, int] = {}
        self._key_locks: Dict[str, threading.Lock] = {}

    def get(self, key: str) -> Optional[int]:
        with self._lock:
            return self._values.get(key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def store(self, key: str, value: int) -> None:
        with self._lock:
            self._values[key] = value

    def get_or_compute(self, key: str, compute: Callable[[], int]) -> int:
        with self._lock:
            if key in self._values:
                return self._values[key]
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            cached = self.get(key)
            if cached is not None:
                return cached
            value = compute()
            self.store(key, value)
            return value


class RunState:
    """Process-lifetime state owned by the pipeline driver."""

    def __init__(self) -> None:
        self.dependencies = DependencyMap()
        self.manifests = ManifestCache()
        self.libraries = LibraryCache()
        self._record_lock = threading.Lock()

    def record_manifest(
        self, key: str, manifest: Optional[ManifestRecord], dependencies: Iterable[str]
    ) -> List[str]:
        """Store a repository's manifest and merge its dependencies in one step."""
        with self._record_lock:
            if manifest is not None:
                self.manifests.put(key, manifest)
            return self.dependencies.merge(key, dependencies)


__all__ = ["DependencyMap", "LibraryCache", "ManifestCache", "RunState"]
