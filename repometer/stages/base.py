"""Shared plumbing for pipeline stages."""

from __future__ import annotations

import shutil
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Iterable, List, Sequence, Tuple, TypeVar

from ..config import FailurePolicy
from ..logging import get_logger
from ..models import Repository
from ..stores import RepositoryStore

T = TypeVar("T")
R = TypeVar("R")


class StageError(RuntimeError):
    """Raised when a stage fails under the ``fail`` policy."""


def run_bounded(
    items: Sequence[T], worker: Callable[[T], R], max_workers: int
) -> List[Tuple[T, "Future[R]"]]:
    """Run ``worker`` over ``items`` with at most ``max_workers`` in flight.

    Returns only after every task has finished; futures are paired with their
    input in submission order.
    """
    if not items:
        return []
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = [(item, executor.submit(worker, item)) for item in items]
        wait([future for _, future in futures])
    return futures


def batched(items: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    step = max(1, size)
    for start in range(0, len(items), step):
        yield items[start : start + step]


class ScratchSpace:
    """Working directory shared by the workers of one stage."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def ensure(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def path_for(self, *parts: str) -> Path:
        return self.ensure().joinpath(*parts)

    def purge(self) -> None:
        """Remove everything below the root; call only after the stage barrier."""
        if not self.root.exists():
            return
        for entry in self.root.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry, ignore_errors=True)
            else:
                entry.unlink(missing_ok=True)


class Stage:
    """Base class wiring the store, failure policy and logger."""

    name = "stage"

    def __init__(
        self,
        store: RepositoryStore,
        *,
        max_workers: int = 1,
        failure_policy: FailurePolicy = FailurePolicy.SKIP,
    ) -> None:
        self.store = store
        self.max_workers = max_workers
        self.failure_policy = failure_policy
        self.logger = get_logger(f"stages.{self.name}")

    def current(self, repositories: Iterable[Repository]) -> List[Repository]:
        """Re-read ``repositories`` from the store, dropping rows that vanished."""
        refreshed: List[Repository] = []
        for repository in repositories:
            stored = self.store.get(repository.url)
            if stored is not None:
                refreshed.append(stored)
        return refreshed

    def collect_failures(
        self, results: Sequence[Tuple[Repository, "Future[object]"]]
    ) -> List[Tuple[Repository, BaseException]]:
        failures: List[Tuple[Repository, BaseException]] = []
        for repository, future in results:
            exc = future.exception()
            if exc is None:
                continue
            self.logger.warning(
                "%s failed for %s: %s; it will be retried on the next run",
                self.name.capitalize(),
                repository.url,
                exc,
            )
            failures.append((repository, exc))
        return failures

    def raise_for_failures(self, failures: Sequence[Tuple[Repository, BaseException]]) -> None:
        if not failures or self.failure_policy is not FailurePolicy.FAIL:
            return
        first_repo, first_exc = failures[0]
        raise StageError(
            f"{self.name} failed for {len(failures)} repositories "
            f"(first: {first_repo.url}: {first_exc})"
        ) from first_exc


__all__ = ["ScratchSpace", "Stage", "StageError", "batched", "run_bounded"]
