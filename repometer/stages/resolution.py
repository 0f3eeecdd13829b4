"""Dependency resolution stage: measure third-party code behind each repository."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from types import TracebackType
from typing import Dict, List, Optional, Sequence, Type

from ..commands import LineCounter, ModuleFetcher
from ..config import FailurePolicy
from ..identifiers import download_spec, is_local_path, module_cache_dir
from ..logging import get_logger
from ..models import RESOLUTION_MARKER, Repository
from ..state import RunState
from ..stores import RepositoryStore
from .base import Stage, run_bounded

_SCRATCH_MODULE = "module repometer.local/scratch\n"
_MANIFEST_FILES = ("go.mod", "go.sum")
_BACKUP_SUFFIX = ".bak"

_WORKDIR_LOCKS: Dict[Path, threading.Lock] = {}
_WORKDIR_LOCKS_GUARD = threading.Lock()

logger = get_logger("stages.resolution")


def _workdir_lock(workdir: Path) -> threading.Lock:
    key = workdir.resolve()
    with _WORKDIR_LOCKS_GUARD:
        return _WORKDIR_LOCKS.setdefault(key, threading.Lock())


class ModuleWorkspace:
    """Scratch manifest pair and module cache used while downloading dependencies.

    On enter, an existing ``go.mod``/``go.sum`` in ``workdir`` is moved aside and
    a scratch manifest takes its place. On exit the originals are moved back,
    whether or not the stage succeeded. The module cache location is passed to
    subprocesses through :attr:`env`; the process environment is left untouched.

    Only one workspace per directory is active at a time within the process;
    a second one blocks until the first exits. Backups left behind by a run
    that was killed are restored before a new workspace starts.
    """

    def __init__(self, workdir: Path, gopath: Path) -> None:
        self.workdir = workdir
        self.gopath = gopath
        self._backups: Dict[str, Path] = {}
        self._lock: Optional[threading.Lock] = None
        self.env: Dict[str, str] = {}

    @property
    def module_cache(self) -> Path:
        return self.gopath / "pkg" / "mod"

    def __enter__(self) -> "ModuleWorkspace":
        self.workdir.mkdir(parents=True, exist_ok=True)
        self.gopath.mkdir(parents=True, exist_ok=True)
        lock = _workdir_lock(self.workdir)
        lock.acquire()
        self._lock = lock
        try:
            self._recover_backups()
            for filename in _MANIFEST_FILES:
                original = self.workdir / filename
                if original.exists():
                    backup = self._backup_path(filename)
                    os.replace(original, backup)
                    self._backups[filename] = backup
            self.reset()
        except BaseException:
            for filename, backup in self._backups.items():
                os.replace(backup, self.workdir / filename)
            self._backups.clear()
            self._release()
            raise
        self.env = {
            **os.environ,
            "GOPATH": str(self.gopath),
            "GOMODCACHE": str(self.module_cache),
            "GO111MODULE": "on",
            "GOFLAGS": "-mod=mod",
        }
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self._restore()

    def reset(self) -> None:
        """Return the scratch manifest to its pristine state."""
        (self.workdir / "go.mod").write_text(_SCRATCH_MODULE, encoding="utf-8")
        (self.workdir / "go.sum").unlink(missing_ok=True)

    def _backup_path(self, filename: str) -> Path:
        return self.workdir / f"{filename}{_BACKUP_SUFFIX}"

    def _recover_backups(self) -> None:
        # A leftover backup is the real manifest of an interrupted run; the file
        # beside it is that run's scratch copy.
        backups = [name for name in _MANIFEST_FILES if self._backup_path(name).exists()]
        if not backups:
            return
        logger.warning(
            "Restoring %s left behind in %s by an interrupted run",
            ", ".join(f"{name}{_BACKUP_SUFFIX}" for name in backups),
            self.workdir,
        )
        for filename in _MANIFEST_FILES:
            (self.workdir / filename).unlink(missing_ok=True)
        for filename in backups:
            os.replace(self._backup_path(filename), self.workdir / filename)

    def _restore(self) -> None:
        try:
            for filename in _MANIFEST_FILES:
                (self.workdir / filename).unlink(missing_ok=True)
            for filename, backup in self._backups.items():
                if backup.exists():
                    os.replace(backup, self.workdir / filename)
            self._backups.clear()
        finally:
            self._release()

    def _release(self) -> None:
        if self._lock is not None:
            self._lock.release()
            self._lock = None


class ResolutionStage(Stage):
    """Sums the measured size of every dependency of each repository."""

    name = "resolution"

    def __init__(
        self,
        store: RepositoryStore,
        state: RunState,
        *,
        fetcher: ModuleFetcher,
        counter: LineCounter,
        workdir: Path,
        gopath: Path,
        max_workers: int = 1,
        failure_policy: FailurePolicy = FailurePolicy.SKIP,
        clean_module_cache: bool = True,
    ) -> None:
        super().__init__(store, max_workers=max_workers, failure_policy=failure_policy)
        self.state = state
        self.fetcher = fetcher
        self.counter = counter
        self.workdir = workdir
        self.gopath = gopath
        self.clean_module_cache = clean_module_cache
        self._workspace: Optional[ModuleWorkspace] = None

    def run(self, repositories: Sequence[Repository]) -> List[Repository]:
        pending: List[Repository] = []
        for repository in self.current(repositories):
            if not repository.is_pending(RESOLUTION_MARKER):
                continue
            if repository.url not in self.state.dependencies:
                self.logger.warning(
                    "No manifest recorded for %s in this run; library size left pending",
                    repository.url,
                )
                continue
            pending.append(repository)
        if not pending:
            return self.current(repositories)

        with ModuleWorkspace(self.workdir, self.gopath) as workspace:
            self._workspace = workspace
            try:
                if self.max_workers > 1:
                    results = run_bounded(pending, self._resolve, self.max_workers)
                else:
                    results = run_bounded(pending, self._resolve_serial, 1)
                failures = self.collect_failures(results)
            finally:
                # Serial runs already emptied the cache after every repository.
                if self.max_workers > 1:
                    self._purge_module_cache(workspace)
                self._workspace = None
        self.raise_for_failures(failures)
        return self.current(repositories)

    def _resolve_serial(self, repository: Repository) -> Repository:
        try:
            return self._resolve(repository)
        finally:
            # Parallel runs share one scratch manifest and module cache, so only a
            # serial run resets them between repositories.
            if self._workspace is not None:
                self._workspace.reset()
                self._purge_module_cache(self._workspace)

    def _purge_module_cache(self, workspace: ModuleWorkspace) -> None:
        if self.clean_module_cache:
            self.fetcher.clean_cache(cwd=workspace.workdir, env=workspace.env)

    def _resolve(self, repository: Repository) -> Repository:
        dependencies = self.state.dependencies.get(repository.url)
        manifest = self.state.manifests.get(repository.url)
        self.logger.info(
            "%s processing %d libraries...", repository.name, len(dependencies)
        )

        total = 0
        for index, dependency in enumerate(dependencies):
            self.logger.debug(
                "%s has %d libraries to process...", repository.name, len(dependencies) - index
            )
            version = manifest.version_of(dependency) if manifest else None
            total += self.state.libraries.get_or_compute(
                dependency, lambda: self._measure_library(dependency, version)
            )

        return self.store.update_fields(
            repository.id,  # type: ignore[arg-type]
            library_codebase_size=str(total),
        )

    def _measure_library(self, dependency: str, version: Optional[str]) -> int:
        if is_local_path(dependency):
            self.logger.debug("Skipping local dependency %s", dependency)
            return 0
        workspace = self._workspace
        if workspace is None:
            raise RuntimeError("Module workspace is not active")

        self.fetcher.fetch(
            download_spec(dependency, version), cwd=workspace.workdir, env=workspace.env
        )
        directory = module_cache_dir(workspace.gopath, dependency, version)
        if directory is None:
            self.logger.warning("Library %s not found in the module cache", dependency)
            return 0
        return self.counter.count(directory)


__all__ = ["ModuleWorkspace", "ResolutionStage"]
