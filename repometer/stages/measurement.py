"""Measurement stage: clone repositories, count their code, record dependencies."""

from __future__ import annotations

from typing import List, Sequence

from ..commands import GitCloner, LineCounter
from ..config import FailurePolicy
from ..identifiers import parse_repository
from ..manifest import ManifestError, parse_manifest, resolve_dependencies
from ..models import MEASUREMENT_MARKER, Repository
from ..state import RunState
from ..stores import RepositoryStore
from .base import ScratchSpace, Stage, batched, run_bounded


class MeasurementStage(Stage):
    """Counts each repository's own lines of code and collects its dependency list."""

    name = "measurement"

    def __init__(
        self,
        store: RepositoryStore,
        state: RunState,
        scratch: ScratchSpace,
        *,
        cloner: GitCloner,
        counter: LineCounter,
        manifest_file: str = "go.mod",
        max_workers: int = 1,
        failure_policy: FailurePolicy = FailurePolicy.SKIP,
    ) -> None:
        super().__init__(store, max_workers=max_workers, failure_policy=failure_policy)
        self.state = state
        self.scratch = scratch
        self.cloner = cloner
        self.counter = counter
        self.manifest_file = manifest_file

    def run(self, repositories: Sequence[Repository]) -> List[Repository]:
        pending = [
            repository
            for repository in self.current(repositories)
            if repository.is_pending(MEASUREMENT_MARKER) and repository.name
        ]
        self.logger.info("Measuring %d repositories", len(pending))
        self.scratch.ensure()

        failures = []
        for batch in batched(pending, self.max_workers):
            results = run_bounded(batch, self._measure, self.max_workers)
            # Workers of this batch are done; nothing writes into the scratch space now.
            self.scratch.purge()
            failures.extend(self.collect_failures(results))
        self.raise_for_failures(failures)
        return self.current(repositories)

    def _measure(self, repository: Repository) -> Repository:
        self.logger.info("Processing repository: %s", repository.name)
        ref = parse_repository(repository.url)
        destination = self.scratch.path_for(ref.owner, ref.name)

        # A failed clone still gets a best-effort count of whatever arrived.
        self.cloner.clone(ref.clone_url, destination)
        code_lines = self.counter.count(destination)

        try:
            manifest = parse_manifest(destination / self.manifest_file)
        except ManifestError as exc:
            self.logger.warning("Error while parsing the manifest of %s: %s", repository.url, exc)
            self.state.record_manifest(repository.url, None, [])
        else:
            dependencies = resolve_dependencies(manifest, root=destination)
            merged = self.state.record_manifest(repository.url, manifest, dependencies)
            self.logger.debug("%s depends on %d modules", repository.url, len(merged))

        return self.store.update_fields(
            repository.id,  # type: ignore[arg-type]
            original_codebase_size=str(code_lines),
        )


__all__ = ["MeasurementStage"]
