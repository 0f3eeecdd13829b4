"""Discovery stage: find candidate repositories and store bare records."""

from __future__ import annotations

from typing import List, Optional

from ..clients import GraphQLError, SearchClient
from ..config import FailurePolicy
from ..identifiers import IdentifierError, parse_repository
from ..models import Repository
from ..stores import RepositoryStore
from .base import Stage, StageError, run_bounded


class DiscoveryStage(Stage):
    """Queries code search and persists repositories not seen before."""

    name = "discovery"

    def __init__(
        self,
        store: RepositoryStore,
        search: SearchClient,
        *,
        language: str = "go",
        manifest_file: str = "go.mod",
        max_workers: int = 1,
        failure_policy: FailurePolicy = FailurePolicy.SKIP,
    ) -> None:
        super().__init__(store, max_workers=max_workers, failure_policy=failure_policy)
        self.search = search
        self.language = language
        self.manifest_file = manifest_file

    def run(self, count: int) -> List[Repository]:
        """Return the repositories created by this run, in search order."""
        if count <= 0:
            return []
        self.logger.info("Fetching up to %d repositories...", count)
        try:
            names = self.search.search_repositories(self.language, self.manifest_file, count)
        except GraphQLError as exc:
            if self.failure_policy is FailurePolicy.FAIL:
                raise StageError(f"Repository search failed: {exc}") from exc
            self.logger.error("Repository search failed: %s", exc)
            return []

        results = run_bounded(names[:count], self._register, self.max_workers)
        discovered: List[Repository] = []
        for name, future in results:
            exc = future.exception()
            if exc is not None:
                self.logger.warning("Unable to register %s: %s", name, exc)
                continue
            repository = future.result()
            if repository is not None:
                discovered.append(repository)
        self.logger.info(
            "Discovered %d new repositories (%d already known)",
            len(discovered),
            len(results) - len(discovered),
        )
        return discovered

    def _register(self, name: str) -> Optional[Repository]:
        try:
            ref = parse_repository(name)
        except IdentifierError as exc:
            self.logger.warning("Skipping search result %r: %s", name, exc)
            return None
        repository = Repository(name=ref.name, url=ref.canonical_url)
        if not self.store.create_if_absent(repository):
            return None
        self.logger.info("Database entry from: %s", repository.url)
        return repository


__all__ = ["DiscoveryStage"]
