"""Enrichment stage: attach platform metadata to discovered repositories."""

from __future__ import annotations

from typing import List, Sequence

from ..clients import PlatformClient
from ..config import FailurePolicy
from ..identifiers import parse_repository
from ..models import ENRICHMENT_MARKER, PRIMARY_REPOSITORY, Repository
from ..stores import RepositoryStore
from .base import Stage, run_bounded


class EnrichmentStage(Stage):
    """Fills issue, commit, star, license and date fields from the platform API."""

    name = "enrichment"

    def __init__(
        self,
        store: RepositoryStore,
        platform: PlatformClient,
        *,
        max_workers: int = 1,
        failure_policy: FailurePolicy = FailurePolicy.SKIP,
    ) -> None:
        super().__init__(store, max_workers=max_workers, failure_policy=failure_policy)
        self.platform = platform

    def run(self, repositories: Sequence[Repository]) -> List[Repository]:
        pending = [
            repository
            for repository in self.current(repositories)
            if repository.is_pending(ENRICHMENT_MARKER)
        ]
        self.logger.info("Enriching %d repositories", len(pending))
        results = run_bounded(pending, self._enrich, self.max_workers)
        self.raise_for_failures(self.collect_failures(results))
        return self.current(repositories)

    def _enrich(self, repository: Repository) -> Repository:
        ref = parse_repository(repository.url)
        metadata = self.platform.fetch_metadata(ref.owner, ref.name)
        self.logger.debug("Metadata for %s: %s", repository.url, metadata)
        return self.store.update_fields(
            repository.id,  # type: ignore[arg-type]
            name=ref.name,
            open_issue_count=str(metadata.open_issue_count),
            closed_issue_count=str(metadata.closed_issue_count),
            commit_count=str(metadata.commit_count),
            repository_type=PRIMARY_REPOSITORY,
            primary_language=metadata.primary_language,
            creation_date=metadata.creation_date,
            stargazer_count=str(metadata.stargazer_count),
            license_info=metadata.license_key,
            latest_release=metadata.latest_release,
        )


__all__ = ["EnrichmentStage"]
