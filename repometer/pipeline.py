"""Pipeline driver composing discovery, enrichment, measurement and resolution."""

from __future__ import annotations

from typing import List

from .clients import GraphQLClient, PlatformClient, SearchClient
from .commands import CommandRunner, GitCloner, LineCounter, ModuleFetcher, run_command
from .config import Settings
from .logging import get_logger
from .models import Repository
from .state import RunState
from .stages import (
    DiscoveryStage,
    EnrichmentStage,
    MeasurementStage,
    ResolutionStage,
    ScratchSpace,
)
from .stores import RepositoryStore


class Pipeline:
    """Runs the four stages in sequence, threading each result into the next.

    The dependency map and library cache in :attr:`state` live as long as the
    pipeline object, so repeated runs on one instance reuse measured libraries.
    """

    def __init__(
        self,
        store: RepositoryStore,
        discovery: DiscoveryStage,
        enrichment: EnrichmentStage,
        measurement: MeasurementStage,
        resolution: ResolutionStage,
        state: RunState,
    ) -> None:
        self.store = store
        self.discovery = discovery
        self.enrichment = enrichment
        self.measurement = measurement
        self.resolution = resolution
        self.state = state
        self.logger = get_logger("pipeline")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        store: RepositoryStore | None = None,
        runner: CommandRunner | None = None,
        search: SearchClient | None = None,
        platform: PlatformClient | None = None,
    ) -> "Pipeline":
        """Wire real clients, command runners and the file store from ``settings``."""
        store = store if store is not None else RepositoryStore(settings.effective_store_path)
        runner = runner or run_command
        if search is None:
            search = SearchClient(
                GraphQLClient(
                    settings.search.endpoint,
                    token=settings.search.token,
                    timeout=settings.search.timeout,
                )
            )
        if platform is None:
            settings.require_tokens()
            platform = PlatformClient(
                GraphQLClient(
                    settings.github.endpoint,
                    token=settings.github.token,
                    username=settings.github.username,
                    timeout=settings.github.timeout,
                    headers={"Accept": "application/vnd.github.v3+json"},
                )
            )

        timeout = settings.command_timeout
        counter = LineCounter(runner, executable=settings.tools.cloc, timeout=timeout)
        state = RunState()
        scratch_root = settings.effective_scratch_dir

        discovery = DiscoveryStage(
            store,
            search,
            language=settings.language,
            manifest_file=settings.manifest_file,
            max_workers=settings.max_workers,
            failure_policy=settings.failure_policy,
        )
        enrichment = EnrichmentStage(
            store,
            platform,
            max_workers=settings.max_workers,
            failure_policy=settings.failure_policy,
        )
        measurement = MeasurementStage(
            store,
            state,
            ScratchSpace(scratch_root / "clones"),
            cloner=GitCloner(runner, executable=settings.tools.git, timeout=timeout),
            counter=counter,
            manifest_file=settings.manifest_file,
            max_workers=settings.max_workers,
            failure_policy=settings.failure_policy,
        )
        resolution = ResolutionStage(
            store,
            state,
            fetcher=ModuleFetcher(runner, executable=settings.tools.go, timeout=timeout),
            counter=counter,
            workdir=scratch_root / "module",
            gopath=scratch_root / "gopath",
            max_workers=settings.resolution_workers,
            failure_policy=settings.failure_policy,
        )
        return cls(store, discovery, enrichment, measurement, resolution, state)

    def run(self, count: int) -> List[Repository]:
        """Discover up to ``count`` repositories and measure everything still pending."""
        self.logger.info("Starting pipeline run (count=%d)", count)
        discovered = self.discovery.run(count)
        enriched = self.enrichment.run(discovered)
        measured = self.measurement.run(enriched)
        resolved = self.resolution.run(measured)
        self.logger.info(
            "Pipeline finished: %d repositories, %d distinct libraries measured",
            len(resolved),
            len(self.state.libraries),
        )
        return resolved

    def prune_duplicates(self) -> int:
        removed = self.store.prune_duplicates()
        self.logger.info("Removed %d duplicate repositories", removed)
        return removed


__all__ = ["Pipeline"]
