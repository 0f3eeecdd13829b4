"""Pipeline stages in execution order."""

from .base import ScratchSpace, Stage, StageError, run_bounded
from .discovery import DiscoveryStage
from .enrichment import EnrichmentStage
from .measurement import MeasurementStage
from .resolution import ModuleWorkspace, ResolutionStage

__all__ = [
    "DiscoveryStage",
    "EnrichmentStage",
    "MeasurementStage",
    "ModuleWorkspace",
    "ResolutionStage",
    "ScratchSpace",
    "Stage",
    "StageError",
    "run_bounded",
]
