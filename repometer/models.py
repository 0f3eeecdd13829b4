"""Core data models shared across repometer components."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional

from .identifiers import is_local_path

PRIMARY_REPOSITORY = "primary"

# Marker field written by each stage; a record needs the stage while it is pending.
ENRICHMENT_MARKER = "commit_count"
MEASUREMENT_MARKER = "original_codebase_size"
RESOLUTION_MARKER = "library_codebase_size"

METRIC_FIELDS = (
    "open_issue_count",
    "closed_issue_count",
    "commit_count",
    "original_codebase_size",
    "library_codebase_size",
    "repository_type",
    "primary_language",
    "creation_date",
    "stargazer_count",
    "license_info",
    "latest_release",
)


class FieldStatus(str, Enum):
    """Completion state of a single metric field."""

    PENDING = "pending"
    DONE = "done"


@dataclass
class Repository:
    """A harvested repository and the metrics computed for it so far.

    Metric values are ``None`` until the responsible stage fills them. A metric
    computed as empty (no license, no releases) is stored as ``""`` and counts
    as done.
    """

    name: str
    url: str
    id: Optional[int] = None
    open_issue_count: Optional[str] = None
    closed_issue_count: Optional[str] = None
    commit_count: Optional[str] = None
    original_codebase_size: Optional[str] = None
    library_codebase_size: Optional[str] = None
    repository_type: Optional[str] = None
    primary_language: Optional[str] = None
    creation_date: Optional[str] = None
    stargazer_count: Optional[str] = None
    license_info: Optional[str] = None
    latest_release: Optional[str] = None

    def status(self, field_name: str) -> FieldStatus:
        if field_name not in METRIC_FIELDS:
            raise KeyError(f"Unknown metric field: {field_name}")
        value = getattr(self, field_name)
        return FieldStatus.PENDING if value is None else FieldStatus.DONE

    def is_pending(self, field_name: str) -> bool:
        return self.status(field_name) is FieldStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Repository":
        known = {item.name for item in fields(cls)}
        values = {key: value for key, value in payload.items() if key in known}
        return cls(**values)


@dataclass(frozen=True)
class Requirement:
    """A ``require`` entry of a module manifest."""

    path: str
    version: str
    indirect: bool = False


@dataclass(frozen=True)
class Replacement:
    """A ``replace`` directive; ``new_path`` may point at a local directory."""

    old_path: str
    new_path: str
    old_version: Optional[str] = None
    new_version: Optional[str] = None

    @property
    def is_local(self) -> bool:
        return is_local_path(self.new_path)


@dataclass
class ManifestRecord:
    """Structured view of a ``go.mod`` file."""

    module: Optional[str] = None
    go_version: Optional[str] = None
    requires: List[Requirement] = field(default_factory=list)
    replaces: List[Replacement] = field(default_factory=list)

    def dependency_paths(self) -> List[str]:
        seen: Dict[str, None] = {}
        for requirement in self.requires:
            seen.setdefault(requirement.path, None)
        return list(seen)

    def version_of(self, path: str) -> Optional[str]:
        for replacement in self.replaces:
            if replacement.new_path == path and replacement.new_version:
                return replacement.new_version
        for requirement in self.requires:
            if requirement.path == path:
                return requirement.version
        return None


@dataclass(frozen=True)
class RepositoryMetadata:
    """Platform metadata returned by the enrichment query."""

    open_issue_count: int = 0
    closed_issue_count: int = 0
    commit_count: int = 0
    stargazer_count: int = 0
    license_key: str = ""
    primary_language: str = ""
    creation_date: str = ""
    latest_release: str = ""
