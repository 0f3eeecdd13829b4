"""Normalisation of repository and module references."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List
from urllib.parse import urlparse

DEFAULT_HOST = "github.com"


class IdentifierError(ValueError):
    """Raised when a reference cannot be split into owner and name."""


@dataclass(frozen=True)
class RepositoryRef:
    """Canonical owner/name form of a hosted repository."""

    host: str
    owner: str
    name: str

    @property
    def canonical_url(self) -> str:
        if self.host == DEFAULT_HOST:
            return f"{self.owner}/{self.name}"
        return f"{self.host}/{self.owner}/{self.name}"

    @property
    def clone_url(self) -> str:
        return f"https://{self.host}/{self.owner}/{self.name}.git"


def parse_repository(reference: str) -> RepositoryRef:
    """Split ``owner/name``, ``host/owner/name`` or a full URL into its parts."""
    raw = reference.strip()
    if "://" in raw:
        parsed = urlparse(raw)
        raw = f"{parsed.netloc}{parsed.path}"
    raw = raw.strip("/")
    if raw.endswith(".git"):
        raw = raw[: -len(".git")]
    parts = [part for part in raw.split("/") if part]
    if len(parts) < 2:
        raise IdentifierError(f"Repository reference '{reference}' has no owner/name")

    host = DEFAULT_HOST
    if len(parts) >= 3 and "." in parts[0]:
        host = parts[0].lower()
        parts = parts[1:]
    owner, name = parts[-2], parts[-1]
    return RepositoryRef(host=host, owner=owner, name=name)


def is_local_path(path: str) -> bool:
    return path.startswith(("./", "../", "/")) or path in {".", ".."}


def escape_module_path(path: str) -> str:
    """Apply the module cache case encoding (``A`` becomes ``!a``)."""
    escaped: List[str] = []
    for char in path:
        if "A" <= char <= "Z":
            escaped.append("!" + char.lower())
        else:
            escaped.append(char)
    return "".join(escaped)


def download_spec(path: str, version: str | None) -> str:
    return f"{path}@{version or 'latest'}"


def module_cache_dir(root: Path, path: str, version: str | None) -> Path | None:
    """Locate the extracted module directory below ``root/pkg/mod``."""
    base = root / "pkg" / "mod"
    escaped = escape_module_path(path)
    if version:
        candidate = base / f"{escaped}@{escape_module_path(version)}"
        return candidate if candidate.is_dir() else None

    parent = (base / escaped).parent
    prefix = Path(escaped).name + "@"
    if not parent.is_dir():
        return None
    matches = sorted(
        entry for entry in parent.iterdir() if entry.is_dir() and entry.name.startswith(prefix)
    )
    return matches[-1] if matches else None


def dedupe(items: Iterable[str]) -> List[str]:
    """Drop empty strings and repeats while keeping first-seen order."""
    seen: dict[str, None] = {}
    for item in items:
        if item:
            seen.setdefault(item, None)
    return list(seen)


__all__ = [
    "DEFAULT_HOST",
    "IdentifierError",
    "RepositoryRef",
    "dedupe",
    "download_spec",
    "escape_module_path",
    "is_local_path",
    "module_cache_dir",
    "parse_repository",
]
