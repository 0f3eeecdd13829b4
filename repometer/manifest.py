"""Parser for ``go.mod`` dependency manifests."""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import List, Optional, Sequence, Set

from .identifiers import dedupe
from .logging import get_logger
from .models import ManifestRecord, Replacement, Requirement

MANIFEST_FILENAME = "go.mod"

_BLOCK_DIRECTIVES = {"require", "replace", "exclude", "retract", "godebug"}

logger = get_logger("manifest")


class ManifestError(RuntimeError):
    """Raised when a manifest is missing or malformed."""


def parse_manifest(path: Path) -> ManifestRecord:
    """Read and parse the manifest at ``path``."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ManifestError(f"Manifest not found: {path}") from exc
    except OSError as exc:
        raise ManifestError(f"Unable to read manifest {path}: {exc}") from exc
    return parse_manifest_text(text, source=str(path))


def parse_manifest_text(text: str, *, source: str = MANIFEST_FILENAME) -> ManifestRecord:
    record = ManifestRecord()
    block: Optional[str] = None
    block_start = 0

    for number, raw in enumerate(text.splitlines(), start=1):
        line, comment = _split_comment(raw)
        if not line:
            continue

        if block is not None:
            if line == ")":
                block = None
                continue
            _apply(record, block, _tokenize(line, source, number), comment, source, number)
            continue

        tokens = _tokenize(line, source, number)
        directive, args = tokens[0], tokens[1:]
        if directive in _BLOCK_DIRECTIVES and args == ["("]:
            block = directive
            block_start = number
            continue
        if directive == "module":
            if not args:
                raise ManifestError(f"{source}:{number}: module directive without a path")
            record.module = args[0]
        elif directive == "go":
            record.go_version = args[0] if args else None
        else:
            _apply(record, directive, args, comment, source, number)

    if block is not None:
        raise ManifestError(f"{source}:{block_start}: unterminated {block} block")
    return record


def resolve_dependencies(manifest: ManifestRecord, root: Path | None = None) -> List[str]:
    """Return dependency identifiers after applying replace directives.

    Local replacements are followed into ``root/<path>/go.mod`` when ``root`` is
    given; their requirements join the list in place of the replaced module.
    """
    return dedupe(_collect(manifest, root, visited=set()))


def _collect(manifest: ManifestRecord, root: Path | None, visited: Set[Path]) -> List[str]:
    substitutions = {item.old_path: item for item in manifest.replaces}
    collected: List[str] = []

    for path in manifest.dependency_paths():
        replacement = substitutions.get(path)
        if replacement is None:
            collected.append(path)
        elif not replacement.is_local:
            collected.append(replacement.new_path)

    if root is None:
        return collected

    for replacement in manifest.replaces:
        if not replacement.is_local:
            continue
        nested_root = (root / replacement.new_path).resolve()
        if nested_root in visited:
            continue
        visited.add(nested_root)
        try:
            nested = parse_manifest(nested_root / MANIFEST_FILENAME)
        except ManifestError as exc:
            logger.debug("Skipping local replacement %s: %s", replacement.new_path, exc)
            continue
        collected.extend(_collect(nested, nested_root, visited))
    return collected


def _apply(
    record: ManifestRecord,
    directive: str,
    args: Sequence[str],
    comment: str,
    source: str,
    number: int,
) -> None:
    if directive == "require":
        if len(args) < 2:
            raise ManifestError(f"{source}:{number}: require entry needs a path and a version")
        record.requires.append(
            Requirement(path=args[0], version=args[1], indirect=comment == "indirect")
        )
    elif directive == "replace":
        record.replaces.append(_parse_replace(args, source, number))
    # exclude, retract, toolchain, godebug and unknown directives do not affect sizing.


def _parse_replace(args: Sequence[str], source: str, number: int) -> Replacement:
    if "=>" not in args:
        raise ManifestError(f"{source}:{number}: replace directive without '=>'")
    arrow = list(args).index("=>")
    left, right = args[:arrow], args[arrow + 1 :]
    if not 1 <= len(left) <= 2 or not 1 <= len(right) <= 2:
        raise ManifestError(f"{source}:{number}: malformed replace directive")
    return Replacement(
        old_path=left[0],
        old_version=left[1] if len(left) == 2 else None,
        new_path=right[0],
        new_version=right[1] if len(right) == 2 else None,
    )


def _split_comment(raw: str) -> tuple[str, str]:
    line, _, comment = raw.partition("//")
    return line.strip(), comment.strip()


def _tokenize(line: str, source: str, number: int) -> List[str]:
    try:
        return shlex.split(line)
    except ValueError as exc:
        raise ManifestError(f"{source}:{number}: {exc}") from exc


__all__ = [
    "MANIFEST_FILENAME",
    "ManifestError",
    "parse_manifest",
    "parse_manifest_text",
    "resolve_dependencies",
]
