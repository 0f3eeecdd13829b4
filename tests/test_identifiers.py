"""Tests for repository and module identifier helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from repometer.identifiers import (
    IdentifierError,
    dedupe,
    download_spec,
    escape_module_path,
    module_cache_dir,
    parse_repository,
)


@pytest.mark.parametrize(
    "reference",
    [
        "org/a",
        "github.com/org/a",
        "https://github.com/org/a.git",
        "https://github.com/org/a/",
    ],
)
def test_parse_repository_normalises_github_references(reference: str) -> None:
    ref = parse_repository(reference)

    assert (ref.owner, ref.name) == ("org", "a")
    assert ref.canonical_url == "org/a"
    assert ref.clone_url == "https://github.com/org/a.git"


def test_parse_repository_keeps_foreign_hosts() -> None:
    ref = parse_repository("gitlab.com/group/tool")

    assert ref.host == "gitlab.com"
    assert ref.canonical_url == "gitlab.com/group/tool"
    assert ref.clone_url == "https://gitlab.com/group/tool.git"


def test_parse_repository_rejects_bare_names() -> None:
    with pytest.raises(IdentifierError):
        parse_repository("lonely")


def test_escape_module_path_encodes_upper_case() -> None:
    assert escape_module_path("github.com/BurntSushi/toml") == "github.com/!burnt!sushi/toml"


def test_download_spec_defaults_to_latest() -> None:
    assert download_spec("example.com/x", "v1.0.0") == "example.com/x@v1.0.0"
    assert download_spec("example.com/x", None) == "example.com/x@latest"


def test_module_cache_dir_finds_versioned_and_unversioned(tmp_path: Path) -> None:
    module = tmp_path / "pkg" / "mod" / "example.com" / "!foo@v1.2.0"
    module.mkdir(parents=True)

    assert module_cache_dir(tmp_path, "example.com/Foo", "v1.2.0") == module
    assert module_cache_dir(tmp_path, "example.com/Foo", None) == module
    assert module_cache_dir(tmp_path, "example.com/bar", None) is None


def test_dedupe_preserves_order_and_drops_empty() -> None:
    assert dedupe(["b", "a", "", "b", "c", "a"]) == ["b", "a", "c"]
