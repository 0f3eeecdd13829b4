"""Tests for repometer.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from repometer.config import (
    DEFAULT_GITHUB_API,
    DEFAULT_SOURCEGRAPH_API,
    ConfigError,
    FailurePolicy,
    Settings,
    load_settings,
)


def test_load_settings_returns_defaults_when_missing(tmp_path: Path) -> None:
    settings = load_settings(tmp_path, env={})

    assert isinstance(settings, Settings)
    assert settings.root == tmp_path.resolve()
    assert settings.search.endpoint == DEFAULT_SOURCEGRAPH_API
    assert settings.github.endpoint == DEFAULT_GITHUB_API
    assert settings.github.token is None
    assert settings.max_workers == 8
    assert settings.resolution_workers == 1
    assert settings.command_timeout == pytest.approx(120.0)
    assert settings.failure_policy is FailurePolicy.SKIP
    assert settings.effective_store_path == tmp_path.resolve() / ".repometer" / "repositories.json"
    assert settings.effective_scratch_dir == tmp_path.resolve() / "tmp"


def test_load_settings_parses_expected_fields(tmp_path: Path) -> None:
    (tmp_path / ".repometer.yml").write_text(
        """
search:
  endpoint: "https://sourcegraph.example/.api/graphql"
  token: "sg-token"
github:
  endpoint: "https://github.example/api/graphql"
  token: "gh-token"
  username: "harvester"
  timeout: 30
pipeline:
  max_workers: 4
  resolution_workers: 2
  command_timeout: 60
  failure_policy: fail
  store_path: "data/repos.json"
  scratch_dir: "/var/tmp/repometer"
tools:
  cloc: "/usr/local/bin/cloc"
""",
        encoding="utf-8",
    )

    settings = load_settings(tmp_path / ".repometer.yml", env={})

    assert settings.search.endpoint == "https://sourcegraph.example/.api/graphql"
    assert settings.search.token == "sg-token"
    assert settings.github.token == "gh-token"
    assert settings.github.username == "harvester"
    assert settings.github.timeout == pytest.approx(30.0)
    assert settings.max_workers == 4
    assert settings.resolution_workers == 2
    assert settings.command_timeout == pytest.approx(60.0)
    assert settings.failure_policy is FailurePolicy.FAIL
    assert settings.store_path == tmp_path.resolve() / "data" / "repos.json"
    assert settings.scratch_dir == Path("/var/tmp/repometer")
    assert settings.tools.cloc == "/usr/local/bin/cloc"
    assert settings.tools.git == "git"


def test_environment_overrides_file(tmp_path: Path) -> None:
    (tmp_path / ".repometer.yml").write_text(
        "github:\n  token: from-file\npipeline:\n  max_workers: 2\n", encoding="utf-8"
    )
    env = {
        "GITHUB_TOKEN": "from-env",
        "GITHUB_USERNAME": "bot",
        "SOURCEGRAPH_GRAPHQL_API": "http://localhost:7080/.api/graphql",
        "REPOMETER_MAX_WORKERS": "16",
        "REPOMETER_FAILURE_POLICY": "FAIL",
        "REPOMETER_STORE_PATH": str(tmp_path / "other.json"),
    }

    settings = load_settings(tmp_path, env=env)

    assert settings.github.token == "from-env"
    assert settings.github.username == "bot"
    assert settings.search.endpoint == "http://localhost:7080/.api/graphql"
    assert settings.max_workers == 16
    assert settings.failure_policy is FailurePolicy.FAIL
    assert settings.effective_store_path == tmp_path / "other.json"


def test_require_tokens_raises_without_github_token(tmp_path: Path) -> None:
    settings = load_settings(tmp_path, env={})

    with pytest.raises(ConfigError, match="GITHUB_TOKEN"):
        settings.require_tokens()


@pytest.mark.parametrize(
    "env, message",
    [
        ({"REPOMETER_MAX_WORKERS": "many"}, "must be an integer"),
        ({"REPOMETER_MAX_WORKERS": "0"}, "at least 1"),
        ({"REPOMETER_COMMAND_TIMEOUT": "-1"}, "must be positive"),
        ({"REPOMETER_FAILURE_POLICY": "retry"}, "failure_policy"),
    ],
)
def test_invalid_values_raise(tmp_path: Path, env: dict, message: str) -> None:
    with pytest.raises(ConfigError, match=message):
        load_settings(tmp_path, env=env)


def test_non_mapping_config_raises(tmp_path: Path) -> None:
    (tmp_path / ".repometer.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        load_settings(tmp_path, env={})
