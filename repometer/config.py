"""Configuration loading for repometer (.repometer.yml plus environment)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

CONFIG_FILENAME = ".repometer.yml"

DEFAULT_SOURCEGRAPH_API = "https://sourcegraph.com/.api/graphql"
DEFAULT_GITHUB_API = "https://api.github.com/graphql"
DEFAULT_MAX_WORKERS = 8
DEFAULT_COMMAND_TIMEOUT = 120.0


class ConfigError(RuntimeError):
    """Raised when the configuration cannot be parsed or is incomplete."""


class FailurePolicy(str, Enum):
    """How a stage reacts when a single repository fails."""

    SKIP = "skip"
    FAIL = "fail"


@dataclass(frozen=True)
class APIConfig:
    """Endpoint and credentials of one GraphQL service."""

    endpoint: str
    token: Optional[str] = None
    username: Optional[str] = None
    timeout: float = 600.0


@dataclass(frozen=True)
class ToolsConfig:
    """Executables invoked by the pipeline."""

    git: str = "git"
    go: str = "go"
    cloc: str = "cloc"


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, immutable once loaded."""

    root: Path
    search: APIConfig = field(default_factory=lambda: APIConfig(DEFAULT_SOURCEGRAPH_API))
    github: APIConfig = field(default_factory=lambda: APIConfig(DEFAULT_GITHUB_API))
    language: str = "go"
    manifest_file: str = "go.mod"
    max_workers: int = DEFAULT_MAX_WORKERS
    resolution_workers: int = 1
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    failure_policy: FailurePolicy = FailurePolicy.SKIP
    store_path: Optional[Path] = None
    scratch_dir: Optional[Path] = None
    tools: ToolsConfig = field(default_factory=ToolsConfig)

    @property
    def effective_store_path(self) -> Path:
        return self.store_path or self.root / ".repometer" / "repositories.json"

    @property
    def effective_scratch_dir(self) -> Path:
        return self.scratch_dir or self.root / "tmp"

    def require_tokens(self) -> None:
        if not self.github.token:
            raise ConfigError(
                "GitHub API token missing; set GITHUB_TOKEN or github.token in .repometer.yml"
            )


def load_settings(
    config_path: Path | None = None, env: Mapping[str, str] | None = None
) -> Settings:
    """Load settings from an optional YAML file, then overlay environment variables."""
    environ = os.environ if env is None else env
    config_file = _resolve_config_path(config_path or Path.cwd())
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    search_data = _as_dict(data.get("search"))
    github_data = _as_dict(data.get("github"))
    tools_data = _as_dict(data.get("tools"))
    pipeline_data = _as_dict(data.get("pipeline"))

    settings = Settings(
        root=root,
        search=APIConfig(
            endpoint=_as_str(search_data.get("endpoint")) or DEFAULT_SOURCEGRAPH_API,
            token=_as_str(search_data.get("token")),
            timeout=_as_float(search_data.get("timeout"), "search.timeout") or 600.0,
        ),
        github=APIConfig(
            endpoint=_as_str(github_data.get("endpoint")) or DEFAULT_GITHUB_API,
            token=_as_str(github_data.get("token")),
            username=_as_str(github_data.get("username")),
            timeout=_as_float(github_data.get("timeout"), "github.timeout") or 600.0,
        ),
        language=_as_str(pipeline_data.get("language")) or "go",
        manifest_file=_as_str(pipeline_data.get("manifest_file")) or "go.mod",
        max_workers=_as_int(pipeline_data.get("max_workers"), "pipeline.max_workers")
        or DEFAULT_MAX_WORKERS,
        resolution_workers=_as_int(
            pipeline_data.get("resolution_workers"), "pipeline.resolution_workers"
        )
        or 1,
        command_timeout=_as_float(pipeline_data.get("command_timeout"), "pipeline.command_timeout")
        or DEFAULT_COMMAND_TIMEOUT,
        failure_policy=_as_policy(pipeline_data.get("failure_policy")) or FailurePolicy.SKIP,
        store_path=_as_path(root, pipeline_data.get("store_path")),
        scratch_dir=_as_path(root, pipeline_data.get("scratch_dir")),
        tools=ToolsConfig(
            git=_as_str(tools_data.get("git")) or "git",
            go=_as_str(tools_data.get("go")) or "go",
            cloc=_as_str(tools_data.get("cloc")) or "cloc",
        ),
    )
    settings = _apply_environment(settings, environ)
    _validate(settings)
    return settings


def _apply_environment(settings: Settings, env: Mapping[str, str]) -> Settings:
    github = replace(
        settings.github,
        endpoint=env.get("GITHUB_GRAPHQL_API") or settings.github.endpoint,
        token=env.get("GITHUB_TOKEN") or settings.github.token,
        username=env.get("GITHUB_USERNAME") or settings.github.username,
    )
    search = replace(
        settings.search,
        endpoint=env.get("SOURCEGRAPH_GRAPHQL_API") or settings.search.endpoint,
        token=env.get("SOURCEGRAPH_TOKEN") or settings.search.token,
    )
    overrides: Dict[str, Any] = {"github": github, "search": search}

    if env.get("REPOMETER_MAX_WORKERS"):
        overrides["max_workers"] = _as_int(env["REPOMETER_MAX_WORKERS"], "REPOMETER_MAX_WORKERS")
    if env.get("REPOMETER_COMMAND_TIMEOUT"):
        overrides["command_timeout"] = _as_float(
            env["REPOMETER_COMMAND_TIMEOUT"], "REPOMETER_COMMAND_TIMEOUT"
        )
    if env.get("REPOMETER_FAILURE_POLICY"):
        overrides["failure_policy"] = _as_policy(env["REPOMETER_FAILURE_POLICY"])
    if env.get("REPOMETER_STORE_PATH"):
        overrides["store_path"] = Path(env["REPOMETER_STORE_PATH"]).expanduser()
    if env.get("REPOMETER_SCRATCH_DIR"):
        overrides["scratch_dir"] = Path(env["REPOMETER_SCRATCH_DIR"]).expanduser()
    return replace(settings, **overrides)


def _validate(settings: Settings) -> None:
    if settings.max_workers < 1:
        raise ConfigError("max_workers must be at least 1")
    if settings.resolution_workers < 1:
        raise ConfigError("resolution_workers must be at least 1")
    if settings.command_timeout <= 0:
        raise ConfigError("command_timeout must be positive")


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        text = str(value).strip()
        return text or None
    return None


def _as_int(value: Any, name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ConfigError(f"{name} must be an integer, got {value!r}")


def _as_float(value: Any, name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            pass
    raise ConfigError(f"{name} must be a number, got {value!r}")


def _as_policy(value: Any) -> Optional[FailurePolicy]:
    if value is None:
        return None
    try:
        return FailurePolicy(str(value).strip().lower())
    except ValueError as exc:
        choices = ", ".join(policy.value for policy in FailurePolicy)
        raise ConfigError(f"failure_policy must be one of: {choices}") from exc


def _as_path(root: Path, value: Any) -> Optional[Path]:
    text = _as_str(value)
    if text is None:
        return None
    path = Path(text).expanduser()
    return path if path.is_absolute() else root / path


__all__ = [
    "APIConfig",
    "CONFIG_FILENAME",
    "ConfigError",
    "FailurePolicy",
    "Settings",
    "ToolsConfig",
    "load_settings",
]
