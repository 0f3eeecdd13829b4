"""External command execution: cloning, module fetching and line counting."""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

from .logging import get_logger

DEFAULT_COMMAND_TIMEOUT = 120.0

logger = get_logger("commands")


class CommandError(RuntimeError):
    """Raised when an external command cannot be run or exits non-zero."""

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class CommandTimeout(CommandError):
    """Raised when an external command exceeds its timeout and is killed."""


@dataclass(frozen=True)
class CommandResult:
    args: Sequence[str]
    returncode: int
    stdout: str
    stderr: str


CommandRunner = Callable[..., CommandResult]


def run_command(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = DEFAULT_COMMAND_TIMEOUT,
) -> CommandResult:
    """Run ``args`` without a shell; the process is killed once ``timeout`` passes."""
    argv = [str(arg) for arg in args]
    logger.debug("Running %s", " ".join(argv))
    try:
        completed = subprocess.run(
            argv,
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise CommandError(f"Unable to locate executable '{argv[0]}'") from exc
    except subprocess.TimeoutExpired as exc:
        raise CommandTimeout(
            f"Command timed out after {timeout:g} seconds: {' '.join(argv)}"
        ) from exc

    if completed.returncode != 0:
        stderr = (completed.stderr or "").strip()
        raise CommandError(
            f"{argv[0]} exited with code {completed.returncode}: {stderr}",
            returncode=completed.returncode,
            stderr=stderr,
        )
    return CommandResult(
        args=tuple(argv),
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )


class GitCloner:
    """Shallow-clones repositories with the git CLI."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        executable: str = "git",
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        self._runner = runner or run_command
        self.executable = executable
        self.timeout = timeout

    def clone(self, url: str, destination: Path) -> bool:
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._runner(
                [self.executable, "clone", "--depth", "1", url, str(destination)],
                timeout=self.timeout,
            )
        except CommandError as exc:
            logger.warning("Error while cloning repository %s: %s, skipping...", url, exc)
            return False
        return True


class ModuleFetcher:
    """Materialises a module into the module cache with ``go get``."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        executable: str = "go",
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        self._runner = runner or run_command
        self.executable = executable
        self.timeout = timeout

    def fetch(
        self, spec: str, *, cwd: Path | None = None, env: Mapping[str, str] | None = None
    ) -> bool:
        try:
            self._runner(
                [self.executable, "get", "-d", "-v", spec],
                cwd=cwd,
                env=env,
                timeout=self.timeout,
            )
        except CommandError as exc:
            logger.warning("Error while processing library %s: %s, skipping...", spec, exc)
            return False
        return True

    def clean_cache(self, *, cwd: Path | None = None, env: Mapping[str, str] | None = None) -> None:
        try:
            self._runner(
                [self.executable, "clean", "-modcache"], cwd=cwd, env=env, timeout=self.timeout
            )
        except CommandError as exc:
            logger.warning("Unable to clean module cache: %s", exc)


class LineCounter:
    """Counts lines of code in a directory with ``cloc``."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        executable: str = "cloc",
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        self._runner = runner or run_command
        self.executable = executable
        self.timeout = timeout

    def count(self, path: Path) -> int:
        """Return the code line count for ``path``; failures count as zero."""
        if not path.exists():
            logger.warning("Cannot count lines, %s does not exist", path)
            return 0
        try:
            result = self._runner(
                [self.executable, "--json", "--quiet", str(path)], timeout=self.timeout
            )
        except CommandError as exc:
            logger.warning("Error while calculating code lines of %s: %s", path, exc)
            return 0
        return self._parse_total(result.stdout, path)

    @staticmethod
    def _parse_total(output: str, path: Path) -> int:
        if not output.strip():
            # cloc prints nothing for directories without recognised sources.
            return 0
        try:
            payload = json.loads(output)
        except json.JSONDecodeError:
            logger.warning("Line counter returned invalid JSON for %s", path)
            return 0
        summary = payload.get("SUM") if isinstance(payload, dict) else None
        code: Optional[object] = summary.get("code") if isinstance(summary, dict) else None
        if isinstance(code, bool) or not isinstance(code, int):
            return 0
        return code


__all__ = [
    "DEFAULT_COMMAND_TIMEOUT",
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "CommandTimeout",
    "GitCloner",
    "LineCounter",
    "ModuleFetcher",
    "run_command",
]
