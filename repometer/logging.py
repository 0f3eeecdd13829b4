"""Logger hierarchy shared by the pipeline stages, CLI and service."""

from __future__ import annotations

import logging
from pathlib import Path

ROOT_LOGGER = "repometer"

# Stage workers run in a thread pool; the worker name tells interleaved lines apart.
_CONSOLE_FORMAT = "[repometer] %(levelname)s %(message)s"
_VERBOSE_CONSOLE_FORMAT = "[repometer] %(levelname)s [%(threadName)s] %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``repometer.<name>``, or the root repometer logger."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Attach console output (and ``log_file`` when given) to the repometer logger.

    Calling it again replaces the handlers installed by the previous call.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = get_logger()
    logger.setLevel(level)
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    console_format = _VERBOSE_CONSOLE_FORMAT if verbose else _CONSOLE_FORMAT
    logger.addHandler(_handler(logging.StreamHandler(), level, console_format))
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.addHandler(
            _handler(logging.FileHandler(log_file, encoding="utf-8"), level, _FILE_FORMAT)
        )
    return logger


__all__ = ["ROOT_LOGGER", "configure_logging", "get_logger"]
