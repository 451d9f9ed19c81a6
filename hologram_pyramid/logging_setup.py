"""Logging for the hologram tools: console output, optional log file, quiet third-party loggers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple, Union

DEFAULT_LOGGER_NAME = "hologram_pyramid"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
# Encoder jobs and the preview loop run on worker threads.
VERBOSE_LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(threadName)s] %(name)s: %(message)s"

# APScheduler logs every preview tick; Pillow logs each PNG chunk at DEBUG.
QUIET_LOGGERS: Dict[str, int] = {
    "apscheduler": logging.ERROR,
    "PIL": logging.WARNING,
}


def _open_log_file(log_file: Union[str, Path]) -> Tuple[Optional[logging.Handler], List[str]]:
    """Open ``log_file``, retrying in the working directory if its folder is unusable."""
    log_path = Path(log_file)
    if not log_path.is_absolute():
        log_path = Path.cwd() / log_path

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, encoding="utf-8"), []
    except OSError as exc:
        first_error = exc

    fallback_path = Path.cwd() / log_path.name
    try:
        handler = logging.FileHandler(fallback_path, encoding="utf-8")
    except OSError as exc:
        return None, [
            f"Could not write logs to '{log_path}' ({first_error}) "
            f"or '{fallback_path}' ({exc}); logging to the console only"
        ]
    return handler, [f"Could not write logs to '{log_path}' ({first_error}); using '{fallback_path}'"]


def _build_handlers(
    log_file: Union[str, Path, None],
    include_stream: bool,
    formatter: logging.Formatter,
) -> Tuple[List[logging.Handler], List[str]]:
    handlers: List[logging.Handler] = []
    warnings: List[str] = []
    if log_file:
        file_handler, warnings = _open_log_file(log_file)
        if file_handler is not None:
            handlers.append(file_handler)
    if include_stream:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers, warnings


def configure_logging(
    *,
    verbose: bool = False,
    log_file: Union[str, Path, None] = None,
    logger_name: str = DEFAULT_LOGGER_NAME,
    include_stream: bool = True,
    quiet: Mapping[str, int] = QUIET_LOGGERS,
) -> logging.Logger:
    """Install root handlers and return the application logger.

    ``verbose`` switches to DEBUG and adds the thread and logger name to each
    line. Loggers listed in ``quiet`` never log below their given level.
    Replaces handlers from any earlier call, so the CLI can reconfigure once
    settings (and the log file they name) are known.
    """
    level = logging.DEBUG if verbose else logging.INFO
    formatter = logging.Formatter(VERBOSE_LOG_FORMAT if verbose else LOG_FORMAT)
    handlers, warnings = _build_handlers(log_file, include_stream, formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    for name, floor in quiet.items():
        logging.getLogger(name).setLevel(max(level, floor))

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    for message in warnings:
        logger.warning(message)
    return logger


__all__ = ["DEFAULT_LOGGER_NAME", "QUIET_LOGGERS", "configure_logging"]
