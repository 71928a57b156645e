"""Logging configuration for tasksift."""

import datetime
import itertools
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

DEFAULT_LOG_FILE = "~/.config/tasksift/logs/tasksift.log"
MAX_LOG_FILE_BYTES = 5 * 1024 * 1024  # 5 MiB per rotated file.
LOG_BACKUP_COUNT = 3
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
NOISY_LIBRARIES = ("urllib3", "requests", "charset_normalizer", "markdown_it")
_ROLLED_LOG_PATHS: set[Path] = set()


def resolve_log_file_path(log_file: Union[str, Path]) -> Path:
    """Expand user markers in a configured log path."""
    return Path(log_file).expanduser()


def _archive_name(log_path: Path) -> Path:
    """Pick a free ``<mtime>_<name>`` path beside the log for the previous run."""
    modified = datetime.datetime.fromtimestamp(log_path.stat().st_mtime)
    stamp = modified.strftime("%Y-%m-%d_%H-%M-%S")
    candidate = log_path.with_name(f"{stamp}_{log_path.name}")
    suffixes = itertools.count(1)
    while candidate.exists():
        candidate = log_path.with_name(f"{stamp}_{next(suffixes)}_{log_path.name}")
    return candidate


def _roll_previous_run(log_path: Path) -> None:
    # Only the first setup in a process archives; later calls keep appending.
    key = log_path.resolve()
    if key in _ROLLED_LOG_PATHS:
        return
    _ROLLED_LOG_PATHS.add(key)
    if log_path.exists():
        log_path.rename(_archive_name(log_path))


def _file_handler(log_path: Path) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        log_path,
        mode="a",
        maxBytes=MAX_LOG_FILE_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logging(
    level_name: str = "INFO", log_file: Optional[Union[str, Path]] = None
) -> None:
    """Send root logging to a rotating file.

    Nothing is installed when ``log_file`` is empty, so library users keep
    whatever logging setup their host application already has.
    """
    if not log_file:
        return
    log_path = resolve_log_file_path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    _roll_previous_run(log_path)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level_name.upper(), logging.INFO))
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
        existing.close()
    root_logger.addHandler(_file_handler(log_path))

    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)
