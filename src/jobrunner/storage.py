"""Run log persistence.

Every invocation writes its report to ``<log_dir>/<job>.<start>.log`` when
a log directory is configured, whether or not the report was surfaced.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from jobrunner.core.config import LogStorageConfig
from jobrunner.core.errors import DeliveryError, ErrorCode, LogPersistError
from jobrunner.core.logging import get_logger
from jobrunner.utils.time import format_filename_timestamp

_logger = get_logger("storage")

DEFAULT_LOG_DIR_MODE = 0o770
DEFAULT_LOG_FILE_MODE = 0o660

DELIVERY_ERRORS_HEADER = "--- Runner Delivery Errors ---"

_BAD_FILENAME_CHARS = ("/", "\\", "?", "%", "*", ":", "|", '"', "'", "<", ">", ".", " ")


def sanitize_filename(name: str) -> str:
    """Replace characters that are awkward in filenames with "-"."""
    for char in _BAD_FILENAME_CHARS:
        name = name.replace(char, "-")
    return name


def log_filename(job_name: str, start_time: datetime) -> str:
    """e.g. "backup-db.2025-06-15T12-00-00.123+0200.log"."""
    return f"{sanitize_filename(job_name)}.{format_filename_timestamp(start_time)}.log"


def render_log_content(report_text: str, delivery_errors: Sequence[DeliveryError]) -> str:
    """The report, followed by a delivery-errors section when there are any."""
    if not delivery_errors:
        return report_text
    lines = [report_text, "\n", DELIVERY_ERRORS_HEADER, "\n\n"]
    for error in delivery_errors:
        lines.append(str(error))
        lines.append("\n")
    return "".join(lines)


def _chown(path: Path, config: LogStorageConfig) -> None:
    uid = -1 if config.owner_uid is None else config.owner_uid
    gid = -1 if config.owner_gid is None else config.owner_gid
    os.chown(path, uid, gid)


def _needs_chown(config: LogStorageConfig) -> bool:
    return config.owner_uid is not None or config.owner_gid is not None


def persist_log(config: LogStorageConfig, filename: str, content: str) -> Path | None:
    """Write a run log.

    Creates the log directory if needed and hands it (and the file) to the
    run-as identity, so that the job's own user can read its logs.

    Args:
        config: Log storage configuration.
        filename: Log filename, see log_filename().
        content: Full log content.

    Returns:
        Path of the written file, or None when no log directory is configured.

    Raises:
        LogPersistError: If the directory or file could not be created,
            written, or chowned.
    """
    if config.log_dir is None:
        return None

    log_dir = config.log_dir
    if not log_dir.exists():
        try:
            log_dir.mkdir(mode=DEFAULT_LOG_DIR_MODE, parents=True, exist_ok=True)
        except OSError as e:
            raise LogPersistError(
                f"failed to create log directory '{log_dir}': {e}",
                ErrorCode.LOG_DIR_FAILED,
            ) from e
        if _needs_chown(config):
            try:
                _chown(log_dir, config)
            except OSError as e:
                raise LogPersistError(
                    f"failed to chown log directory '{log_dir}' "
                    f"({config.owner_uid}, {config.owner_gid}): {e}",
                    ErrorCode.LOG_DIR_FAILED,
                ) from e

    log_file = log_dir / filename
    try:
        fd = os.open(log_file, os.O_RDWR | os.O_CREAT | os.O_TRUNC, DEFAULT_LOG_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise LogPersistError(f"failed to write log file '{log_file}': {e}") from e

    if _needs_chown(config):
        try:
            _chown(log_file, config)
        except OSError as e:
            raise LogPersistError(
                f"failed to chown log file '{log_file}' "
                f"({config.owner_uid}, {config.owner_gid}): {e}",
            ) from e

    _logger.debug("log_written", path=str(log_file), chars=len(content))
    return log_file


__all__ = [
    "DELIVERY_ERRORS_HEADER",
    "log_filename",
    "persist_log",
    "render_log_content",
    "sanitize_filename",
]
