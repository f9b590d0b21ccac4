"""Utility helpers for jobrunner."""

from jobrunner.utils.time import (
    format_duration,
    format_filename_timestamp,
    format_timestamp,
    local_now,
)

__all__ = [
    "format_duration",
    "format_filename_timestamp",
    "format_timestamp",
    "local_now",
]
