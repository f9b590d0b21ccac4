"""Time utilities for jobrunner.

Timestamps are local and timezone-aware so reports and log filenames carry
the offset of the machine the job ran on.
"""

from datetime import datetime


def local_now() -> datetime:
    """Return the current local time as a timezone-aware datetime."""
    return datetime.now().astimezone()


def format_timestamp(value: datetime) -> str:
    """Format a timestamp for reports, e.g. "2025-06-15 12:00:00.123 +0200"."""
    return f"{value:%Y-%m-%d %H:%M:%S}.{value.microsecond // 1000:03d} {value:%z}"


def format_filename_timestamp(value: datetime) -> str:
    """Format a timestamp for log filenames, e.g. "2025-06-15T12-00-00.123+0200"."""
    return f"{value:%Y-%m-%dT%H-%M-%S}.{value.microsecond // 1000:03d}{value:%z}"


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Returns:
        e.g. "0.004s", "5.2s", "3m 12.0s", "1h 30m 0.0s".
    """
    if seconds < 1:
        return f"{seconds:.3f}s"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(seconds, 60)
    if minutes < 60:
        return f"{int(minutes)}m {secs:.1f}s"
    hours, minutes = divmod(minutes, 60)
    return f"{int(hours)}h {int(minutes)}m {secs:.1f}s"
