"""Report rendering and environment redaction."""

from jobrunner.output.formatter import (
    NO_OUTPUT_MARKER,
    OUTPUT_HEADER,
    Report,
    RunStatus,
    format_report,
    summary_line,
)
from jobrunner.output.redaction import censor_value, redact_environment

__all__ = [
    "NO_OUTPUT_MARKER",
    "OUTPUT_HEADER",
    "Report",
    "RunStatus",
    "censor_value",
    "format_report",
    "redact_environment",
    "summary_line",
]
