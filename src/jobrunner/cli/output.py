"""Rich output helpers for the jobrunner CLI.

stdout belongs to the run report, so everything here writes to stderr.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from jobrunner.core.errors import RunnerError

# NOTE: stderr only. The report itself is written to stdout by the orchestrator.
err_console = Console(stderr=True)


def print_fatal(error: RunnerError) -> None:
    """Print a fatal error with its code, e.g. "Error [E001]: ..."."""
    err_console.print(
        f"[bold red]Error[/bold red] [dim]\\[{error.code.value}][/dim]: {escape(error.message)}"
    )


__all__ = ["err_console", "print_fatal"]
