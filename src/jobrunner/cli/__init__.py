"""jobrunner CLI.

A single Typer command: ``jobrunner [OPTIONS] [--] PROGRAM [ARGS...]``.

Options are only parsed up to the program name; everything after it is
passed to the program untouched, so ``jobrunner --retries 2 ls -la`` works
without a ``--`` separator. Most options can also be set through a
``RUNNER_*`` environment variable or a YAML file given with ``--config``;
a flag wins over the environment, which wins over the file.
"""

from __future__ import annotations

import os
from pathlib import Path

import typer

from jobrunner import __version__
from jobrunner.core.config import load_yaml_config
from jobrunner.core.errors import RunnerError
from jobrunner.core.logging import configure_logging, get_logger
from jobrunner.orchestrator import Orchestrator

from . import helpers as helpers
from .helpers import RunnerOptions, resolve_config
from .output import print_fatal

_logger = get_logger("cli")

app = typer.Typer(
    name="jobrunner",
    help="Run a program, printing (and delivering) its output only when it fails "
    "or its output matches the configured rules.",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.command(
    context_settings={
        "allow_interspersed_args": False,
        "help_option_names": ["-h", "--help"],
    },
)
def run(
    ctx: typer.Context,
    command: list[str] | None = typer.Argument(
        None,
        metavar="PROGRAM [ARGS]...",
        help="Program to run, followed by its arguments.",
        show_default=False,
    ),
    # Job control
    healthy_exit: list[int] | None = typer.Option(
        None,
        "--healthy-exit",
        help="\"Healthy\" or \"success\" exit code. May be given multiple times. (default: 0)",
        show_default=False,
    ),
    retries: int | None = typer.Option(
        None, "--retries", min=0, help="If the command fails, retry it this many times."
    ),
    retry_delay: int | None = typer.Option(
        None,
        "--retry-delay",
        min=0,
        help="If the command fails, wait this many seconds before retrying.",
    ),
    # Output
    print_if_match: list[str] | None = typer.Option(
        None,
        "--print-if-match",
        help="Print/deliver output if this (case-sensitive) string appears in the "
        "program's output, even after a healthy exit. May be given multiple times.",
    ),
    print_if_not_match: list[str] | None = typer.Option(
        None,
        "--print-if-not-match",
        help="Print/deliver output if this (case-sensitive) string does not appear in "
        "the program's output, even after a healthy exit. May be given multiple times.",
    ),
    always_print: bool = typer.Option(
        False,
        "--always-print",
        help="Always print/deliver the program's output.",
    ),
    job_name: str | None = typer.Option(
        None,
        "--job-name",
        help="Job name used in notifications and the log file name. "
        "(default: program name, without path)",
    ),
    hide_env: bool = typer.Option(
        False, "--hide-env", help="Leave the environment out of the report."
    ),
    log_dir: str | None = typer.Option(
        None, "--log-dir", envvar="RUNNER_LOG_DIR", help="Directory to write run logs to."
    ),
    work_dir: str | None = typer.Option(
        None, "--work-dir", help="Working directory for the program."
    ),
    # Run as another user
    user: str | None = typer.Option(
        None,
        "--user",
        help="Run the program as this user (requires root or CAP_SETUID/CAP_SETGID).",
    ),
    uid: int | None = typer.Option(
        None, "--uid", min=0, help="Run the program as this UID."
    ),
    gid: int | None = typer.Option(
        None, "--gid", min=0, help="Run the program as this GID."
    ),
    # Mail
    mailto: str | None = typer.Option(
        None, "--mailto", envvar="RUNNER_MAILTO", help="Email the report to this address."
    ),
    mail_from: str | None = typer.Option(
        None,
        "--mail-from",
        envvar="RUNNER_MAIL_FROM",
        help="From: address for report emails. (default: runner@<hostname>)",
    ),
    smtp_user: str | None = typer.Option(
        None, "--smtp-user", envvar="RUNNER_SMTP_USER", help="SMTP username."
    ),
    smtp_pass: str | None = typer.Option(
        None, "--smtp-pass", envvar="RUNNER_SMTP_PASS", help="SMTP password."
    ),
    smtp_host: str | None = typer.Option(
        None, "--smtp-host", envvar="RUNNER_SMTP_HOST", help="SMTP server hostname."
    ),
    smtp_port: int | None = typer.Option(
        None, "--smtp-port", envvar="RUNNER_SMTP_PORT", help="SMTP server port. (default: 25)"
    ),
    mail_tab_char: str | None = typer.Option(
        None,
        "--mail-tab-char",
        envvar="RUNNER_MAIL_TAB_CHAR",
        help="Replace tab characters in emailed output with this string.",
    ),
    # ntfy
    ntfy_server: str | None = typer.Option(
        None, "--ntfy-server", envvar="RUNNER_NTFY_SERVER", help="ntfy server to notify."
    ),
    ntfy_topic: str | None = typer.Option(
        None, "--ntfy-topic", envvar="RUNNER_NTFY_TOPIC", help="ntfy topic."
    ),
    ntfy_tags: str | None = typer.Option(
        None, "--ntfy-tags", envvar="RUNNER_NTFY_TAGS", help="Comma-separated ntfy tags."
    ),
    ntfy_priority: int | None = typer.Option(
        None,
        "--ntfy-priority",
        envvar="RUNNER_NTFY_PRIORITY",
        help="ntfy priority, 1-5. (default: 3)",
    ),
    ntfy_email: str | None = typer.Option(
        None,
        "--ntfy-email",
        envvar="RUNNER_NTFY_EMAIL",
        help="Ask ntfy to also email this address.",
    ),
    ntfy_access_token: str | None = typer.Option(
        None,
        "--ntfy-access-token",
        envvar="RUNNER_NTFY_ACCESS_TOKEN",
        help="ntfy access token.",
    ),
    # Webhooks
    discord_webhook: str | None = typer.Option(
        None,
        "--discord-webhook",
        envvar="RUNNER_DISCORD_WEBHOOK",
        help="Post the report to this Discord webhook.",
    ),
    slack_webhook: str | None = typer.Option(
        None,
        "--slack-webhook",
        envvar="RUNNER_SLACK_WEBHOOK",
        help="Post the report headline to this Slack webhook.",
    ),
    slack_username: str | None = typer.Option(
        None, "--slack-username", envvar="RUNNER_SLACK_USERNAME", help="Slack bot username."
    ),
    slack_icon_emoji: str | None = typer.Option(
        None,
        "--slack-icon-emoji",
        envvar="RUNNER_SLACK_ICON_EMOJI",
        help="Slack bot icon emoji.",
    ),
    success_notify: str | None = typer.Option(
        None,
        "--success-notify",
        envvar="RUNNER_SUCCESS_NOTIFY_URL",
        help="GET this URL after a healthy run (heartbeat monitors).",
    ),
    # Ambient
    config_file: Path | None = typer.Option(
        None,
        "--config",
        help="YAML file with default option values (snake_case keys).",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        envvar="RUNNER_LOG_LEVEL",
        help="Diagnostic log level: DEBUG, INFO, WARNING, ERROR.",
    ),
    log_format: str = typer.Option(
        "console",
        "--log-format",
        help="Diagnostic log format: console or json.",
    ),
    version: bool | None = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Print version and exit.",
    ),
) -> None:
    """Run PROGRAM, only printing its output if it fails or matches the output rules.

    All output is optionally logged to a directory, and can be delivered by
    email, ntfy, Discord or Slack.
    """
    level = log_level.upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        raise typer.BadParameter(f"unknown log level {log_level!r}", param_hint="--log-level")
    if log_format not in ("console", "json"):
        raise typer.BadParameter(
            f"unknown log format {log_format!r}", param_hint="--log-format"
        )
    configure_logging(level=level, format=log_format)  # type: ignore[arg-type]

    if not command:
        typer.echo(ctx.get_help(), err=True)
        raise typer.Exit(1)

    opts = RunnerOptions(
        healthy_exit=list(healthy_exit or []),
        retries=retries,
        retry_delay=retry_delay,
        print_if_match=list(print_if_match or []),
        print_if_not_match=list(print_if_not_match or []),
        always_print=always_print,
        job_name=job_name,
        hide_env=hide_env,
        log_dir=log_dir,
        work_dir=work_dir,
        user=user,
        uid=uid,
        gid=gid,
        mailto=mailto,
        mail_from=mail_from,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        mail_tab_char=mail_tab_char,
        ntfy_server=ntfy_server,
        ntfy_topic=ntfy_topic,
        ntfy_tags=ntfy_tags,
        ntfy_priority=ntfy_priority,
        ntfy_email=ntfy_email,
        ntfy_access_token=ntfy_access_token,
        discord_webhook=discord_webhook,
        slack_webhook=slack_webhook,
        slack_username=slack_username,
        slack_icon_emoji=slack_icon_emoji,
        success_notify=success_notify,
    )

    try:
        if config_file is not None:
            opts = opts.with_file_defaults(load_yaml_config(config_file))
        resolved = resolve_config(list(command), opts, os.environ)
        result = Orchestrator(
            policy=resolved.policy,
            delivery=resolved.delivery,
            storage=resolved.storage,
            settings=resolved.settings,
            warnings=resolved.warnings,
        ).run()
    except RunnerError as e:
        _logger.error("fatal_error", code=e.code.value, category=e.code.category)
        print_fatal(e)
        raise typer.Exit(1) from e

    for error in result.delivery_errors:
        _logger.warning("delivery_error", channel=error.channel, error=error.message)


def main() -> None:
    """Console-script entry point."""
    app()


__all__ = ["app", "main", "run"]
