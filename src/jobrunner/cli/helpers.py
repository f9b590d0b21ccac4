"""Option resolution for the jobrunner CLI.

Turns raw option values (already merged with environment variables by
Typer) plus an optional YAML config file into the immutable configuration
models consumed by the orchestrator. Problems that should not stop the run
become setup warnings; the rest raise ConfigurationError.
"""

from __future__ import annotations

import dataclasses
import socket
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any

import httpx
from pydantic import Field, TypeAdapter, ValidationError

from jobrunner.core.config import (
    DeliveryConfig,
    DiscordConfig,
    LogStorageConfig,
    MailConfig,
    NtfyConfig,
    RedactionRules,
    ReportSettings,
    RunAsIdentity,
    RunPolicy,
    SlackConfig,
)
from jobrunner.core.errors import ConfigurationError, ErrorCode
from jobrunner.core.logging import get_logger
from jobrunner.execution.process import supports_identity_switch

_logger = get_logger("cli")

# Environment variables read directly rather than through an option
HIDE_ENV_VARS_ENV_VAR = "RUNNER_HIDE_ENV"
CENSOR_ENV_VARS_ENV_VAR = "RUNNER_CENSOR_ENV"

DEFAULT_SMTP_PORT = 25
DEFAULT_NTFY_PRIORITY = 3
UNKNOWN_HOSTNAME = "<unknown hostname>"


@dataclass
class RunnerOptions:
    """Raw option values as given on the command line or in the environment.

    ``None`` (or an empty list, or False) means "not given", so that values
    from a YAML config file can fill the gap.
    """

    healthy_exit: list[int] = field(default_factory=list)
    retries: Annotated[int | None, Field(ge=0)] = None
    retry_delay: Annotated[int | None, Field(ge=0)] = None
    print_if_match: list[str] = field(default_factory=list)
    print_if_not_match: list[str] = field(default_factory=list)
    always_print: bool = False
    job_name: str | None = None
    hide_env: bool = False
    log_dir: str | None = None
    work_dir: str | None = None
    user: str | None = None
    uid: Annotated[int | None, Field(ge=0)] = None
    gid: Annotated[int | None, Field(ge=0)] = None
    mailto: str | None = None
    mail_from: str | None = None
    smtp_user: str | None = None
    smtp_pass: str | None = None
    smtp_host: str | None = None
    smtp_port: int | None = None
    mail_tab_char: str | None = None
    ntfy_server: str | None = None
    ntfy_topic: str | None = None
    ntfy_tags: str | None = None
    ntfy_priority: int | None = None
    ntfy_email: str | None = None
    ntfy_access_token: str | None = None
    discord_webhook: str | None = None
    slack_webhook: str | None = None
    slack_username: str | None = None
    slack_icon_emoji: str | None = None
    success_notify: str | None = None

    def with_file_defaults(self, file_values: Mapping[str, Any]) -> RunnerOptions:
        """Fill options that were not given from a config file's values.

        Values are checked against the option types before they are used.

        Raises:
            ConfigurationError: If the file names an unknown option or a
                value of the wrong type.
        """
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(file_values) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown option(s) in config file: {', '.join(unknown)}",
                ErrorCode.CONFIG_PARSE_ERROR,
            )

        given: dict[str, Any] = {}
        for name, value in file_values.items():
            if value is None:
                continue
            if isinstance(getattr(self, name), list) and not isinstance(value, list):
                value = [value]
            given[name] = value
        try:
            checked = _OPTIONS_ADAPTER.validate_python(given)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid value in config file: {e}", ErrorCode.CONFIG_PARSE_ERROR
            ) from e

        updates: dict[str, Any] = {}
        for name in given:
            current = getattr(self, name)
            if current is None or current is False or current == []:
                updates[name] = getattr(checked, name)
        return dataclasses.replace(self, **updates)


_OPTIONS_ADAPTER = TypeAdapter(RunnerOptions)


@dataclass
class ResolvedConfig:
    """Everything the orchestrator needs, plus the setup warnings."""

    policy: RunPolicy
    delivery: DeliveryConfig
    storage: LogStorageConfig
    settings: ReportSettings
    warnings: list[str] = field(default_factory=list)


def get_hostname() -> str:
    try:
        return socket.gethostname()
    except OSError as e:
        _logger.warning("hostname_unavailable", error=str(e))
        return UNKNOWN_HOSTNAME


def ensure_scheme(url: str) -> str:
    """Prefix "https://" to URLs given without a scheme."""
    if not url.lower().startswith("http"):
        return "https://" + url
    return url


def _validate_url(url: str, what: str) -> str:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ConfigurationError(f"Failed to parse the given {what} ('{url}'): {e}") from e
    if not parsed.host:
        raise ConfigurationError(f"Failed to parse the given {what} ('{url}'): no host")
    return url


def resolve_run_as(
    user: str | None,
    uid: int | None,
    gid: int | None,
    warnings: list[str],
) -> RunAsIdentity | None:
    """Resolve --user/--uid/--gid into a RunAsIdentity.

    Raises:
        ConfigurationError: If --user is combined with --uid/--gid, or the
            user does not exist.
    """
    if not user and uid is None and gid is None:
        return None
    if user and (uid is not None or gid is not None):
        raise ConfigurationError("Cannot specify both --user and --uid/--gid")
    if not supports_identity_switch():
        warnings.append(
            "running the program as another user is not supported on this platform; "
            "--user/--uid/--gid are ignored"
        )
        return None

    import pwd

    home: str | None = None
    if user:
        try:
            entry = pwd.getpwnam(user)
        except KeyError as e:
            raise ConfigurationError(
                f"Failed to look up user {user}: no such user",
                ErrorCode.CONFIG_USER_NOT_FOUND,
            ) from e
        uid, gid, home = entry.pw_uid, entry.pw_gid, entry.pw_dir
    elif uid is not None:
        try:
            home = pwd.getpwuid(uid).pw_dir
        except KeyError:
            home = None
        if not home:
            warnings.append(f"cannot find homedir for UID {uid}; HOME will not be changed")

    return RunAsIdentity(
        uid=uid,
        gid=gid,
        username=user or None,
        home=Path(home) if home else None,
    )


def resolve_mail(
    opts: RunnerOptions,
    hostname: str,
    warnings: list[str],
) -> MailConfig | None:
    mail_to = opts.mailto or ""
    if not mail_to or "@" not in mail_to:
        return None
    if not (opts.smtp_user or opts.smtp_pass or opts.smtp_host):
        warnings.append(
            "If using --mailto (or the RUNNER_MAILTO env var), you must also specify "
            "--smtp-user (RUNNER_SMTP_USER), --smtp-pass (RUNNER_SMTP_PASS), "
            "--smtp-host (RUNNER_SMTP_HOST)."
        )
        return None

    port = DEFAULT_SMTP_PORT if opts.smtp_port is None else opts.smtp_port
    if port < 1 or port > 65535:
        warnings.append(
            f"Invalid SMTP port {port} given; using default of {DEFAULT_SMTP_PORT} instead"
        )
        port = DEFAULT_SMTP_PORT

    return MailConfig(
        mail_to=mail_to,
        mail_from=opts.mail_from or f"runner@{hostname}",
        smtp_host=opts.smtp_host or "",
        smtp_port=port,
        smtp_user=opts.smtp_user or "",
        smtp_password=opts.smtp_pass or "",
        tab_char_replacement=opts.mail_tab_char or "",
    )


def resolve_ntfy(opts: RunnerOptions, warnings: list[str]) -> NtfyConfig | None:
    priority = DEFAULT_NTFY_PRIORITY if opts.ntfy_priority is None else opts.ntfy_priority
    if priority < 1 or priority > 5:
        warnings.append(
            f"Invalid ntfy priority {priority} given; must be between 1-5, inclusive."
        )
        priority = DEFAULT_NTFY_PRIORITY

    if not opts.ntfy_server:
        return None
    server = _validate_url(ensure_scheme(opts.ntfy_server), "ntfy server URL")
    if not opts.ntfy_topic:
        warnings.append(
            "If using --ntfy-server (or the RUNNER_NTFY_SERVER env var), you must also "
            "specify --ntfy-topic (RUNNER_NTFY_TOPIC)."
        )
        return None

    tags = tuple(tag.strip() for tag in (opts.ntfy_tags or "").split(",") if tag.strip())
    return NtfyConfig(
        server_url=server,
        topic=opts.ntfy_topic,
        tags=tags,
        priority=priority,
        email=opts.ntfy_email or "",
        access_token=opts.ntfy_access_token or "",
    )


def resolve_delivery(
    opts: RunnerOptions,
    hostname: str,
    warnings: list[str],
) -> DeliveryConfig:
    discord = None
    if opts.discord_webhook:
        discord = DiscordConfig(
            webhook_url=_validate_url(ensure_scheme(opts.discord_webhook), "Discord webhook URL"),
        )
    slack = None
    if opts.slack_webhook:
        slack = SlackConfig(
            webhook_url=_validate_url(ensure_scheme(opts.slack_webhook), "Slack webhook URL"),
            username=opts.slack_username or "",
            icon_emoji=opts.slack_icon_emoji or "",
        )
    success_url = None
    if opts.success_notify:
        success_url = _validate_url(ensure_scheme(opts.success_notify), "success notify URL")

    return DeliveryConfig(
        mail=resolve_mail(opts, hostname, warnings),
        ntfy=resolve_ntfy(opts, warnings),
        discord=discord,
        slack=slack,
        success_notify_url=success_url,
    )


def resolve_config(
    command: list[str],
    opts: RunnerOptions,
    environ: Mapping[str, str],
    hostname: str | None = None,
) -> ResolvedConfig:
    """Resolve the command and options into the run configuration.

    Args:
        command: Program followed by its arguments.
        opts: Option values, already merged with the environment and any
            config file.
        environ: Environment used for the hide/censor lists.
        hostname: Host name for reports; looked up when not given.

    Raises:
        ConfigurationError: For invalid or conflicting options.
    """
    if not command:
        raise ConfigurationError("No program given to run")

    warnings: list[str] = []
    hostname = hostname or get_hostname()

    try:
        run_as = resolve_run_as(opts.user, opts.uid, opts.gid, warnings)
        policy = RunPolicy(
            program=command[0],
            args=tuple(command[1:]),
            work_dir=Path(opts.work_dir) if opts.work_dir else None,
            healthy_exit_codes=frozenset(opts.healthy_exit),
            retries=opts.retries or 0,
            retry_delay_seconds=opts.retry_delay or 0,
            print_if_match=tuple(opts.print_if_match),
            print_if_not_match=tuple(opts.print_if_not_match),
            always_print=opts.always_print,
            job_name=opts.job_name or "",
            run_as=run_as,
        )
        delivery = resolve_delivery(opts, hostname, warnings)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid options: {e}") from e

    storage = LogStorageConfig(
        log_dir=Path(opts.log_dir) if opts.log_dir else None,
        owner_uid=run_as.uid if run_as else None,
        owner_gid=run_as.gid if run_as else None,
    )
    settings = ReportSettings(
        hostname=hostname,
        redaction=RedactionRules.from_env_lists(
            environ.get(HIDE_ENV_VARS_ENV_VAR),
            environ.get(CENSOR_ENV_VARS_ENV_VAR),
            hide_env=opts.hide_env,
        ),
    )

    for warning in warnings:
        _logger.info("setup_warning", warning=warning)

    return ResolvedConfig(
        policy=policy,
        delivery=delivery,
        storage=storage,
        settings=settings,
        warnings=warnings,
    )


__all__ = [
    "CENSOR_ENV_VARS_ENV_VAR",
    "HIDE_ENV_VARS_ENV_VAR",
    "ResolvedConfig",
    "RunnerOptions",
    "ensure_scheme",
    "get_hostname",
    "resolve_config",
    "resolve_delivery",
    "resolve_mail",
    "resolve_ntfy",
    "resolve_run_as",
]
