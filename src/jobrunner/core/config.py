"""Configuration models for jobrunner.

Defines Pydantic models carrying the run policy and the delivery settings
between components. Models are frozen: the policy is built once from the
command line (and an optional YAML file) and never mutated afterwards.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from jobrunner.core.errors import ConfigurationError, ErrorCode

DEFAULT_HEALTHY_EXIT_CODES = frozenset({0})

# Variable names whose values are always censored in reports
ALWAYS_CENSORED_ENV_VARS = frozenset({"RUNNER_SMTP_PASS", "RUNNER_NTFY_ACCESS_TOKEN"})


class RunAsIdentity(BaseModel):
    """Alternate OS identity for the child process.

    Either field may be unset; an unset uid or gid keeps the supervisor's own.
    """

    model_config = ConfigDict(frozen=True)

    uid: int | None = Field(default=None, ge=0)
    gid: int | None = Field(default=None, ge=0)
    username: str | None = None
    home: Path | None = Field(
        default=None,
        description="Home directory exported as HOME to the child",
    )

    def describe(self) -> str:
        """Render as "UID 1000, GID 1000 (alice)" for reports."""
        uid = "-" if self.uid is None else str(self.uid)
        gid = "-" if self.gid is None else str(self.gid)
        text = f"UID {uid}, GID {gid}"
        if self.username:
            text += f" ({self.username})"
        return text


class RunPolicy(BaseModel):
    """How to run the child program and when its run counts as healthy."""

    model_config = ConfigDict(frozen=True)

    program: str = Field(min_length=1, description="Program path or name")
    args: tuple[str, ...] = ()
    work_dir: Path | None = Field(
        default=None,
        description="Working directory for the child (inherits ours when unset)",
    )
    healthy_exit_codes: frozenset[int] = DEFAULT_HEALTHY_EXIT_CODES
    retries: int = Field(default=0, ge=0, description="Extra attempts after a failure")
    retry_delay_seconds: float = Field(
        default=0,
        ge=0,
        description="Pause between attempts",
    )
    print_if_match: tuple[str, ...] = ()
    print_if_not_match: tuple[str, ...] = ()
    always_print: bool = False
    job_name: str = ""
    run_as: RunAsIdentity | None = None

    @field_validator("healthy_exit_codes", mode="after")
    @classmethod
    def default_healthy_exit_codes(cls, v: frozenset[int]) -> frozenset[int]:
        """An empty set means the default, {0}."""
        return v or DEFAULT_HEALTHY_EXIT_CODES

    @field_validator("job_name", mode="after")
    @classmethod
    def strip_job_name(cls, v: str) -> str:
        return v.strip()

    @property
    def name(self) -> str:
        """Job name, falling back to the program's basename."""
        return self.job_name or Path(self.program).name

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    @property
    def max_attempts(self) -> int:
        return 1 + self.retries


class RedactionRules(BaseModel):
    """Which environment variables are hidden or censored in reports."""

    model_config = ConfigDict(frozen=True)

    hide_env: bool = Field(default=False, description="Omit the environment entirely")
    hidden: frozenset[str] = frozenset()
    censored: frozenset[str] = frozenset()
    always_censored: frozenset[str] = ALWAYS_CENSORED_ENV_VARS

    @classmethod
    def from_env_lists(
        cls,
        hide_list: str | None,
        censor_list: str | None,
        hide_env: bool = False,
    ) -> RedactionRules:
        """Build rules from colon-separated lists of variable names."""
        return cls(
            hide_env=hide_env,
            hidden=_split_names(hide_list),
            censored=_split_names(censor_list),
        )

    def is_hidden(self, name: str) -> bool:
        return name in self.hidden

    def is_censored(self, name: str) -> bool:
        return name in self.censored or name in self.always_censored


def _split_names(value: str | None) -> frozenset[str]:
    if not value:
        return frozenset()
    return frozenset(name for name in value.split(":") if name)


class MailConfig(BaseModel):
    """SMTP delivery settings. Assumed complete when present."""

    model_config = ConfigDict(frozen=True)

    mail_to: str
    mail_from: str
    smtp_host: str
    smtp_port: int = Field(default=25, ge=1, le=65535)
    smtp_user: str = ""
    smtp_password: str = ""
    tab_char_replacement: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0)


class NtfyConfig(BaseModel):
    """ntfy push-notification settings. Assumed complete when present."""

    model_config = ConfigDict(frozen=True)

    server_url: str
    topic: str = Field(min_length=1)
    tags: tuple[str, ...] = ()
    priority: int = Field(default=3, ge=1, le=5)
    email: str = ""
    access_token: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0)


class DiscordConfig(BaseModel):
    """Discord webhook settings."""

    model_config = ConfigDict(frozen=True)

    webhook_url: str
    timeout_seconds: float = Field(default=10.0, gt=0)


class SlackConfig(BaseModel):
    """Slack incoming-webhook settings."""

    model_config = ConfigDict(frozen=True)

    webhook_url: str
    username: str = ""
    icon_emoji: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0)


class DeliveryConfig(BaseModel):
    """Zero or more delivery channels, each independently optional."""

    model_config = ConfigDict(frozen=True)

    mail: MailConfig | None = None
    ntfy: NtfyConfig | None = None
    discord: DiscordConfig | None = None
    slack: SlackConfig | None = None
    success_notify_url: str | None = Field(
        default=None,
        description="URL fetched with GET after a healthy run (heartbeat monitors)",
    )
    success_notify_timeout_seconds: float = Field(default=10.0, gt=0)


class LogStorageConfig(BaseModel):
    """Where run logs are persisted, and who should own them."""

    model_config = ConfigDict(frozen=True)

    log_dir: Path | None = None
    owner_uid: int | None = None
    owner_gid: int | None = None


class ReportSettings(BaseModel):
    """Inputs to the report beyond the run itself."""

    model_config = ConfigDict(frozen=True)

    hostname: str
    redaction: RedactionRules = Field(default_factory=RedactionRules)


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load option defaults from a YAML file.

    The file is a flat mapping of option names in snake_case
    (e.g. ``retries``, ``ntfy_topic``) to values.

    Raises:
        ConfigurationError: If the file cannot be read or is not a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read config file '{path}': {e}",
            ErrorCode.CONFIG_PARSE_ERROR,
        ) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse config file '{path}': {e}",
            ErrorCode.CONFIG_PARSE_ERROR,
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file '{path}' must contain a mapping of option names to values",
            ErrorCode.CONFIG_PARSE_ERROR,
        )
    return {str(key).replace("-", "_"): value for key, value in data.items()}


__all__ = [
    "ALWAYS_CENSORED_ENV_VARS",
    "DEFAULT_HEALTHY_EXIT_CODES",
    "DeliveryConfig",
    "DiscordConfig",
    "LogStorageConfig",
    "MailConfig",
    "NtfyConfig",
    "RedactionRules",
    "ReportSettings",
    "RunAsIdentity",
    "RunPolicy",
    "SlackConfig",
    "load_yaml_config",
]
