"""Error codes and exception types for jobrunner.

Fatal conditions (bad configuration, a child that cannot be launched, a log
that cannot be written) abort the invocation. Delivery errors are collected
per channel and never abort anything. An unhealthy exit is an outcome of
the retry policy, not an error.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Stable identifiers for jobrunner errors.

    Codes are grouped by numeric prefix:
    - E0xx: Child execution errors
    - E3xx: Configuration errors
    - E4xx: Log storage errors
    - E5xx: Delivery errors
    """

    # E0xx: Execution errors
    LAUNCH_NOT_FOUND = "E001"
    """Program (or working directory) does not exist."""

    LAUNCH_PERMISSION_DENIED = "E002"
    """Program is not executable, or the identity switch was refused."""

    LAUNCH_FAILED = "E009"
    """Any other failure to start the child process."""

    # E3xx: Configuration errors
    CONFIG_INVALID = "E301"
    """Options are malformed or conflict with each other."""

    CONFIG_USER_NOT_FOUND = "E302"
    """The requested run-as user does not exist."""

    CONFIG_PARSE_ERROR = "E304"
    """Failed to parse a configuration file or environment value."""

    # E4xx: Log storage errors
    LOG_DIR_FAILED = "E401"
    """Log directory could not be created or chowned."""

    LOG_WRITE_FAILED = "E402"
    """Log file could not be written or chowned."""

    # E5xx: Delivery errors
    DELIVERY_TRANSPORT = "E501"
    """Network or protocol failure talking to a channel."""

    DELIVERY_REJECTED = "E502"
    """Channel answered with an unexpected status."""

    @property
    def category(self) -> str:
        """Human-readable category derived from the code prefix."""
        prefix = self.value[1]
        return {
            "0": "execution",
            "3": "configuration",
            "4": "log_storage",
            "5": "delivery",
        }.get(prefix, "unknown")


class RunnerError(Exception):
    """Base class for all jobrunner errors."""

    default_code: ErrorCode = ErrorCode.LAUNCH_FAILED

    def __init__(self, message: str, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def __str__(self) -> str:
        return self.message


class ConfigurationError(RunnerError):
    """Options could not be turned into a valid run policy."""

    default_code = ErrorCode.CONFIG_INVALID


class ChildLaunchError(RunnerError):
    """The child program could not be started at all.

    Never retried: retrying a missing executable cannot help.
    """

    default_code = ErrorCode.LAUNCH_FAILED


class LogPersistError(RunnerError):
    """The run log could not be written."""

    default_code = ErrorCode.LOG_WRITE_FAILED


class DeliveryError(RunnerError):
    """One delivery channel failed.

    Attributes:
        channel: Name of the channel that failed (e.g., "mail", "discord").
    """

    default_code = ErrorCode.DELIVERY_TRANSPORT

    def __init__(
        self,
        channel: str,
        message: str,
        code: ErrorCode | None = None,
    ) -> None:
        super().__init__(message, code)
        self.channel = channel

    def __str__(self) -> str:
        return f"{self.channel}: {self.message}"


__all__ = [
    "ChildLaunchError",
    "ConfigurationError",
    "DeliveryError",
    "ErrorCode",
    "LogPersistError",
    "RunnerError",
]
