"""Core domain models, configuration, errors and logging."""

from jobrunner.core.config import (
    DeliveryConfig,
    LogStorageConfig,
    RedactionRules,
    ReportSettings,
    RunAsIdentity,
    RunPolicy,
)
from jobrunner.core.errors import (
    ChildLaunchError,
    ConfigurationError,
    DeliveryError,
    ErrorCode,
    LogPersistError,
    RunnerError,
)

__all__ = [
    "ChildLaunchError",
    "ConfigurationError",
    "DeliveryConfig",
    "DeliveryError",
    "ErrorCode",
    "LogPersistError",
    "LogStorageConfig",
    "RedactionRules",
    "ReportSettings",
    "RunAsIdentity",
    "RunPolicy",
    "RunnerError",
]
