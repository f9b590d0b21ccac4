"""Execution layer: launching the child and the retry/health loop."""

from jobrunner.execution.engine import (
    EngineState,
    RetryEngine,
    RunOutcome,
    is_healthy,
    next_state,
    retry_marker,
    should_surface,
)
from jobrunner.execution.process import (
    Attempt,
    ProcessLauncher,
    build_child_env,
    supports_identity_switch,
)

__all__ = [
    "Attempt",
    "EngineState",
    "ProcessLauncher",
    "RetryEngine",
    "RunOutcome",
    "build_child_env",
    "is_healthy",
    "next_state",
    "retry_marker",
    "should_surface",
    "supports_identity_switch",
]
