"""Retry/health engine.

Runs the child program up to ``1 + retries`` times and decides, after each
attempt, whether the run is finished, whether it was healthy, and whether
its output should be surfaced.

The loop is a small state machine:

    ATTEMPTING --healthy--> SUCCEEDED
    ATTEMPTING --unhealthy, retries left--> ATTEMPTING
    ATTEMPTING --unhealthy, no retries left--> EXHAUSTED

A launch failure is not a state: ChildLaunchError propagates out of run()
and ends the whole invocation.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from jobrunner.core.config import RunPolicy
from jobrunner.core.logging import get_logger
from jobrunner.execution.process import Attempt, ProcessLauncher

_logger = get_logger("engine")


class EngineState(Enum):
    """States of the retry loop."""

    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self is not EngineState.ATTEMPTING


@dataclass(frozen=True)
class RunOutcome:
    """Terminal result of the retry loop.

    Invariants: ``success`` implies ``exit_code`` is a healthy code, and
    ``should_surface`` is always True when ``success`` is False.
    """

    job_name: str
    output: str
    exit_code: int
    success: bool
    should_surface: bool
    start_time: datetime
    end_time: datetime
    attempts: int
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def duration_seconds(self) -> float:
        """Wall time from the first attempt's start to the last attempt's end."""
        return (self.end_time - self.start_time).total_seconds()


def is_healthy(exit_code: int, healthy_exit_codes: Iterable[int]) -> bool:
    """An exit code is healthy iff it is one of the configured codes."""
    return exit_code in set(healthy_exit_codes)


def next_state(healthy: bool, attempts_made: int, max_attempts: int) -> EngineState:
    """Transition after an attempt finishes.

    Args:
        healthy: Whether the attempt that just finished was healthy.
        attempts_made: Attempts made so far, including that one.
        max_attempts: ``1 + retries``.
    """
    if healthy:
        return EngineState.SUCCEEDED
    if attempts_made >= max_attempts:
        return EngineState.EXHAUSTED
    return EngineState.ATTEMPTING


def should_surface(
    healthy: bool,
    output: str,
    always_print: bool = False,
    print_if_match: Sequence[str] = (),
    print_if_not_match: Sequence[str] = (),
) -> bool:
    """Decide whether a terminal attempt's output is printed and delivered.

    ``output`` is the final attempt's output only, not the accumulated
    output of every attempt. Matching is case-sensitive substring search.
    """
    if not healthy:
        return True
    if always_print:
        return True
    if any(needle in output for needle in print_if_match):
        return True
    return any(needle not in output for needle in print_if_not_match)


def retry_marker(delay_seconds: float) -> str:
    """Separator appended to the accumulated output before a retry."""
    if delay_seconds > 0:
        return f"\n- Retrying in {delay_seconds:g}s -\n\n"
    return "\n- Retrying -\n\n"


class RetryEngine:
    """Executes a RunPolicy and produces its RunOutcome.

    The launcher and sleep function are injectable so that tests can drive
    the loop without real processes or real delays.
    """

    def __init__(
        self,
        launcher: ProcessLauncher | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._launcher = launcher or ProcessLauncher()
        self._sleep = sleep

    def run(self, policy: RunPolicy, warnings: Sequence[str] = ()) -> RunOutcome:
        """Run the policy's program until it is healthy or retries run out.

        Args:
            policy: The run policy.
            warnings: Setup warnings gathered while resolving the policy;
                carried through to the outcome unchanged.

        Returns:
            The terminal RunOutcome.

        Raises:
            ChildLaunchError: If the program could not be started. Not retried.
        """
        log = _logger.bind(job_name=policy.name)
        state = EngineState.ATTEMPTING
        chunks: list[str] = []
        first: Attempt | None = None
        last: Attempt | None = None
        attempts_made = 0

        while not state.is_terminal:
            if attempts_made > 0:
                chunks.append(retry_marker(policy.retry_delay_seconds))
                if policy.retry_delay_seconds > 0:
                    log.info("retry_delay", seconds=policy.retry_delay_seconds)
                    self._sleep(policy.retry_delay_seconds)

            last = self._launcher.run(policy)
            attempts_made += 1
            if first is None:
                first = last
            chunks.append(last.output)

            healthy = is_healthy(last.exit_code, policy.healthy_exit_codes)
            state = next_state(healthy, attempts_made, policy.max_attempts)
            log.info(
                "attempt_finished",
                attempt=attempts_made,
                max_attempts=policy.max_attempts,
                exit_code=last.exit_code,
                healthy=healthy,
                next_state=state.value,
            )

        assert first is not None and last is not None
        success = state is EngineState.SUCCEEDED
        surface = should_surface(
            healthy=success,
            output=last.output,
            always_print=policy.always_print,
            print_if_match=policy.print_if_match,
            print_if_not_match=policy.print_if_not_match,
        )

        return RunOutcome(
            job_name=policy.name,
            output="".join(chunks),
            exit_code=last.exit_code,
            success=success,
            should_surface=surface,
            start_time=first.start_time,
            end_time=last.end_time,
            attempts=attempts_made,
            warnings=tuple(warnings),
        )


__all__ = [
    "EngineState",
    "RetryEngine",
    "RunOutcome",
    "is_healthy",
    "next_state",
    "retry_marker",
    "should_surface",
]
