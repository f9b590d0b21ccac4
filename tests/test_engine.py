"""Tests for the retry/health engine.

Tests cover:
- Health evaluation and the default healthy exit code
- State machine transitions
- Surfacing rules (always-print, match, not-match, last attempt only)
- Retry limits, retry markers and delays
- Launch failures aborting the run
- End-to-end runs of real programs
"""

import sys
from datetime import timedelta

import pytest

from jobrunner.core.config import RunPolicy
from jobrunner.core.errors import ChildLaunchError, ErrorCode
from jobrunner.execution.engine import (
    EngineState,
    RetryEngine,
    is_healthy,
    next_state,
    retry_marker,
    should_surface,
)

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX programs")


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# ============================================================================
# Pure policy functions
# ============================================================================


class TestIsHealthy:
    """Tests for is_healthy()."""

    @pytest.mark.parametrize(
        ("exit_code", "codes", "expected"),
        [
            (0, {0}, True),
            (1, {0}, False),
            (3, {0, 3}, True),
            (0, {1, 2}, False),
        ],
    )
    def test_membership(self, exit_code: int, codes: set[int], expected: bool) -> None:
        assert is_healthy(exit_code, codes) is expected

    def test_empty_set_normalized_to_zero(self) -> None:
        policy = RunPolicy(program="/bin/true", healthy_exit_codes=frozenset())
        assert policy.healthy_exit_codes == frozenset({0})
        assert is_healthy(0, policy.healthy_exit_codes)
        assert not is_healthy(1, policy.healthy_exit_codes)


class TestNextState:
    """Tests for the state machine transition function."""

    def test_healthy_always_succeeds(self) -> None:
        assert next_state(True, 1, 5) is EngineState.SUCCEEDED

    def test_healthy_on_last_attempt_succeeds(self) -> None:
        assert next_state(True, 3, 3) is EngineState.SUCCEEDED

    def test_unhealthy_with_retries_left_keeps_attempting(self) -> None:
        assert next_state(False, 1, 3) is EngineState.ATTEMPTING

    def test_unhealthy_without_retries_left_exhausts(self) -> None:
        assert next_state(False, 3, 3) is EngineState.EXHAUSTED

    def test_terminal_flags(self) -> None:
        assert not EngineState.ATTEMPTING.is_terminal
        assert EngineState.SUCCEEDED.is_terminal
        assert EngineState.EXHAUSTED.is_terminal


class TestShouldSurface:
    """Tests for should_surface()."""

    def test_failure_always_surfaces(self) -> None:
        assert should_surface(False, "anything")

    def test_quiet_success(self) -> None:
        assert not should_surface(True, "all good")

    def test_always_print(self) -> None:
        assert should_surface(True, "all good", always_print=True)

    def test_match_found(self) -> None:
        assert should_surface(True, "WARNING: disk 91% full", print_if_match=["WARNING"])

    def test_match_is_case_sensitive(self) -> None:
        assert not should_surface(True, "warning: disk", print_if_match=["WARNING"])

    def test_not_match_absent(self) -> None:
        assert should_surface(True, "done", print_if_not_match=["backup complete"])

    def test_not_match_present(self) -> None:
        assert not should_surface(
            True, "backup complete", print_if_not_match=["backup complete"]
        )

    def test_any_not_match_absent_is_enough(self) -> None:
        assert should_surface(True, "alpha", print_if_not_match=["alpha", "beta"])


class TestRetryMarker:
    def test_without_delay(self) -> None:
        assert retry_marker(0) == "\n- Retrying -\n\n"

    def test_with_delay_shows_applied_delay(self) -> None:
        assert retry_marker(5) == "\n- Retrying in 5s -\n\n"


# ============================================================================
# RetryEngine with a scripted launcher
# ============================================================================


class TestRetryEngine:
    """Tests for RetryEngine.run() driven by a scripted launcher."""

    def test_single_healthy_attempt(self, scripted_launcher) -> None:
        launcher = scripted_launcher([(0, "ok\n")])
        engine = RetryEngine(launcher=launcher, sleep=RecordingSleep())
        outcome = engine.run(RunPolicy(program="job", retries=2))

        assert launcher.calls == 1
        assert outcome.success
        assert not outcome.should_surface
        assert outcome.exit_code == 0
        assert outcome.attempts == 1
        assert outcome.output == "ok\n"

    def test_healthy_attempt_stops_loop_early(self, scripted_launcher) -> None:
        launcher = scripted_launcher([(1, "a"), (0, "b"), (1, "c")])
        outcome = RetryEngine(launcher=launcher, sleep=RecordingSleep()).run(
            RunPolicy(program="job", retries=5)
        )

        assert launcher.calls == 2
        assert outcome.success
        assert outcome.attempts == 2

    def test_exhausts_retries(self, scripted_launcher) -> None:
        launcher = scripted_launcher([(2, "x"), (2, "y"), (3, "z")])
        outcome = RetryEngine(launcher=launcher, sleep=RecordingSleep()).run(
            RunPolicy(program="job", retries=2)
        )

        assert launcher.calls == 3
        assert not outcome.success
        assert outcome.should_surface
        assert outcome.exit_code == 3
        assert outcome.output == "x\n- Retrying -\n\ny\n- Retrying -\n\nz"

    def test_zero_retries_means_one_attempt(self, scripted_launcher) -> None:
        launcher = scripted_launcher([(1, "")])
        outcome = RetryEngine(launcher=launcher, sleep=RecordingSleep()).run(
            RunPolicy(program="job", retries=0)
        )
        assert launcher.calls == 1
        assert not outcome.success

    def test_custom_healthy_codes(self, scripted_launcher) -> None:
        launcher = scripted_launcher([(0, ""), (2, "")])
        outcome = RetryEngine(launcher=launcher, sleep=RecordingSleep()).run(
            RunPolicy(program="job", retries=1, healthy_exit_codes=frozenset({2}))
        )
        assert launcher.calls == 2
        assert outcome.success
        assert outcome.exit_code == 2

    def test_sleeps_between_attempts_only(self, scripted_launcher) -> None:
        sleep = RecordingSleep()
        launcher = scripted_launcher([(1, ""), (1, ""), (1, "")])
        outcome = RetryEngine(launcher=launcher, sleep=sleep).run(
            RunPolicy(program="job", retries=2, retry_delay_seconds=7)
        )

        assert sleep.calls == [7, 7]
        assert outcome.output.count("- Retrying in 7s -") == 2

    def test_no_sleep_without_delay(self, scripted_launcher) -> None:
        sleep = RecordingSleep()
        launcher = scripted_launcher([(1, ""), (0, "")])
        RetryEngine(launcher=launcher, sleep=sleep).run(RunPolicy(program="job", retries=1))
        assert sleep.calls == []

    def test_match_uses_last_attempt_only(self, scripted_launcher) -> None:
        launcher = scripted_launcher([(1, "ERROR: flaky\n"), (0, "fine\n")])
        outcome = RetryEngine(launcher=launcher, sleep=RecordingSleep()).run(
            RunPolicy(program="job", retries=1, print_if_match=("ERROR",))
        )

        assert outcome.success
        assert "ERROR" in outcome.output
        assert not outcome.should_surface

    def test_aggregate_times_span_all_attempts(self, scripted_launcher, base_time) -> None:
        launcher = scripted_launcher([(1, ""), (1, ""), (0, "")])
        outcome = RetryEngine(launcher=launcher, sleep=RecordingSleep()).run(
            RunPolicy(program="job", retries=2)
        )

        assert outcome.start_time == base_time
        assert outcome.end_time == base_time + timedelta(seconds=21)
        assert outcome.duration_seconds == 21

    def test_warnings_carried_through(self, scripted_launcher) -> None:
        launcher = scripted_launcher([(0, "")])
        outcome = RetryEngine(launcher=launcher, sleep=RecordingSleep()).run(
            RunPolicy(program="job"), warnings=["ntfy priority reset"]
        )
        assert outcome.warnings == ("ntfy priority reset",)

    def test_job_name_defaults_to_basename(self, scripted_launcher) -> None:
        launcher = scripted_launcher([(0, "")])
        outcome = RetryEngine(launcher=launcher, sleep=RecordingSleep()).run(
            RunPolicy(program="/usr/local/bin/backup.sh")
        )
        assert outcome.job_name == "backup.sh"

    def test_launch_failure_is_not_retried(self) -> None:
        class FailingLauncher:
            calls = 0

            def run(self, policy: RunPolicy):
                FailingLauncher.calls += 1
                raise ChildLaunchError("nope", ErrorCode.LAUNCH_NOT_FOUND)

        with pytest.raises(ChildLaunchError):
            RetryEngine(launcher=FailingLauncher(), sleep=RecordingSleep()).run(
                RunPolicy(program="missing", retries=3)
            )
        assert FailingLauncher.calls == 1


# ============================================================================
# End-to-end with real programs
# ============================================================================


@posix_only
class TestRealPrograms:
    """Scenarios run against real executables."""

    def test_true_succeeds_quietly(self) -> None:
        outcome = RetryEngine().run(RunPolicy(program="true", retries=2))

        assert outcome.attempts == 1
        assert outcome.success
        assert not outcome.should_surface

    def test_false_exhausts_retries(self) -> None:
        outcome = RetryEngine().run(RunPolicy(program="false", retries=2))

        assert outcome.attempts == 3
        assert outcome.exit_code != 0
        assert outcome.should_surface
        assert outcome.output.count("- Retrying -") == 2

    def test_echo_match_surfaces_success(self) -> None:
        outcome = RetryEngine().run(
            RunPolicy(program="echo", args=("OK",), print_if_match=("OK",))
        )

        assert outcome.success
        assert outcome.should_surface
        assert outcome.output == "OK\n"

    def test_missing_program_is_fatal(self) -> None:
        with pytest.raises(ChildLaunchError) as exc_info:
            RetryEngine().run(RunPolicy(program="/nonexistent/definitely-not-here", retries=2))
        assert exc_info.value.code is ErrorCode.LAUNCH_NOT_FOUND
