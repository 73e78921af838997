"""Tests for convergence polling, driven by a fake clock."""

from __future__ import annotations

import pytest

from autobench.errors import ConvergenceTimeoutError, StepError
from autobench.run.poll import PollOutcome, poll, wait_until


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestPoll:
    def test_first_check_happens_after_one_interval(self, clock):
        checked_at = []

        def ready():
            checked_at.append(clock.now)
            return True

        result = poll(ready, timeout=60, interval=15, clock=clock, sleep=clock.sleep)

        assert result.converged
        assert result.attempts == 1
        assert checked_at == [15]

    def test_converges_after_several_attempts(self, clock):
        answers = iter([False, False, True])
        result = poll(lambda: next(answers), timeout=60, interval=15, clock=clock, sleep=clock.sleep)

        assert result.outcome is PollOutcome.CONVERGED
        assert result.attempts == 3
        assert clock.now == 45

    def test_times_out_without_passing_deadline(self, clock):
        result = poll(lambda: False, timeout=40, interval=15, clock=clock, sleep=clock.sleep)

        assert result.timed_out
        assert result.attempts == 2
        assert clock.now == 40

    def test_predicate_error_ends_wait(self, clock):
        def broken():
            raise OSError("connection reset")

        result = poll(broken, timeout=60, interval=15, clock=clock, sleep=clock.sleep)

        assert result.outcome is PollOutcome.ERROR
        assert isinstance(result.error, OSError)
        assert result.attempts == 1

    def test_zero_timeout_never_checks(self, clock):
        result = poll(lambda: pytest.fail("checked"), timeout=0, interval=15, clock=clock, sleep=clock.sleep)
        assert result.timed_out
        assert result.attempts == 0


class TestWaitUntil:
    def test_timeout_raises_distinct_error(self, clock):
        with pytest.raises(ConvergenceTimeoutError, match="timeout whilst waiting for log collection"):
            wait_until(
                lambda: False,
                300,
                "log collection to complete",
                interval=15,
                clock=clock,
                sleep=clock.sleep,
            )

    def test_predicate_error_is_chained(self, clock):
        def broken():
            raise KeyError("tasks")

        with pytest.raises(StepError) as exc_info:
            wait_until(broken, 60, "compaction", interval=15, clock=clock, sleep=clock.sleep)

        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_returns_once_converged(self, clock):
        wait_until(lambda: True, 60, "anything", interval=15, clock=clock, sleep=clock.sleep)
        assert clock.sleeps == [15]
