"""Polling for asynchronous remote state, which offers no push notifications."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from ..debug import debug_print
from ..errors import ConvergenceTimeoutError, StepError

# Delay between predicate evaluations
POLL_INTERVAL_SECONDS = 15.0


class PollOutcome(Enum):
    """Result of a convergence wait."""

    CONVERGED = "converged"
    TIMED_OUT = "timed_out"
    ERROR = "error"


@dataclass
class PollResult:
    outcome: PollOutcome
    error: Exception | None = None
    attempts: int = 0

    @property
    def timed_out(self) -> bool:
        return self.outcome is PollOutcome.TIMED_OUT

    @property
    def converged(self) -> bool:
        return self.outcome is PollOutcome.CONVERGED


def poll(
    predicate: Callable[[], bool],
    timeout: float,
    interval: float = POLL_INTERVAL_SECONDS,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """Evaluate ``predicate`` every ``interval`` seconds until it holds.

    The first evaluation happens after one interval has elapsed; callers that
    need an immediate check must make it themselves. The wait ends with:

    - ``CONVERGED`` as soon as the predicate returns True
    - ``ERROR`` (with the exception) as soon as the predicate raises
    - ``TIMED_OUT`` once ``timeout`` seconds pass without convergence
    """
    deadline = clock() + timeout
    attempts = 0

    while True:
        remaining = deadline - clock()
        if remaining <= 0 or interval > remaining:
            # The next tick would land past the deadline
            if remaining > 0:
                sleep(remaining)
            return PollResult(PollOutcome.TIMED_OUT, attempts=attempts)

        sleep(interval)
        attempts += 1

        try:
            ready = predicate()
        except Exception as exc:
            return PollResult(PollOutcome.ERROR, error=exc, attempts=attempts)

        debug_print(f"Poll attempt {attempts}: ready={ready}")
        if ready:
            return PollResult(PollOutcome.CONVERGED, attempts=attempts)


def wait_until(
    predicate: Callable[[], bool],
    timeout: float,
    description: str,
    interval: float = POLL_INTERVAL_SECONDS,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Poll until ``predicate`` holds, raising when it cannot.

    Raises:
        ConvergenceTimeoutError: If the timeout elapsed first
        StepError: If the predicate raised; the original error is chained
    """
    result = poll(predicate, timeout, interval=interval, clock=clock, sleep=sleep)

    if result.outcome is PollOutcome.ERROR:
        raise StepError(f"failed to poll until {description}") from result.error

    if result.timed_out:
        raise ConvergenceTimeoutError(description, timeout)
