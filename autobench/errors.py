"""Exception types raised by the orchestration engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import BenchmarkResults


class AutobenchError(RuntimeError):
    """Base class for all autobench failures."""


class RemoteConnectionError(AutobenchError):
    """Unable to reach or authenticate against a remote host."""

    def __init__(self, host: str, reason: str):
        super().__init__(f"failed to connect to '{host}': {reason}")
        self.host = host
        self.reason = reason


class RemoteCommandError(AutobenchError):
    """A remote command (or file transfer) exited non-zero."""

    def __init__(self, host: str, command: str, returncode: int, output: str = ""):
        message = f"command on '{host}' exited with status {returncode}"
        detail = output.strip()
        if detail:
            message += f": {detail.splitlines()[-1]}"
        super().__init__(message)
        self.host = host
        self.command = command
        self.returncode = returncode
        self.output = output


class ConvergenceTimeoutError(AutobenchError):
    """Remote state did not converge before the poll deadline."""

    def __init__(self, description: str, timeout: float):
        super().__init__(f"timeout whilst waiting for {description} ({timeout:.0f}s)")
        self.description = description
        self.timeout = timeout


class PoolFaultedError(AutobenchError):
    """Raised by WorkerPool.queue once a previously queued unit has failed."""


class StepError(AutobenchError):
    """Names the step that failed; the underlying error is chained as __cause__."""


class BenchmarkError(AutobenchError):
    """A benchmark run failed; iterations completed before the failure are kept."""

    def __init__(self, message: str, partial_results: BenchmarkResults):
        super().__init__(message)
        self.partial_results = partial_results


def root_cause(exc: BaseException) -> BaseException:
    """Follow the __cause__ chain down to the original exception."""
    while exc.__cause__ is not None:
        exc = exc.__cause__
    return exc
