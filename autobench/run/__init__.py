"""Benchmark execution modules."""

from .poll import POLL_INTERVAL_SECONDS, PollOutcome, PollResult, poll, wait_until
from .pool import WorkerPool, for_each, get_current_task_name, pool_size
from .signals import CancellationToken, install_interrupt_handler

__all__ = [
    "CancellationToken",
    "POLL_INTERVAL_SECONDS",
    "PollOutcome",
    "PollResult",
    "WorkerPool",
    "for_each",
    "get_current_task_name",
    "install_interrupt_handler",
    "poll",
    "pool_size",
    "wait_until",
]
