"""Bounded, fail-fast worker pool used for fan-out phases."""

from __future__ import annotations

import os
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from ..debug import debug_print
from ..errors import PoolFaultedError

T = TypeVar("T")

# Thread-local task identification, used by debug.py to tag output
_thread_local = threading.local()


def get_current_task_name() -> str | None:
    """
    Get the name of the pool unit running in the calling thread.

    Returns:
        The task name if called from within a WorkerPool unit, None otherwise.
    """
    return getattr(_thread_local, "current_task", None)


def pool_size(units: int) -> int:
    """Parallelism for ``units`` pieces of work: bounded by CPU count, at least one."""
    return max(1, min(os.cpu_count() or 1, units))


class WorkerPool:
    """Runs at most ``max_parallel`` units concurrently.

    Once any unit raises, the pool is faulted: further ``queue`` calls raise
    ``PoolFaultedError`` so the caller stops submitting. ``stop`` waits for
    every accepted unit and re-raises the first recorded exception; later
    exceptions are discarded.
    """

    def __init__(self, max_parallel: int, name: str = "pool"):
        if max_parallel < 1:
            raise ValueError(f"max_parallel must be at least 1 (got {max_parallel})")

        self.max_parallel = max_parallel
        self.name = name

        self._executor = ThreadPoolExecutor(
            max_workers=max_parallel, thread_name_prefix=f"autobench-{name}"
        )
        self._slots = threading.BoundedSemaphore(max_parallel)
        self._error_lock = threading.Lock()
        self._error: Exception | None = None
        self._stopped = False

    @property
    def faulted(self) -> bool:
        with self._error_lock:
            return self._error is not None

    def queue(self, work: Callable[[], Any], name: str | None = None) -> None:
        """Submit a unit of work, blocking while the pool is saturated.

        Raises:
            PoolFaultedError: If a previously queued unit has failed
        """
        if self._stopped:
            raise RuntimeError(f"pool '{self.name}' has been stopped")

        self._raise_if_faulted()
        self._slots.acquire()

        # A unit may have failed whilst we were waiting for a slot
        if self.faulted:
            self._slots.release()
            self._raise_if_faulted()

        self._executor.submit(self._run, work, name)

    def stop(self) -> None:
        """Wait for all accepted units, then raise the first error (if any)."""
        self._stopped = True
        self._executor.shutdown(wait=True)

        if self._error is not None:
            raise self._error

    def _raise_if_faulted(self) -> None:
        with self._error_lock:
            error = self._error
        if error is not None:
            raise PoolFaultedError(f"pool '{self.name}' has faulted: {error}")

    def _run(self, work: Callable[[], Any], name: str | None) -> None:
        _thread_local.current_task = name
        try:
            work()
        except Exception as exc:
            debug_print(f"Unit failed: {exc}")
            with self._error_lock:
                if self._error is None:
                    self._error = exc
        finally:
            _thread_local.current_task = None
            self._slots.release()


def for_each(
    items: Iterable[T],
    fn: Callable[[T], Any],
    *,
    name: str = "pool",
    task_name: Callable[[T], str] = str,
    max_parallel: int | None = None,
) -> None:
    """Run ``fn`` for every item concurrently and wait for the phase to drain.

    Parallelism defaults to ``pool_size(len(items))``. Queueing stops at the
    first failure; the first error is raised once in-flight units finish.
    """
    work = list(items)
    if not work:
        return

    pool = WorkerPool(max_parallel or pool_size(len(work)), name=name)

    for item in work:
        try:
            pool.queue(lambda item=item: fn(item), name=task_name(item))
        except PoolFaultedError:
            break

    pool.stop()
