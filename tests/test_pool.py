"""Tests for the bounded worker pool."""

from __future__ import annotations

import threading
import time

import pytest

from autobench.errors import PoolFaultedError
from autobench.run.pool import WorkerPool, for_each, get_current_task_name, pool_size


class TestWorkerPool:
    def test_runs_every_unit(self):
        seen = []
        lock = threading.Lock()

        def record(i):
            with lock:
                seen.append(i)

        pool = WorkerPool(4, name="test")
        for i in range(10):
            pool.queue(lambda i=i: record(i))
        pool.stop()

        assert sorted(seen) == list(range(10))

    def test_never_exceeds_max_parallel(self):
        active = 0
        peak = 0
        lock = threading.Lock()

        def unit():
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1

        pool = WorkerPool(2, name="bounded")
        for _ in range(8):
            pool.queue(unit)
        pool.stop()

        assert peak <= 2

    def test_stop_raises_first_error(self):
        pool = WorkerPool(1, name="failing")

        def boom():
            raise RuntimeError("first")

        pool.queue(boom)
        with pytest.raises(RuntimeError, match="first"):
            pool.stop()

    def test_queue_rejected_once_faulted(self):
        pool = WorkerPool(1, name="faulted")
        done = threading.Event()

        def boom():
            try:
                raise RuntimeError("unit failed")
            finally:
                done.set()

        pool.queue(boom)
        done.wait(timeout=5)
        # The semaphore is released after the error is recorded
        time.sleep(0.05)

        assert pool.faulted
        with pytest.raises(PoolFaultedError):
            pool.queue(lambda: None)
        with pytest.raises(RuntimeError, match="unit failed"):
            pool.stop()

    def test_rejects_invalid_parallelism(self):
        with pytest.raises(ValueError):
            WorkerPool(0)

    def test_task_name_visible_inside_unit(self):
        names = []
        pool = WorkerPool(1)
        pool.queue(lambda: names.append(get_current_task_name()), name="node-a")
        pool.stop()

        assert names == ["node-a"]
        assert get_current_task_name() is None


class TestForEach:
    def test_empty_input_returns_immediately(self):
        for_each([], lambda item: pytest.fail("should not be called"))

    def test_all_units_start_concurrently_and_single_error_is_reported(self):
        hosts = ["a", "b", "c", "d"]
        barrier = threading.Barrier(len(hosts), timeout=5)
        invoked = []
        lock = threading.Lock()

        def unit(host):
            with lock:
                invoked.append(host)
            barrier.wait()
            if host == "c":
                raise RuntimeError(f"failed on {host}")

        with pytest.raises(RuntimeError, match="failed on c"):
            for_each(hosts, unit, name="barrier", max_parallel=len(hosts))

        assert sorted(invoked) == hosts

    def test_first_error_wins(self):
        def unit(i):
            if i == 0:
                raise ValueError("first")
            time.sleep(0.05)
            raise RuntimeError("later")

        with pytest.raises(ValueError, match="first"):
            for_each([0, 1], unit, max_parallel=2)


def test_pool_size_is_bounded():
    assert pool_size(0) == 1
    assert pool_size(1) == 1
    assert pool_size(10_000) >= 1
