"""Tests for shared utilities, error chaining and debug tracing."""

from __future__ import annotations

import time

from autobench.debug import debug_log_command, set_debug
from autobench.errors import ConvergenceTimeoutError, RemoteCommandError, StepError, root_cause
from autobench.run.pool import WorkerPool
from autobench.util import Timer, ensure_directory, safe_command


def test_timer_measures_elapsed_time():
    with Timer("sleep") as timer:
        time.sleep(0.01)
    assert timer.elapsed >= 0.01


def test_safe_command_reports_failure():
    result = safe_command("exit 3")
    assert not result["success"]
    assert result["returncode"] == 3


def test_safe_command_captures_stdout():
    result = safe_command(["echo", "hello"])
    assert result["success"]
    assert result["stdout"].strip() == "hello"


def test_ensure_directory(tmp_path):
    path = ensure_directory(tmp_path / "a" / "b")
    assert path.is_dir()


class TestErrors:
    def test_root_cause_follows_chain(self):
        original = RemoteCommandError("node-a", "dpkg -i x.deb", 1, "dpkg: error\nbroken package\n")
        try:
            try:
                raise original
            except RemoteCommandError as e:
                raise StepError("failed to install 'couchbase-server'") from e
        except StepError as step:
            assert root_cause(step) is original

    def test_command_error_shows_last_output_line(self):
        error = RemoteCommandError("node-a", "dpkg -i x.deb", 1, "dpkg: error\nbroken package\n")
        assert str(error) == "command on 'node-a' exited with status 1: broken package"

    def test_timeout_message(self):
        assert str(ConvergenceTimeoutError("bucket compaction to complete", 86400)) == (
            "timeout whilst waiting for bucket compaction to complete (86400s)"
        )


def test_debug_output_is_tagged_with_task_name(capsys):
    set_debug(True)
    try:
        pool = WorkerPool(1)
        pool.queue(lambda: debug_log_command("node-a", "sync"), name="node-a")
        pool.stop()
    finally:
        set_debug(False)

    assert "[node-a] [DEBUG] node-a: sync" in capsys.readouterr().out
