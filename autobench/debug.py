"""Tracing of remote commands, enabled with ``--debug`` or ``AUTOBENCH_DEBUG``."""

import os

ENV_VAR = "AUTOBENCH_DEBUG"

_debug_enabled = False


def set_debug(enabled: bool) -> None:
    """Toggle tracing; mirrored into the environment so child processes inherit it."""
    global _debug_enabled
    _debug_enabled = enabled

    if enabled:
        os.environ[ENV_VAR] = "1"
    else:
        os.environ.pop(ENV_VAR, None)


def is_debug_enabled() -> bool:
    global _debug_enabled

    if not _debug_enabled and os.getenv(ENV_VAR, "").lower() in ("1", "true", "yes"):
        _debug_enabled = True

    return _debug_enabled


def _emit(message: str) -> None:
    # Imported lazily, the pool imports this module
    from .run.pool import get_current_task_name

    task_name = get_current_task_name()
    prefix = f"[{task_name}] " if task_name else ""
    print(f"{prefix}[DEBUG] {message}")


def debug_print(message: str) -> None:
    if is_debug_enabled():
        _emit(message)


def debug_log_command(host: str, command: str, timeout: float | None = None) -> None:
    """Trace a command about to run on ``host``."""
    if not is_debug_enabled():
        return

    if timeout:
        _emit(f"{host} ({timeout:.0f}s): {command}")
    else:
        _emit(f"{host}: {command}")


def debug_log_result(
    success: bool, stdout: str | None = None, stderr: str | None = None
) -> None:
    if not is_debug_enabled():
        return

    _emit(f"Command success: {success}")
    if stdout:
        _emit(f"Stdout: {stdout}")
    if stderr:
        _emit(f"Stderr: {stderr}")
