"""Utility functions shared across autobench."""

import subprocess
import time
from pathlib import Path
from typing import Any

_BYTE_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB")


class Timer:
    """Context manager for timing operations."""

    def __init__(self, description: str = "Operation"):
        self.description = description
        self.start_time: float = 0.0
        self.end_time: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.end_time = time.perf_counter()

    @property
    def elapsed(self) -> float:
        """Return elapsed time in seconds."""
        if self.end_time == 0.0 and self.start_time > 0.0:
            return time.perf_counter() - self.start_time
        return self.end_time - self.start_time


def safe_command(cmd: str | list[str], timeout: float | None = None) -> dict[str, Any]:
    """
    Execute a local command safely and return structured result.

    Returns:
        Dict with keys: success, stdout, stderr, returncode, elapsed_s, command
    """
    start_time = time.perf_counter()
    command = cmd if isinstance(cmd, str) else " ".join(cmd)

    try:
        if isinstance(cmd, str):
            result = subprocess.run(
                cmd,
                shell=True,
                capture_output=True,
                text=True,
                timeout=timeout,  # nosec B602
            )
        else:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=timeout
            )

        return {
            "success": result.returncode == 0,
            "stdout": result.stdout,
            "stderr": result.stderr,
            "returncode": result.returncode,
            "elapsed_s": time.perf_counter() - start_time,
            "command": command,
        }

    except subprocess.TimeoutExpired:
        return {
            "success": False,
            "stdout": "",
            "stderr": f"Command timed out after {timeout}s",
            "returncode": -1,
            "elapsed_s": time.perf_counter() - start_time,
            "command": command,
        }
    except OSError as e:
        return {
            "success": False,
            "stdout": "",
            "stderr": str(e),
            "returncode": -1,
            "elapsed_s": time.perf_counter() - start_time,
            "command": command,
        }


def ensure_directory(path: str | Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def format_bytes(size: int | float) -> str:
    """Render a byte count using binary units, e.g. ``1.50GiB``."""
    value = float(size)
    for unit in _BYTE_UNITS:
        if abs(value) < 1024 or unit == _BYTE_UNITS[-1]:
            if unit == "B":
                return f"{int(value)}B"
            return f"{value:.2f}{unit}"
        value /= 1024
    return f"{value:.2f}{_BYTE_UNITS[-1]}"


def format_duration(seconds: float) -> str:
    """Render a duration as ``1h2m3.45s``, dropping leading zero components."""
    hours, remainder = divmod(max(seconds, 0.0), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{int(hours)}h{int(minutes)}m{secs:.2f}s"
    if minutes:
        return f"{int(minutes)}m{secs:.2f}s"
    return f"{secs:.2f}s"
