"""Cooperative cancellation of benchmark runs."""

from __future__ import annotations

import signal
import threading
from types import FrameType

from rich.console import Console

console = Console()


class CancellationToken:
    """Single-shot cancellation flag, checked at iteration boundaries only.

    Cancelling never interrupts a remote command that is already running.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def install_interrupt_handler(token: CancellationToken) -> None:
    """Cancel ``token`` on the first SIGINT; a second SIGINT interrupts as usual."""

    def handler(signum: int, frame: FrameType | None) -> None:
        signal.signal(signal.SIGINT, signal.default_int_handler)
        console.print(
            "[yellow]Received interrupt signal, gracefully terminating "
            "after the current iteration[/yellow]"
        )
        token.cancel()

    signal.signal(signal.SIGINT, handler)
