"""Remote execution over SSH.

``RemoteExecutor`` is the seam between the orchestration engine and the
transport. ``SSHExecutor`` implements it by shelling out to the system ``ssh``
and ``scp`` binaries.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from ..common.command import Command
from ..common.enums import Platform
from ..debug import debug_log_command, debug_log_result
from ..errors import RemoteCommandError, RemoteConnectionError
from ..util import safe_command

if TYPE_CHECKING:
    from ..config import SSHConfig

# ssh reserves this exit status for its own (connection/authentication) failures
SSH_ERROR_STATUS = 255

_DETECT_DISTRO = Command("cat /etc/os-release | grep '^ID=' | cut -c4-")
_DETECT_RELEASE = Command(
    "cat /etc/os-release | grep '^VERSION_ID=' | cut -c12- | tr -d '\"'"
)


@dataclass
class RemoteSession:
    """An established connection to one host; owned by exactly one node agent."""

    host: str
    platform: Platform


class RemoteExecutor(Protocol):
    """Transport used to reach a remote host and run command lines there."""

    def connect(self, host: str) -> RemoteSession: ...

    def run(
        self, session: RemoteSession, command: str, timeout: float | None = None
    ) -> str: ...

    def upload(self, session: RemoteSession, local_path: Path, remote_path: str) -> None: ...

    def download(self, session: RemoteSession, remote_path: str, local_path: Path) -> None: ...

    def close(self, session: RemoteSession) -> None: ...


class SSHExecutor:
    """Runs commands through the ``ssh`` binary, copies files with ``scp``."""

    def __init__(self, config: SSHConfig):
        self.username = config.username
        self.private_key = config.private_key
        self.port = config.port
        self.connect_timeout = config.connect_timeout

    def _options(self, port_flag: str) -> str:
        opts = (
            "-o StrictHostKeyChecking=no -o BatchMode=yes"
            f" -o ConnectTimeout={self.connect_timeout}"
            f" -i {shlex.quote(self.private_key)}"
        )
        if self.port != 22:
            opts += f" {port_flag} {self.port}"
        return opts

    def _ssh_command(self, host: str, command: str) -> str:
        return f"ssh {self._options('-p')} {self.username}@{host} {shlex.quote(command)}"

    def connect(self, host: str) -> RemoteSession:
        """Check the host is reachable and determine its platform.

        Raises:
            RemoteConnectionError: If the host is unreachable, rejects our
                credentials, or runs an unsupported distribution
        """
        result = safe_command(
            self._ssh_command(host, "echo ready"), timeout=self.connect_timeout + 5
        )
        if not result["success"]:
            raise RemoteConnectionError(host, result["stderr"].strip() or "unknown error")

        try:
            distro = self._execute(host, _DETECT_DISTRO.text)
            release = self._execute(host, _DETECT_RELEASE.text)
            platform = Platform.detect(distro, release)
        except (RemoteCommandError, ValueError) as e:
            raise RemoteConnectionError(host, f"failed to determine platform: {e}") from e

        return RemoteSession(host=host, platform=platform)

    def run(
        self, session: RemoteSession, command: str, timeout: float | None = None
    ) -> str:
        """Run ``command`` on the host and return its standard output.

        Raises:
            RemoteConnectionError: If ssh itself failed to reach the host
            RemoteCommandError: If the command exited non-zero
        """
        return self._execute(session.host, command, timeout)

    def _execute(self, host: str, command: str, timeout: float | None = None) -> str:
        debug_log_command(host, command, timeout)
        result = safe_command(self._ssh_command(host, command), timeout=timeout)
        debug_log_result(result["success"], result["stdout"], result["stderr"])

        if result["success"]:
            return str(result["stdout"])

        if result["returncode"] == SSH_ERROR_STATUS:
            raise RemoteConnectionError(host, result["stderr"].strip())

        raise RemoteCommandError(
            host,
            command,
            result["returncode"],
            result["stdout"] + result["stderr"],
        )

    def upload(self, session: RemoteSession, local_path: Path, remote_path: str) -> None:
        self._copy(session.host, str(local_path), f"{self.username}@{session.host}:{remote_path}")

    def download(self, session: RemoteSession, remote_path: str, local_path: Path) -> None:
        self._copy(session.host, f"{self.username}@{session.host}:{remote_path}", str(local_path))

    def _copy(self, host: str, source: str, sink: str) -> None:
        command = f"scp {self._options('-P')} {shlex.quote(source)} {shlex.quote(sink)}"
        debug_log_command(host, command)
        result = safe_command(command)
        debug_log_result(result["success"], result["stdout"], result["stderr"])
        if not result["success"]:
            raise RemoteCommandError(host, command, result["returncode"], result["stderr"])

    def close(self, session: RemoteSession) -> None:
        # Every ssh invocation is its own process; nothing is held open
        return None
