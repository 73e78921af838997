"""A connected remote host exposing the operations needed for benchmarking."""

from __future__ import annotations

from pathlib import Path

from ..common.command import Command
from ..common.enums import Platform
from ..errors import RemoteCommandError
from .executor import RemoteExecutor, RemoteSession

# Couchbase Server install layout on the remote machines
CB_INSTALL_DIRECTORY = "/opt/couchbase"
CB_BIN_DIRECTORY = f"{CB_INSTALL_DIRECTORY}/bin"
CB_SERVICE = "couchbase-server"

# Credentials every provisioned cluster is initialized with
CB_USERNAME = "Administrator"
CB_PASSWORD = "asdasd"
CB_REST_PORT = 8091
CB_KV_PORT = 11210

# Remote scratch directory used for uploaded packages
REMOTE_TEMP_DIRECTORY = "/tmp"


class RemoteHost:
    """Thin wrapper binding an executor to one session.

    Every command is run with the Couchbase bin directory prepended to PATH.
    """

    def __init__(self, executor: RemoteExecutor, session: RemoteSession):
        self._executor = executor
        self._session = session
        self._environment = {"PATH": f"{CB_BIN_DIRECTORY}:$PATH"}

    @classmethod
    def connect(cls, executor: RemoteExecutor, host: str) -> RemoteHost:
        return cls(executor, executor.connect(host))

    @property
    def host(self) -> str:
        return self._session.host

    @property
    def platform(self) -> Platform:
        return self._session.platform

    def execute(self, command: Command, timeout: float | None = None) -> str:
        """Run ``command`` and return its output; raises on non-zero exit."""
        return self._executor.run(
            self._session, command.to_string(self._environment), timeout=timeout
        )

    def upload(self, source: Path | str, sink: str) -> None:
        self._executor.upload(self._session, Path(source), sink)

    def download(self, source: str, sink: Path | str) -> None:
        self._executor.download(self._session, source, Path(sink))

    def install_packages(self, *packages: str) -> None:
        self.execute(self.platform.command_install_packages(*packages))

    def install_package_at(self, path: str) -> None:
        self.execute(self.platform.command_install_package_at(path))

    def uninstall_packages(self, *packages: str) -> None:
        self.execute(self.platform.command_uninstall_packages(*packages))

    def disable_service(self, service: str) -> None:
        self.execute(self.platform.command_disable_service(service))

    def file_exists(self, path: str) -> bool:
        try:
            self.execute(Command("test -e %s", path))
        except RemoteCommandError:
            return False
        return True

    def remove_file(self, path: str) -> None:
        self.execute(Command("rm %s", path))

    def remove_directory(self, path: str) -> None:
        self.execute(Command("rm -rf %s", path))

    def sync(self) -> None:
        """Write all dirty pages to disk."""
        self.execute(Command("sync"))

    def flush_caches(self) -> None:
        """Sync then drop the page cache for more consistent benchmark results."""
        self.execute(Command("sync; echo 3 > /proc/sys/vm/drop_caches"))

    def close(self) -> None:
        self._executor.close(self._session)
