"""Per-host provisioning of Couchbase Server."""

from __future__ import annotations

import posixpath
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Protocol

from rich.console import Console

from ..common.command import Command
from ..config import NodeBlueprint
from ..errors import StepError
from ..remote.executor import RemoteExecutor
from ..remote.host import (
    CB_INSTALL_DIRECTORY,
    CB_PASSWORD,
    CB_REST_PORT,
    CB_SERVICE,
    CB_USERNAME,
    REMOTE_TEMP_DIRECTORY,
    RemoteHost,
)

console = Console()

# Couchbase Server offers no readiness signal after install; give it time to start
INSTALL_SETTLE_SECONDS = 30.0


class NodeState(Enum):
    """Provisioning progress; transitions only move forwards."""

    UNPROVISIONED = 1
    DEPENDENCIES_INSTALLED = 2
    SERVICE_INSTALLED = 3
    SERVICE_INITIALIZED = 4


class Node:
    """A connection to one (possibly not yet provisioned) Couchbase Server node."""

    def __init__(
        self,
        blueprint: NodeBlueprint,
        remote: RemoteHost,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.blueprint = blueprint
        self.remote = remote
        self.state = NodeState.UNPROVISIONED
        self._sleep = sleep

    @classmethod
    def connect(
        cls,
        executor: RemoteExecutor,
        blueprint: NodeBlueprint,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Node:
        console.print(f"[blue]Establishing connection to[/blue] {blueprint.host}")
        return cls(blueprint, RemoteHost.connect(executor, blueprint.host), sleep=sleep)

    @property
    def host(self) -> str:
        return self.blueprint.host

    def _log(self, message: str) -> None:
        console.print(f"[dim]\\[{self.host}][/dim] {message}")

    def _advance(self, state: NodeState) -> None:
        if state.value > self.state.value:
            self.state = state

    def provision(self, package_path: str | Path) -> None:
        """Reinstall Couchbase Server from the local package at ``package_path``.

        Any existing installation and its install directory are removed first,
        so the node always ends up in a clean state.
        """
        self.state = NodeState.UNPROVISIONED

        try:
            self.install_dependencies()
        except Exception as e:
            raise StepError("failed to install dependencies") from e

        try:
            self.uninstall_service()
        except Exception as e:
            raise StepError(f"failed to uninstall '{CB_SERVICE}'") from e

        try:
            self.install_service(Path(package_path))
        except Exception as e:
            raise StepError(f"failed to install '{CB_SERVICE}'") from e

        self._sleep(INSTALL_SETTLE_SECONDS)

    def install_dependencies(self) -> None:
        """Install the platform packages Couchbase Server and the tools depend on."""
        self._log("Installing dependencies")
        self.remote.install_packages(*self.remote.platform.dependencies)
        self._advance(NodeState.DEPENDENCIES_INSTALLED)

    def uninstall_service(self) -> None:
        self._log(f"Uninstalling '{CB_SERVICE}'")
        self.remote.uninstall_packages(CB_SERVICE)

        self._log("Purging install directory")
        try:
            self.remote.remove_directory(CB_INSTALL_DIRECTORY)
        except Exception as e:
            raise StepError(
                f"failed to cleanup install directory at '{CB_INSTALL_DIRECTORY}'"
            ) from e

    def install_service(self, local_path: Path) -> None:
        """Upload the package archive, install it, then remove the archive."""
        remote_path = posixpath.join(REMOTE_TEMP_DIRECTORY, local_path.name)

        self._log("Uploading package archive")
        try:
            self.remote.upload(local_path, remote_path)
        except Exception as e:
            raise StepError("failed to upload package archive") from e

        self._log(f"Installing '{CB_SERVICE}'")
        self.remote.install_package_at(remote_path)
        self._advance(NodeState.SERVICE_INSTALLED)

        self._log("Cleaning up package archive")
        try:
            self.remote.remove_file(remote_path)
        except Exception as e:
            raise StepError("failed to remove package archive") from e

    def create_data_path(self) -> None:
        """Create the configured data path and hand it to the couchbase user."""
        data_path = self.blueprint.data_path
        if not data_path:
            return

        self._log(f"Creating/configuring data path {data_path}")

        try:
            self.remote.execute(Command("mkdir -p %s", data_path))
        except Exception as e:
            raise StepError("failed to create remote data directory") from e

        try:
            self.remote.execute(Command("chown -R couchbase:couchbase %s", data_path))
        except Exception as e:
            raise StepError("failed to chown remote data directory") from e

    def initialize_storage_engine(self) -> None:
        """Perform node level initialization of Couchbase Server."""
        self.create_data_path()

        self._log("Initializing node")
        init = (
            f"couchbase-cli node-init -c localhost:{CB_REST_PORT}"
            f" -u {CB_USERNAME} -p {CB_PASSWORD}"
        )
        if self.blueprint.data_path:
            init += f" --node-init-data-path {self.blueprint.data_path}"

        try:
            self.remote.execute(Command(init))
        except Exception as e:
            raise StepError("failed to initialize node") from e

        self._advance(NodeState.SERVICE_INITIALIZED)

    def disable(self) -> None:
        """Stop and disable Couchbase Server so it does not consume resources."""
        self._log(f"Disabling '{CB_SERVICE}'")
        try:
            self.remote.disable_service(CB_SERVICE)
        except Exception as e:
            raise StepError(f"failed to disable '{CB_SERVICE}'") from e

    def flush_caches(self) -> None:
        self.remote.flush_caches()

    def close(self) -> None:
        self.remote.close()


class Provisionable(Protocol):
    """Something the 'provision' sub-command can set up from scratch."""

    def provision(self) -> None: ...
