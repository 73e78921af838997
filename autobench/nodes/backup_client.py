"""The driver host which runs 'cbbackupmgr' against the cluster."""

from __future__ import annotations

import json
import posixpath
import time
from collections.abc import Callable
from pathlib import Path

from rich.console import Console

from ..cbbackupmgr import CBMCommands
from ..common.command import Command
from ..config import BackupClientBlueprint, CBMConfig, NodeBlueprint
from ..errors import StepError
from ..models import BackupInfo
from ..remote.executor import RemoteExecutor
from ..remote.host import RemoteHost
from ..util import ensure_directory
from .cluster import Cluster
from .node import Node

console = Console()


class BackupClient:
    """A connection to the backup client.

    The client is provisioned like a cluster node (Couchbase Server ships
    'cbbackupmgr'), after which the server itself is disabled so it does not
    compete with the benchmark for resources.
    """

    def __init__(self, blueprint: BackupClientBlueprint, node: Node, config: CBMConfig):
        self.blueprint = blueprint
        self.node = node
        self.config = config
        self.commands = CBMCommands(config)

    @classmethod
    def connect(
        cls,
        executor: RemoteExecutor,
        blueprint: BackupClientBlueprint,
        config: CBMConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> BackupClient:
        node = Node.connect(executor, NodeBlueprint(host=blueprint.host), sleep=sleep)
        return cls(blueprint, node, config)

    @property
    def host(self) -> str:
        return self.node.host

    @property
    def remote(self) -> RemoteHost:
        return self.node.remote

    def provision(self) -> None:
        console.print(f"[blue]Provisioning backup client[/blue] {self.host}")

        if not self.blueprint.package_path:
            raise StepError("failed to provision node: no package_path configured")

        try:
            self.node.provision(self.blueprint.package_path)
        except Exception as e:
            raise StepError("failed to provision node") from e

        self.node.disable()
        console.print("[green]✓ Backup client provisioned[/green]")

    def purge_archive(self) -> None:
        """Remove the archive (and any staging directory) left by earlier runs."""
        console.print(f"[blue]Purging archive[/blue] {self.config.archive}")

        if not self.config.is_cloud_archive:
            try:
                self.remote.remove_directory(self.config.archive)
            except Exception as e:
                raise StepError("failed to purge local archive") from e
            return

        try:
            self.remote.execute(self.commands.purge_cloud_archive())
        except Exception as e:
            raise StepError("failed to purge cloud archive") from e

        assert self.config.obj_staging_directory is not None
        try:
            self.remote.remove_directory(self.config.obj_staging_directory)
        except Exception as e:
            raise StepError("failed to purge staging directory") from e

    def create_repository(self) -> None:
        console.print(f"[blue]Creating repository[/blue] {self.config.repository}")
        try:
            self.remote.execute(self.commands.config_repository())
        except Exception as e:
            raise StepError("failed to create repository") from e

    def create_backup(self, cluster: Cluster, ignore_blackhole: bool = False) -> BackupInfo:
        """Back up ``cluster`` and report the size of the backup produced."""
        self.backup(cluster, ignore_blackhole=ignore_blackhole)
        return self.backup_info()

    def backup(self, cluster: Cluster, ignore_blackhole: bool = False) -> None:
        host = cluster.connection_string(self.config.tls)
        console.print(f"[blue]Creating backup of[/blue] {host}")

        try:
            self.remote.execute(self.commands.backup(host, ignore_blackhole=ignore_blackhole))
        except Exception as e:
            raise StepError("failed to create backup") from e

    def backup_info(self) -> BackupInfo:
        """Size and item count of the most recent backup, once it is on disk."""
        try:
            self.remote.sync()
        except Exception as e:
            raise StepError("failed to sync backup to disk") from e

        try:
            return BackupInfo.from_info(self.info())
        except Exception as e:
            raise StepError("failed to get backup info") from e

    def restore_backup(self, cluster: Cluster) -> None:
        host = cluster.connection_string(self.config.tls)
        console.print(f"[blue]Restoring backup to[/blue] {host}")
        try:
            self.remote.execute(self.commands.restore(host))
        except Exception as e:
            raise StepError("failed to restore backup") from e

    def info(self) -> dict:
        output = self.remote.execute(self.commands.info())
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise ValueError(f"failed to decode 'cbbackupmgr info' output: {e}") from e

    def purge_backups(self) -> None:
        """Remove every backup in the repository, keeping the repository itself."""
        try:
            backups = self.info().get("backups") or []
        except Exception as e:
            raise StepError("failed to get backup info") from e

        if not backups:
            return

        start, end = backups[0]["date"], backups[-1]["date"]
        console.print(f"[blue]Removing backups[/blue] [dim]({start} to {end})[/dim]")

        try:
            self.remote.execute(self.commands.remove(start, end))
        except Exception as e:
            raise StepError("failed to remove backups") from e

    def run_pre_benchmark_tasks(self) -> None:
        try:
            self.flush_caches()
        except Exception as e:
            raise StepError("failed to flush caches") from e

    def flush_caches(self) -> None:
        self.node.flush_caches()

    def collect_logs(self, dest_dir: Path | str) -> Path:
        """Run 'cbbackupmgr collect-logs' and download the newest archive."""
        dest = ensure_directory(dest_dir)
        console.print(f"[blue]Collecting 'cbbackupmgr' logs into[/blue] {dest}")

        try:
            self.remote.execute(self.commands.collect_logs())
        except Exception as e:
            raise StepError("failed to collect logs") from e

        logs = posixpath.join(self.config.local_directory, "logs")
        try:
            source = self.remote.execute(self._newest_zip(logs)).strip()
        except Exception as e:
            raise StepError("failed to determine log archive path") from e

        if not source:
            raise StepError(f"no log archive found in '{logs}'")

        sink = dest / posixpath.basename(source)
        try:
            self.remote.download(source, sink)
        except Exception as e:
            raise StepError("failed to download logs") from e

        return sink

    @staticmethod
    def _newest_zip(directory: str) -> Command:
        return Command("ls -t %s/*.zip | head -1", directory)

    def close(self) -> None:
        self.node.close()
