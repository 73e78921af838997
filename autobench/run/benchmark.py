"""Iterated backup/restore benchmarks."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console

from ..config import BenchmarkConfig
from ..errors import BenchmarkError
from ..models import BackupInfo, BenchmarkResult, BenchmarkResults
from ..util import Timer
from .signals import CancellationToken

if TYPE_CHECKING:
    from ..nodes.backup_client import BackupClient
    from ..nodes.cluster import Cluster

console = Console()


class BenchmarkController:
    """Drives repeated backups (or restores) between the client and the cluster.

    Only the operation under test is timed. Cancellation is checked once an
    iteration has completed, so a cancelled run still returns every finished
    iteration.
    """

    def __init__(self, client: BackupClient, cluster: Cluster, config: BenchmarkConfig):
        self.client = client
        self.cluster = cluster
        self.config = config

    @property
    def iterations(self) -> int:
        return max(1, self.config.iterations)

    def run_backup_benchmarks(self, token: CancellationToken) -> BenchmarkResults:
        results: BenchmarkResults = []

        try:
            self.client.purge_archive()
            self.client.create_repository()
        except Exception as e:
            raise BenchmarkError(f"failed to prepare archive: {e}", results) from e

        for iteration in range(1, self.iterations + 1):
            console.print(f"[bold blue]Backup iteration {iteration}/{self.iterations}[/bold blue]")

            try:
                result = self._run_backup_iteration()
            except Exception as e:
                raise BenchmarkError(
                    f"failed to run backup benchmark (iteration {iteration}): {e}", results
                ) from e

            results.append(result)
            console.print(f"[green]✓ Backup completed in {result.duration:.2f}s[/green]")

            if token.cancelled:
                console.print(f"[yellow]Stopping after {len(results)} iteration(s)[/yellow]")
                break

        return results

    def _run_backup_iteration(self) -> BenchmarkResult:
        self._run_pre_benchmark_tasks()

        with Timer("backup") as timer:
            self.client.backup(self.cluster)

        info = self.client.backup_info()
        self.client.purge_backups()

        return BenchmarkResult(duration=timer.elapsed, ads=info.backup_size, ain=info.items)

    def run_restore_benchmarks(self, token: CancellationToken) -> BenchmarkResults:
        results: BenchmarkResults = []
        blackhole = self.config.cbbackupmgr_config.blackhole

        try:
            self.client.purge_archive()
            self.client.create_repository()
            # Restoring needs a real backup, even when the restore is to the blackhole
            info = self.client.create_backup(self.cluster, ignore_blackhole=True)
        except Exception as e:
            raise BenchmarkError(f"failed to prepare backup to restore: {e}", results) from e

        for iteration in range(1, self.iterations + 1):
            console.print(f"[bold blue]Restore iteration {iteration}/{self.iterations}[/bold blue]")

            try:
                result = self._run_restore_iteration(info, flush=not blackhole)
            except Exception as e:
                raise BenchmarkError(
                    f"failed to run restore benchmark (iteration {iteration}): {e}", results
                ) from e

            results.append(result)
            console.print(f"[green]✓ Restore completed in {result.duration:.2f}s[/green]")

            if token.cancelled:
                console.print(f"[yellow]Stopping after {len(results)} iteration(s)[/yellow]")
                break

        return results

    def _run_restore_iteration(self, info: BackupInfo, flush: bool) -> BenchmarkResult:
        if flush:
            self.cluster.flush_bucket()

        self._run_pre_benchmark_tasks()

        with Timer("restore") as timer:
            self.client.restore_backup(self.cluster)

        return BenchmarkResult(duration=timer.elapsed, ads=info.backup_size, ain=info.items)

    def _run_pre_benchmark_tasks(self) -> None:
        self.cluster.run_pre_benchmark_tasks()
        self.client.run_pre_benchmark_tasks()
