"""Command line interface for autobench."""

import os
import traceback
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from .common.enums import BenchmarkKind
from .config import AutobenchConfig, load_config
from .debug import set_debug
from .errors import BenchmarkError, root_cause
from .models import BenchmarkResults, ClusterStats
from .nodes.backup_client import BackupClient
from .nodes.cluster import Cluster
from .nodes.node import Provisionable
from .remote.executor import SSHExecutor
from .report import Report, print_report
from .run.benchmark import BenchmarkController
from .run.pool import for_each
from .run.signals import CancellationToken, install_interrupt_handler

app = typer.Typer(
    name="autobench",
    help="Automated backup/restore benchmarking for Couchbase Server clusters",
    no_args_is_help=True,
)

console = Console()


def _display_stacktrace() -> bool:
    return os.getenv("AUTOBENCH_DISPLAY_STACKTRACE", "").lower() in ("1", "true", "yes")


def _fail(message: str, error: BaseException) -> typer.Exit:
    """Print ``error`` (and its root cause) and return the exit to raise."""
    console.print(f"[red]✗ {message}: {escape(str(error))}[/red]")

    cause = root_cause(error)
    if cause is not error:
        console.print(f"[red]  caused by: {escape(str(cause))}[/red]")

    if _display_stacktrace():
        console.print(
            "[dim]"
            + escape("".join(traceback.format_exception(type(error), error, error.__traceback__)))
            + "[/dim]"
        )

    return typer.Exit(1)


def _load(config: str) -> AutobenchConfig:
    try:
        return load_config(config)
    except (FileNotFoundError, ValueError) as e:
        raise _fail("Failed to load configuration", e) from e


def _connect(cfg: AutobenchConfig) -> tuple[Cluster, BackupClient]:
    executor = SSHExecutor(cfg.ssh)

    cluster = Cluster.connect(executor, cfg.blueprint.cluster)
    try:
        client = BackupClient.connect(
            executor, cfg.blueprint.backup_client, cfg.benchmark.cbbackupmgr_config
        )
    except Exception:
        cluster.close()
        raise

    return cluster, client


@app.command()
def provision(
    config: str = typer.Option(..., "--config", "-c", help="Path to config YAML file"),
    load_only: bool = typer.Option(
        False, "--load-only", help="Skip installation and only (re)load the dataset"
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug output for detailed command tracing"
    ),
) -> None:
    """Provision the cluster and backup client, then load the dataset.

    Couchbase Server is reinstalled from scratch on every host, the cluster is
    formed and the benchmarking bucket created before it is populated with the
    configured data.
    """
    set_debug(debug)
    cfg = _load(config)

    try:
        cluster, client = _connect(cfg)
    except Exception as e:
        raise _fail("Failed to connect to hosts", e) from e

    try:
        if not load_only:
            targets: list[Provisionable] = [cluster, client]
            for_each(
                targets,
                lambda target: target.provision(),
                name="provision",
                task_name=lambda target: type(target).__name__,
            )

        cluster.load_dataset(cfg.blueprint.cluster.bucket.compact)
    except Exception as e:
        raise _fail("Failed to provision", e) from e
    finally:
        client.close()
        cluster.close()

    console.print("[green]✓ Provisioning complete[/green]")


@app.command()
def benchmark(
    kind: BenchmarkKind = typer.Argument(..., help="Which operation to benchmark"),
    config: str = typer.Option(..., "--config", "-c", help="Path to config YAML file"),
    logs: Path | None = typer.Option(
        None, "--logs", "-l", help="Collect cluster and 'cbbackupmgr' logs into this directory"
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output the report as JSON"),
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug output for detailed command tracing"
    ),
) -> None:
    """Run backup or restore benchmarks against a provisioned cluster.

    Pressing Ctrl-C stops the run once the current iteration completes; the
    iterations run so far are still reported.
    """
    set_debug(debug)

    if logs is not None and logs.exists() and not logs.is_dir():
        console.print(f"[red]Log path '{logs}' exists and is not a directory[/red]")
        raise typer.Exit(1)

    cfg = _load(config)

    try:
        cluster, client = _connect(cfg)
    except Exception as e:
        raise _fail("Failed to connect to hosts", e) from e

    token = CancellationToken()
    install_interrupt_handler(token)

    controller = BenchmarkController(client, cluster, cfg.benchmark)
    failure: BenchmarkError | None = None
    results: BenchmarkResults = []

    try:
        if kind is BenchmarkKind.BACKUP:
            results = controller.run_backup_benchmarks(token)
        else:
            results = controller.run_restore_benchmarks(token)
    except BenchmarkError as e:
        failure = e
        results = e.partial_results

    try:
        report = Report(config=cfg, results=results, stats=_stats(cluster))

        if logs is not None:
            report.cluster_logs, report.backup_logs = _collect_logs(cluster, client, logs)

        print_report(report, json_output=json_output)
    finally:
        client.close()
        cluster.close()

    if failure is not None:
        raise _fail(f"Failed to run {kind} benchmarks", failure)


def _stats(cluster: Cluster) -> ClusterStats | None:
    try:
        return cluster.stats()
    except Exception as e:
        console.print(f"[yellow]⚠ Failed to get bucket stats: {escape(str(root_cause(e)))}[/yellow]")
        return None


def _collect_logs(
    cluster: Cluster, client: BackupClient, dest: Path
) -> tuple[list[Path], Path | None]:
    cluster_logs: list[Path] = []
    backup_logs: Path | None = None

    try:
        cluster_logs = cluster.collect_logs(dest)
    except Exception as e:
        console.print(f"[yellow]⚠ Failed to collect cluster logs: {escape(str(root_cause(e)))}[/yellow]")

    try:
        backup_logs = client.collect_logs(dest)
    except Exception as e:
        console.print(f"[yellow]⚠ Failed to collect 'cbbackupmgr' logs: {escape(str(root_cause(e)))}[/yellow]")

    return cluster_logs, backup_logs


def main() -> None:
    app()


if __name__ == "__main__":
    main()
