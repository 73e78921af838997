"""Rendering of benchmark reports as rich tables or JSON."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import BackupClientBlueprint, CBMConfig, ClusterBlueprint
from ..models import ClusterStats
from ..util import format_bytes
from .model import Report, RundownRow, extract_build

console = Console()


def _key_value_table() -> Table:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")
    return table


def cluster_table(blueprint: ClusterBlueprint) -> Table:
    bucket = blueprint.bucket
    table = _key_value_table()
    table.add_row("Version", extract_build(blueprint.package_path))
    table.add_row("Nodes", ", ".join(node.host for node in blueprint.nodes))
    table.add_row("Bucket Type", bucket.type)
    table.add_row("Eviction Policy", bucket.eviction_policy)
    table.add_row("vBuckets", str(bucket.vbuckets or "default"))
    table.add_row("Compacted", "Yes" if bucket.compact else "No")
    if bucket.pitr_enabled:
        table.add_row(
            "PiTR",
            f"granularity={bucket.pitr_granularity}s, "
            f"max_history_age={bucket.pitr_max_history_age}s",
        )
    table.add_row("Items", str(bucket.data.items))
    table.add_row("Item Size", format_bytes(bucket.data.size))
    table.add_row("Compressible", "Yes" if bucket.data.compressible else "No")
    table.add_row("Data Loader", bucket.data.data_loader.value)
    return table


def backup_client_table(blueprint: BackupClientBlueprint, config: CBMConfig) -> Table:
    table = _key_value_table()
    table.add_row("Version", extract_build(blueprint.package_path))
    table.add_row("Host", blueprint.host)
    table.add_row("Archive", config.archive)
    table.add_row("Repository", config.repository)
    table.add_row("Threads", str(config.threads or "auto"))
    table.add_row("Encrypted", "Yes" if config.encrypted else "No")
    table.add_row("Blackhole", "Yes" if config.blackhole else "No")
    table.add_row("TLS", "Yes" if config.tls else "No")
    return table


def stats_table(stats: ClusterStats) -> Table:
    table = _key_value_table()
    table.add_row("Items", str(stats.item_count))
    table.add_row("Memory Used", format_bytes(stats.mem_used))
    table.add_row("Disk Used", format_bytes(stats.disk_used))
    table.add_row("Residency Ratio", f"{stats.residency_ratio}%")
    return table


def overview_table(report: Report) -> Table | None:
    overview = report.overview
    if overview is None:
        return None

    values = overview.to_dict()
    table = Table(show_header=True, header_style="bold")
    table.add_column("Avg Duration")
    table.add_column("Avg Size (ADS)", justify="right")
    table.add_column("Avg Size (GDS)", justify="right")
    table.add_column("Avg Transfer Rate (ADS)", justify="right")
    table.add_column("Avg Transfer Rate (GDS)", justify="right")
    table.add_row(
        values["avg_duration"],
        values["avg_ads"],
        values["avg_gds"],
        values["avg_transfer_rate_ads"],
        values["avg_transfer_rate_gds"],
    )
    return table


def rundown_table(rows: list[RundownRow]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Iteration", justify="right")
    table.add_column("Duration")
    table.add_column("Items (AIN)", justify="right")
    table.add_column("Size (ADS)", justify="right")
    table.add_column("Size (GDS)", justify="right")
    table.add_column("Transfer Rate (ADS)", justify="right")
    table.add_column("Transfer Rate (GDS)", justify="right")

    for row in rows:
        table.add_row(
            str(row.iteration),
            row.duration,
            row.ain,
            row.ads,
            row.gds,
            row.transfer_rate_ads,
            row.transfer_rate_gds,
        )

    return table


def logs_table(report: Report) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Path")
    for path in report.cluster_logs:
        table.add_row(path.name)
    if report.backup_logs is not None:
        table.add_row(report.backup_logs.name)
    return table


def print_report(report: Report, json_output: bool = False) -> None:
    """Print the report; JSON output is a single line so it can be piped."""
    if json_output:
        typer.echo(json.dumps(report.to_dict()))
        return

    config = report.config
    console.print(Panel(cluster_table(config.blueprint.cluster), title="Cluster", border_style="blue"))

    if report.stats is not None:
        console.print(Panel(stats_table(report.stats), title="Bucket Stats", border_style="blue"))

    console.print(
        Panel(
            backup_client_table(
                config.blueprint.backup_client, config.benchmark.cbbackupmgr_config
            ),
            title="Backup Client",
            border_style="blue",
        )
    )

    overview = overview_table(report)
    if overview is not None:
        console.print(Panel(overview, title="Overview", border_style="green"))
        console.print(Panel(rundown_table(report.rundown), title="Rundown", border_style="green"))

    if report.has_logs:
        console.print(Panel(logs_table(report), title="Logs", border_style="blue"))
