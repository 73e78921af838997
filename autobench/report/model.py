"""Report components built from the results of a benchmark run."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..config import AutobenchConfig, DataBlueprint
from ..models import BenchmarkResults, ClusterStats
from ..util import format_bytes, format_duration

# Never echoed back in reports
_SECRET_FIELDS = {"passphrase", "obj_secret_access_key"}

# Couchbase build identifiers such as 7.0.0-4259
_BUILD_ID = re.compile(r"(\d+\.\d+\.\d+)-(\d+)")


def extract_build(package_path: str | None) -> str:
    """The Couchbase Server build a package installs, or "unknown"."""
    match = _BUILD_ID.search(package_path or "")
    return match.group(0) if match else "unknown"


@dataclass
class Overview:
    """Averages across every benchmark iteration."""

    avg_duration: float
    avg_ads: int
    avg_gds: int
    avg_transfer_rate_ads: int
    avg_transfer_rate_gds: int

    @classmethod
    def from_results(cls, results: BenchmarkResults, data: DataBlueprint) -> Overview | None:
        if not results:
            return None

        count = len(results)
        return cls(
            avg_duration=sum(r.duration for r in results) / count,
            avg_ads=sum(r.ads for r in results) // count,
            avg_gds=data.generated_size,
            avg_transfer_rate_ads=sum(r.avg_transfer_rate_ads() for r in results) // count,
            avg_transfer_rate_gds=sum(r.avg_transfer_rate_gds(data) for r in results) // count,
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "avg_duration": format_duration(self.avg_duration),
            "avg_ads": format_bytes(self.avg_ads),
            "avg_gds": format_bytes(self.avg_gds),
            "avg_transfer_rate_ads": f"{format_bytes(self.avg_transfer_rate_ads)}/s",
            "avg_transfer_rate_gds": f"{format_bytes(self.avg_transfer_rate_gds)}/s",
        }


@dataclass
class RundownRow:
    """A single iteration, formatted for display."""

    iteration: int
    duration: str
    ain: str
    ads: str
    gds: str
    transfer_rate_ads: str
    transfer_rate_gds: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "iteration": self.iteration,
            "duration": self.duration,
            "ain": self.ain,
            "ads": self.ads,
            "gds": self.gds,
            "avg_transfer_rate_ads": self.transfer_rate_ads,
            "avg_transfer_rate_gds": self.transfer_rate_gds,
        }


def build_rundown(results: BenchmarkResults, data: DataBlueprint) -> list[RundownRow]:
    return [
        RundownRow(
            iteration=index,
            duration=format_duration(result.duration),
            ain=str(result.ain),
            ads=format_bytes(result.ads),
            gds=format_bytes(data.generated_size),
            transfer_rate_ads=f"{format_bytes(result.avg_transfer_rate_ads())}/s",
            transfer_rate_gds=f"{format_bytes(result.avg_transfer_rate_gds(data))}/s",
        )
        for index, result in enumerate(results, 1)
    ]


@dataclass
class Report:
    """Everything printed once a benchmark run finishes (or fails part way)."""

    config: AutobenchConfig
    results: BenchmarkResults
    stats: ClusterStats | None = None
    cluster_logs: list[Path] = field(default_factory=list)
    backup_logs: Path | None = None

    @property
    def data(self) -> DataBlueprint:
        return self.config.blueprint.cluster.bucket.data

    @property
    def overview(self) -> Overview | None:
        return Overview.from_results(self.results, self.data)

    @property
    def rundown(self) -> list[RundownRow]:
        return build_rundown(self.results, self.data)

    @property
    def has_logs(self) -> bool:
        return bool(self.cluster_logs) or self.backup_logs is not None

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible form; empty components are omitted."""
        blueprint = self.config.blueprint
        report: dict[str, Any] = {
            "cluster": {
                "version": extract_build(blueprint.cluster.package_path),
                **blueprint.cluster.model_dump(mode="json"),
            },
            "backup_client": {
                "version": extract_build(blueprint.backup_client.package_path),
                **blueprint.backup_client.model_dump(mode="json"),
            },
            "cbbackupmgr": self.config.benchmark.cbbackupmgr_config.model_dump(
                mode="json", exclude=_SECRET_FIELDS
            ),
        }

        if self.stats is not None:
            report["bucket_stats"] = {
                "item_count": self.stats.item_count,
                "mem_used": self.stats.mem_used,
                "disk_used": self.stats.disk_used,
                "residency_ratio": self.stats.residency_ratio,
            }

        overview = self.overview
        if overview is not None:
            report["overview"] = overview.to_dict()

        if self.results:
            report["rundown"] = [row.to_dict() for row in self.rundown]

        if self.has_logs:
            report["logs"] = {
                "cluster": [str(path) for path in self.cluster_logs],
                "backup": str(self.backup_logs) if self.backup_logs else None,
            }

        return report
