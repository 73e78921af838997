"""Result and stats types produced by a benchmark run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import DataBlueprint


@dataclass
class BenchmarkResult:
    """A single benchmark iteration."""

    duration: float = 0.0  # seconds spent in the operation under test
    ads: int = 0  # actual data size, in bytes
    ain: int = 0  # actual item count

    def avg_transfer_rate_ads(self) -> int:
        """Bytes per second, calculated using the actual data size."""
        return _transfer_rate(self.ads, self.duration)

    def avg_transfer_rate_gds(self, data: DataBlueprint) -> int:
        """Bytes per second, calculated using the generated data size."""
        return _transfer_rate(data.generated_size, self.duration)

    def to_dict(self) -> dict[str, Any]:
        return {"duration_s": self.duration, "ads": self.ads, "ain": self.ain}


# Ordered by execution; reports rely on the order
BenchmarkResults = list[BenchmarkResult]


def _transfer_rate(size: int, duration: float) -> int:
    # Under a second the division would inflate the rate; report the raw size
    if duration < 1:
        return size
    return size // int(duration)


@dataclass
class BackupInfo:
    """Size and item count of a backup, as reported by 'cbbackupmgr info'."""

    backup_size: int
    items: int

    @classmethod
    def from_info(cls, info: dict[str, Any]) -> BackupInfo:
        """Read the first backup of an ``info -j`` document.

        Each iteration creates a single backup of a single bucket, so only
        the first entries are of interest.
        """
        try:
            backup = info["backups"][0]
            items = backup["buckets"][0]["total_mutations"]
            return cls(backup_size=int(backup["size"]), items=int(items))
        except (KeyError, IndexError, TypeError) as e:
            raise ValueError(f"unexpected 'cbbackupmgr info' output: {e}") from e


@dataclass
class ClusterStats:
    """Basic bucket stats, giving context about the benchmark conditions."""

    item_count: int = 0
    disk_used: int = 0
    mem_used: int = 0
    vb_active_num_non_resident: int = 0

    @classmethod
    def from_basic_stats(cls, stats: dict[str, Any]) -> ClusterStats:
        return cls(
            item_count=int(stats.get("itemCount", 0)),
            disk_used=int(stats.get("diskUsed", 0)),
            mem_used=int(stats.get("memUsed", 0)),
            vb_active_num_non_resident=int(stats.get("vbActiveNumNonResident", 0)),
        )

    @property
    def residency_ratio(self) -> int:
        """Percentage of active items resident in memory, as the web UI shows it."""
        if self.item_count == 0:
            return 100
        if self.item_count < self.vb_active_num_non_resident:
            return 0
        return (self.item_count - self.vb_active_num_non_resident) * 100 // self.item_count
