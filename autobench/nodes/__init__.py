"""Remote hosts taking part in a benchmark: cluster nodes and the backup client."""

from .backup_client import BackupClient
from .cluster import BUCKET_NAME, Cluster
from .node import Node, NodeState, Provisionable

__all__ = [
    "BUCKET_NAME",
    "BackupClient",
    "Cluster",
    "Node",
    "NodeState",
    "Provisionable",
]
