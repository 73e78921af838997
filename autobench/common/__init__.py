"""Common building blocks shared by the orchestration modules."""

from .command import Command, prefix_environment
from .enums import BenchmarkKind, DataLoader, Platform
from .multinode import Topology, split_items

__all__ = [
    "BenchmarkKind",
    "Command",
    "DataLoader",
    "Platform",
    "Topology",
    "prefix_environment",
    "split_items",
]
