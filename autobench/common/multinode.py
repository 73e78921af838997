"""Multinode helpers for working with an ordered set of cluster hosts.

This module consolidates the patterns used when addressing a cluster:
- Designating the leader node that receives cluster-wide administrative calls
- Selecting the followers that must join the leader
- Splitting a workload across nodes
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Topology(Generic[T]):
    """Ordered cluster members plus the designated leader.

    Order only matters for leader-only operations; otherwise members are
    interchangeable.
    """

    leader: T
    members: tuple[T, ...]

    @classmethod
    def from_members(cls, members: Sequence[T]) -> Topology[T]:
        """Build a topology whose leader is the first member.

        Raises:
            ValueError: If no members are provided
        """
        if not members:
            raise ValueError("a cluster requires at least one node")
        return cls(leader=members[0], members=tuple(members))

    @property
    def followers(self) -> tuple[T, ...]:
        """Members other than the leader."""
        return tuple(m for m in self.members if m is not self.leader)

    @property
    def node_count(self) -> int:
        return len(self.members)

    @property
    def is_multinode(self) -> bool:
        return len(self.members) > 1

    def is_leader(self, member: T) -> bool:
        return member is self.leader

    def __iter__(self) -> Iterator[T]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)


def split_items(total: int, node_count: int) -> list[int]:
    """Split ``total`` items evenly over ``node_count`` nodes.

    The remainder is assigned to the last node so the shares always sum to
    ``total``.

    Examples:
        >>> split_items(500_000, 2)
        [250000, 250000]
        >>> split_items(500_001, 2)
        [250000, 250001]
    """
    if node_count < 1:
        raise ValueError(f"node_count must be positive (got {node_count})")
    share, remainder = divmod(total, node_count)
    shares = [share] * node_count
    shares[-1] += remainder
    return shares
