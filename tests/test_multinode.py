"""Tests for cluster topology and workload splitting."""

from __future__ import annotations

import pytest

from autobench.common.multinode import Topology, split_items


class TestTopology:
    def test_first_member_is_leader(self):
        topology = Topology.from_members(["a", "b", "c"])
        assert topology.leader == "a"
        assert topology.followers == ("b", "c")
        assert topology.node_count == 3
        assert topology.is_multinode

    def test_single_node_has_no_followers(self):
        topology = Topology.from_members(["a"])
        assert topology.followers == ()
        assert not topology.is_multinode
        assert topology.is_leader("a")

    def test_empty_members_rejected(self):
        with pytest.raises(ValueError):
            Topology.from_members([])

    def test_iterates_in_configured_order(self):
        assert list(Topology.from_members(["x", "y"])) == ["x", "y"]
        assert len(Topology.from_members(["x", "y"])) == 2


class TestSplitItems:
    @pytest.mark.parametrize(
        "total,nodes,expected",
        [
            (500_000, 2, [250_000, 250_000]),
            (500_001, 2, [250_000, 250_001]),
            (10, 3, [3, 3, 4]),
            (2, 3, [0, 0, 2]),
            (0, 2, [0, 0]),
            (7, 1, [7]),
        ],
    )
    def test_split(self, total, nodes, expected):
        shares = split_items(total, nodes)
        assert shares == expected
        assert sum(shares) == total

    def test_rejects_zero_nodes(self):
        with pytest.raises(ValueError):
            split_items(10, 0)
