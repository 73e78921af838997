"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml

from autobench.common.enums import DataLoader
from autobench.config import (
    AutobenchConfig,
    BucketBlueprint,
    CBMConfig,
    DataBlueprint,
    load_config,
)


def _write(tmp_path: Path, raw: dict[str, Any]) -> Path:
    path = tmp_path / "autobench.yaml"
    path.write_text(yaml.safe_dump(raw))
    return path


class TestLoadConfig:
    def test_loads_valid_config(self, tmp_path, raw_config):
        cfg = load_config(_write(tmp_path, raw_config))

        assert isinstance(cfg, AutobenchConfig)
        assert [n.host for n in cfg.blueprint.cluster.nodes] == ["node-a", "node-b"]
        assert cfg.benchmark.iterations == 3
        assert cfg.blueprint.cluster.bucket.data.data_loader is DataLoader.CBBACKUPMGR
        assert cfg.ssh.port == 22

    def test_expands_environment_variables(self, tmp_path, raw_config, monkeypatch):
        monkeypatch.setenv("ARCHIVE_DIR", "/data/archive")
        raw_config["benchmark"]["cbbackupmgr_config"]["archive"] = "${ARCHIVE_DIR}"

        cfg = load_config(_write(tmp_path, raw_config))

        assert cfg.benchmark.cbbackupmgr_config.archive == "/data/archive"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config(path)

    def test_backup_client_must_not_be_cluster_node(self, tmp_path, raw_config):
        raw_config["blueprint"]["backup_client"]["host"] = "node-a"
        with pytest.raises(ValueError, match="also a cluster node"):
            load_config(_write(tmp_path, raw_config))

    def test_duplicate_nodes_rejected(self, tmp_path, raw_config):
        raw_config["blueprint"]["cluster"]["nodes"] = [{"host": "x"}, {"host": "x"}]
        with pytest.raises(ValueError, match="Duplicate cluster hosts"):
            load_config(_write(tmp_path, raw_config))

    def test_empty_node_list_rejected(self, tmp_path, raw_config):
        raw_config["blueprint"]["cluster"]["nodes"] = []
        with pytest.raises(ValueError, match="At least one cluster node"):
            load_config(_write(tmp_path, raw_config))

    def test_missing_private_key_rejected(self, tmp_path, raw_config):
        raw_config["ssh"]["private_key"] = str(tmp_path / "nope")
        with pytest.raises(ValueError, match="SSH private key not found"):
            load_config(_write(tmp_path, raw_config))


class TestBlueprints:
    @pytest.mark.parametrize("vbuckets,limits", [(0, False), (1024, False), (64, True), (1, True)])
    def test_vbucket_limit(self, vbuckets, limits):
        assert BucketBlueprint(vbuckets=vbuckets).limits_vbuckets is limits

    def test_vbuckets_out_of_range(self):
        with pytest.raises(ValueError):
            BucketBlueprint(vbuckets=2048)

    def test_pillowfight_requires_active_items(self):
        with pytest.raises(ValueError, match="active_items"):
            DataBlueprint(data_loader="pillowfight")
        assert DataBlueprint(data_loader="pillowfight", active_items=10).active_items == 10

    def test_negative_sizes_rejected(self):
        with pytest.raises(ValueError):
            DataBlueprint(items=-1)

    def test_generated_size(self):
        assert DataBlueprint(items=10, size=512).generated_size == 5120


class TestCBMConfig:
    def test_local_archive(self):
        config = CBMConfig(archive="/mnt/archive")
        assert not config.is_cloud_archive
        assert config.local_directory == "/mnt/archive"

    def test_cloud_archive_uses_staging_directory(self):
        config = CBMConfig(archive="s3://bucket/archive", obj_staging_directory="/mnt/staging")
        assert config.is_cloud_archive
        assert config.local_directory == "/mnt/staging"

    def test_cloud_archive_requires_staging_directory(self):
        with pytest.raises(ValueError, match="obj_staging_directory"):
            CBMConfig(archive="s3://bucket/archive")

    def test_encryption_requires_passphrase(self):
        with pytest.raises(ValueError, match="passphrase"):
            CBMConfig(archive="/mnt/archive", encrypted=True)
