"""Configuration management for autobench."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, field_validator, model_validator

from .common.enums import DataLoader

# vBucket count used by Couchbase Server when none is configured
DEFAULT_VBUCKETS = 1024


class SSHConfig(BaseModel):
    """Credentials used to reach every remote host."""

    username: str = "root"
    private_key: str
    port: int = 22
    connect_timeout: int = 10

    @field_validator("private_key")
    @classmethod
    def validate_private_key(cls, v: str) -> str:
        """Ensure the private key path points at a readable file."""
        path = Path(v).expanduser()
        if not path.is_file():
            raise ValueError(f"SSH private key not found: {path}")
        return str(path)

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError(f"port must be between 1 and 65535 (got {v})")
        return v


class NodeBlueprint(BaseModel):
    """A single cluster node."""

    host: str
    data_path: str | None = None


class DataBlueprint(BaseModel):
    """Options used when populating the bucket with benchmarking data."""

    items: int = 0
    size: int = 0
    compressible: bool = False
    load_threads: int = 0
    data_loader: DataLoader = DataLoader.CBBACKUPMGR
    active_items: int = 0

    @field_validator("items", "size", "load_threads", "active_items")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"value must be non-negative (got {v})")
        return v

    @model_validator(mode="after")
    def validate_pillowfight(self) -> "DataBlueprint":
        """Pillowfight mutates a fixed working set, so it needs one."""
        if self.data_loader is DataLoader.PILLOWFIGHT and self.active_items < 1:
            raise ValueError("data_loader 'pillowfight' requires active_items > 0")
        return self

    @property
    def generated_size(self) -> int:
        """Logical dataset size in bytes (items x item size)."""
        return self.items * self.size


class BucketBlueprint(BaseModel):
    """The bucket created once the cluster is provisioned."""

    vbuckets: int = 0
    type: str = "couchbase"
    eviction_policy: str = "valueOnly"
    compact: bool = False
    pitr_enabled: bool = False
    pitr_granularity: int = 0
    pitr_max_history_age: int = 0
    data: DataBlueprint = DataBlueprint()

    @field_validator("vbuckets")
    @classmethod
    def validate_vbuckets(cls, v: int) -> int:
        if not 0 <= v <= DEFAULT_VBUCKETS:
            raise ValueError(f"vbuckets must be between 0 and {DEFAULT_VBUCKETS} (got {v})")
        return v

    @property
    def limits_vbuckets(self) -> bool:
        """True when a non-default vBucket count was requested."""
        return self.vbuckets not in (0, DEFAULT_VBUCKETS)


class ClusterBlueprint(BaseModel):
    """The Couchbase cluster provisioned by the 'provision' sub-command."""

    package_path: str | None = None
    nodes: list[NodeBlueprint]
    bucket: BucketBlueprint = BucketBlueprint()
    developer_preview: bool = False

    @field_validator("nodes")
    @classmethod
    def validate_nodes(cls, v: list[NodeBlueprint]) -> list[NodeBlueprint]:
        """Ensure at least one node is configured and hosts are unique."""
        if len(v) < 1:
            raise ValueError("At least one cluster node must be configured")
        hosts = [n.host for n in v]
        if len(hosts) != len(set(hosts)):
            duplicates = {h for h in hosts if hosts.count(h) > 1}
            raise ValueError(f"Duplicate cluster hosts: {', '.join(sorted(duplicates))}")
        return v


class BackupClientBlueprint(BaseModel):
    """The driver host which runs 'cbbackupmgr'."""

    host: str
    package_path: str | None = None


class Blueprint(BaseModel):
    cluster: ClusterBlueprint
    backup_client: BackupClientBlueprint

    @model_validator(mode="after")
    def validate_distinct_hosts(self) -> "Blueprint":
        """The backup client must not double as a cluster node."""
        cluster_hosts = {n.host for n in self.cluster.nodes}
        if self.backup_client.host in cluster_hosts:
            raise ValueError(
                f"Backup client host '{self.backup_client.host}' is also a cluster node"
            )
        return self


class CBMConfig(BaseModel):
    """Configuration passed to 'cbbackupmgr' on the backup client."""

    environment_variables: dict[str, str] = {}

    archive: str
    repository: str = "repo"

    # Hidden/unsupported 'cbbackupmgr' storage type
    storage: str | None = None

    obj_staging_directory: str | None = None
    obj_access_key_id: str | None = None
    obj_secret_access_key: str | None = None
    obj_region: str | None = None
    obj_endpoint: str | None = None
    obj_auth_by_instance_metadata: bool = False
    obj_no_ssl_verify: bool = False
    s3_log_level: str | None = None
    s3_force_path_style: bool = False

    encrypted: bool = False
    passphrase: str | None = None
    encryption_algo: str | None = None

    # Zero lets 'cbbackupmgr' pick the number of threads
    threads: int = 0

    # Pull data from the cluster and discard it rather than writing it
    blackhole: bool = False

    tls: bool = False

    @property
    def is_cloud_archive(self) -> bool:
        return self.archive.startswith("s3://")

    @property
    def local_directory(self) -> str:
        """Directory on the backup client holding the archive or its staging area."""
        if self.obj_staging_directory:
            return self.obj_staging_directory
        return self.archive

    @model_validator(mode="after")
    def validate_archive(self) -> "CBMConfig":
        if self.is_cloud_archive and not self.obj_staging_directory:
            raise ValueError("s3:// archives require obj_staging_directory")
        if self.encrypted and not self.passphrase:
            raise ValueError("encrypted archives require a passphrase")
        return self


class BenchmarkConfig(BaseModel):
    """How many iterations to run and how to run 'cbbackupmgr'."""

    # Values below one still run a single iteration
    iterations: int = 1
    cbbackupmgr_config: CBMConfig


class AutobenchConfig(BaseModel):
    """Main autobench configuration."""

    ssh: SSHConfig
    blueprint: Blueprint
    benchmark: BenchmarkConfig


def load_config(path: str | Path) -> AutobenchConfig:
    """Load and validate autobench configuration from a YAML file."""
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    if not isinstance(raw_config, dict):
        raise ValueError(f"Invalid configuration: expected a mapping in {config_path}")

    # Expand environment variables in config
    raw_config = _expand_env_vars(raw_config)

    try:
        return AutobenchConfig(**raw_config)
    except Exception as e:
        raise ValueError(f"Invalid configuration: {e}") from e


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration."""
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj
