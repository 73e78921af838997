"""Coordination of the cluster nodes into one Couchbase cluster."""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import requests
from rich.console import Console

from ..common.command import Command
from ..common.enums import DataLoader
from ..common.multinode import Topology, split_items
from ..config import ClusterBlueprint, DataBlueprint
from ..errors import RemoteCommandError, StepError
from ..models import ClusterStats
from ..remote.executor import RemoteExecutor
from ..remote.host import CB_KV_PORT, CB_PASSWORD, CB_REST_PORT, CB_USERNAME
from ..run.poll import POLL_INTERVAL_SECONDS, wait_until
from ..run.pool import for_each
from ..util import ensure_directory
from .node import Node

console = Console()

BUCKET_NAME = "default"

# Flushing/reading a bucket straight after creating or flushing it can fail
BUCKET_SETTLE_SECONDS = 30.0

# Give the compaction task time to be registered before polling for it
COMPACTION_START_SECONDS = 30.0

COMPACTION_TIMEOUT_SECONDS = 24 * 60 * 60.0
LOG_COLLECTION_TIMEOUT_SECONDS = 5 * 60.0

# Eviction pager settings during and after the data load
LOAD_EVICTION_PERCENTAGE = 0
BENCHMARK_EVICTION_PERCENTAGE = 30

REST_TIMEOUT_SECONDS = 30

# Prefix for commands which need a memory quota: 80% of the node's free memory, in MiB
MEM_INFO = """
    FREE=$(free | awk '{ print $2 }' | sed '1d;3d' | awk '{ print int($0 / 1024) }');
    QUOTA=$(echo $FREE | awk '{ print int($0 * 0.8) }');
"""


class Cluster:
    """A connection to every node of a (possibly not yet provisioned) cluster.

    Cluster-wide administrative calls go through the leader (the first
    configured node); symmetric per-node work is fanned out over a bounded
    worker pool, and each phase drains fully before the next one starts.
    """

    def __init__(
        self,
        blueprint: ClusterBlueprint,
        nodes: list[Node],
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ):
        self.blueprint = blueprint
        self.topology: Topology[Node] = Topology.from_members(nodes)
        self._sleep = sleep
        self._clock = clock
        self._poll_interval = poll_interval

    @classmethod
    def connect(
        cls,
        executor: RemoteExecutor,
        blueprint: ClusterBlueprint,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ) -> Cluster:
        """Connect to every node concurrently; any connection error is fatal."""
        nodes: list[Node | None] = [None] * len(blueprint.nodes)

        def connect(idx: int) -> None:
            nodes[idx] = Node.connect(executor, blueprint.nodes[idx], sleep=sleep)

        for_each(
            range(len(blueprint.nodes)),
            connect,
            name="connect",
            task_name=lambda idx: blueprint.nodes[idx].host,
        )

        return cls(
            blueprint,
            [n for n in nodes if n is not None],
            sleep=sleep,
            clock=clock,
            poll_interval=poll_interval,
        )

    @property
    def leader(self) -> Node:
        return self.topology.leader

    @property
    def nodes(self) -> tuple[Node, ...]:
        return self.topology.members

    @property
    def hosts(self) -> list[str]:
        return [node.host for node in self.nodes]

    def connection_string(self, tls: bool = False) -> str:
        """Connection string for the cluster, addressing the leader only."""
        scheme = "couchbases" if tls else "couchbase"
        return f"{scheme}://{self.leader.host}"

    def for_each_node(self, fn: Callable[[Node], Any], phase: str) -> None:
        """Run ``fn`` on every node concurrently; the first error is raised."""
        for_each(self.nodes, fn, name=phase, task_name=lambda node: node.host)

    # Provisioning ------------------------------------------------------

    def provision(self) -> None:
        """Install Couchbase Server on every node and form the cluster."""
        console.print(f"[blue]Provisioning cluster:[/blue] {', '.join(self.hosts)}")

        if not self.blueprint.package_path:
            raise StepError("failed to provision nodes: no package_path configured")

        try:
            self.for_each_node(self._provision_node, "provision")
        except Exception as e:
            raise StepError("failed to provision nodes") from e

        try:
            self.initialize()
        except Exception as e:
            raise StepError("failed to initialize Couchbase Server") from e

        try:
            self.enable_developer_preview()
        except Exception as e:
            raise StepError("failed to enable developer preview mode") from e

        # Limiting vBuckets helps when a small dataset simulates a larger one
        try:
            self.limit_vbuckets()
        except Exception as e:
            raise StepError("failed to limit vBuckets") from e

        try:
            self.create_bucket()
        except Exception as e:
            raise StepError("failed to create bucket") from e

        self._sleep(BUCKET_SETTLE_SECONDS)
        console.print("[green]✓ Cluster provisioned[/green]")

    def _provision_node(self, node: Node) -> None:
        console.print(f"[blue]Provisioning node[/blue] {node.host}")
        assert self.blueprint.package_path is not None
        node.provision(self.blueprint.package_path)
        node.initialize_storage_engine()

    def initialize(self) -> None:
        """Initialize the cluster on the leader, add the followers, rebalance."""
        try:
            self.cluster_init()
        except Exception as e:
            raise StepError("failed to initialize cluster") from e

        try:
            self.for_each_node(self.server_add, "server-add")
        except Exception as e:
            raise StepError("failed to add cluster nodes") from e

        try:
            self.rebalance()
        except Exception as e:
            raise StepError("failed to rebalance nodes into cluster") from e

    def cluster_init(self) -> None:
        console.print(f"[blue]Initializing cluster on[/blue] {self.leader.host}")
        self.leader.remote.execute(
            Command(
                f"""{MEM_INFO} couchbase-cli cluster-init -c localhost:{CB_REST_PORT}
                --cluster-username {CB_USERNAME} --cluster-password {CB_PASSWORD}
                --cluster-ramsize $QUOTA"""
            )
        )

    def server_add(self, node: Node) -> None:
        """Add ``node`` to the cluster; the leader is already a member."""
        if self.topology.is_leader(node):
            return

        console.print(f"[blue]Adding node to cluster:[/blue] {node.host}")
        self.leader.remote.execute(
            Command(
                f"""couchbase-cli server-add -c localhost:{CB_REST_PORT}
                -u {CB_USERNAME} -p {CB_PASSWORD} --server-add {node.host}
                --server-add-username {CB_USERNAME} --server-add-password {CB_PASSWORD}
                --services data"""
            )
        )

    def rebalance(self) -> None:
        console.print("[blue]Rebalancing cluster[/blue]")
        self.leader.remote.execute(
            Command(
                f"couchbase-cli rebalance -c localhost:{CB_REST_PORT}"
                f" -u {CB_USERNAME} -p {CB_PASSWORD}"
            )
        )

    def enable_developer_preview(self) -> None:
        if not self.blueprint.developer_preview:
            return

        console.print("[blue]Enabling developer preview mode[/blue]")
        # The CLI equivalent prompts for confirmation
        self.leader.remote.execute(
            Command(
                f"""curl -X POST -u {CB_USERNAME}:{CB_PASSWORD}
                localhost:{CB_REST_PORT}/settings/developerPreview -d "enabled=true\""""
            )
        )

    def limit_vbuckets(self) -> None:
        """Set the cluster-wide vBucket count; skipped for the platform default."""
        bucket = self.blueprint.bucket
        if not bucket.limits_vbuckets:
            return

        console.print(f"[blue]Limiting number of vBuckets to[/blue] {bucket.vbuckets}")
        self.leader.remote.execute(
            Command(
                f"""curl -X POST -u {CB_USERNAME}:{CB_PASSWORD}
                localhost:{CB_REST_PORT}/diag/eval -d
                "ns_config:set(couchbase_num_vbuckets_default, {bucket.vbuckets})." """
            )
        )

    def create_bucket(self) -> None:
        """Create the benchmarking bucket with 80% of the leader's free memory."""
        bucket = self.blueprint.bucket
        console.print(
            f"[blue]Creating bucket[/blue] {BUCKET_NAME} "
            f"[dim](type={bucket.type}, eviction_policy={bucket.eviction_policy}, "
            f"pitr_enabled={bucket.pitr_enabled})[/dim]"
        )

        command = (
            f"{MEM_INFO} couchbase-cli bucket-create --bucket {BUCKET_NAME}"
            f" --bucket-type {bucket.type} -c localhost:{CB_REST_PORT}"
            f" -u {CB_USERNAME} -p {CB_PASSWORD} --bucket-ramsize $QUOTA"
            f" --bucket-eviction-policy {bucket.eviction_policy}"
            " --bucket-replica 0 --enable-flush 1 --wait"
        )

        self.leader.remote.execute(Command(self._add_pitr_args(command)))

    def _add_pitr_args(self, command: str) -> str:
        bucket = self.blueprint.bucket
        if bucket.pitr_enabled:
            command += " --enable-point-in-time 1"
        if bucket.pitr_granularity:
            command += f" --point-in-time-granularity {bucket.pitr_granularity}"
        if bucket.pitr_max_history_age:
            command += f" --point-in-time-max-history-age {bucket.pitr_max_history_age}"
        return command

    # Dataset -----------------------------------------------------------

    def load_dataset(self, compact: bool) -> None:
        """Flush the bucket and load the configured dataset from every node.

        Eviction is made as lazy as possible during the load to speed it up,
        then restored so it does not skew the benchmarks.
        """
        console.print(f"[blue]Loading test data[/blue] [dim](compact={compact})[/dim]")

        try:
            self.flush_bucket()
        except Exception as e:
            raise StepError("failed to flush bucket") from e

        try:
            self.set_eviction_percentage(LOAD_EVICTION_PERCENTAGE)
        except Exception as e:
            raise StepError("failed to set eviction percentages to zero") from e

        try:
            self.load_data()
        except Exception as e:
            raise StepError("failed to load data") from e

        try:
            self.set_eviction_percentage(BENCHMARK_EVICTION_PERCENTAGE)
        except Exception as e:
            raise StepError("failed to reset eviction percentages") from e

        if not compact:
            return

        try:
            self.compact_bucket()
        except Exception as e:
            raise StepError("failed to compact bucket") from e

    def flush_bucket(self) -> None:
        console.print(f"[blue]Flushing bucket[/blue] {BUCKET_NAME}")
        self.leader.remote.execute(
            Command(
                f"couchbase-cli bucket-flush -c localhost:{CB_REST_PORT}"
                f" -u {CB_USERNAME} -p {CB_PASSWORD} --bucket {BUCKET_NAME} --force"
            )
        )
        self._sleep(BUCKET_SETTLE_SECONDS)

    def set_eviction_percentage(self, percentage: int) -> None:
        """Set the eviction pager age percentage on every node."""
        console.print(f"[blue]Modifying eviction percentages to[/blue] {percentage}%")

        def modify(node: Node) -> None:
            node.remote.execute(
                Command(
                    f"cbepctl localhost:{CB_KV_PORT} -b {BUCKET_NAME}"
                    f" -u {CB_USERNAME} -p {CB_PASSWORD}"
                    f" set flush_param item_eviction_age_percentage {percentage}"
                )
            )

        self.for_each_node(modify, "eviction")

    def load_data(self) -> None:
        """Run the configured data loader on every node with its share of items."""
        data = self.blueprint.bucket.data
        shares = split_items(data.items, len(self.nodes))

        if data.data_loader is DataLoader.CBBACKUPMGR:
            commands = [generate_command(data, items) for items in shares]
        elif data.data_loader is DataLoader.PILLOWFIGHT:
            granularity = self.blueprint.bucket.pitr_granularity
            commands = [pillowfight_command(data, items, granularity) for items in shares]
        else:
            raise ValueError(f"unknown/unsupported data loader '{data.data_loader}'")

        work = dict(zip(self.nodes, zip(shares, commands)))

        def load(node: Node) -> None:
            items, command = work[node]
            console.print(
                f"[blue]Running '{data.data_loader}' on[/blue] {node.host} "
                f"[dim](items={items}, size={data.size})[/dim]"
            )
            node.remote.execute(command)

        self.for_each_node(load, "load")

    def compact_bucket(self) -> None:
        """Compact the bucket and wait (up to a day) for compaction to finish."""
        console.print(f"[blue]Compacting bucket[/blue] {BUCKET_NAME}")
        self.leader.remote.execute(
            Command(
                f"couchbase-cli bucket-compact -c localhost:{CB_REST_PORT}"
                f" -u {CB_USERNAME} -p {CB_PASSWORD} --bucket {BUCKET_NAME}"
            )
        )

        self._sleep(COMPACTION_START_SECONDS)

        wait_until(
            self.compaction_complete,
            COMPACTION_TIMEOUT_SECONDS,
            "bucket compaction to complete",
            interval=self._poll_interval,
            clock=self._clock,
            sleep=self._sleep,
        )

    def compaction_complete(self) -> bool:
        """Whether compaction has finished, judged from the cluster task list.

        Only a lone 'rebalance' task counts as complete; this mirrors what the
        task list looks like on an otherwise idle cluster.
        """
        tasks = self._rest_get("/pools/default/tasks")

        for task in tasks:
            if task.get("type") == "bucket_compaction" and task.get("status") == "running":
                return False

        return len(tasks) == 1 and tasks[0].get("type") == "rebalance"

    # Benchmark support -------------------------------------------------

    def run_pre_benchmark_tasks(self) -> None:
        """Flush the page cache on every node to avoid skewed results."""
        try:
            self.for_each_node(lambda node: node.flush_caches(), "flush-caches")
        except Exception as e:
            raise StepError("failed to flush caches") from e

    def stats(self) -> ClusterStats:
        """Basic bucket stats as reported by the cluster manager."""
        console.print(f"[blue]Getting bucket stats from[/blue] {self.leader.host}")
        try:
            bucket = self._rest_get(f"/pools/default/buckets/{BUCKET_NAME}")
            return ClusterStats.from_basic_stats(bucket["basicStats"])
        except (requests.RequestException, KeyError, ValueError) as e:
            raise StepError("failed to get bucket stats") from e

    def _rest_get(self, path: str) -> Any:
        response = requests.get(
            f"http://{self.leader.host}:{CB_REST_PORT}{path}",
            auth=(CB_USERNAME, CB_PASSWORD),
            timeout=REST_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        return response.json()

    # Logs --------------------------------------------------------------

    def collect_logs(self, dest_dir: Path | str) -> list[Path]:
        """Collect logs from every node and download them into ``dest_dir``."""
        dest = ensure_directory(dest_dir)
        console.print(f"[blue]Collecting cluster logs into[/blue] {dest}")

        try:
            self.start_log_collection()
        except Exception as e:
            raise StepError("failed to start collection") from e

        wait_until(
            self.log_collection_complete,
            LOG_COLLECTION_TIMEOUT_SECONDS,
            "log collection to complete",
            interval=self._poll_interval,
            clock=self._clock,
            sleep=self._sleep,
        )

        try:
            paths = self.log_collection_paths()
        except Exception as e:
            raise StepError("failed to determine the paths to logs") from e

        for source in paths:
            try:
                self._download_from_nodes(source, dest)
            except Exception as e:
                raise StepError(f"failed to download logs at '{source}'") from e

        return [dest / Path(source).name for source in paths]

    def start_log_collection(self) -> None:
        console.print("[blue]Starting log collection[/blue]")
        self.leader.remote.execute(
            Command(
                f"couchbase-cli collect-logs-start -c {self.leader.host}"
                f" -u {CB_USERNAME} -p {CB_PASSWORD} --all-nodes"
            )
        )

    def log_collection_complete(self) -> bool:
        try:
            self.leader.remote.execute(
                Command(
                    f"""couchbase-cli collect-logs-status -c {self.leader.host}
                    -u {CB_USERNAME} -p {CB_PASSWORD} | grep -q '^Status: completed'"""
                )
            )
        except RemoteCommandError:
            return False
        return True

    def log_collection_paths(self) -> list[str]:
        output = self.leader.remote.execute(
            Command(
                f"""couchbase-cli collect-logs-status -c {self.leader.host}
                -u {CB_USERNAME} -p {CB_PASSWORD} | grep 'path :' |
                awk '{{ print $3 }}' | paste -sd ','"""
            )
        )
        return [path for path in output.strip().split(",") if path]

    def _download_from_nodes(self, source: str, dest: Path) -> None:
        sink = dest / Path(source).name

        def download(node: Node) -> None:
            if not node.remote.file_exists(source):
                return
            console.print(f"[dim]Downloading {source} from {node.host}[/dim]")
            node.remote.download(source, sink)

        self.for_each_node(download, "download-logs")

    def close(self) -> None:
        self.for_each_node(lambda node: node.close(), "close")


def generate_command(data: DataBlueprint, items: int) -> Command:
    """'cbbackupmgr generate' invocation loading ``items`` documents."""
    command = (
        f"cbbackupmgr generate --cluster localhost:{CB_REST_PORT}"
        f" -u {CB_USERNAME} --password {CB_PASSWORD} --bucket {BUCKET_NAME}"
        f" --num-documents {items}"
        " --prefix $(cat /dev/urandom | tr -dc 'a-z0-9' | fold -w 5 | head -n 1)::"
        f" --size {data.size} --no-progress-bar"
    )

    if data.load_threads:
        command += f" --threads {data.load_threads}"
    else:
        command += " --threads $(nproc)"

    if not data.compressible:
        command += " --low-compression"

    return Command(command)


def pillowfight_command(data: DataBlueprint, items: int, pitr_granularity: int) -> Command:
    """'cbc-pillowfight' invocation mutating the working set once per second.

    Pillowfight rate limits per second rather than per granularity period, so
    each document is mutated once a second for as many cycles as needed to
    cover ``items / active_items`` granularity periods.
    """
    cycles = (items // data.active_items) * pitr_granularity

    command = (
        f"cbc-pillowfight -U localhost -u {CB_USERNAME} -P {CB_PASSWORD}"
        f" -B {data.active_items} -I {data.active_items} --num-cycles {cycles}"
        f" --rate-limit {data.active_items} -m {data.size} -M {data.size}"
        " -r 100 -R --sequential"
    )

    if data.load_threads:
        command += f" --num-threads {data.load_threads}"

    if not data.compressible:
        command += " --compress"

    return Command(command)
