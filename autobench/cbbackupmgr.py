"""Command lines for 'cbbackupmgr', built from the benchmark configuration."""

from __future__ import annotations

from .common.command import Command, prefix_environment
from .config import CBMConfig
from .remote.host import CB_PASSWORD, CB_USERNAME


class CBMCommands:
    """Translates a ``CBMConfig`` into 'cbbackupmgr' invocations.

    Flags are only added when the corresponding option is set, and the
    configured environment variables are exported before each command.
    """

    def __init__(self, config: CBMConfig):
        self.config = config

    def config_repository(self) -> Command:
        """Create the benchmark archive/repository."""
        command = f"cbbackupmgr config -a {self.config.archive} -r {self.config.repository}"
        command = self._cloud_args(command)
        command = self._encryption_args(command, configuring=True)
        return Command(self._with_environment(command))

    def backup(self, host: str, ignore_blackhole: bool = False) -> Command:
        """Back up the cluster at ``host``.

        Restore benchmarks need a real backup to restore from, which is what
        ``ignore_blackhole`` is for.
        """
        command = (
            f"cbbackupmgr backup -a {self.config.archive} -r {self.config.repository}"
            f" -c {host} -u {CB_USERNAME} -p {CB_PASSWORD} --no-progress-bar"
        )
        command = self._cloud_args(command)
        command = self._encryption_args(command)
        command = self._storage(command)
        command = self._threads(command)
        if not ignore_blackhole:
            command = self._blackhole(command)
        return Command(self._with_environment(command))

    def restore(self, host: str) -> Command:
        command = (
            f"cbbackupmgr restore -a {self.config.archive} -r {self.config.repository}"
            f" -c {host} -u {CB_USERNAME} -p {CB_PASSWORD} --no-progress-bar"
        )
        command = self._cloud_args(command)
        command = self._encryption_args(command)
        command = self._threads(command)
        command = self._blackhole(command)
        return Command(self._with_environment(command))

    def collect_logs(self) -> Command:
        command = self._cloud_args(f"cbbackupmgr collect-logs -a {self.config.archive}")
        return Command(self._with_environment(command))

    def remove(self, start: str, end: str) -> Command:
        """Remove every backup from ``start`` to ``end`` (inclusive)."""
        command = (
            f"cbbackupmgr remove -a {self.config.archive} -r {self.config.repository}"
            f" --backups {start},{end}"
        )
        return Command(self._with_environment(self._cloud_args(command)))

    def info(self) -> Command:
        """Describe the repository as JSON."""
        command = f"cbbackupmgr info -a {self.config.archive} -r {self.config.repository} -j"
        return Command(self._with_environment(self._cloud_args(command)))

    def purge_cloud_archive(self) -> Command:
        """Remove an ``s3://`` archive with the AWS CLI."""
        exports = {}
        if self.config.obj_access_key_id:
            exports["AWS_ACCESS_KEY_ID"] = self.config.obj_access_key_id
        if self.config.obj_secret_access_key:
            exports["AWS_SECRET_ACCESS_KEY"] = self.config.obj_secret_access_key
        if self.config.obj_region:
            exports["AWS_REGION"] = self.config.obj_region

        command = f"aws s3 rm {self.config.archive} --recursive"
        if self.config.obj_endpoint:
            command += f" --endpoint={self.config.obj_endpoint}"

        return Command(prefix_environment(command, exports))

    def _with_environment(self, command: str) -> str:
        if not self.config.environment_variables:
            return command
        return prefix_environment(command, self.config.environment_variables)

    def _storage(self, command: str) -> str:
        if not self.config.storage:
            return command
        return command + f" --storage {self.config.storage}"

    def _threads(self, command: str) -> str:
        if self.config.threads:
            return command + f" --threads {self.config.threads}"
        return command + " --auto-select-threads"

    def _blackhole(self, command: str) -> str:
        if not self.config.blackhole:
            return command
        return command + " --sink blackhole"

    def _cloud_args(self, command: str) -> str:
        c = self.config
        if c.obj_staging_directory:
            command += f" --obj-staging-dir {c.obj_staging_directory}"
        if c.obj_access_key_id:
            command += f" --obj-access-key-id {c.obj_access_key_id}"
        if c.obj_secret_access_key:
            command += f" --obj-secret-access-key {c.obj_secret_access_key}"
        if c.obj_region:
            command += f" --obj-region {c.obj_region}"
        if c.obj_endpoint:
            command += f" --obj-endpoint {c.obj_endpoint}"
        if c.obj_auth_by_instance_metadata:
            command += " --obj-auth-by-instance-metadata"
        if c.obj_no_ssl_verify:
            command += " --obj-no-ssl-verify"
        if c.s3_log_level:
            command += f" --s3-log-level {c.s3_log_level}"
        if c.s3_force_path_style:
            command += " --s3-force-path-style"
        return command

    def _encryption_args(self, command: str, configuring: bool = False) -> str:
        if not self.config.encrypted:
            return command

        command += f" --passphrase {self.config.passphrase}"
        if not configuring:
            return command

        command += " --encrypted"
        if self.config.encryption_algo:
            command += f" --encryption-algo {self.config.encryption_algo}"
        return command
