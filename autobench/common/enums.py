"""Common enums used across autobench."""

from enum import Enum

from .command import Command


class Platform(str, Enum):
    """Remote operating system, which determines the package manager in use.

    Only Linux is supported:
    - UBUNTU_20_04: Ubuntu 20.04 (dpkg/apt)
    - AMAZON_LINUX_2: Amazon Linux 2 (yum)
    """

    UBUNTU_20_04 = "ubuntu20.04"
    AMAZON_LINUX_2 = "amzn2"

    @classmethod
    def detect(cls, distro: str, release: str) -> "Platform":
        """Map the ``ID``/``VERSION_ID`` pair from /etc/os-release to a platform."""
        distro = distro.strip().strip('"')
        release = release.strip().strip('"')

        if distro == "ubuntu":
            if release == "20.04":
                return cls.UBUNTU_20_04
            raise ValueError(f"unsupported ubuntu release '{release}'")

        if distro == "amzn":
            if release == "2":
                return cls.AMAZON_LINUX_2
            raise ValueError(f"unsupported amazon linux release '{release}'")

        raise ValueError(f"unsupported distro '{distro}'")

    @property
    def package_extension(self) -> str:
        """Extension used by this platform's package manager."""
        return "deb" if self is Platform.UBUNTU_20_04 else "rpm"

    @property
    def dependencies(self) -> list[str]:
        """Packages which will be installed if they are missing."""
        if self is Platform.UBUNTU_20_04:
            return ["awscli", "libtinfo5"]
        return ["awscli", "ncurses-compat-libs"]

    def command_install_package_at(self, path: str) -> Command:
        if self is Platform.UBUNTU_20_04:
            return Command("dpkg -i %s", path)
        return Command("yum install -y %s", path)

    def command_install_packages(self, *packages: str) -> Command:
        names = " ".join(packages)
        if self is Platform.UBUNTU_20_04:
            return Command("apt update && apt install -y %s", names)
        return Command("yum update -y && yum install -y %s", names)

    def command_uninstall_packages(self, *packages: str) -> Command:
        # Neither command fails when the package is absent
        names = " ".join(packages)
        if self is Platform.UBUNTU_20_04:
            return Command("dpkg --purge %s", names)
        return Command("yum autoremove -y %s", names)

    def command_disable_service(self, service: str) -> Command:
        return Command("systemctl disable --now %s", service)

    def __str__(self) -> str:
        return self.value


class DataLoader(str, Enum):
    """Tool used to populate the benchmarking bucket."""

    CBBACKUPMGR = "cbbackupmgr"
    PILLOWFIGHT = "pillowfight"

    def __str__(self) -> str:
        return self.value


class BenchmarkKind(str, Enum):
    """Benchmark variants: backup produces an artifact, restore consumes one."""

    BACKUP = "backup"
    RESTORE = "restore"

    def __str__(self) -> str:
        return self.value
