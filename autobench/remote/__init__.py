"""Remote host access."""

from .executor import RemoteExecutor, RemoteSession, SSHExecutor
from .host import CB_BIN_DIRECTORY, CB_INSTALL_DIRECTORY, RemoteHost

__all__ = [
    "CB_BIN_DIRECTORY",
    "CB_INSTALL_DIRECTORY",
    "RemoteExecutor",
    "RemoteHost",
    "RemoteSession",
    "SSHExecutor",
]
