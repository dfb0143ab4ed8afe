"""clusterbar - live Slurm cluster state polled over SSH."""

__version__ = "0.1.0"

from clusterbar.config import ClusterConfig, get_settings, load_config
from clusterbar.hostlist import expand_hostlist
from clusterbar.models import (
    CommandResult,
    Job,
    JobStatus,
    LogKind,
    Node,
    NodeStatus,
    Snapshot,
)
from clusterbar.monitor import ClusterMonitor, RefreshPoller
from clusterbar.slurm_commands import LogNotFoundError, SlurmCommands
from clusterbar.ssh_client import SSHClient, TransportError

__all__ = [
    # Config
    "ClusterConfig",
    "get_settings",
    "load_config",
    # Models
    "CommandResult",
    "Job",
    "JobStatus",
    "LogKind",
    "Node",
    "NodeStatus",
    "Snapshot",
    # Engine
    "expand_hostlist",
    "ClusterMonitor",
    "RefreshPoller",
    "SlurmCommands",
    "SSHClient",
    # Errors
    "LogNotFoundError",
    "TransportError",
]
