"""Slurm commands executed through a RemoteExecutor."""

import logging
import re
import shlex
from typing import Optional

from clusterbar.config import ClusterConfig
from clusterbar.models import Job, LogKind, Node
from clusterbar.parsers import parse_jobs, parse_nodes
from clusterbar.ssh_client import RemoteExecutor

logger = logging.getLogger(__name__)

NODE_LIST_COMMAND = "sinfo -h -o '%N %T %P'"
QUEUE_COMMAND = "squeue -h -o '%i|%u|%j|%t|%M|%P|%N'"
ACCOUNTING_FORMAT = "JobID,User,JobName,State,Elapsed"


class LogNotFoundError(Exception):
    """Raised when a job's output file path cannot be determined."""

    def __init__(self, job_id: str, kind: LogKind):
        super().__init__(f"No {kind.field_name} path found for job {job_id}")
        self.job_id = job_id
        self.kind = kind


def build_job_list_command(history_window: str = "now-7days", history_limit: int = 100) -> str:
    """Build the combined live-queue + accounting command.

    squeue output comes first so that live state wins when both report the
    same job.
    """
    accounting = (
        f"sacct -X -n -P -S {history_window} -o {ACCOUNTING_FORMAT}"
        f" | tail -n {history_limit}"
    )
    return f"{QUEUE_COMMAND} && {accounting}"


def _parse_key_values(output: str) -> dict[str, str]:
    """Parse ``Key=value`` tokens from scontrol output."""
    info = {}
    for line in output.split('\n'):
        for part in line.split():
            if '=' in part:
                key, value = part.split('=', 1)
                info[key] = value
    return info


class SlurmCommands:
    """Wrapper for the Slurm commands the monitor needs."""

    def __init__(self, executor: RemoteExecutor, settings: Optional[ClusterConfig] = None):
        """Initialize Slurm commands wrapper.

        Args:
            executor: Remote executor (normally an SSHClient).
            settings: Configuration; controls the accounting window and row limit.
        """
        self.executor = executor
        self.settings = settings

    @property
    def job_list_command(self) -> str:
        if self.settings is None:
            return build_job_list_command()
        return build_job_list_command(self.settings.history_window, self.settings.history_limit)

    # =========================================================================
    # Cluster State
    # =========================================================================

    async def fetch_node_listing(self) -> str:
        """Return raw sinfo output."""
        return await self.executor.run(NODE_LIST_COMMAND)

    async def fetch_job_listing(self) -> str:
        """Return raw squeue output followed by raw sacct output."""
        return await self.executor.run(self.job_list_command)

    async def get_nodes(self) -> list[Node]:
        """Fetch and parse the node listing."""
        return parse_nodes(await self.fetch_node_listing())

    async def get_jobs(self) -> list[Job]:
        """Fetch and parse the merged job listing."""
        return parse_jobs(await self.fetch_job_listing())

    # =========================================================================
    # Job Management
    # =========================================================================

    async def cancel_job(self, job_id: str) -> None:
        """Cancel a job.

        Raises:
            TransportError: If scancel fails.
        """
        await self.executor.run(f"scancel {shlex.quote(str(job_id))}")
        logger.info(f"Cancelled job {job_id}")

    async def get_job_details(self, job_id: str) -> Optional[dict[str, str]]:
        """Get ``scontrol show job`` fields for a job.

        Returns:
            Mapping of field name to value, or None if scontrol reported no job.

        Raises:
            TransportError: If scontrol fails (including unknown job IDs).
        """
        output = await self.executor.run(f"scontrol show job {shlex.quote(str(job_id))}")
        info = _parse_key_values(output)
        if not info.get('JobId'):
            return None
        return info

    async def fetch_log(self, job_id: str, kind: LogKind = LogKind.STDOUT) -> str:
        """Read a job's stdout or stderr file.

        Raises:
            LogNotFoundError: If scontrol output has no path for ``kind``.
            TransportError: If either remote command fails.
        """
        output = await self.executor.run(f"scontrol show job {shlex.quote(str(job_id))}")

        match = re.search(rf"\b{kind.field_name}=(\S+)", output)
        if not match:
            raise LogNotFoundError(str(job_id), kind)

        path = match.group(1)
        logger.debug(f"Reading {kind.value} of job {job_id} from {path}")
        return await self.executor.run(f"cat {shlex.quote(path)}")
