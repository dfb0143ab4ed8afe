"""MCP server exposing live Slurm cluster state."""

import logging
from typing import Annotated, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from clusterbar.config import ClusterConfig, get_settings
from clusterbar.models import Job, LogKind, Snapshot
from clusterbar.monitor import ClusterMonitor, RefreshPoller
from clusterbar.slurm_commands import LogNotFoundError, SlurmCommands
from clusterbar.ssh_client import SSHClient, TransportError
from clusterbar.views import build_job_views, summarize_cluster, summarize_partitions

logger = logging.getLogger(__name__)

# Create MCP server
mcp = FastMCP(
    "clusterbar",
    instructions="Live view of a Slurm cluster's nodes and jobs, polled over SSH",
)

# Global instances (initialized on first use)
_settings: Optional[ClusterConfig] = None
_ssh: Optional[SSHClient] = None
_monitor: Optional[ClusterMonitor] = None
_poller: Optional[RefreshPoller] = None


async def get_instances() -> tuple[ClusterConfig, ClusterMonitor]:
    """Get or initialize global instances, starting the poller if configured."""
    global _settings, _ssh, _monitor, _poller

    if _settings is None:
        _settings = get_settings()

    if _ssh is None:
        _ssh = SSHClient(_settings)

    if _monitor is None:
        _monitor = ClusterMonitor(SlurmCommands(_ssh, _settings), user=_settings.ssh_user)

    if _poller is None and _settings.refresh_interval > 0:
        _poller = RefreshPoller(_monitor, _settings.refresh_interval)
        _poller.start()

    return _settings, _monitor


async def current_snapshot(monitor: ClusterMonitor) -> Snapshot:
    """Return the published snapshot, refreshing once if there is none yet."""
    if monitor.snapshot is None:
        return await monitor.refresh()
    return monitor.snapshot


# =============================================================================
# Formatting
# =============================================================================

def format_job(job: Job, show_user: bool = False) -> str:
    line = f"{job.id}: {job.name} ({job.age_string})"
    if show_user:
        line += f" (User: {job.user})"
    return line


def format_cluster_status(snapshot: Snapshot, last_error: Optional[BaseException] = None) -> str:
    """Render partition counts and headline numbers."""
    summary = summarize_cluster(snapshot)
    lines = [f"Cluster Status (as of {snapshot.taken_at:%Y-%m-%d %H:%M:%S}):", ""]

    if last_error is not None:
        lines.append(f"  Warning: last refresh failed, showing previous state ({last_error})")
        lines.append("")

    partitions = summarize_partitions(snapshot.nodes)
    if not partitions:
        lines.append("  No nodes reported.")
    for p in partitions:
        lines.append(f"  Partition {p.name}: {p.idle} available, {p.busy} busy, {p.total} total")

    lines.append("")
    lines.append(f"Nodes idle: {summary.idle_nodes}/{summary.total_nodes}")
    lines.append(f"Jobs queued: {summary.queued_jobs}")
    lines.append(f"Load: {summary.load.value}")
    if summary.has_own_jobs:
        lines.append(f"Your jobs: {summary.my_queued_jobs} queued, {summary.my_running_jobs} running")
    else:
        lines.append("Your jobs: awaiting jobs")

    return "\n".join(lines)


def format_job_views(jobs: list[Job], user: Optional[str], recent_limit: int) -> str:
    """Render running, queued and recent job groups."""
    views = build_job_views(jobs, user=user, recent_limit=recent_limit)
    show_user = user is None
    lines = []

    if views.running:
        lines.append("Running:")
        lines.extend(f"  {format_job(j, show_user)}" for j in views.running)
    else:
        lines.append("No running jobs")

    if views.pending:
        lines.append("Queued:")
        lines.extend(f"  {format_job(j, show_user)}" for j in views.pending)

    if views.recent:
        lines.append("Recent:")
        lines.extend(f"  [{j.status.value}] {format_job(j, show_user)}" for j in views.recent)
    else:
        lines.append("No recent jobs")

    return "\n".join(lines)


# =============================================================================
# Tools
# =============================================================================

@mcp.tool()
async def get_cluster_status() -> str:
    """Get node availability per partition and overall cluster load."""
    try:
        _, monitor = await get_instances()
        snapshot = await current_snapshot(monitor)
        return format_cluster_status(snapshot, monitor.last_error)
    except TransportError as e:
        raise ToolError(f"Failed to get cluster status: {e}")


@mcp.tool()
async def list_jobs(
    user: Annotated[Optional[str], Field(description="Only show jobs of this user")] = None,
    all_users: Annotated[bool, Field(description="Show jobs of every user")] = False,
) -> str:
    """List running, queued and recently finished jobs (your own by default)."""
    try:
        settings, monitor = await get_instances()
        snapshot = await current_snapshot(monitor)
        if not all_users and user is None:
            user = settings.ssh_user
        return format_job_views(snapshot.jobs, None if all_users else user, settings.recent_limit)
    except TransportError as e:
        raise ToolError(f"Failed to list jobs: {e}")


@mcp.tool()
async def refresh_cluster_state() -> str:
    """Poll the cluster now and report the result."""
    try:
        _, monitor = await get_instances()
        snapshot = await monitor.refresh()
        return f"Refreshed: {len(snapshot.nodes)} nodes, {len(snapshot.jobs)} jobs."
    except TransportError as e:
        raise ToolError(f"Refresh failed, previous state kept: {e}")


@mcp.tool()
async def cancel_job(
    job_id: Annotated[str, Field(description="Job ID to cancel")],
) -> str:
    """Cancel a Slurm job."""
    try:
        _, monitor = await get_instances()
        await monitor.cancel_job(job_id)
        return f"Job {job_id} cancelled."
    except TransportError as e:
        raise ToolError(f"Failed to cancel job {job_id}: {e}")


@mcp.tool()
async def get_job_log(
    job_id: Annotated[str, Field(description="Job ID")],
    kind: Annotated[LogKind, Field(description="Which log to read: stdout or stderr")] = LogKind.STDOUT,
) -> str:
    """Read the stdout or stderr file of a job."""
    try:
        _, monitor = await get_instances()
        content = await monitor.fetch_log(job_id, kind)
        return content if content else f"{kind.value} of job {job_id} is empty."
    except LogNotFoundError as e:
        raise ToolError(str(e))
    except TransportError as e:
        raise ToolError(f"Failed to read {kind.value} of job {job_id}: {e}")


# =============================================================================
# Main Entry Point
# =============================================================================

def main():
    """Main entry point for the MCP server."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    mcp.run()


if __name__ == "__main__":
    main()
