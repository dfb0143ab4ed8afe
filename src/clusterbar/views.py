"""Derived views over a Snapshot.

Everything here works from Snapshot fields only; nothing is re-parsed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from clusterbar.models import Job, JobStatus, Node, NodeStatus, Snapshot

DEFAULT_RECENT_LIMIT = 5


class ClusterLoad(str, Enum):
    """Coarse cluster occupancy."""
    IDLE = "idle"
    PARTIAL = "partial"
    SATURATED = "saturated"


@dataclass
class PartitionSummary:
    """Node counts for one partition."""

    name: str
    idle: int = 0
    busy: int = 0
    total: int = 0


@dataclass
class JobViews:
    """Jobs split into the groups shown to the user."""

    running: list[Job] = field(default_factory=list)
    pending: list[Job] = field(default_factory=list)
    recent: list[Job] = field(default_factory=list)


@dataclass
class ClusterSummary:
    """Headline numbers for a snapshot."""

    idle_nodes: int
    total_nodes: int
    queued_jobs: int
    my_queued_jobs: int
    my_running_jobs: int
    load: ClusterLoad

    @property
    def has_own_jobs(self) -> bool:
        return self.my_queued_jobs > 0 or self.my_running_jobs > 0


def summarize_partitions(nodes: list[Node]) -> list[PartitionSummary]:
    """Group nodes by partition, in order of first appearance."""
    partitions: dict[str, PartitionSummary] = {}
    for node in nodes:
        summary = partitions.setdefault(node.partition, PartitionSummary(name=node.partition))
        summary.total += 1
        if node.status == NodeStatus.IDLE:
            summary.idle += 1
        elif node.status == NodeStatus.ALLOCATED:
            summary.busy += 1
    return list(partitions.values())


def filter_by_user(jobs: list[Job], user: Optional[str]) -> list[Job]:
    """Return jobs belonging to ``user``, or all jobs if user is None."""
    if user is None:
        return list(jobs)
    return [j for j in jobs if j.user == user]


def _is_finished(job: Job) -> bool:
    return job.status not in (JobStatus.RUNNING, JobStatus.PENDING)


def build_job_views(
    jobs: list[Job],
    user: Optional[str] = None,
    recent_limit: int = DEFAULT_RECENT_LIMIT,
) -> JobViews:
    """Split jobs into running, pending and recent groups.

    Running and pending keep the snapshot order (newest ID first). Recent
    holds finished jobs, longest-running first, capped at ``recent_limit``.
    """
    selected = filter_by_user(jobs, user)

    recent = [j for j in selected if _is_finished(j)]
    recent.sort(key=lambda j: j.age, reverse=True)

    return JobViews(
        running=[j for j in selected if j.status == JobStatus.RUNNING],
        pending=[j for j in selected if j.status == JobStatus.PENDING],
        recent=recent[:recent_limit],
    )


def summarize_cluster(snapshot: Snapshot, user: Optional[str] = None) -> ClusterSummary:
    """Compute headline counts and the load level for a snapshot."""
    user = user if user is not None else snapshot.user

    idle_nodes = sum(1 for n in snapshot.nodes if n.status == NodeStatus.IDLE)
    total_nodes = len(snapshot.nodes)
    queued = [j for j in snapshot.jobs if j.status == JobStatus.PENDING]
    running = [j for j in snapshot.jobs if j.status == JobStatus.RUNNING]

    if idle_nodes == total_nodes:
        load = ClusterLoad.IDLE
    elif queued or idle_nodes == 0:
        load = ClusterLoad.SATURATED
    else:
        load = ClusterLoad.PARTIAL

    return ClusterSummary(
        idle_nodes=idle_nodes,
        total_nodes=total_nodes,
        queued_jobs=len(queued),
        my_queued_jobs=sum(1 for j in queued if j.user == user),
        my_running_jobs=sum(1 for j in running if j.user == user),
        load=load,
    )
