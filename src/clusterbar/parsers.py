"""Parsers for sinfo, squeue and sacct text output.

None of these functions raise on malformed input. Short lines are dropped,
unknown status tokens become ``UNKNOWN``, and bad hostlist ranges are
skipped.
"""

import logging
from typing import Optional

from clusterbar.hostlist import expand_node_field
from clusterbar.models import Job, JobStatus, Node, NodeStatus

logger = logging.getLogger(__name__)

STALE_MARKER = "*"

_NODE_STATUS_MAP = {
    "idle": NodeStatus.IDLE,
    "allocated": NodeStatus.ALLOCATED,
    "mixed": NodeStatus.ALLOCATED,
    "drained": NodeStatus.DRAINED,
    "down": NodeStatus.DOWN,
}

# squeue prints short codes, sacct prints long names
_JOB_STATUS_MAP = {
    "R": JobStatus.RUNNING,
    "PD": JobStatus.PENDING,
    "S": JobStatus.SUSPENDED,
    "C": JobStatus.COMPLETED,
    "CD": JobStatus.COMPLETED,
    "CA": JobStatus.CANCELLED,
    "F": JobStatus.FAILED,
    "TO": JobStatus.TIMEOUT,
    "RUNNING": JobStatus.RUNNING,
    "PENDING": JobStatus.PENDING,
    "SUSPENDED": JobStatus.SUSPENDED,
    "COMPLETED": JobStatus.COMPLETED,
    "CANCELLED": JobStatus.CANCELLED,
    "FAILED": JobStatus.FAILED,
    "TIMEOUT": JobStatus.TIMEOUT,
}

MIN_NODE_FIELDS = 3
MIN_JOB_FIELDS = 5


def classify_node_status(raw: str) -> NodeStatus:
    """Map a sinfo state token (e.g. ``"idle*"``, ``"MIXED"``) to a NodeStatus."""
    token = raw.strip().lower()
    if token.endswith(STALE_MARKER):
        token = token[:-1]
    return _NODE_STATUS_MAP.get(token, NodeStatus.UNKNOWN)


def classify_job_status(raw: str) -> JobStatus:
    """Map a squeue short code or sacct state name to a JobStatus.

    sacct reports ``CANCELLED by <uid>``, so anything starting with
    ``CANCELLED`` is cancelled.
    """
    token = raw.strip().upper()
    if token.startswith("CANCELLED"):
        return JobStatus.CANCELLED
    return _JOB_STATUS_MAP.get(token, JobStatus.UNKNOWN)


def parse_nodes(output: str) -> list[Node]:
    """Parse ``sinfo -h -o '%N %T %P'`` output into Node records.

    Each line is ``<nodes> <state> <partition...>``. The node field may hold
    several comma-separated hostlist groups; every expanded name becomes one
    Node sharing the line's state and partition.
    """
    nodes = []
    for line in output.splitlines():
        if len(line.split()) < MIN_NODE_FIELDS:
            if line.strip():
                logger.debug(f"Skipping short sinfo line: {line!r}")
            continue

        node_field, status_field, partition = line.strip().split(None, 2)
        status = classify_node_status(status_field)

        for name in expand_node_field(node_field):
            nodes.append(Node(name=name, status=status, partition=partition))

    return nodes


def _parse_job_line(line: str) -> Optional[Job]:
    parts = line.split("|")
    if len(parts) < MIN_JOB_FIELDS:
        return None

    partition = parts[5] if len(parts) > 5 and parts[5] else "unknown"
    node_name = parts[6] if len(parts) > 6 and parts[6] else "unknown"

    return Job(
        id=parts[0].strip(),
        user=parts[1],
        name=parts[2],
        status=classify_job_status(parts[3]),
        age_string=parts[4].strip(),
        partition=partition,
        node_name=node_name,
    )


def parse_jobs(output: str) -> list[Job]:
    """Parse concatenated squeue + sacct output into a merged job list.

    Lines are ``ID|User|Name|Status|Elapsed[|Partition|NodeList]``. The first
    line seen for an ID wins, so squeue lines (which come first) take
    priority over sacct history. Jobs cancelled before they ever ran are
    dropped. The result is sorted by numeric job ID, newest first.
    """
    jobs: dict[str, Job] = {}

    for line in output.splitlines():
        if not line.strip():
            continue

        job = _parse_job_line(line)
        if job is None:
            logger.debug(f"Skipping short job line: {line!r}")
            continue

        if job.age == 0 and job.status == JobStatus.CANCELLED:
            continue

        if job.id not in jobs:
            jobs[job.id] = job

    return sorted(jobs.values(), key=lambda j: j.numeric_id, reverse=True)
