"""Pydantic models for cluster state."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from clusterbar.age import parse_age


class NodeStatus(str, Enum):
    """Normalized node states. ``mixed`` nodes count as allocated."""
    IDLE = "idle"
    ALLOCATED = "allocated"
    DRAINED = "drained"
    DOWN = "down"
    UNKNOWN = "unknown"


class JobStatus(str, Enum):
    """Normalized job states shared by squeue and sacct output."""
    RUNNING = "RUNNING"
    PENDING = "PENDING"
    SUSPENDED = "SUSPENDED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"


class LogKind(str, Enum):
    """Which job output file to read."""
    STDOUT = "stdout"
    STDERR = "stderr"

    @property
    def field_name(self) -> str:
        """Key holding the path in ``scontrol show job`` output."""
        return "StdOut" if self is LogKind.STDOUT else "StdErr"


class CommandResult(BaseModel):
    """Result of executing a command via SSH."""
    stdout: str = Field(default="", description="Standard output")
    stderr: str = Field(default="", description="Standard error")
    return_code: int = Field(description="Command return code")

    @property
    def success(self) -> bool:
        """Check if command succeeded."""
        return self.return_code == 0

    @property
    def output(self) -> str:
        """Get combined output, preferring stdout."""
        return self.stdout if self.stdout else self.stderr


class Node(BaseModel):
    """A single compute node as reported by sinfo."""
    name: str = Field(description="Expanded node name")
    status: NodeStatus = Field(description="Normalized node state")
    partition: str = Field(description="Partition label (may contain spaces)")


class Job(BaseModel):
    """A job from either the live queue or the accounting history."""
    id: str = Field(description="Slurm job ID")
    user: str = Field(description="Username who submitted the job")
    name: str = Field(description="Job name")
    status: JobStatus = Field(description="Normalized job state")
    age_string: str = Field(description="Raw elapsed time token (H:MM:SS)")
    partition: str = Field(default="unknown", description="Partition name")
    node_name: str = Field(default="unknown", description="Allocated node list")

    @computed_field
    @property
    def age(self) -> int:
        """Elapsed time in seconds, 0 if the token could not be parsed."""
        return parse_age(self.age_string)

    @property
    def numeric_id(self) -> int:
        """Job ID as an integer, 0 for array or otherwise non-numeric IDs."""
        if self.id.isascii() and self.id.isdigit():
            return int(self.id)
        return 0


class Snapshot(BaseModel):
    """One consistent view of the cluster, replaced wholesale on refresh."""
    nodes: list[Node] = Field(default_factory=list, description="Expanded nodes")
    jobs: list[Job] = Field(default_factory=list, description="Merged, sorted jobs")
    taken_at: datetime = Field(default_factory=datetime.now, description="When the snapshot was built")
    user: Optional[str] = Field(default=None, description="User the snapshot was fetched as")
